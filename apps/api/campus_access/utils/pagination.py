"""
Offset pagination for list endpoints.

Usage:
    page = await Paginator(db).paginate_offset(
        select(AuditLog).order_by(AuditLog.timestamp.desc()),
        page=2,
        per_page=50,
    )
"""

from typing import Generic, Sequence, TypeVar

from pydantic import BaseModel
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class OffsetPage(BaseModel, Generic[T]):
    """One page of results plus the totals a client needs to page on."""

    items: list[T]
    total: int
    page: int
    per_page: int
    pages: int
    has_next: bool
    has_prev: bool

    model_config = {"arbitrary_types_allowed": True}

    @classmethod
    def create(
        cls,
        items: Sequence[T],
        total: int,
        page: int,
        per_page: int,
    ) -> "OffsetPage[T]":
        pages = (total + per_page - 1) // per_page if per_page > 0 else 0
        return cls(
            items=list(items),
            total=total,
            page=page,
            per_page=per_page,
            pages=pages,
            has_next=page < pages,
            has_prev=page > 1,
        )


class Paginator:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def count(self, query: Select) -> int:
        count_query = select(func.count()).select_from(query.order_by(None).subquery())
        return await self.db.scalar(count_query) or 0

    async def paginate_offset(
        self,
        query: Select,
        page: int = 1,
        per_page: int = 20,
    ) -> OffsetPage:
        """Run ``query`` for one page. Ordering is left to the caller."""
        total = await self.count(query)

        offset = (page - 1) * per_page
        result = await self.db.execute(query.offset(offset).limit(per_page))
        items = list(result.scalars().all())

        return OffsetPage.create(
            items=items,
            total=total,
            page=page,
            per_page=per_page,
        )
