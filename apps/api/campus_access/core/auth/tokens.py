"""
Access tokens.

Signed JWTs carrying the user id (``sub``), issue time (``iat``) and a
stamp of the user's last password change (``pwd``). A token whose stamp
no longer matches the stored one, or that was issued before the change,
is stale.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from jose import ExpiredSignatureError, JWTError, jwt

from campus_access.core.config import AuthSettings, settings
from campus_access.utils.timezone import UTC, to_utc, utc_now

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


class TokenExpired(Exception):
    pass


class TokenInvalid(Exception):
    pass


@dataclass(frozen=True)
class TokenClaims:
    user_id: UUID
    issued_at: int
    expires_at: int
    password_stamp: int = 0


def password_stamp(password_changed_at: Optional[datetime]) -> int:
    """Microseconds since the epoch of the last password change, 0 if never."""
    if password_changed_at is None:
        return 0
    return (to_utc(password_changed_at) - _EPOCH) // timedelta(microseconds=1)


def create_access_token(
    user_id: UUID,
    issued_at: Optional[datetime] = None,
    config: AuthSettings | None = None,
    password_changed_at: Optional[datetime] = None,
) -> str:
    """Create a signed access token for ``user_id``."""
    config = config or settings.auth
    issued = to_utc(issued_at) if issued_at else utc_now()
    expire = issued + timedelta(minutes=config.access_token_expire_minutes)
    payload = {
        "sub": str(user_id),
        "iat": int(issued.timestamp()),
        "exp": int(expire.timestamp()),
        "pwd": password_stamp(password_changed_at),
        "type": "access",
    }
    return jwt.encode(payload, config.secret_key, algorithm=config.algorithm)


def decode_access_token(token: str, config: AuthSettings | None = None) -> TokenClaims:
    """
    Verify signature and expiry.

    Raises:
        TokenExpired: The token is past its ``exp``
        TokenInvalid: Bad signature, malformed or missing claims
    """
    config = config or settings.auth
    try:
        payload = jwt.decode(token, config.secret_key, algorithms=[config.algorithm])
    except ExpiredSignatureError as exc:
        raise TokenExpired() from exc
    except JWTError as exc:
        raise TokenInvalid() from exc

    if payload.get("type") != "access":
        raise TokenInvalid()

    try:
        return TokenClaims(
            user_id=UUID(payload["sub"]),
            issued_at=int(payload["iat"]),
            expires_at=int(payload["exp"]),
            password_stamp=int(payload.get("pwd", 0)),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise TokenInvalid() from exc


def password_changed_after(password_changed_at: Optional[datetime], claims: TokenClaims) -> bool:
    """True when the password changed after the token was issued."""
    if password_changed_at is None:
        return False
    if claims.password_stamp != password_stamp(password_changed_at):
        return True
    return claims.issued_at < int(to_utc(password_changed_at).timestamp())
