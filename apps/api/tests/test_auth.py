"""
Tests for authentication endpoints and the authentication gate.
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from campus_access.models.audit_log import AuditLog
from campus_access.services.user import UserService
from campus_access.utils.timezone import utc_now

DEFAULT_PASSWORD = "testpassword123"


async def audit_entries(db, action: str) -> list[AuditLog]:
    result = await db.execute(select(AuditLog).where(AuditLog.action == action))
    return list(result.scalars().all())


async def login(client: AsyncClient, email: str, password: str = DEFAULT_PASSWORD):
    return await client.post(
        "/api/auth/login",
        data={"username": email, "password": password},
    )


# ============ Login ============


@pytest.mark.asyncio
async def test_login_success(client: AsyncClient, db, user_factory):
    """Test successful login."""
    user = await user_factory.create(role="admin", email="login@example.com")

    response = await client.post(
        "/api/auth/login",
        data={"username": "LOGIN@example.com", "password": DEFAULT_PASSWORD},
        headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["access_token"]
    assert data["user"]["email"] == "login@example.com"
    assert data["user"]["role"] == "admin"
    assert "password_hash" not in data["user"]

    assert user.last_login_at is not None

    entries = await audit_entries(db, "login")
    assert len(entries) == 1
    assert entries[0].severity == "medium"
    assert entries[0].tenant == "school-A"
    assert entries[0].ip_address == "203.0.113.9"


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, user_factory):
    """Test login with wrong password fails."""
    user = await user_factory.create(email="wrong@example.com")

    response = await login(client, user.email, "wrongpassword")

    assert response.status_code == 401
    assert response.json() == {"detail": "Invalid email or password", "code": "unauthenticated"}
    assert user.login_attempts == 1


@pytest.mark.asyncio
async def test_login_unknown_email(client: AsyncClient):
    """Test login with an email nobody owns."""
    response = await login(client, "nobody@example.com")

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid email or password"


@pytest.mark.asyncio
async def test_login_deactivated(client: AsyncClient, user_factory):
    """Test deactivated accounts cannot log in."""
    user = await user_factory.create(email="gone@example.com", is_active=False)

    response = await login(client, user.email)

    assert response.status_code == 401
    assert response.json()["detail"] == "Your account has been deactivated"


@pytest.mark.asyncio
async def test_lockout_after_repeated_failures(client: AsyncClient, db, user_factory):
    """Five failures lock the account, even against the right password."""
    user = await user_factory.create(email="locked@example.com")

    for _ in range(5):
        response = await login(client, user.email, "wrongpassword")
        assert response.status_code == 401

    assert user.login_attempts == 5
    assert user.locked_until is not None

    response = await login(client, user.email)
    assert response.status_code == 423
    assert response.json()["code"] == "account_locked"

    entries = await audit_entries(db, "account_locked")
    assert len(entries) == 1
    assert entries[0].severity == "medium"
    assert entries[0].details["failedAttempts"] == 5


@pytest.mark.asyncio
async def test_expired_lock_restarts_count(client: AsyncClient, user_factory):
    """A failure after the lock expired starts a fresh count."""
    user = await user_factory.create(
        email="expired@example.com",
        login_attempts=5,
        locked_until=utc_now() - timedelta(minutes=1),
    )

    response = await login(client, user.email, "wrongpassword")
    assert response.status_code == 401
    assert user.login_attempts == 1
    assert user.locked_until is None

    response = await login(client, user.email)
    assert response.status_code == 200
    assert user.login_attempts == 0


# ============ Authentication gate ============


@pytest.mark.asyncio
async def test_missing_token(client: AsyncClient):
    """Test requests without a token are rejected."""
    response = await client.get("/api/auth/me")

    assert response.status_code == 401
    assert response.json() == {
        "detail": "You are not logged in. Please log in to get access.",
        "code": "unauthenticated",
    }
    assert response.headers["www-authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_invalid_token(client: AsyncClient):
    """Test a malformed token is rejected."""
    response = await client.get(
        "/api/auth/me",
        headers={"Authorization": "Bearer not-a-jwt"},
    )

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid token. Please log in again!"


@pytest.mark.asyncio
async def test_expired_token(client: AsyncClient, teacher, auth_headers):
    """Test an expired token is rejected."""
    headers = auth_headers(teacher, issued_at=utc_now() - timedelta(days=2))

    response = await client.get("/api/auth/me", headers=headers)

    assert response.status_code == 401
    assert response.json()["detail"] == "Your token has expired! Please log in again."


@pytest.mark.asyncio
async def test_token_for_deleted_user(client: AsyncClient, db, teacher, auth_headers):
    """Test a token outlives its user only until the next request."""
    headers = auth_headers(teacher)
    await db.delete(teacher)
    await db.commit()

    response = await client.get("/api/auth/me", headers=headers)

    assert response.status_code == 401
    assert response.json()["detail"] == "The user belonging to this token does no longer exist."


@pytest.mark.asyncio
async def test_token_for_deactivated_user(client: AsyncClient, db, teacher, auth_headers):
    """Test deactivation takes effect on the next request."""
    headers = auth_headers(teacher)
    teacher.is_active = False
    await db.commit()

    response = await client.get("/api/auth/me", headers=headers)

    assert response.status_code == 401
    assert response.json()["detail"] == "Your account has been deactivated."


@pytest.mark.asyncio
async def test_stale_token_after_password_change(client: AsyncClient, user_factory, auth_headers):
    """Test tokens issued before a password change are rejected."""
    user = await user_factory.create(password_changed_at=utc_now())
    headers = auth_headers(user, issued_at=utc_now() - timedelta(hours=1))

    response = await client.get("/api/auth/me", headers=headers)

    assert response.status_code == 401
    assert response.json()["detail"] == "User recently changed password! Please log in again."


@pytest.mark.asyncio
async def test_me(client: AsyncClient, user_factory, auth_headers):
    """Test the principal endpoint."""
    manager = await user_factory.create(
        role="manager",
        tenant="hq",
        first_name="Mia",
        last_name="Manager",
        managed_tenants=["school-A", "school-B"],
    )

    response = await client.get("/api/auth/me", headers=auth_headers(manager))

    assert response.status_code == 200
    data = response.json()
    assert data["role"] == "manager"
    assert data["role_level"] == 4
    assert data["tenant"] == "hq"
    assert data["role_scope"] == "limited"
    assert data["managed_tenants"] == ["school-A", "school-B"]
    assert data["name"] == "Mia Manager"
    assert {"resource": "audit", "actions": ["read"], "scope": "tenant", "conditions": None} in data["permissions"]


# ============ Logout and password change ============


@pytest.mark.asyncio
async def test_logout(client: AsyncClient, db, teacher, auth_headers):
    """Test logout is recorded."""
    response = await client.post("/api/auth/logout", headers=auth_headers(teacher))

    assert response.status_code == 200
    assert response.json() == {"message": "Logged out successfully"}

    entries = await audit_entries(db, "logout")
    assert len(entries) == 1
    assert entries[0].severity == "low"
    assert entries[0].actor_id == teacher.id


@pytest.mark.asyncio
async def test_change_password(client: AsyncClient, db, teacher, auth_headers):
    """Test a password change revokes older tokens and issues a working one."""
    old_headers = auth_headers(teacher, issued_at=utc_now() - timedelta(hours=1))

    response = await client.post(
        "/api/auth/change-password",
        headers=old_headers,
        json={"current_password": DEFAULT_PASSWORD, "new_password": "a-new-password"},
    )

    assert response.status_code == 200
    new_token = response.json()["access_token"]

    stale = await client.get("/api/auth/me", headers=old_headers)
    assert stale.status_code == 401

    fresh = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {new_token}"})
    assert fresh.status_code == 200

    entries = await audit_entries(db, "password_reset")
    assert len(entries) == 1
    assert entries[0].severity == "medium"

    relogin = await login(client, teacher.email, "a-new-password")
    assert relogin.status_code == 200


@pytest.mark.asyncio
async def test_change_password_wrong_current(client: AsyncClient, teacher, auth_headers):
    """Test the current password must match."""
    response = await client.post(
        "/api/auth/change-password",
        headers=auth_headers(teacher),
        json={"current_password": "not-my-password", "new_password": "a-new-password"},
    )

    assert response.status_code == 400
    assert response.json() == {
        "detail": "Current password is incorrect",
        "code": "invalid_request",
    }


@pytest.mark.asyncio
async def test_change_password_revokes_current_token(client: AsyncClient, teacher, auth_headers):
    """Test the token used for the change stops working straight away."""
    headers = auth_headers(teacher)

    response = await client.post(
        "/api/auth/change-password",
        headers=headers,
        json={"current_password": DEFAULT_PASSWORD, "new_password": "a-new-password"},
    )
    assert response.status_code == 200

    same_token = await client.get("/api/auth/me", headers=headers)
    assert same_token.status_code == 401
    assert same_token.json()["detail"] == "User recently changed password! Please log in again."

    new_token = response.json()["access_token"]
    fresh = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {new_token}"})
    assert fresh.status_code == 200


@pytest.mark.asyncio
async def test_token_minted_before_change_in_same_second(client: AsyncClient, db, teacher, auth_headers):
    """Test a token from just before a password change is stale even within one second."""
    headers = auth_headers(teacher)
    teacher.password_changed_at = utc_now()
    await db.commit()

    response = await client.get("/api/auth/me", headers=headers)

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_user_store_timeout(client: AsyncClient, teacher, auth_headers, monkeypatch):
    """Test a store failure during authentication is reported as retryable."""
    async def unavailable(self, user_id):
        raise OperationalError("SELECT users", {}, Exception("connection timed out"))

    monkeypatch.setattr(UserService, "get_by_id", unavailable)

    response = await client.get("/api/auth/me", headers=auth_headers(teacher))

    assert response.status_code == 503
    assert response.json()["code"] == "service_unavailable"


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    """Test the liveness endpoint."""
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
