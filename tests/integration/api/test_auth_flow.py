"""
Account lifecycle over HTTP: registration with OTP, login, and a
CSRF-protected password change.
"""
from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlmodel import select

from src.domain.base import utcnow
from src.domain.entities import Account, AuditEvent

EMAIL = "sita@example.com"
PASSWORD = "Aa1!aaaa"


async def register(client: AsyncClient, email: str = EMAIL, password: str = PASSWORD):
    return await client.post(
        "/api/auth/register",
        json={"name": "Sita", "email": email, "password": password, "confirmPassword": password},
    )


async def register_and_verify(client: AsyncClient, email_sender, email: str = EMAIL):
    assert (await register(client, email)).status_code == 201
    otp = email_sender.last_otp(email)
    assert (await client.post("/api/auth/verify-otp", json={"email": email, "otp": otp})).status_code == 200


async def login(client: AsyncClient, password: str = PASSWORD, email: str = EMAIL):
    return await client.post("/api/auth/login", json={"email": email, "password": password})


@pytest.mark.asyncio
async def test_register_stores_only_hashes(client: AsyncClient, db_session, email_sender):
    response = await register(client)

    assert response.status_code == 201
    assert response.json()["status"] == "pending_verification"

    account = (await db_session.exec(select(Account).where(Account.email == EMAIL))).first()
    otp = email_sender.last_otp(EMAIL)
    assert account.is_verified is False
    assert account.password_hash.startswith("$2")
    assert account.challenge_hash != otp
    assert len(account.challenge_hash) == 64


@pytest.mark.asyncio
async def test_register_rejects_weak_password_with_details(client: AsyncClient):
    response = await register(client, password="alllower1!")

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "WEAK_PASSWORD"
    assert "one uppercase letter" in error["details"]


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient):
    await register(client)

    response = await register(client)

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "EMAIL_ALREADY_EXISTS"


@pytest.mark.asyncio
async def test_password_confirmation_must_match(client: AsyncClient):
    response = await client.post(
        "/api/auth/register",
        json={"name": "Sita", "email": EMAIL, "password": PASSWORD, "confirm_password": "Aa1!bbbb"},
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "PASSWORD_MISMATCH"


@pytest.mark.asyncio
async def test_login_requires_verification(client: AsyncClient):
    await register(client)

    response = await login(client)

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "ACCOUNT_NOT_VERIFIED"


@pytest.mark.asyncio
async def test_wrong_otp(client: AsyncClient):
    await register(client)

    response = await client.post("/api/auth/verify-otp", json={"email": EMAIL, "otp": "000000x"})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_OTP"


@pytest.mark.asyncio
async def test_register_verify_login(client: AsyncClient, db_session, email_sender):
    await register_and_verify(client, email_sender)

    response = await login(client)

    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["account"]["email"] == EMAIL
    assert data["account"]["is_verified"] is True

    actions = [event.action for event in (await db_session.exec(select(AuditEvent))).all()]
    assert sorted(actions) == ["login", "otp_verified", "register"]


@pytest.mark.asyncio
async def test_expired_password_blocks_login(client: AsyncClient, db_session, email_sender):
    await register_and_verify(client, email_sender)
    account = (await db_session.exec(select(Account).where(Account.email == EMAIL))).first()
    account.password_expires_at = utcnow() - timedelta(days=1)
    db_session.add(account)
    await db_session.commit()

    response = await login(client)

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "PASSWORD_EXPIRED"


@pytest.mark.asyncio
async def test_change_password_end_to_end(client: AsyncClient, email_sender, csrf_token: str):
    await register_and_verify(client, email_sender)
    access_token = (await login(client)).json()["access_token"]
    headers = {"Authorization": f"Bearer {access_token}", "X-CSRF-Token": csrf_token}

    without_csrf = await client.post(
        "/api/auth/change-password",
        json={"currentPassword": PASSWORD, "newPassword": "Bb2@bbbb"},
        headers={"Authorization": f"Bearer {access_token}"},
    )
    changed = await client.post(
        "/api/auth/change-password",
        json={"currentPassword": PASSWORD, "newPassword": "Bb2@bbbb"},
        headers=headers,
    )
    back_to_old = await client.post(
        "/api/auth/change-password",
        json={"currentPassword": "Bb2@bbbb", "newPassword": PASSWORD},
        headers=headers,
    )

    assert without_csrf.status_code == 403
    assert without_csrf.json()["error"]["code"] == "CSRF_TOKEN_MISSING"
    assert changed.status_code == 200
    assert back_to_old.status_code == 400
    assert back_to_old.json()["error"]["code"] == "PASSWORD_REUSED"

    assert (await login(client)).status_code == 401
    assert (await login(client, password="Bb2@bbbb")).status_code == 200


@pytest.mark.asyncio
async def test_change_password_requires_bearer(client: AsyncClient, csrf_token: str):
    response = await client.post(
        "/api/auth/change-password",
        json={"currentPassword": PASSWORD, "newPassword": "Bb2@bbbb"},
        headers={"X-CSRF-Token": csrf_token},
    )

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHORIZED"
