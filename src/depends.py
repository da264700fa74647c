from datetime import timedelta
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession
from config import ApplicationConfig
from src.adapter.services.logging_email_sender import LoggingEmailSender
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.api.error import ClientError
from src.api.utils.jwt import verify_jwt
from src.app.security.password_lifecycle import PasswordLifecycle
from src.app.security.secret_hasher import SecretHasher
from src.app.services.attempt_limiter import IAttemptLimiter
from src.app.services.csrf_token_store import ICSRFTokenStore
from src.app.services.email_sender import IEmailSender
from src.domain.result import Error

engine = create_async_engine(ApplicationConfig.DB_URI, echo=False, future=True)

AsyncSessionLocal = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)

security = HTTPBearer(auto_error=False)


async def get_unit_of_work():
    async with AsyncSessionLocal() as session:
        yield SqlAlchemyUnitOfWork(session)


@lru_cache
def get_secret_hasher() -> SecretHasher:
    return SecretHasher(
        bcrypt_rounds=ApplicationConfig.BCRYPT_ROUNDS,
        otp_secret=ApplicationConfig.OTP_SECRET,
        otp_length=ApplicationConfig.OTP_LENGTH,
    )


@lru_cache
def get_password_lifecycle() -> PasswordLifecycle:
    return PasswordLifecycle(
        get_secret_hasher(),
        history_limit=ApplicationConfig.PASSWORD_HISTORY_LIMIT,
        max_age_days=ApplicationConfig.PASSWORD_MAX_AGE_DAYS,
    )


@lru_cache
def get_email_sender() -> IEmailSender:
    return LoggingEmailSender()


def get_otp_ttl() -> timedelta:
    return timedelta(minutes=ApplicationConfig.OTP_TTL_MINUTES)


def get_reset_token_ttl() -> timedelta:
    return timedelta(minutes=ApplicationConfig.RESET_TOKEN_TTL_MINUTES)


def get_csrf_token_store(request: Request) -> ICSRFTokenStore:
    """The store is owned by the app so middleware and routes share it."""
    return request.app.state.csrf_token_store


def get_attempt_limiter(request: Request) -> IAttemptLimiter:
    return request.app.state.attempt_limiter


async def get_current_account(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """
    Dependency to extract and verify JWT token from Authorization header.

    Returns:
        Decoded JWT payload containing account_id and role

    Raises:
        ClientError: 401 if token is missing, invalid or expired
    """
    payload = verify_jwt(credentials.credentials) if credentials else None

    if payload is None:
        raise ClientError(
            Error("UNAUTHORIZED", "Invalid or expired token"),
            status_code=status.HTTP_401_UNAUTHORIZED,
        )

    return payload
