"""
Login Use Case

Authenticates an account and returns a JWT access token.
"""

from src.app.security.password_lifecycle import PasswordLifecycle
from src.app.security.secret_hasher import SecretHasher
from src.app.services.unit_of_work import UnitOfWork
from src.api.utils.jwt import generate_jwt
from src.domain.base import utcnow
from src.domain.entities import AuditEvent
from src.domain.result import Error, Result, Return
from .dtos import AccountInfo, LoginResponse


class LoginUseCase:
    """
    Use case for account login and JWT issuance.

    Business Rules:
    - Constant-time password comparison to prevent timing attacks
    - Unknown email costs one bcrypt check, same error as a wrong password
    - Account must have verified its registration OTP
    - Expired password blocks login until it is reset
    - Updates account.last_login_at
    """

    def __init__(self, uow: UnitOfWork, hasher: SecretHasher):
        self.uow = uow
        self.hasher = hasher

    async def execute(self, email: str, password: str) -> Result[LoginResponse]:
        async with self.uow:
            account = await self.uow.accounts.get_by_email(email)

            if account is None:
                self.hasher.burn_password_check()
                return Return.err(
                    Error("INVALID_CREDENTIALS", "Invalid email or password")
                )

            if not self.hasher.verify_password(password, account.password_hash):
                return Return.err(
                    Error("INVALID_CREDENTIALS", "Invalid email or password")
                )

            if not account.is_verified:
                return Return.err(
                    Error("ACCOUNT_NOT_VERIFIED", "Please verify your account with the OTP sent to your email")
                )

            if PasswordLifecycle.is_expired(account):
                return Return.err(
                    Error("PASSWORD_EXPIRED", "Password has expired. Please reset your password.")
                )

            account.last_login_at = utcnow()
            await self.uow.accounts.update(account)

            await self.uow.audit_events.create(
                AuditEvent(
                    account_id=account.id,
                    action="login",
                    event_metadata={"email": account.email},
                )
            )

            await self.uow.commit()

            access_token = generate_jwt(account.id, account.role.value)

            return Return.ok(
                LoginResponse(
                    access_token=access_token,
                    account=AccountInfo(
                        id=str(account.id),
                        name=account.name,
                        email=account.email,
                        role=account.role.value,
                        is_verified=account.is_verified,
                    ),
                    password_expires_at=account.password_expires_at,
                )
            )
