"""
Confirm Password Reset Use Case

Handles password reset confirmation with secure token validation.
"""

from src.app.security.password_lifecycle import PasswordLifecycle
from src.app.security.secret_hasher import SecretHasher
from src.app.services.unit_of_work import UnitOfWork
from src.domain.entities import AuditEvent, ChallengePurpose
from src.domain.result import Error, Result, Return
from .dtos import MessageResponse


class ConfirmPasswordResetUseCase:
    """
    Use case for confirming password reset.

    Business Rules:
    - Token is validated by hashing and looking up the stored hash
    - Token must not be expired (1 hour window)
    - New password goes through the full rotation policy
    - Token is cleared after a successful reset (single use)
    - Audit event created for security tracking
    """

    def __init__(self, uow: UnitOfWork, hasher: SecretHasher, lifecycle: PasswordLifecycle):
        self.uow = uow
        self.hasher = hasher
        self.lifecycle = lifecycle

    async def execute(self, token: str, new_password: str) -> Result[MessageResponse]:
        """
        Execute confirm password reset use case.

        Errors:
            - INVALID_TOKEN: Token not found, expired or already used
            - WEAK_PASSWORD: Password does not meet complexity requirements
            - PASSWORD_REUSED: Password matches a recent password
        """
        async with self.uow:
            token_hash = self.hasher.hash_token(token)
            account = await self.uow.accounts.get_by_challenge_hash(
                token_hash, ChallengePurpose.password_reset
            )

            # Expired and unknown tokens are indistinguishable to the caller
            if account is None or not account.has_live_challenge(ChallengePurpose.password_reset):
                return Return.err(
                    Error(
                        "INVALID_TOKEN",
                        "Invalid or expired reset token. Please request a new password reset.",
                    )
                )

            rotation = self.lifecycle.rotate(account, new_password)
            if rotation.is_err():
                return Return.err(rotation.error)

            self.lifecycle.apply(account, rotation.value)
            account.clear_challenge()
            await self.uow.accounts.update(account)

            await self.uow.audit_events.create(
                AuditEvent(account_id=account.id, action="password_reset_confirmed")
            )

            await self.uow.commit()

            return Return.ok(
                MessageResponse(
                    status="success",
                    message="Password reset successfully. You can now log in with your new password.",
                )
            )
