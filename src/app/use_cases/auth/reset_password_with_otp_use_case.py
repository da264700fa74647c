"""
Reset Password With OTP Use Case

Exchanges a valid reset OTP for a new password.
"""

from src.app.security.password_lifecycle import PasswordLifecycle
from src.app.security.secret_hasher import SecretHasher
from src.app.services.unit_of_work import UnitOfWork
from src.domain.entities import AuditEvent, ChallengePurpose
from src.domain.entities.account import MAX_CHALLENGE_FAILURES
from src.domain.result import Result, Return
from .challenge_attempts import INVALID_OTP, record_wrong_code
from .dtos import MessageResponse


class ResetPasswordWithOTPUseCase:
    """
    Business Rules:
    - OTP must match the active password_reset_otp challenge and be unexpired
    - New password goes through the full rotation policy
    - Challenge is cleared only when the rotation succeeds
    - The challenge is dropped after max_failures wrong codes
    """

    def __init__(
        self,
        uow: UnitOfWork,
        hasher: SecretHasher,
        lifecycle: PasswordLifecycle,
        max_failures: int = MAX_CHALLENGE_FAILURES,
    ):
        self.uow = uow
        self.hasher = hasher
        self.lifecycle = lifecycle
        self.max_failures = max_failures

    async def execute(self, email: str, otp: str, new_password: str) -> Result[MessageResponse]:
        async with self.uow:
            account = await self.uow.accounts.get_by_email(email)

            if account is None or not account.has_live_challenge(ChallengePurpose.password_reset_otp):
                return Return.err(INVALID_OTP)

            if not self.hasher.verify_otp(otp, account.challenge_hash):
                await record_wrong_code(self.uow, account, self.max_failures)
                return Return.err(INVALID_OTP)

            rotation = self.lifecycle.rotate(account, new_password)
            if rotation.is_err():
                return Return.err(rotation.error)

            self.lifecycle.apply(account, rotation.value)
            account.clear_challenge()
            await self.uow.accounts.update(account)

            await self.uow.audit_events.create(
                AuditEvent(account_id=account.id, action="password_reset_with_otp")
            )

            await self.uow.commit()

            return Return.ok(
                MessageResponse(status="success", message="Password reset successfully.")
            )
