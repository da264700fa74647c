"""
Verify Password Reset OTP Use Case

Lets the UI confirm a reset code before asking for the new password.
The challenge is left in place; only the reset itself consumes it.
Wrong codes count against the challenge like they do on reset.
"""

from src.app.security.secret_hasher import SecretHasher
from src.app.services.unit_of_work import UnitOfWork
from src.domain.entities import ChallengePurpose
from src.domain.entities.account import MAX_CHALLENGE_FAILURES
from src.domain.result import Result, Return
from .challenge_attempts import INVALID_OTP, record_wrong_code
from .dtos import MessageResponse


class VerifyPasswordResetOTPUseCase:
    def __init__(self, uow: UnitOfWork, hasher: SecretHasher, max_failures: int = MAX_CHALLENGE_FAILURES):
        self.uow = uow
        self.hasher = hasher
        self.max_failures = max_failures

    async def execute(self, email: str, otp: str) -> Result[MessageResponse]:
        async with self.uow:
            account = await self.uow.accounts.get_by_email(email)

            if account is None or not account.has_live_challenge(ChallengePurpose.password_reset_otp):
                return Return.err(INVALID_OTP)

            if not self.hasher.verify_otp(otp, account.challenge_hash):
                await record_wrong_code(self.uow, account, self.max_failures)
                return Return.err(INVALID_OTP)

            return Return.ok(
                MessageResponse(
                    status="verified",
                    message="OTP verified successfully. You can now reset your password.",
                )
            )
