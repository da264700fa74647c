"""
Verify OTP Use Case

Confirms a registration by checking the one-time code mailed at signup.
"""

from src.app.security.secret_hasher import SecretHasher
from src.app.services.unit_of_work import UnitOfWork
from src.domain.entities import AuditEvent, ChallengePurpose
from src.domain.entities.account import MAX_CHALLENGE_FAILURES
from src.domain.result import Result, Return
from .challenge_attempts import INVALID_OTP, record_wrong_code
from .dtos import MessageResponse


class VerifyOTPUseCase:
    """
    Use case for registration OTP verification.

    Business Rules:
    - OTP is compared by hash, never stored in plain text
    - OTP must not be expired (10 minutes from registration)
    - Sets is_verified = True and clears the challenge (single-use)
    - Unknown email, verified account and wrong code all produce the same error
    - The challenge is dropped after max_failures wrong codes
    """

    def __init__(self, uow: UnitOfWork, hasher: SecretHasher, max_failures: int = MAX_CHALLENGE_FAILURES):
        self.uow = uow
        self.hasher = hasher
        self.max_failures = max_failures

    async def execute(self, email: str, otp: str) -> Result[MessageResponse]:
        async with self.uow:
            account = await self.uow.accounts.get_by_email(email)

            if account is None or not account.has_live_challenge(ChallengePurpose.registration):
                return Return.err(INVALID_OTP)

            if not self.hasher.verify_otp(otp, account.challenge_hash):
                await record_wrong_code(self.uow, account, self.max_failures)
                return Return.err(INVALID_OTP)

            account.is_verified = True
            account.clear_challenge()
            await self.uow.accounts.update(account)

            await self.uow.audit_events.create(
                AuditEvent(
                    account_id=account.id,
                    action="otp_verified",
                    event_metadata={"email": account.email},
                )
            )

            await self.uow.commit()

            return Return.ok(
                MessageResponse(status="verified", message="Account verified successfully")
            )
