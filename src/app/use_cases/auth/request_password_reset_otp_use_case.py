"""
Request Password Reset OTP Use Case

Mails a one-time code that can be exchanged for a new password.
"""

from datetime import timedelta

from src.app.security.secret_hasher import SecretHasher
from src.app.services.email_sender import IEmailSender
from src.app.services.unit_of_work import UnitOfWork
from src.domain.entities import AuditEvent, ChallengePurpose
from src.domain.result import Result, Return
from .dtos import MessageResponse

SENT_MESSAGE = "If an account with that email exists, an OTP has been sent."


class RequestPasswordResetOTPUseCase:
    """
    Use case for the OTP flavour of forgot-password.

    Business Rules:
    - Numeric OTP, stored as peppered SHA-256 hash, expires in 10 minutes
    - Overwrites any active challenge
    - No email enumeration
    """

    def __init__(
        self,
        uow: UnitOfWork,
        hasher: SecretHasher,
        email_sender: IEmailSender,
        otp_ttl: timedelta = timedelta(minutes=10),
    ):
        self.uow = uow
        self.hasher = hasher
        self.email_sender = email_sender
        self.otp_ttl = otp_ttl

    async def execute(self, email: str) -> Result[MessageResponse]:
        async with self.uow:
            account = await self.uow.accounts.get_by_email(email)

            if account is None:
                return Return.ok(MessageResponse(status="sent", message=SENT_MESSAGE))

            challenge = self.hasher.issue_otp(self.otp_ttl)
            account.set_challenge(
                challenge.hashed, ChallengePurpose.password_reset_otp, challenge.expires_at
            )
            await self.uow.accounts.update(account)

            await self.uow.audit_events.create(
                AuditEvent(
                    account_id=account.id,
                    action="password_reset_otp_requested",
                    event_metadata={"email": account.email},
                )
            )

            await self.uow.commit()

        await self.email_sender.send_otp(
            account.email, challenge.plain, ChallengePurpose.password_reset_otp.value
        )

        return Return.ok(MessageResponse(status="sent", message=SENT_MESSAGE))
