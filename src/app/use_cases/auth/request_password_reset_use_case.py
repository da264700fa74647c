"""
Request Password Reset Use Case

Handles generating and sending password reset links.
"""

from datetime import timedelta

from src.app.security.secret_hasher import SecretHasher
from src.app.services.email_sender import IEmailSender
from src.app.services.unit_of_work import UnitOfWork
from src.domain.entities import AuditEvent, ChallengePurpose
from src.domain.result import Result, Return
from .dtos import MessageResponse

SENT_MESSAGE = "If an account with that email exists, a password reset link has been sent."


class RequestPasswordResetUseCase:
    """
    Use case for requesting a password reset link.

    Business Rules:
    - Generate cryptographically secure 32-byte token
    - Hash token with SHA-256 before storing on the account
    - Token expires in 1 hour
    - Overwrites any active challenge (OTP or older link)
    - No email enumeration (same response for valid/invalid emails)
    - Audit event created for security tracking
    """

    def __init__(
        self,
        uow: UnitOfWork,
        hasher: SecretHasher,
        email_sender: IEmailSender,
        token_ttl: timedelta = timedelta(hours=1),
    ):
        self.uow = uow
        self.hasher = hasher
        self.email_sender = email_sender
        self.token_ttl = token_ttl

    async def execute(self, email: str) -> Result[MessageResponse]:
        """
        Execute request password reset use case.

        Note:
            For security (no email enumeration), always returns success
            even if email doesn't exist. However, only generates token
            if email exists.
        """
        async with self.uow:
            account = await self.uow.accounts.get_by_email(email)

            if account is None:
                return Return.ok(MessageResponse(status="sent", message=SENT_MESSAGE))

            challenge = self.hasher.issue_reset_token(self.token_ttl)
            account.set_challenge(
                challenge.hashed, ChallengePurpose.password_reset, challenge.expires_at
            )
            await self.uow.accounts.update(account)

            await self.uow.audit_events.create(
                AuditEvent(
                    account_id=account.id,
                    action="password_reset_requested",
                    event_metadata={"email": account.email},
                )
            )

            await self.uow.commit()

        await self.email_sender.send_password_reset(account.email, challenge.plain)

        return Return.ok(MessageResponse(status="sent", message=SENT_MESSAGE))
