"""
Register Use Case

Creates an unverified account and sends a registration OTP.
"""

import logging
from datetime import timedelta

from src.app.security.password_lifecycle import PasswordLifecycle
from src.app.security.secret_hasher import SecretHasher
from src.app.services.email_sender import IEmailSender
from src.app.services.unit_of_work import UnitOfWork
from src.domain.entities import Account, AuditEvent, ChallengePurpose
from src.domain.result import Error, Result, Return
from .dtos import MessageResponse, RegisterCommand

logger = logging.getLogger(__name__)


class RegisterUseCase:
    """
    Register Use Case

    Business Logic:
    1. Password and confirmation must match
    2. Password must meet complexity policy
    3. Email must not already be registered
    4. Hash password with bcrypt, start the 90-day expiry clock
    5. Issue a numeric OTP, store only its hash (expires in 10 minutes)
    6. Record audit event, commit, then hand the plain OTP to the mailer
    """

    def __init__(
        self,
        uow: UnitOfWork,
        hasher: SecretHasher,
        lifecycle: PasswordLifecycle,
        email_sender: IEmailSender,
        otp_ttl: timedelta = timedelta(minutes=10),
    ):
        self.uow = uow
        self.hasher = hasher
        self.lifecycle = lifecycle
        self.email_sender = email_sender
        self.otp_ttl = otp_ttl

    async def execute(self, command: RegisterCommand) -> Result[MessageResponse]:
        if command.password != command.confirm_password:
            return Return.err(Error("PASSWORD_MISMATCH", "Passwords do not match"))

        credentials = self.lifecycle.initial(command.password)
        if credentials.is_err():
            return Return.err(credentials.error)

        email = command.email.lower()

        async with self.uow:
            existing = await self.uow.accounts.get_by_email(email)
            if existing:
                return Return.err(
                    Error("EMAIL_ALREADY_EXISTS", "Email already registered")
                )

            rotation = credentials.value
            challenge = self.hasher.issue_otp(self.otp_ttl)

            account = Account(
                name=command.name,
                email=email,
                password_hash=rotation.password_hash,
                password_history=rotation.password_history,
                password_expires_at=rotation.password_expires_at,
                is_verified=False,
            )
            account.set_challenge(
                challenge.hashed, ChallengePurpose.registration, challenge.expires_at
            )
            account = await self.uow.accounts.create(account)

            await self.uow.audit_events.create(
                AuditEvent(
                    account_id=account.id,
                    action="register",
                    event_metadata={"email": email},
                )
            )

            await self.uow.commit()

        await self.email_sender.send_otp(email, challenge.plain, ChallengePurpose.registration.value)
        logger.info(f"Account registered, awaiting OTP verification: account_id={account.id}")

        return Return.ok(
            MessageResponse(
                status="pending_verification",
                message="Registration successful. Please check your email for OTP.",
            )
        )
