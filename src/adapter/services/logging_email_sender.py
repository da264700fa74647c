import logging

from src.app.services.email_sender import IEmailSender

logger = logging.getLogger(__name__)


class LoggingEmailSender(IEmailSender):
    """
    Records that a message was queued without ever logging its secret.

    Stands in until a mail transport is wired up.
    """

    async def send_otp(self, email: str, otp: str, purpose: str) -> None:
        logger.info(f"OTP email queued: to={email} purpose={purpose} length={len(otp)}")

    async def send_password_reset(self, email: str, token: str) -> None:
        logger.info(f"Password reset email queued: to={email}")
