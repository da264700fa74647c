from abc import ABC, abstractmethod


class IEmailSender(ABC):
    """Outbound e-mail port - delivery itself is an external collaborator"""

    @abstractmethod
    async def send_otp(self, email: str, otp: str, purpose: str) -> None:
        """Deliver a one-time code"""
        pass

    @abstractmethod
    async def send_password_reset(self, email: str, token: str) -> None:
        """Deliver a password reset link carrying the plain token"""
        pass
