"""
Change Password Use Case

Rotates the password of an authenticated account.
"""

from uuid import UUID

from src.app.security.password_lifecycle import PasswordLifecycle
from src.app.security.secret_hasher import SecretHasher
from src.app.services.unit_of_work import UnitOfWork
from src.domain.entities import AuditEvent
from src.domain.result import Error, Result, Return
from .dtos import MessageResponse


class ChangePasswordUseCase:
    """
    Use case for changing a password while logged in.

    Business Rules:
    - Current password must verify
    - New password must meet complexity policy
    - New password must not match the live password or the last 3
    - Rejected rotations leave the account untouched
    """

    def __init__(self, uow: UnitOfWork, hasher: SecretHasher, lifecycle: PasswordLifecycle):
        self.uow = uow
        self.hasher = hasher
        self.lifecycle = lifecycle

    async def execute(
        self, account_id: UUID, current_password: str, new_password: str
    ) -> Result[MessageResponse]:
        async with self.uow:
            account = await self.uow.accounts.get_by_id(account_id)
            if account is None:
                return Return.err(Error("ACCOUNT_NOT_FOUND", "Account not found"))

            if not self.hasher.verify_password(current_password, account.password_hash):
                return Return.err(
                    Error("INVALID_CREDENTIALS", "Current password is incorrect")
                )

            rotation = self.lifecycle.rotate(account, new_password)
            if rotation.is_err():
                return Return.err(rotation.error)

            self.lifecycle.apply(account, rotation.value)
            await self.uow.accounts.update(account)

            await self.uow.audit_events.create(
                AuditEvent(account_id=account.id, action="password_changed")
            )

            await self.uow.commit()

            return Return.ok(
                MessageResponse(status="success", message="Password changed successfully")
            )
