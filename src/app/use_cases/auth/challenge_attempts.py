"""
Wrong-code bookkeeping shared by the OTP use cases.
"""

import logging

from src.app.services.unit_of_work import UnitOfWork
from src.domain.entities import Account, AuditEvent
from src.domain.entities.account import MAX_CHALLENGE_FAILURES
from src.domain.result import Error

logger = logging.getLogger(__name__)

INVALID_OTP = Error("INVALID_OTP", "Invalid or expired OTP")


async def record_wrong_code(
    uow: UnitOfWork, account: Account, max_failures: int = MAX_CHALLENGE_FAILURES
) -> None:
    """Persist a failed attempt; the challenge is dropped once the budget is spent."""
    purpose = account.challenge_purpose
    dropped = account.record_challenge_failure(max_failures)
    await uow.accounts.update(account)

    if dropped:
        logger.warning(f"Challenge dropped after {max_failures} wrong codes: account_id={account.id}")
        await uow.audit_events.create(
            AuditEvent(
                account_id=account.id,
                action="challenge_locked",
                event_metadata={"purpose": purpose.value if purpose else None},
            )
        )

    await uow.commit()
