"""
Password Lifecycle

Per-account password policy: complexity, reuse prevention against a
bounded history, and expiry timestamping.

A rotation is computed first and applied second, so a rejected rotation
never touches the account.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from src.app.security.secret_hasher import SecretHasher
from src.domain.base import utcnow
from src.domain.entities import Account
from src.domain.result import Error, Result, Return

MIN_LENGTH = 8
MAX_LENGTH = 50
ALLOWED_SYMBOLS = "@$!%*?&"

_ALLOWED_CHARS = re.compile(r"^[A-Za-z\d" + re.escape(ALLOWED_SYMBOLS) + r"]*$")
_SYMBOL = re.compile(r"[" + re.escape(ALLOWED_SYMBOLS) + r"]")

WEAK_PASSWORD_MESSAGE = (
    f"Password must be {MIN_LENGTH}-{MAX_LENGTH} characters, with at least one uppercase "
    "letter, one lowercase letter, one number, and one special character"
)
REUSED_PASSWORD_MESSAGE = "Cannot reuse a recent password. Please choose a different password."


@dataclass(frozen=True)
class PasswordRotation:
    """New credential triple, ready to be persisted."""

    password_hash: str
    password_history: list
    password_expires_at: datetime


def complexity_failures(password: str) -> List[str]:
    """Itemized list of the complexity requirements ``password`` misses."""
    failures = []
    if len(password) < MIN_LENGTH:
        failures.append(f"at least {MIN_LENGTH} characters")
    if len(password) > MAX_LENGTH:
        failures.append(f"at most {MAX_LENGTH} characters")
    if not re.search(r"[A-Z]", password):
        failures.append("one uppercase letter")
    if not re.search(r"[a-z]", password):
        failures.append("one lowercase letter")
    if not re.search(r"\d", password):
        failures.append("one number")
    if not _SYMBOL.search(password):
        failures.append(f"one special character ({ALLOWED_SYMBOLS})")
    if not _ALLOWED_CHARS.match(password):
        failures.append(f"only letters, numbers and {ALLOWED_SYMBOLS}")
    return failures


def validate_complexity(password: str) -> bool:
    return not complexity_failures(password)


class PasswordLifecycle:
    def __init__(self, hasher: SecretHasher, history_limit: int = 3, max_age_days: int = 90):
        self.hasher = hasher
        self.history_limit = history_limit
        self.max_age = timedelta(days=max_age_days)

    def check_complexity(self, password: str) -> Result[None]:
        failures = complexity_failures(password)
        if failures:
            return Return.err(Error("WEAK_PASSWORD", WEAK_PASSWORD_MESSAGE, details=failures))
        return Return.ok(None)

    def is_reused(self, password: str, history: list) -> bool:
        """
        Check ``password`` against the most recent history entries.

        Each entry is verified with bcrypt against the candidate; hashing the
        candidate and comparing digests would never match a salted hash.
        """
        for entry in history[-self.history_limit:]:
            if self.hasher.verify_password(password, _entry_hash(entry)):
                return True
        return False

    def initial(self, password: str) -> Result[PasswordRotation]:
        """Credential triple for a brand new account."""
        check = self.check_complexity(password)
        if check.is_err():
            return Return.err(check.error)

        return Return.ok(
            PasswordRotation(
                password_hash=self.hasher.hash_password(password),
                password_history=[],
                password_expires_at=utcnow() + self.max_age,
            )
        )

    def rotate(self, account: Account, new_password: str) -> Result[PasswordRotation]:
        check = self.check_complexity(new_password)
        if check.is_err():
            return Return.err(check.error)

        history = list(account.password_history or [])
        if self.hasher.verify_password(new_password, account.password_hash) or self.is_reused(
            new_password, history
        ):
            return Return.err(Error("PASSWORD_REUSED", REUSED_PASSWORD_MESSAGE))

        now = utcnow()
        if account.password_hash:
            history.append({"hash": account.password_hash, "created_at": now.isoformat()})
        history = history[-self.history_limit:]

        return Return.ok(
            PasswordRotation(
                password_hash=self.hasher.hash_password(new_password),
                password_history=history,
                password_expires_at=now + self.max_age,
            )
        )

    @staticmethod
    def apply(account: Account, rotation: PasswordRotation) -> Account:
        account.password_hash = rotation.password_hash
        # Reassigned, never mutated in place, so the JSON column sees the change
        account.password_history = list(rotation.password_history)
        account.password_expires_at = rotation.password_expires_at
        return account

    @staticmethod
    def is_expired(account: Account, now: Optional[datetime] = None) -> bool:
        return account.password_expires_at is not None and account.password_expires_at <= (now or utcnow())


def _entry_hash(entry) -> Optional[str]:
    if isinstance(entry, dict):
        return entry.get("hash")
    return entry
