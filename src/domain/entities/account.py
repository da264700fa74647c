"""
Account Entity

Credential-bearing account shared by the Homefy and UrbanNest apps.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import JSON, Column, DateTime, Field, Index, SQLModel

from src.domain.base import utcnow
from .enums import AccountRole, ChallengePurpose

MAX_CHALLENGE_FAILURES = 5


class Account(SQLModel, table=True):
    """
    Account entity - owns the credential record.

    Business Rules:
    - Email must be unique across all accounts
    - Password stored as bcrypt hash (cost factor 12), never plaintext
    - password_history keeps the 3 most recent previous hashes, oldest first
    - Password expires 90 days after it was set
    - At most one active challenge (OTP or reset token), stored as SHA-256
      hash; a new challenge overwrites the previous one
    - A challenge is dropped after MAX_CHALLENGE_FAILURES wrong codes
    """

    __tablename__ = "accounts"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str = Field(max_length=255)
    email: str = Field(unique=True, index=True, max_length=255)
    role: AccountRole = Field(default=AccountRole.user)

    password_hash: str = Field(max_length=60)  # Bcrypt output is 60 chars
    password_history: list = Field(default_factory=list, sa_column=Column(JSON))
    password_expires_at: datetime = Field(sa_column=Column(DateTime))

    is_verified: bool = Field(default=False)

    # Active challenge (UC: register OTP, forgot-password link, forgot-password OTP)
    challenge_hash: Optional[str] = Field(default=None, index=True, max_length=64)
    challenge_purpose: Optional[ChallengePurpose] = None
    challenge_expires_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime)
    )
    challenge_failures: int = Field(default=0)

    # Timestamps
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime))
    last_login_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime))

    __table_args__ = (Index("idx_account_is_verified", "is_verified"),)

    def set_challenge(
        self, hashed: str, purpose: ChallengePurpose, expires_at: datetime
    ) -> None:
        self.challenge_hash = hashed
        self.challenge_purpose = purpose
        self.challenge_expires_at = expires_at
        self.challenge_failures = 0

    def clear_challenge(self) -> None:
        self.challenge_hash = None
        self.challenge_purpose = None
        self.challenge_expires_at = None
        self.challenge_failures = 0

    def record_challenge_failure(self, max_failures: int = MAX_CHALLENGE_FAILURES) -> bool:
        """Count one wrong code; returns True when the challenge was dropped."""
        self.challenge_failures += 1
        if self.challenge_failures >= max_failures:
            self.clear_challenge()
            return True
        return False

    def has_live_challenge(self, purpose: ChallengePurpose) -> bool:
        return (
            self.challenge_hash is not None
            and self.challenge_purpose == purpose
            and self.challenge_expires_at is not None
            and self.challenge_expires_at > utcnow()
        )
