from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class IssuedToken:
    """Plain token for the client; the store keeps only its hash."""

    plain_token: str
    expires_at: datetime


@dataclass(frozen=True)
class SweepStats:
    removed_tokens: int
    removed_sessions: int


@dataclass(frozen=True)
class TokenStoreStats:
    total_sessions: int
    total_tokens: int
    expired_tokens: int


class ICSRFTokenStore(ABC):
    """CSRF token store interface - application layer"""

    @abstractmethod
    def issue(self, session_id: str) -> IssuedToken:
        """Issue a new token for the session, evicting the oldest at capacity"""
        pass

    @abstractmethod
    def verify(self, session_id: Optional[str], token: Optional[str], consume: Optional[bool] = None) -> bool:
        """Check a presented token against the session's live tokens; never raises"""
        pass

    @abstractmethod
    def revoke_session(self, session_id: str) -> int:
        """Drop every token of a session, returning how many were dropped"""
        pass

    @abstractmethod
    def sweep_expired(self) -> SweepStats:
        """Remove expired tokens and empty sessions"""
        pass

    @abstractmethod
    async def run_sweeper(self, interval_seconds: float) -> None:
        """Sweep expired tokens every ``interval_seconds`` until cancelled"""
        pass

    @abstractmethod
    def stats(self) -> TokenStoreStats:
        """Counts for health reporting"""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release all state"""
        pass
