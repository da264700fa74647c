"""
In-memory CSRF token store.

Maps a session id to an ordered list of live token records. Only the
SHA-256 digest of each token is kept; the plaintext leaves through
``issue`` once and is never stored or logged.

Per-session lifecycle:
    NO_TOKEN -> HAS_LIVE_TOKENS (up to the cap) -> CONSUMED | EXPIRED -> ...

All mutations happen under a single lock. The expiry sweep takes the lock
once per batch of sessions so request handling is never blocked for the
duration of a full scan.
"""

import asyncio
import hmac
import logging
import threading
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Callable, Dict, Iterator, List, Optional

from src.app.security.secret_hasher import HashingFailure, SecretHasher
from src.app.services.csrf_token_store import (
    ICSRFTokenStore,
    IssuedToken,
    SweepStats,
    TokenStoreStats,
)

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass
class TokenRecord:
    hashed_token: str
    issued_at: datetime
    expires_at: datetime


class InMemoryCSRFTokenStore(ICSRFTokenStore):
    def __init__(
        self,
        hasher: SecretHasher,
        ttl: timedelta = timedelta(hours=24),
        max_tokens_per_session: int = 5,
        single_use: bool = False,
        token_bytes: int = 32,
        sweep_batch_size: int = 500,
        clock: Callable[[], datetime] = _now,
    ):
        if max_tokens_per_session < 1:
            raise ValueError("max_tokens_per_session must be at least 1")
        if sweep_batch_size < 1:
            raise ValueError("sweep_batch_size must be at least 1")

        self.hasher = hasher
        self.ttl = ttl
        self.max_tokens_per_session = max_tokens_per_session
        self.single_use = single_use
        self.token_bytes = token_bytes
        self.sweep_batch_size = sweep_batch_size
        self.clock = clock

        self._sessions: Dict[str, List[TokenRecord]] = {}
        self._lock = threading.Lock()

    def issue(self, session_id: str) -> IssuedToken:
        plain_token = self.hasher.generate_token(self.token_bytes)
        now = self.clock()
        record = TokenRecord(
            hashed_token=self.hasher.hash_token(plain_token),
            issued_at=now,
            expires_at=now + self.ttl,
        )

        with self._lock:
            records = [r for r in self._sessions.get(session_id, []) if r.expires_at > now]
            while len(records) >= self.max_tokens_per_session:
                records.pop(0)
            records.append(record)
            self._sessions[session_id] = records
            live = len(records)

        logger.info(f"CSRF token issued: live_tokens={live}")
        return IssuedToken(plain_token=plain_token, expires_at=record.expires_at)

    def verify(self, session_id: Optional[str], token: Optional[str], consume: Optional[bool] = None) -> bool:
        if not session_id or not token:
            logger.warning("CSRF verification failed: missing session or token")
            return False

        consume = self.single_use if consume is None else consume
        try:
            presented = self.hasher.hash_token(token)
        except HashingFailure:
            logger.exception("CSRF verification failed: could not hash presented token")
            return False

        now = self.clock()
        with self._lock:
            records = self._sessions.get(session_id)
            if not records:
                logger.warning("CSRF verification failed: no tokens for session")
                return False

            match = None
            for record in records:
                # Compare against every record so timing does not reveal position
                if hmac.compare_digest(record.hashed_token, presented) and match is None:
                    match = record

            if match is None or match.expires_at <= now:
                logger.warning("CSRF verification failed: invalid or expired token")
                return False

            if consume:
                records.remove(match)
                if not records:
                    del self._sessions[session_id]

        return True

    def revoke_session(self, session_id: str) -> int:
        with self._lock:
            records = self._sessions.pop(session_id, [])
        return len(records)

    def sweep_expired(self) -> SweepStats:
        removed_tokens = removed_sessions = 0
        for tokens, sessions in self._sweep_batches():
            removed_tokens += tokens
            removed_sessions += sessions
        return self._log_sweep(removed_tokens, removed_sessions)

    async def sweep_expired_async(self) -> SweepStats:
        removed_tokens = removed_sessions = 0
        for tokens, sessions in self._sweep_batches():
            removed_tokens += tokens
            removed_sessions += sessions
            await asyncio.sleep(0)
        return self._log_sweep(removed_tokens, removed_sessions)

    async def run_sweeper(self, interval_seconds: float) -> None:
        """Periodic sweep loop; cancel the task to stop it."""
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                await self.sweep_expired_async()
            except Exception:
                logger.exception("CSRF token sweep failed")

    def _sweep_batches(self) -> Iterator[tuple]:
        with self._lock:
            session_ids = list(self._sessions.keys())

        for start in range(0, len(session_ids), self.sweep_batch_size):
            batch = session_ids[start:start + self.sweep_batch_size]
            now = self.clock()
            removed_tokens = removed_sessions = 0
            with self._lock:
                for session_id in batch:
                    records = self._sessions.get(session_id)
                    if records is None:
                        continue
                    live = [r for r in records if r.expires_at > now]
                    removed_tokens += len(records) - len(live)
                    if live:
                        self._sessions[session_id] = live
                    else:
                        del self._sessions[session_id]
                        removed_sessions += 1
            yield removed_tokens, removed_sessions

    def _log_sweep(self, removed_tokens: int, removed_sessions: int) -> SweepStats:
        logger.info(
            f"CSRF cleanup: removed {removed_tokens} expired tokens, {removed_sessions} sessions"
        )
        return SweepStats(removed_tokens=removed_tokens, removed_sessions=removed_sessions)

    def stats(self) -> TokenStoreStats:
        now = self.clock()
        with self._lock:
            total_tokens = sum(len(records) for records in self._sessions.values())
            expired = sum(
                1 for records in self._sessions.values() for r in records if r.expires_at <= now
            )
            return TokenStoreStats(
                total_sessions=len(self._sessions),
                total_tokens=total_tokens,
                expired_tokens=expired,
            )

    def close(self) -> None:
        with self._lock:
            self._sessions.clear()
