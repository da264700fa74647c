from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Optional


@dataclass(frozen=True)
class AttemptPolicy:
    """How many failed attempts a key may make inside a window, e.g. ``"5 per 15 minutes"``."""

    name: str
    limit: str
    error_code: str
    message: str


class IAttemptLimiter(ABC):
    """Failed-attempt limiter interface - application layer"""

    @abstractmethod
    def retry_after(self, policy: AttemptPolicy, keys: Iterable[str]) -> Optional[int]:
        """Seconds until any exhausted key frees up, or ``None`` when every key may try"""
        pass

    @abstractmethod
    def record_failure(self, policy: AttemptPolicy, keys: Iterable[str]) -> None:
        pass

    @abstractmethod
    def reset(self) -> None:
        pass
