"""
Failed-attempt limiter backed by the ``limits`` package.

Only failures are recorded, so a user who signs in on the first try never
spends budget. Each attempt is charged to every key it carries (client IP
and target email), which stops both one client spraying many emails and
many clients hammering one email.
"""

import logging
import math
import time
from typing import Iterable, Optional

from limits import parse
from limits.storage import MemoryStorage, Storage
from limits.strategies import MovingWindowRateLimiter

from src.app.services.attempt_limiter import AttemptPolicy, IAttemptLimiter

logger = logging.getLogger(__name__)


class LimitsAttemptLimiter(IAttemptLimiter):
    def __init__(self, storage: Optional[Storage] = None):
        self.storage = storage or MemoryStorage()
        self.strategy = MovingWindowRateLimiter(self.storage)

    def retry_after(self, policy: AttemptPolicy, keys: Iterable[str]) -> Optional[int]:
        item = parse(policy.limit)
        waits = []
        for key in keys:
            if not self.strategy.test(item, policy.name, key):
                stats = self.strategy.get_window_stats(item, policy.name, key)
                waits.append(max(1, math.ceil(stats.reset_time - time.time())))
        return max(waits) if waits else None

    def record_failure(self, policy: AttemptPolicy, keys: Iterable[str]) -> None:
        item = parse(policy.limit)
        for key in keys:
            if not self.strategy.hit(item, policy.name, key):
                logger.warning(f"Attempt limit reached: policy={policy.name} key={key}")

    def reset(self) -> None:
        self.storage.reset()
