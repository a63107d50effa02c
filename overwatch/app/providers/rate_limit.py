"""Per-credential rate limit state for the PRC API.

The PRC API buckets requests per server key and reports the bucket through
response headers. The registry keeps one RateState and one request lock per
credential hash. It is constructed once (application startup or a test) and
handed to every PrcClient, so independent registries never share state.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional

from overwatch.app.core.config import settings
from overwatch.app.core.logging import get_logger

logger = get_logger(__name__)

REMAINING_HEADER = "X-RateLimit-Remaining"
RESET_HEADER = "X-RateLimit-Reset"


@dataclass
class RateState:
    """Rate limit view for one credential.

    All times are epoch seconds.
    """
    remaining: int
    reset_time: float
    blocked_until: float = 0.0
    last_alert_time: float = 0.0

    def cooldown_remaining(self, now: float) -> float:
        """Seconds left on a cooldown imposed by a previous 429."""
        return max(0.0, self.blocked_until - now)

    def proactive_wait(self, now: float, buffer: float) -> float:
        """Seconds to wait because the bucket is known to be empty."""
        if self.remaining <= 0 and self.reset_time > now:
            return self.reset_time - now + buffer
        return 0.0

    def alert_due(self, now: float, cooldown: float) -> bool:
        return now - self.last_alert_time > cooldown


class RateLimitRegistry:
    """Registry of rate limit state and request locks keyed by credential hash.

    The lock is what serializes physical requests: a PrcClient holds it for
    the whole logical call, so no two requests under the same credential are
    ever in flight together. ``asyncio.Lock`` wakes waiters in FIFO order and
    is released by its context manager even when the holder raises, so a
    failed call never stalls the callers queued behind it.
    """

    def __init__(
        self,
        default_budget: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.default_budget = default_budget or settings.prc_default_rate_budget
        self._clock = clock
        self._states: Dict[str, RateState] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def get_state(self, key_hash: str) -> RateState:
        """Return the state for ``key_hash``, creating it on first use."""
        state = self._states.get(key_hash)
        if state is None:
            state = RateState(
                remaining=self.default_budget,
                reset_time=self._clock() + 1.0,
            )
            self._states[key_hash] = state
        return state

    def get_lock(self, key_hash: str) -> asyncio.Lock:
        lock = self._locks.get(key_hash)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key_hash] = lock
        return lock

    def update_from_headers(self, key_hash: str, headers: Mapping[str, str]) -> RateState:
        """Refresh remaining/reset from response headers (authoritative).

        Headers that are missing or not integers leave the state untouched.
        """
        state = self.get_state(key_hash)

        remaining = _parse_int(headers.get(REMAINING_HEADER))
        if remaining is not None:
            state.remaining = remaining

        reset = _parse_int(headers.get(RESET_HEADER))
        if reset is not None:
            state.reset_time = float(reset)

        return state

    def reset_budget(self, key_hash: str) -> None:
        """Optimistically refill the bucket after waiting out a reset."""
        self.get_state(key_hash).remaining = self.default_budget

    def __contains__(self, key_hash: str) -> bool:
        return key_hash in self._states

    def __len__(self) -> int:
        return len(self._states)


def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.debug(f"Ignoring malformed rate limit header value: {value!r}")
        return None
