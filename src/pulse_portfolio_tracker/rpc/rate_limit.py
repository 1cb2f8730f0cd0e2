"""Token-bucket rate limiter for market-data providers."""

import logging
import math
import threading
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Token bucket with lazy whole-token refill and a hard cooldown on 429s.

    Parameters
    ----------
    capacity : int
        Maximum number of tokens in the bucket
    refill_rate : float
        Tokens added per second
    cooldown : float
        Seconds during which every request is denied after ``handle_rate_limit``
    clock : Callable[[], float] | None
        Monotonic time source, ``time.monotonic`` by default

    """

    def __init__(
        self,
        capacity: int = 30,
        refill_rate: float = 0.5,
        cooldown: float = 60.0,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.capacity = capacity
        self.refill_rate = refill_rate
        self.cooldown = cooldown
        self._clock = clock or time.monotonic
        self._lock = threading.Lock()
        self._tokens = capacity
        self._last_refill = self._clock()
        self._cooldown_until = 0.0

    def _refill(self, now: float) -> None:
        elapsed = now - self._last_refill
        new_tokens = math.floor(elapsed * self.refill_rate)
        if new_tokens > 0:
            self._tokens = min(self.capacity, self._tokens + new_tokens)
            # Keep the fractional remainder for the next refill.
            self._last_refill += new_tokens / self.refill_rate

    def _allowed(self, now: float) -> bool:
        if now < self._cooldown_until:
            return False
        self._refill(now)
        return self._tokens > 0

    def can_make_request(self) -> bool:
        """
        Check whether a request may be made right now.

        Returns
        -------
        bool
            False while cooling down or when the bucket is empty

        """
        with self._lock:
            return self._allowed(self._clock())

    def consume_token(self) -> bool:
        """
        Take one token if a request is allowed.

        Returns
        -------
        bool
            True if a token was consumed

        """
        with self._lock:
            if not self._allowed(self._clock()):
                return False
            self._tokens -= 1
            return True

    def handle_rate_limit(self) -> None:
        """Empty the bucket and start the cooldown window after a 429."""
        with self._lock:
            now = self._clock()
            self._tokens = 0
            self._last_refill = now
            self._cooldown_until = now + self.cooldown
        logger.warning("Rate limit hit, cooling down for %.0fs", self.cooldown)

    def get_wait_time(self) -> int:
        """
        Get milliseconds until the next request is allowed.

        Returns
        -------
        int
            0 when a request is allowed now

        """
        with self._lock:
            now = self._clock()
            if now < self._cooldown_until:
                return math.ceil((self._cooldown_until - now) * 1000)
            if self._allowed(now):
                return 0
            next_token_at = self._last_refill + 1 / self.refill_rate
            return max(1, math.ceil((next_token_at - now) * 1000))

    @property
    def tokens(self) -> int:
        with self._lock:
            self._refill(self._clock())
            return self._tokens
