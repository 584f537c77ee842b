"""Request pacing.

A minimum-interval limiter replaces the fixed per-call sleeps: with one
worker it behaves exactly like sleeping ``interval`` between calls, and
with a pool of workers sharing one limiter it caps the pool-wide rate.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable

logger = logging.getLogger(__name__)

Sleeper = Callable[[float], None]


class RateLimiter:
    """Enforce a minimum interval between consecutive ``wait()`` returns."""

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Sleeper = time.sleep,
    ) -> None:
        self.min_interval = max(min_interval, 0.0)
        self._clock = clock
        self._sleep = sleep
        self._last: float | None = None
        self._lock = Lock()

    def wait(self) -> float:
        """Block until the next call is allowed. Returns seconds slept."""
        with self._lock:
            now = self._clock()
            waited = 0.0
            if self._last is not None:
                remaining = self.min_interval - (now - self._last)
                if remaining > 0:
                    self._sleep(remaining)
                    waited = remaining
                    now = self._clock()
            self._last = now
            return waited


@dataclass
class Pacing:
    """All delays the discovery run observes, bundled for injection."""

    probe: RateLimiter
    search: RateLimiter
    brand_delay: float
    batch_delay: float
    rate_limit_cooldown: float
    sleep: Sleeper = time.sleep

    @classmethod
    def from_config(cls, config, sleep: Sleeper = time.sleep) -> Pacing:
        return cls(
            probe=RateLimiter(config.probe_delay, sleep=sleep),
            search=RateLimiter(config.search_delay, sleep=sleep),
            brand_delay=config.search_delay,
            batch_delay=config.batch_delay,
            rate_limit_cooldown=config.rate_limit_cooldown,
            sleep=sleep,
        )

    @classmethod
    def disabled(cls) -> Pacing:
        """No waiting at all; used by tests and dry runs."""

        def _no_sleep(_: float) -> None:
            return None

        return cls(
            probe=RateLimiter(0.0, sleep=_no_sleep),
            search=RateLimiter(0.0, sleep=_no_sleep),
            brand_delay=0.0,
            batch_delay=0.0,
            rate_limit_cooldown=0.0,
            sleep=_no_sleep,
        )

    def pause(self, seconds: float) -> None:
        if seconds > 0:
            self.sleep(seconds)

    def cooldown(self) -> None:
        logger.warning("Search rate limited, cooling down for %.1fs", self.rate_limit_cooldown)
        self.pause(self.rate_limit_cooldown)
