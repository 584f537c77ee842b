"""Process-wide run state, reified as an explicit object.

``RunContext`` is handed to every component that needs shared mutable
state: the search request quota, the in-memory result cache and the
accumulating success/failure sets. Each piece guards itself with a lock so
the same objects work for a pooled implementation.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from threading import Event, Lock, RLock
from typing import Any, Iterable, Optional

from .errors import QuotaExceededError
from .pacing import Pacing
from .records import BrandInput, DiscoveryResult, brand_key

logger = logging.getLogger(__name__)


class RequestQuota:
    """Counter of external search calls against a daily ceiling."""

    def __init__(self, limit: int, used: int = 0) -> None:
        self.limit = limit
        self._used = max(used, 0)
        self._lock = Lock()

    @property
    def used(self) -> int:
        with self._lock:
            return self._used

    @property
    def remaining(self) -> int:
        with self._lock:
            return max(self.limit - self._used, 0)

    def consume(self) -> int:
        """Reserve one call, or raise before any network I/O happens."""
        with self._lock:
            if self._used >= self.limit:
                raise QuotaExceededError(self._used, self.limit)
            self._used += 1
            return self._used

    def restore(self, used: int) -> None:
        with self._lock:
            self._used = max(used, 0)


class RunState:
    """Accumulated results and quota usage; the unit that gets checkpointed."""

    def __init__(self, daily_quota_limit: int, request_count: int = 0) -> None:
        self.quota = RequestQuota(daily_quota_limit, request_count)
        self.success_results: list[DiscoveryResult] = []
        self.failed_results: list[DiscoveryResult] = []
        self._processed: set[str] = set()
        self.lock = RLock()

    @property
    def request_count(self) -> int:
        return self.quota.used

    @property
    def daily_quota_limit(self) -> int:
        return self.quota.limit

    @property
    def processed_keys(self) -> frozenset[str]:
        with self.lock:
            return frozenset(self._processed)

    @property
    def total_processed(self) -> int:
        with self.lock:
            return len(self.success_results) + len(self.failed_results)

    def record(self, result: DiscoveryResult) -> bool:
        """Add a brand outcome. A brand already recorded is ignored."""
        key = result.key
        with self.lock:
            if key in self._processed:
                logger.debug("Result for '%s' already recorded, ignoring duplicate", result.brand_name)
                return False
            self._processed.add(key)
            if result.succeeded:
                self.success_results.append(result)
            else:
                self.failed_results.append(result)
            return True

    def filter_unprocessed(self, brands: Iterable[BrandInput]) -> list[BrandInput]:
        processed = self.processed_keys
        return [brand for brand in brands if brand.key not in processed]

    def snapshot(self) -> dict[str, Any]:
        with self.lock:
            return {
                "request_count": self.request_count,
                "daily_quota_limit": self.daily_quota_limit,
                "success_results": [result.to_dict() for result in self.success_results],
                "failed_results": [result.to_dict() for result in self.failed_results],
            }

    @classmethod
    def from_snapshot(cls, data: dict[str, Any], daily_quota_limit: int) -> RunState:
        """Restore a state; the configured ceiling wins over the stored one.

        Raises ValueError for payloads that are not a RunState snapshot.
        """
        if not isinstance(data, dict):
            raise ValueError("Checkpoint payload must be an object")
        try:
            request_count = int(data.get("request_count") or 0)
            success = [DiscoveryResult.from_dict(item) for item in data.get("success_results") or []]
            failed = [DiscoveryResult.from_dict(item) for item in data.get("failed_results") or []]
        except TypeError as exc:
            raise ValueError(f"Malformed checkpoint payload: {exc}") from exc

        state = cls(daily_quota_limit, request_count)
        for result in success + failed:
            state.record(result)
        return state

    def adopt(self, other: RunState) -> None:
        """Take over a restored state in place.

        Components hold a reference to ``self.quota``, so the quota object
        itself is kept and only its counter is moved.
        """
        with self.lock, other.lock:
            self.quota.restore(other.request_count)
            self.success_results = list(other.success_results)
            self.failed_results = list(other.failed_results)
            self._processed = set(other._processed)


@dataclass
class RunContext:
    state: RunState
    pacing: Pacing
    stop_event: Event = field(default_factory=Event)
    cache: dict[str, DiscoveryResult] = field(default_factory=dict)
    _cache_lock: Lock = field(default_factory=Lock, repr=False)

    @property
    def quota(self) -> RequestQuota:
        return self.state.quota

    @property
    def stop_requested(self) -> bool:
        return self.stop_event.is_set()

    def cached(self, name: str) -> Optional[DiscoveryResult]:
        with self._cache_lock:
            return self.cache.get(brand_key(name))

    def remember(self, result: DiscoveryResult) -> None:
        with self._cache_lock:
            self.cache[result.key] = result
