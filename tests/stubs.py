from __future__ import annotations

from typing import Optional

from brand_site_finder.context import RequestQuota, RunContext, RunState
from brand_site_finder.pacing import Pacing, RateLimiter
from brand_site_finder.records import ProbeResult


class StubProber:
    """Reports the given domains as existing; everything else is dead."""

    def __init__(self, existing: Optional[dict[str, str]] = None):
        self.existing = existing or {}
        self.calls: list[str] = []

    def probe(self, domain: str) -> ProbeResult:
        self.calls.append(domain)
        if domain in self.existing:
            return ProbeResult(exists=True, final_url=self.existing[domain], status_code=200)
        return ProbeResult(exists=False)


class StubSearchClient:
    """Canned search results keyed by query; consumes quota like the real client.

    A value may be an exception instance, which is raised for that query.
    Queries without an entry return ``default``.
    """

    def __init__(self, quota: RequestQuota, results: Optional[dict] = None, default=None):
        self.quota = quota
        self.results = results or {}
        self.default = default if default is not None else []
        self.calls: list[str] = []

    def search(self, query: str, display: int = 20) -> list[dict]:
        self.quota.consume()
        self.calls.append(query)
        value = self.results.get(query, self.default)
        if isinstance(value, Exception):
            raise value
        return value


def recording_pacing(slept: list, brand_delay: float = 0.125, batch_delay: float = 3.0, cooldown: float = 5.0) -> Pacing:
    """Pacing whose pauses are appended to ``slept`` instead of slept."""
    return Pacing(
        probe=RateLimiter(0.0, sleep=slept.append),
        search=RateLimiter(0.0, sleep=slept.append),
        brand_delay=brand_delay,
        batch_delay=batch_delay,
        rate_limit_cooldown=cooldown,
        sleep=slept.append,
    )


def make_context(daily_quota_limit: int = 25000, request_count: int = 0, pacing: Optional[Pacing] = None) -> RunContext:
    return RunContext(state=RunState(daily_quota_limit, request_count), pacing=pacing or Pacing.disabled())


def search_item(link: str, title: str = "", description: str = "") -> dict:
    return {"link": link, "title": title, "description": description}
