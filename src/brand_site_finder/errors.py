from __future__ import annotations


class BrandSiteFinderError(Exception):
    """Base class for faults raised by the discovery engine."""


class BrandValidationError(BrandSiteFinderError):
    """A brand record is missing a required field and cannot be processed."""


class MalformedResultError(BrandSiteFinderError):
    """A single search result item could not be parsed."""


class SearchError(BrandSiteFinderError):
    """Any failure reported by the search collaborator."""


class SearchBadRequest(SearchError):
    """The search API rejected the query itself (HTTP 400)."""


class SearchRateLimited(SearchError):
    """The search API answered 429; transient, retry after a cooldown."""


class SearchTransportError(SearchError):
    """Timeout, connection failure or server-side error for one query."""


class QuotaExceededError(SearchError):
    """The daily request ceiling is reached. Fatal for the whole run."""

    def __init__(self, used: int, limit: int) -> None:
        super().__init__(f"Daily search quota exceeded ({used}/{limit})")
        self.used = used
        self.limit = limit
