from __future__ import annotations

import logging
from typing import Optional

import requests as http_requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from .config import DEFAULT_SEARCH_URL
from .context import RequestQuota
from .errors import SearchBadRequest, SearchError, SearchRateLimited, SearchTransportError

logger = logging.getLogger(__name__)


class NaverSearchClient:
    """Naver web-document search (``webkr``) with quota accounting.

    Every network attempt reserves one unit of ``quota`` first; once the
    ceiling is reached ``QuotaExceededError`` is raised without touching
    the network.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        quota: RequestQuota,
        url: str = DEFAULT_SEARCH_URL,
        timeout: float = 10.0,
        user_agent: Optional[str] = None,
        session: Optional[http_requests.Session] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.quota = quota
        self.session = session or http_requests.Session()
        self.session.headers.update({
            "X-Naver-Client-Id": client_id,
            "X-Naver-Client-Secret": client_secret,
        })
        if user_agent:
            self.session.headers["User-Agent"] = user_agent

    def close(self) -> None:
        self.session.close()

    def search(self, query: str, display: int = 20) -> list[dict]:
        """Return ``[{link, title, description}, ...]`` for one query."""
        payload = self._request(query, display)
        items = payload.get("items") if isinstance(payload, dict) else None
        if not isinstance(items, list):
            logger.warning("Search response for '%s' has no item list", query)
            return []
        return [
            {
                "link": item.get("link"),
                "title": item.get("title") or "",
                "description": item.get("description") or "",
            }
            for item in items
            if isinstance(item, dict)
        ]

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_fixed(1),
        retry=retry_if_exception_type(SearchTransportError),
        reraise=True,
    )
    def _request(self, query: str, display: int) -> dict:
        used = self.quota.consume()
        logger.debug("Search #%d: '%s'", used, query)
        params = {"query": query, "display": display, "start": 1, "sort": "sim"}
        try:
            resp = self.session.get(self.url, params=params, timeout=self.timeout)
        except http_requests.RequestException as exc:
            raise SearchTransportError(f"{exc.__class__.__name__}: {exc}") from exc

        status = resp.status_code
        if status == 429:
            raise SearchRateLimited(f"Rate limited on '{query}'")
        if status == 400:
            raise SearchBadRequest(f"Bad request for '{query}'")
        if status >= 500:
            raise SearchTransportError(f"Search API returned {status}")
        if status != 200:
            raise SearchError(f"Search API returned {status} for '{query}'")

        try:
            return resp.json()
        except ValueError as exc:
            raise SearchError(f"Search API returned invalid JSON for '{query}'") from exc
