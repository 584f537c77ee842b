from __future__ import annotations

import logging
from typing import Optional

import dns.exception
import dns.resolver
import httpx

from .records import ProbeResult

logger = logging.getLogger(__name__)

# Served but access-controlled: the site is there, HEAD is just refused.
PROTECTED_STATUSES = (401, 403)


def _normalize_url(url: str) -> str:
    if url.count("/") == 3 and url.endswith("/"):
        return url[:-1]
    return url


def _dns_missing(domain: str, timeout: float) -> bool:
    """True only when the name definitively does not exist."""
    resolver = dns.resolver.Resolver()
    resolver.timeout = timeout
    resolver.lifetime = timeout
    try:
        resolver.resolve(domain, "A", lifetime=timeout)
    except dns.resolver.NXDOMAIN:
        return True
    except (dns.resolver.NoAnswer, dns.exception.Timeout, dns.resolver.NoNameservers, dns.exception.DNSException):
        # CNAME-only or flaky resolvers; let the HTTP check decide
        return False
    return False


class DomainProber:
    """HEAD-based existence check, https first then http.

    A single ``httpx.Client`` is reused across probes. Pass ``client`` to
    inject a transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        timeout: float = 5.0,
        max_redirects: int = 5,
        user_agent: Optional[str] = None,
        dns_precheck: bool = False,
    ) -> None:
        self.timeout = timeout
        self.dns_precheck = dns_precheck
        self._owns_client = client is None
        if client is None:
            headers = {"User-Agent": user_agent} if user_agent else None
            client = httpx.Client(
                follow_redirects=True,
                max_redirects=max_redirects,
                timeout=timeout,
                verify=False,
                headers=headers,
            )
        self.client = client

    def __enter__(self) -> DomainProber:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def probe(self, domain: str) -> ProbeResult:
        if self.dns_precheck and _dns_missing(domain, self.timeout):
            logger.debug("%s: NXDOMAIN, skipping HTTP probe", domain)
            return ProbeResult(exists=False)

        for scheme in ("https", "http"):
            url = f"{scheme}://{domain}"
            try:
                resp = self.client.head(url)
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                logger.debug("%s: %s", url, exc.__class__.__name__)
                continue

            status = resp.status_code
            if 200 <= status < 400:
                final_url = _normalize_url(str(resp.url))
                return ProbeResult(
                    exists=True,
                    final_url=final_url,
                    status_code=status,
                    redirected=bool(resp.history) and final_url != url,
                )
            if status in PROTECTED_STATUSES:
                return ProbeResult(exists=True, final_url=url, status_code=status, redirected=False)
            logger.debug("%s: HTTP %d", url, status)

        return ProbeResult(exists=False)
