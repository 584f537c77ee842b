"""Per-brand discovery: domain guessing first, web search as the fallback.

``BrandWebsiteFinder.find`` walks an explicit state machine::

    START -> CACHE_HIT
    START -> GUESSING -> GUESS_FOUND
                      -> SEARCHING -> SEARCH_FOUND | NOT_FOUND | ERROR
    START -> SEARCHING (no usable English name)

Guessing is first-match-wins: the earliest generated candidate that exists
is taken and nothing after it is considered. Searching stops at the first
query that leaves at least one candidate after filtering.

``QuotaExceededError`` is the only fault that leaves ``find``; every other
fault becomes an ``error`` result for the brand.
"""
from __future__ import annotations

import dataclasses
import enum
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from .candidates import generate_candidates, normalize_identifier
from .context import RunContext
from .errors import QuotaExceededError, SearchRateLimited, SearchTransportError
from .extractor import DEFAULT_EXCLUDED_DOMAINS, build_search_queries, extract_candidates
from .prober import DomainProber
from .records import (
    SEARCH_METHOD_GUESSED,
    SEARCH_METHOD_NAVER,
    BrandInput,
    DiscoveryResult,
    DomainCandidate,
    GuessedDomain,
    ProbeResult,
)
from .scoring import score_guessed_domain, top_websites
from .search_client import NaverSearchClient

logger = logging.getLogger(__name__)


class DiscoveryState(str, enum.Enum):
    START = "start"
    CACHE_HIT = "cache_hit"
    GUESSING = "guessing"
    GUESS_FOUND = "guess_found"
    SEARCHING = "searching"
    SEARCH_FOUND = "search_found"
    NOT_FOUND = "not_found"
    ERROR = "error"


TERMINAL_STATES = frozenset({
    DiscoveryState.CACHE_HIT,
    DiscoveryState.GUESS_FOUND,
    DiscoveryState.SEARCH_FOUND,
    DiscoveryState.NOT_FOUND,
    DiscoveryState.ERROR,
})


@dataclass
class _Attempt:
    """Mutable scratch space for one brand while the machine runs."""

    brand: BrandInput
    result: DiscoveryResult
    identifier: str
    cached: Optional[DiscoveryResult] = None
    trail: list[DiscoveryState] = field(default_factory=list)


class BrandWebsiteFinder:
    def __init__(
        self,
        context: RunContext,
        prober: DomainProber,
        search_client: Optional[NaverSearchClient] = None,
        excluded_domains: Sequence[str] = DEFAULT_EXCLUDED_DOMAINS,
        search_display: int = 20,
        probe_workers: int = 1,
    ) -> None:
        self.context = context
        self.prober = prober
        self.search_client = search_client
        self.excluded_domains = tuple(excluded_domains)
        self.search_display = search_display
        self.probe_workers = max(probe_workers, 1)
        self._handlers: dict[DiscoveryState, Callable[[_Attempt], DiscoveryState]] = {
            DiscoveryState.START: self._start,
            DiscoveryState.GUESSING: self._guess,
            DiscoveryState.SEARCHING: self._search,
        }

    def find(self, brand: BrandInput) -> DiscoveryResult:
        attempt = _Attempt(
            brand=brand,
            result=DiscoveryResult.for_brand(brand),
            identifier=normalize_identifier(brand.english_name),
        )
        state = DiscoveryState.START
        while state not in TERMINAL_STATES:
            attempt.trail.append(state)
            try:
                state = self._handlers[state](attempt)
            except QuotaExceededError:
                raise
            except Exception as exc:
                logger.exception("Discovery failed for '%s' in state %s", brand.name, state.value)
                attempt.result.mark_error(exc)
                state = DiscoveryState.ERROR
        attempt.trail.append(state)
        logger.debug("'%s': %s", brand.name, " -> ".join(s.value for s in attempt.trail))

        if state is DiscoveryState.CACHE_HIT:
            return dataclasses.replace(attempt.cached, from_cache=True)

        self.context.remember(attempt.result)
        return attempt.result

    # -- transitions -----------------------------------------------------

    def _start(self, attempt: _Attempt) -> DiscoveryState:
        cached = self.context.cached(attempt.brand.name)
        if cached is not None:
            logger.info("'%s': using cached result (%s)", attempt.brand.name, cached.status)
            attempt.cached = cached
            return DiscoveryState.CACHE_HIT
        if attempt.identifier:
            return DiscoveryState.GUESSING
        return DiscoveryState.SEARCHING

    def _guess(self, attempt: _Attempt) -> DiscoveryState:
        candidates = generate_candidates(attempt.brand.english_name)
        if not candidates:
            return DiscoveryState.SEARCHING

        logger.info("'%s': guessing %d domains", attempt.brand.name, len(candidates))
        hit = self._first_existing(candidates)
        if hit is None:
            logger.info("'%s': no guessed domain exists", attempt.brand.name)
            return DiscoveryState.SEARCHING

        candidate, probe = hit
        breakdown = score_guessed_domain(candidate.domain, attempt.identifier, candidate.pattern_rank)
        candidate.score = breakdown.score
        logger.info(
            "'%s': guessed %s (rank %d, score %d)",
            attempt.brand.name, probe.final_url, candidate.pattern_rank, candidate.score,
        )
        logger.debug("Guess score for %s: %s", candidate.domain, breakdown.describe())

        result = attempt.result
        result.guessed_domain = GuessedDomain(
            original_domain=candidate.domain,
            url=probe.final_url,
            status_code=probe.status_code,
            redirected=probe.redirected,
            pattern_rank=candidate.pattern_rank,
            score=candidate.score,
        )
        result.add_websites([probe.final_url])
        result.mark_found(SEARCH_METHOD_GUESSED)
        return DiscoveryState.GUESS_FOUND

    def _search(self, attempt: _Attempt) -> DiscoveryState:
        brand, result = attempt.brand, attempt.result
        if self.search_client is None:
            logger.warning("'%s': no search client configured, skipping search", brand.name)
            result.mark_not_found()
            return DiscoveryState.NOT_FOUND

        queries = build_search_queries(brand.name, brand.english_name)
        faults: list[Exception] = []
        for query in queries:
            result.search_queries_tried.append(query)
            self.context.pacing.search.wait()
            try:
                items = self.search_client.search(query, self.search_display)
            except SearchRateLimited as exc:
                faults.append(exc)
                self.context.pacing.cooldown()
                continue
            except SearchTransportError as exc:
                logger.warning("'%s': search failed for '%s': %s", brand.name, query, exc)
                faults.append(exc)
                continue

            candidates = extract_candidates(items, brand, self.excluded_domains)
            if candidates:
                result.add_websites(top_websites(candidates))
                result.mark_found(SEARCH_METHOD_NAVER)
                logger.info(
                    "'%s': found %s via '%s' (%d candidates)",
                    brand.name, result.primary_website, query, len(candidates),
                )
                return DiscoveryState.SEARCH_FOUND

        if faults and len(faults) == len(result.search_queries_tried):
            # Every query faulted; this is not evidence that no site exists.
            result.mark_error(faults[-1])
            return DiscoveryState.ERROR

        logger.info("'%s': no website found after %d queries", brand.name, len(queries))
        result.mark_not_found()
        return DiscoveryState.NOT_FOUND

    # -- probing ---------------------------------------------------------

    def _probe(self, domain: str) -> ProbeResult:
        self.context.pacing.probe.wait()
        return self.prober.probe(domain)

    def _first_existing(
        self, candidates: list[DomainCandidate]
    ) -> Optional[tuple[DomainCandidate, ProbeResult]]:
        if self.probe_workers == 1:
            for candidate in candidates:
                probe = self._probe(candidate.domain)
                if probe.exists:
                    return candidate, probe
            return None

        # Results are consumed in rank order, so a later hit never wins
        # over an earlier one still in flight.
        executor = ThreadPoolExecutor(max_workers=self.probe_workers)
        try:
            futures = [executor.submit(self._probe, c.domain) for c in candidates]
            for candidate, future in zip(candidates, futures):
                probe = future.result()
                if probe.exists:
                    return candidate, probe
            return None
        finally:
            # Pending probes are dropped; in-flight ones finish before the
            # shared client can be closed.
            executor.shutdown(wait=True, cancel_futures=True)
