"""Search query strategy and candidate extraction from search results.

Search items arrive as ``{"link", "title", "description"}`` dicts with
Naver's inline HTML highlighting (``<b>...</b>``) in the text fields.
"""
from __future__ import annotations

import logging
import re
from typing import Iterable, Optional, Sequence
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from .candidates import normalize_identifier
from .errors import MalformedResultError
from .records import BrandInput, SearchCandidate
from .scoring import (
    brand_keywords,
    host_keyword,
    is_domain_match,
    rank_candidates,
    score_search_candidate,
)

logger = logging.getLogger(__name__)

# Portals, social networks and fashion marketplaces: never a brand's own site.
DEFAULT_EXCLUDED_DOMAINS: tuple[str, ...] = (
    "naver.com", "daum.net", "google.com", "youtube.com",
    "instagram.com", "facebook.com", "twitter.com",
    "musinsa.com", "ably.co.kr", "29cm.co.kr", "zigzag.kr",
    "brandi.co.kr", "styleshare.kr", "wconcept.co.kr",
)

OFFICIAL_LIKELY_MARKERS = ("공식", "브랜드", "홈페이지", "official", "brand", "homepage")
RECOGNIZED_SUFFIXES = (".co.kr", ".com", ".kr", ".net")


def build_search_queries(name: str, english_name: Optional[str]) -> list[str]:
    """Queries with decreasing specificity; the bare name is the last resort."""
    queries = [
        f"{name} 공식홈페이지",
        f"{name} 브랜드 홈페이지",
    ]
    if english_name and english_name != name:
        queries.append(f"{english_name} 공식홈페이지")
        queries.append(f"{english_name} brand homepage")
        queries.append(f"{name} {english_name} 홈페이지")
    queries.append(name)

    # Deduplicate while preserving order
    seen = set()
    unique = []
    for q in queries:
        if q not in seen:
            seen.add(q)
            unique.append(q)
    return unique


def clean_text(value: Optional[str]) -> str:
    """Strip inline HTML and collapse whitespace."""
    if value is None:
        return ""
    if not isinstance(value, str):
        raise MalformedResultError(f"Expected text, got {type(value).__name__}")
    text = value
    if "<" in text or "&" in text:
        text = BeautifulSoup(text, "html.parser").get_text()
    return re.sub(r"\s+", " ", text).strip()


def _parse_hostname(link: Optional[str]) -> str:
    if not link or not isinstance(link, str):
        raise MalformedResultError("Search item has no link")
    try:
        parsed = urlparse(link.strip())
        host = parsed.hostname
    except ValueError as exc:
        raise MalformedResultError(f"Unparseable link {link!r}: {exc}") from exc
    if parsed.scheme not in {"http", "https"} or not host:
        raise MalformedResultError(f"Link {link!r} has no usable host")
    return host.lower()


def is_excluded(hostname: str, excluded: Iterable[str]) -> bool:
    return any(domain in hostname for domain in excluded)


def is_likely_official(hostname: str, text: str, keywords: Sequence[str]) -> bool:
    """Brand keyword present, official-ish wording, and a recognized suffix."""
    text = text.lower()
    has_keyword = any(
        (host_keyword(keyword) and host_keyword(keyword) in hostname) or keyword in text
        for keyword in keywords
    )
    has_marker = any(marker in text for marker in OFFICIAL_LIKELY_MARKERS)
    has_suffix = hostname.endswith(RECOGNIZED_SUFFIXES)
    return has_keyword and has_marker and has_suffix


def extract_candidates(
    items: Iterable[dict],
    brand: BrandInput,
    excluded_domains: Sequence[str] = DEFAULT_EXCLUDED_DOMAINS,
) -> list[SearchCandidate]:
    """Filter and score search items; returns candidates in ranked order."""
    keywords = brand_keywords(brand.name, brand.english_name)
    identifier = normalize_identifier(brand.english_name) or None

    candidates: list[SearchCandidate] = []
    for item in items:
        try:
            if not isinstance(item, dict):
                raise MalformedResultError(f"Search item is not an object: {item!r}")
            link = item.get("link")
            hostname = _parse_hostname(link)
            title = clean_text(item.get("title"))
            description = clean_text(item.get("description"))
        except MalformedResultError as exc:
            logger.debug("Skipping search item: %s", exc)
            continue

        if is_excluded(hostname, excluded_domains):
            continue

        domain_match = is_domain_match(hostname, identifier)
        if not domain_match and not is_likely_official(hostname, f"{title} {description}", keywords):
            continue

        breakdown = score_search_candidate(hostname, title, description, keywords, domain_match)
        logger.debug(
            "Candidate %s for '%s': %d (%s)",
            hostname, brand.name, breakdown.score, breakdown.describe(),
        )
        candidates.append(
            SearchCandidate(
                url=link.strip(),
                hostname=hostname,
                title=title,
                description=description,
                is_domain_match=domain_match,
                score=breakdown.score,
            )
        )

    return rank_candidates(candidates)
