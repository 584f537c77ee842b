"""Heuristic scores for guessed domains and search-result candidates.

Both scorers are pure: they return a ``ScoreBreakdown`` listing every
contribution so callers can log or persist the reasoning. Totals are
clamped at zero.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from .records import SearchCandidate

OFFICIAL_MARKERS = ("공식", "official")
BRAND_MARKERS = ("브랜드", "brand")
HOMEPAGE_MARKERS = ("홈페이지", "homepage", "메인", "main")
COMMERCE_TEXT_MARKERS = ("쇼핑몰", "쇼핑", "shop", "store", "mall")
COMMERCE_HOST_MARKERS = ("shop", "store", "mall")
SOCIAL_HOST_MARKERS = ("blog", "instagram", "facebook", "naver.com")
SOCIAL_TEXT_MARKERS = ("블로그", "인스타")

# (suffix, points) checked in order, first hit only.
GUESS_SUFFIX_BONUS = ((".co.kr", 30), (".kr", 20), (".com", 10))
SEARCH_SUFFIX_BONUS = ((".co.kr", 25), (".kr", 20), (".com", 10))

TOP_WEBSITES = 3


@dataclass
class ScoreBreakdown:
    parts: list[tuple[str, int]] = field(default_factory=list)

    def add(self, reason: str, points: int) -> None:
        self.parts.append((reason, points))

    @property
    def raw_total(self) -> int:
        return sum(points for _, points in self.parts)

    @property
    def score(self) -> int:
        return max(0, self.raw_total)

    def describe(self) -> str:
        return ", ".join(f"{points:+d} {reason}" for reason, points in self.parts) or "no signals"


def _contains_any(text: str, markers: Iterable[str]) -> bool:
    return any(marker in text for marker in markers)


def _suffix_bonus(hostname: str, table: Sequence[tuple[str, int]]) -> Optional[tuple[str, int]]:
    for suffix, points in table:
        if hostname.endswith(suffix):
            return suffix, points
    return None


def is_country_domain(hostname: str) -> bool:
    return hostname.endswith(".kr")


def is_domain_match(hostname: str, identifier: Optional[str]) -> bool:
    """True when the normalized English identifier is a dot-delimited label."""
    if not identifier:
        return False
    return identifier in hostname.lower().split(".")


def brand_keywords(name: str, english_name: Optional[str]) -> list[str]:
    """Lower-cased native and English names, in that order."""
    keywords = []
    for value in (name, english_name):
        cleaned = (value or "").strip().lower()
        if cleaned and cleaned not in keywords:
            keywords.append(cleaned)
    return keywords


def host_keyword(keyword: str) -> str:
    return re.sub(r"\s+", "", keyword)


def score_guessed_domain(domain: str, identifier: str, pattern_rank: int) -> ScoreBreakdown:
    """Score a confirmed-existing guessed domain.

    Guessing stops at the first hit, so this score never chooses between
    candidates; it is reported next to the winner.
    """
    breakdown = ScoreBreakdown()
    breakdown.add(f"pattern rank {pattern_rank}", 100 - pattern_rank)

    bonus = _suffix_bonus(domain, GUESS_SUFFIX_BONUS)
    if bonus:
        breakdown.add(f"{bonus[0]} domain", bonus[1])
    if not domain.startswith("www."):
        breakdown.add("no www prefix", 5)
    if identifier and (domain.startswith(identifier + ".") or f".{identifier}." in domain):
        breakdown.add("exact brand segment", 50)
    return breakdown


def score_search_candidate(
    hostname: str,
    title: str,
    description: str,
    keywords: Sequence[str],
    domain_match: bool,
) -> ScoreBreakdown:
    hostname = hostname.lower()
    text = f"{title} {description}".lower()
    breakdown = ScoreBreakdown()

    if domain_match:
        breakdown.add("english name is a domain label", 100)
    else:
        for keyword in keywords:
            cleaned = host_keyword(keyword)
            if cleaned and cleaned in hostname:
                breakdown.add(f"brand keyword '{cleaned}' in host", 60)
                break

    if _contains_any(text, OFFICIAL_MARKERS):
        breakdown.add("official marker", 40)
    if _contains_any(text, BRAND_MARKERS):
        breakdown.add("brand marker", 30)

    bonus = _suffix_bonus(hostname, SEARCH_SUFFIX_BONUS)
    if bonus:
        breakdown.add(f"{bonus[0]} domain", bonus[1])

    if _contains_any(text, HOMEPAGE_MARKERS):
        breakdown.add("homepage marker", 20)
    if _contains_any(text, COMMERCE_TEXT_MARKERS) or _contains_any(hostname, COMMERCE_HOST_MARKERS):
        breakdown.add("shopping marker", -10)
    if _contains_any(hostname, SOCIAL_HOST_MARKERS) or _contains_any(text, SOCIAL_TEXT_MARKERS):
        breakdown.add("social or blog marker", -20)
    if not hostname.startswith("www."):
        breakdown.add("no www prefix", 5)
    return breakdown


def rank_candidates(candidates: Sequence[SearchCandidate]) -> list[SearchCandidate]:
    """Domain matches first, then score, then Korean domains, then input order."""
    indexed = list(enumerate(candidates))
    indexed.sort(
        key=lambda pair: (
            not pair[1].is_domain_match,
            -pair[1].score,
            not is_country_domain(pair[1].hostname),
            pair[0],
        )
    )
    return [candidate for _, candidate in indexed]


def top_websites(candidates: Sequence[SearchCandidate], limit: int = TOP_WEBSITES) -> list[str]:
    return [candidate.url for candidate in rank_candidates(candidates)[:limit]]
