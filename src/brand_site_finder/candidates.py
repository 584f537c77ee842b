"""Candidate domain generation from an English brand identifier.

Templates are emitted in a fixed priority order, Korean country-code
domains first and generic commercial patterns last. Downstream, the first
candidate that exists wins, so this order is the primary tie-break.
"""
from __future__ import annotations

import re
from typing import Optional

from .records import DomainCandidate

# {n} is the normalized identifier.
DOMAIN_PATTERNS: tuple[str, ...] = (
    # Korean domains first
    "{n}.co.kr",
    "www.{n}.co.kr",
    "{n}.kr",
    # Global
    "{n}.com",
    "www.{n}.com",
    # Storefront patterns
    "shop.{n}.com",
    "store.{n}.com",
    "{n}shop.co.kr",
    "{n}store.co.kr",
    # Other
    "{n}.net",
    "{n}korea.com",
)

# Only used when the raw identifier has whitespace; {h} is the hyphenated form.
HYPHEN_PATTERNS: tuple[str, ...] = (
    "{h}.com",
    "{h}.co.kr",
)

MIN_IDENTIFIER_LENGTH = 2


def normalize_identifier(raw: Optional[str]) -> str:
    """Lower-case and keep only ``[a-z0-9]``: 'Covernat Co.' -> 'covernatco'."""
    if not raw:
        return ""
    return re.sub(r"[^a-z0-9]", "", raw.lower())


def _hyphenated(raw: str) -> str:
    return re.sub(r"\s+", "-", raw.strip().lower())


def generate_domains(english_name: Optional[str]) -> list[str]:
    """Ordered, de-duplicated domain strings for a brand's English name."""
    name = normalize_identifier(english_name)
    if len(name) < MIN_IDENTIFIER_LENGTH:
        return []

    domains = [pattern.format(n=name) for pattern in DOMAIN_PATTERNS]
    if re.search(r"\s", english_name.strip()):
        hyphenated = _hyphenated(english_name)
        domains.extend(pattern.format(h=hyphenated) for pattern in HYPHEN_PATTERNS)

    seen: set[str] = set()
    unique = []
    for domain in domains:
        if domain not in seen:
            seen.add(domain)
            unique.append(domain)
    return unique


def generate_candidates(english_name: Optional[str]) -> list[DomainCandidate]:
    return [
        DomainCandidate(domain=domain, pattern_rank=rank)
        for rank, domain in enumerate(generate_domains(english_name))
    ]
