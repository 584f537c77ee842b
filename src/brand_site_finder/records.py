"""Plain data records passed between the discovery components.

Everything here is a dataclass with no I/O. ``DiscoveryResult`` is the
durable unit: it is what the checkpoint store and the exporter persist, so
it carries its own ``to_dict``/``from_dict`` pair.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from .errors import BrandValidationError

SEARCH_METHOD_GUESSED = "domain_guessed"
SEARCH_METHOD_NAVER = "naver_search"
SEARCH_METHOD_NONE = "none"
SEARCH_METHODS = {SEARCH_METHOD_GUESSED, SEARCH_METHOD_NAVER, SEARCH_METHOD_NONE}

STATUS_FOUND = "found"
STATUS_NOT_FOUND = "not_found"
STATUS_ERROR = "error"
STATUSES = {STATUS_FOUND, STATUS_NOT_FOUND, STATUS_ERROR}


def brand_key(name: Optional[str]) -> str:
    """Identity key of a brand: trimmed, lower-cased native name."""
    return (name or "").strip().lower()


@dataclass(frozen=True)
class BrandInput:
    name: str
    english_name: Optional[str] = None
    category: str = "unknown"
    is_featured: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise BrandValidationError("Brand record has no name")

    @property
    def key(self) -> str:
        return brand_key(self.name)


@dataclass
class DomainCandidate:
    domain: str
    pattern_rank: int
    score: int = 0


@dataclass(frozen=True)
class ProbeResult:
    exists: bool
    final_url: Optional[str] = None
    status_code: Optional[int] = None
    redirected: bool = False


@dataclass
class GuessedDomain:
    original_domain: str
    url: str
    status_code: Optional[int]
    redirected: bool
    pattern_rank: int
    score: int


@dataclass
class SearchCandidate:
    url: str
    hostname: str
    title: str
    description: str
    is_domain_match: bool
    score: int = 0


@dataclass
class DiscoveryResult:
    brand_name: str
    english_name: Optional[str] = None
    category: str = "unknown"
    is_featured: bool = False
    websites: list[str] = field(default_factory=list)
    primary_website: Optional[str] = None
    search_method: str = SEARCH_METHOD_NONE
    search_queries_tried: list[str] = field(default_factory=list)
    status: str = STATUS_NOT_FOUND
    error_detail: Optional[str] = None
    guessed_domain: Optional[GuessedDomain] = None
    from_cache: bool = False

    @classmethod
    def for_brand(cls, brand: BrandInput) -> DiscoveryResult:
        return cls(
            brand_name=brand.name,
            english_name=brand.english_name,
            category=brand.category,
            is_featured=brand.is_featured,
        )

    @classmethod
    def error_for(cls, brand: BrandInput, exc: BaseException) -> DiscoveryResult:
        result = cls.for_brand(brand)
        result.mark_error(exc)
        return result

    @property
    def key(self) -> str:
        return brand_key(self.brand_name)

    @property
    def succeeded(self) -> bool:
        return self.status == STATUS_FOUND

    def add_websites(self, urls: list[str]) -> None:
        for url in urls:
            if url and url not in self.websites:
                self.websites.append(url)

    def mark_found(self, method: str) -> None:
        self.status = STATUS_FOUND
        self.search_method = method
        self.primary_website = self.websites[0]
        self.error_detail = None

    def mark_not_found(self) -> None:
        self.status = STATUS_NOT_FOUND
        self.websites = []
        self.primary_website = None

    def mark_error(self, exc: BaseException | str) -> None:
        self.status = STATUS_ERROR
        self.websites = []
        self.primary_website = None
        self.error_detail = str(exc) or exc.__class__.__name__

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DiscoveryResult:
        """Rebuild a result from ``to_dict`` output.

        Raises ValueError when the payload is not a usable result, so callers
        reading persisted snapshots can treat the whole snapshot as corrupt.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Result payload must be an object, got {type(data).__name__}")
        name = data.get("brand_name")
        if not isinstance(name, str) or not name.strip():
            raise ValueError("Result payload has no brand_name")
        status = data.get("status", STATUS_NOT_FOUND)
        if status not in STATUSES:
            raise ValueError(f"Unknown result status {status!r}")
        method = data.get("search_method") or SEARCH_METHOD_NONE
        if method not in SEARCH_METHODS:
            raise ValueError(f"Unknown search method {method!r}")

        guessed = data.get("guessed_domain")
        return cls(
            brand_name=name,
            english_name=data.get("english_name"),
            category=data.get("category") or "unknown",
            is_featured=bool(data.get("is_featured", False)),
            websites=list(data.get("websites") or []),
            primary_website=data.get("primary_website"),
            search_method=method,
            search_queries_tried=list(data.get("search_queries_tried") or []),
            status=status,
            error_detail=data.get("error_detail"),
            guessed_domain=GuessedDomain(**guessed) if guessed else None,
        )
