from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///brand_sites.db"
DEFAULT_SEARCH_URL = "https://openapi.naver.com/v1/search/webkr.json"
DEFAULT_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


def _env_bool(key: str, default: str = "false") -> bool:
    return os.getenv(key, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_int(key: str, default: int) -> int:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid integer for %s=%r, using default %d", key, raw, default)
        return default


def _env_float(key: str, default: float) -> float:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid float for %s=%r, using default %s", key, raw, default)
        return default


@dataclass(frozen=True)
class Config:
    database_url: str
    naver_client_id: Optional[str]
    naver_client_secret: Optional[str]
    naver_search_url: str
    daily_quota_limit: int
    requests_per_second: int
    probe_delay: float
    rate_limit_cooldown: float
    batch_size: int
    checkpoint_every: int
    search_display: int
    http_timeout: float
    search_timeout: float
    max_redirects: int
    probe_workers: int
    dns_precheck: bool
    excluded_domains: tuple[str, ...]
    export_dir: str
    http_user_agent: str
    mutation_api_key: Optional[str]
    mutation_localhost_bypass: bool

    @property
    def search_delay(self) -> float:
        """Seconds between search calls, rounded up to the millisecond."""
        return math.ceil(1000 / max(self.requests_per_second, 1)) / 1000

    @property
    def batch_delay(self) -> float:
        return max(self.search_delay * 5, 3.0)

    @property
    def has_search_credentials(self) -> bool:
        return bool(self.naver_client_id and self.naver_client_secret)


def load_config() -> Config:
    return Config(
        database_url=os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL,
        naver_client_id=(os.getenv("NAVER_CLIENT_ID") or "").strip() or None,
        naver_client_secret=(os.getenv("NAVER_CLIENT_SECRET") or "").strip() or None,
        naver_search_url=os.getenv("NAVER_SEARCH_URL", DEFAULT_SEARCH_URL),
        daily_quota_limit=max(_env_int("DAILY_QUOTA_LIMIT", 25000), 0),
        requests_per_second=max(_env_int("REQUESTS_PER_SECOND", 8), 1),
        probe_delay=max(_env_float("PROBE_DELAY", 0.2), 0.0),
        rate_limit_cooldown=max(_env_float("RATE_LIMIT_COOLDOWN", 5.0), 0.0),
        batch_size=max(_env_int("BATCH_SIZE", 50), 1),
        checkpoint_every=max(_env_int("CHECKPOINT_EVERY", 10), 1),
        search_display=min(max(_env_int("SEARCH_DISPLAY", 20), 1), 100),
        http_timeout=_env_float("HTTP_TIMEOUT", 5.0),
        search_timeout=_env_float("SEARCH_TIMEOUT", 10.0),
        max_redirects=max(_env_int("MAX_REDIRECTS", 5), 0),
        probe_workers=max(_env_int("PROBE_WORKERS", 1), 1),
        dns_precheck=_env_bool("DNS_PRECHECK", "false"),
        excluded_domains=tuple(
            entry.strip().lower()
            for entry in os.getenv("EXCLUDED_DOMAINS", "").split(",")
            if entry.strip()
        ),
        export_dir=os.getenv("EXPORT_DIR", "./exports"),
        http_user_agent=os.getenv("HTTP_USER_AGENT", DEFAULT_USER_AGENT),
        mutation_api_key=(os.getenv("MUTATION_API_KEY") or "").strip() or None,
        mutation_localhost_bypass=_env_bool("MUTATION_LOCALHOST_BYPASS", "true"),
    )
