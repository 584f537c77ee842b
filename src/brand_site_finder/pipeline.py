from __future__ import annotations

import logging
import time
from pathlib import Path
from threading import Event
from typing import Callable, Optional, Sequence, Union

from .brands import load_brands
from .checkpoints import CheckpointStore
from .config import Config, load_config
from .context import RunContext, RunState
from .db import init_db
from .discovery import BrandWebsiteFinder
from .exporter import export_report
from .extractor import DEFAULT_EXCLUDED_DOMAINS
from .pacing import Pacing
from .prober import DomainProber
from .records import BrandInput
from .scheduler import BatchScheduler, RunReport
from .search_client import NaverSearchClient

logger = logging.getLogger(__name__)

JOB_NAME = "brand_discovery"


def build_scheduler(
    config: Config,
    prober: DomainProber,
    search_client: Optional[NaverSearchClient],
    stop_event: Optional[Event] = None,
    scope: Optional[str] = None,
    pacing: Optional[Pacing] = None,
    export: bool = True,
) -> BatchScheduler:
    """Wire one run: shared context, finder, checkpoint store and scheduler."""
    state = RunState(config.daily_quota_limit)
    context = RunContext(state=state, pacing=pacing or Pacing.from_config(config))
    if stop_event is not None:
        context.stop_event = stop_event
    if search_client is not None:
        search_client.quota = context.quota

    finder = BrandWebsiteFinder(
        context,
        prober,
        search_client,
        excluded_domains=DEFAULT_EXCLUDED_DOMAINS + config.excluded_domains,
        search_display=config.search_display,
        probe_workers=config.probe_workers,
    )
    exporter = None
    if export:
        def exporter(report: RunReport, run_state: RunState) -> dict[str, str]:
            return export_report(report, run_state, config.export_dir)

    return BatchScheduler(
        finder,
        CheckpointStore(JOB_NAME, scope),
        context,
        batch_size=config.batch_size,
        checkpoint_every=config.checkpoint_every,
        exporter=exporter,
    )


def run_once(
    brands: Union[str, Path, Sequence[BrandInput]],
    config: Optional[Config] = None,
    stop_event: Optional[Event] = None,
    scope: Optional[str] = None,
    limit: Optional[int] = None,
    export: bool = True,
    on_scheduler: Optional[Callable[[BatchScheduler], None]] = None,
) -> RunReport:
    config = config or load_config()
    if isinstance(brands, (str, Path)):
        brands = load_brands(brands)
    brands = list(brands)
    if limit is not None:
        brands = brands[:limit]

    init_db()
    if not config.has_search_credentials:
        logger.warning("NAVER_CLIENT_ID/NAVER_CLIENT_SECRET not set; search fallback disabled")

    started = time.monotonic()
    search_client = None
    with DomainProber(
        timeout=config.http_timeout,
        max_redirects=config.max_redirects,
        user_agent=config.http_user_agent,
        dns_precheck=config.dns_precheck,
    ) as prober:
        scheduler = build_scheduler(config, prober, None, stop_event, scope, export=export)
        if config.has_search_credentials:
            search_client = NaverSearchClient(
                config.naver_client_id,
                config.naver_client_secret,
                scheduler.context.quota,
                url=config.naver_search_url,
                timeout=config.search_timeout,
                user_agent=config.http_user_agent,
            )
            scheduler.finder.search_client = search_client
        if on_scheduler is not None:
            on_scheduler(scheduler)
        try:
            report = scheduler.run(brands)
        finally:
            if search_client is not None:
                search_client.close()

    logger.info("run_once finished in %.1fs", time.monotonic() - started)
    return report
