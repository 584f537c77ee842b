"""Resumable batch driver over the per-brand finder."""
from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from threading import Lock
from typing import Any, Callable, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from .checkpoints import STATUS_ABORTED, STATUS_COMPLETED, STATUS_IN_PROGRESS, CheckpointStore
from .context import RunContext, RunState
from .db import session_scope
from .discovery import BrandWebsiteFinder
from .errors import QuotaExceededError
from .jobs import complete_job, fail_job, start_job
from .models import JobRun
from .records import (
    SEARCH_METHOD_GUESSED,
    SEARCH_METHOD_NAVER,
    STATUS_ERROR,
    STATUS_NOT_FOUND,
    BrandInput,
    DiscoveryResult,
)

logger = logging.getLogger(__name__)

ABORT_QUOTA = "quota_exceeded"
ABORT_STOPPED = "stopped"

Exporter = Callable[["RunReport", RunState], Any]


@dataclass
class RunReport:
    total_brands: int
    processed: int
    found: int
    failed: int
    guessed: int
    searched: int
    not_found: int
    errors: int
    success_rate: float
    guess_rate: float
    search_rate: float
    elapsed_seconds: float
    api_requests: int
    daily_quota_limit: int
    completed_batches: int = 0
    resumed: bool = False
    aborted_reason: Optional[str] = None
    exports: dict[str, str] = field(default_factory=dict)

    @classmethod
    def build(cls, state: RunState, total_brands: int, elapsed: float, **extra: Any) -> RunReport:
        with state.lock:
            success = list(state.success_results)
            failed = list(state.failed_results)
        processed = len(success) + len(failed)
        guessed = sum(1 for r in success if r.search_method == SEARCH_METHOD_GUESSED)
        searched = sum(1 for r in success if r.search_method == SEARCH_METHOD_NAVER)

        def rate(part: int) -> float:
            return round(part / processed * 100, 1) if processed else 0.0

        return cls(
            total_brands=total_brands,
            processed=processed,
            found=len(success),
            failed=len(failed),
            guessed=guessed,
            searched=searched,
            not_found=sum(1 for r in failed if r.status == STATUS_NOT_FOUND),
            errors=sum(1 for r in failed if r.status == STATUS_ERROR),
            success_rate=rate(len(success)),
            guess_rate=rate(guessed),
            search_rate=rate(searched),
            elapsed_seconds=round(elapsed, 1),
            api_requests=state.request_count,
            daily_quota_limit=state.daily_quota_limit,
            **extra,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class BatchScheduler:
    def __init__(
        self,
        finder: BrandWebsiteFinder,
        store: CheckpointStore,
        context: RunContext,
        batch_size: int = 50,
        checkpoint_every: int = 10,
        exporter: Optional[Exporter] = None,
    ) -> None:
        self.finder = finder
        self.store = store
        self.context = context
        self.batch_size = max(batch_size, 1)
        self.checkpoint_every = max(checkpoint_every, 1)
        self.exporter = exporter
        self._completed_batches = 0
        self._progress: dict[str, Any] = {}
        self._progress_lock = Lock()

    @property
    def state(self) -> RunState:
        return self.context.state

    def progress(self) -> dict[str, Any]:
        with self._progress_lock:
            return dict(self._progress)

    def _set_progress(self, **values: Any) -> None:
        with self._progress_lock:
            self._progress.update(values)

    def resume(self, brands: Sequence[BrandInput]) -> list[BrandInput]:
        """Restore the newest checkpoint and return the brands still to do."""
        try:
            restored = self.store.load_latest(self.state.daily_quota_limit)
        except SQLAlchemyError as exc:
            logger.warning("Could not read checkpoints, starting fresh: %s", exc)
            restored = None
        if restored is not None:
            self.state.adopt(restored)
        remaining = self.state.filter_unprocessed(brands)
        logger.info(
            "Work list: %d of %d brands remaining (%d already processed)",
            len(remaining), len(brands), len(brands) - len(remaining),
        )
        return remaining

    def run(self, brands: Sequence[BrandInput]) -> RunReport:
        started = time.monotonic()
        work = self.resume(brands)
        resumed = self.state.total_processed > 0

        with session_scope() as session:
            job = start_job(session, self.store.job_name, self.store.scope, details={"input_brands": len(brands)})
            job_id = job.id
        self.store.job_run_id = job_id

        try:
            completed, aborted = self._drive(work)
        except Exception as exc:
            self._checkpoint(self._completed_batches, STATUS_ABORTED)
            with session_scope() as session:
                fail_job(session, session.get(JobRun, job_id), str(exc), self.state.total_processed)
            raise

        self._checkpoint(completed, STATUS_ABORTED if aborted else STATUS_COMPLETED)
        report = RunReport.build(
            self.state,
            total_brands=len(brands),
            elapsed=time.monotonic() - started,
            completed_batches=completed,
            resumed=resumed,
            aborted_reason=aborted,
        )
        if self.exporter is not None:
            report.exports = self.exporter(report, self.state) or {}

        with session_scope() as session:
            job = session.get(JobRun, job_id)
            if aborted == ABORT_QUOTA:
                fail_job(session, job, "Daily search quota exceeded", report.processed, report.to_dict())
            else:
                complete_job(session, job, report.processed, report.to_dict())

        logger.info(
            "Run finished: %d/%d found (%.1f%%), %d API requests, %.1fs%s",
            report.found, report.processed, report.success_rate, report.api_requests,
            report.elapsed_seconds, f", aborted: {aborted}" if aborted else "",
        )
        return report

    def _drive(self, work: list[BrandInput]) -> tuple[int, Optional[str]]:
        """Process the work list batch by batch; returns (completed batches, abort reason)."""
        batches = [work[i:i + self.batch_size] for i in range(0, len(work), self.batch_size)]
        self._set_progress(total_batches=len(batches), completed_batches=0, remaining=len(work))
        completed = self._completed_batches = 0
        aborted: Optional[str] = None

        if not batches:
            logger.info("Nothing left to process, regenerating the final report")

        for index, batch in enumerate(batches, start=1):
            logger.info("Batch %d/%d (%d brands)", index, len(batches), len(batch))
            batch_results, aborted = self._run_batch(batch)
            if batch_results:
                self._save_batch(index, batch_results)
            if aborted:
                break

            completed = self._completed_batches = index
            self._set_progress(completed_batches=completed, remaining=len(work) - sum(len(b) for b in batches[:index]))
            logger.info(
                "Batch %d done: %d found, %d API requests used so far",
                index, sum(1 for r in batch_results if r.succeeded), self.state.request_count,
            )
            if completed % self.checkpoint_every == 0:
                self._checkpoint(completed, STATUS_IN_PROGRESS)
            if index < len(batches):
                self.context.pacing.pause(self.context.pacing.batch_delay)

        return completed, aborted

    def _run_batch(self, batch: list[BrandInput]) -> tuple[list[DiscoveryResult], Optional[str]]:
        results: list[DiscoveryResult] = []
        for position, brand in enumerate(batch):
            if self.context.stop_requested:
                logger.info("Stop requested, leaving %d brands of this batch", len(batch) - position)
                return results, ABORT_STOPPED
            try:
                result = self.finder.find(brand)
            except QuotaExceededError as exc:
                logger.error("%s; stopping the run", exc)
                return results, ABORT_QUOTA
            except Exception as exc:
                logger.exception("Unhandled fault for '%s'", brand.name)
                result = DiscoveryResult.error_for(brand, exc)

            self.state.record(result)
            results.append(result)
            if position < len(batch) - 1 and not result.from_cache:
                self.context.pacing.pause(self.context.pacing.brand_delay)

        return results, None

    def _checkpoint(self, completed: int, status: str) -> None:
        try:
            self.store.save_checkpoint(self.state, completed, status)
        except SQLAlchemyError:
            logger.exception("Checkpoint write failed")

    def _save_batch(self, index: int, results: list[DiscoveryResult]) -> None:
        try:
            self.store.save_batch(index, results, self.state.request_count)
        except SQLAlchemyError:
            logger.exception("Batch snapshot %d write failed", index)
