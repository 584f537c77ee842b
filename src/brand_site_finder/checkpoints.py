"""Database-backed checkpoint store.

Checkpoints are whole ``RunState`` snapshots ordered by an autoincrement
sequence, never by wall-clock time. Reading walks from the newest
snapshot backwards and skips any whose payload no longer parses.
"""
from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Optional

from sqlalchemy import select

from .context import RunState
from .db import session_scope
from .jobs import normalize_scope
from .models import BatchSnapshot, RunCheckpoint
from .records import DiscoveryResult

logger = logging.getLogger(__name__)

STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"
STATUS_ABORTED = "aborted"

# Malformed rows tolerated before giving up on resume.
MAX_FALLBACK = 5


class CheckpointStore:
    def __init__(self, job_name: str = "brand_discovery", scope: Optional[str] = None) -> None:
        self.job_name = job_name
        self.scope = normalize_scope(scope)
        self.job_run_id: Optional[uuid.UUID] = None

    def save_checkpoint(self, state: RunState, completed_batches: int, status: str = STATUS_IN_PROGRESS) -> int:
        """Persist a full snapshot; returns its sequence number."""
        # Hold the state lock while building so the snapshot is consistent.
        with state.lock:
            snapshot = state.snapshot()
            processed = state.total_processed
        with session_scope() as session:
            row = RunCheckpoint(
                job_run_id=self.job_run_id,
                job_name=self.job_name,
                scope=self.scope,
                status=status,
                completed_batches=completed_batches,
                processed_count=processed,
                request_count=snapshot["request_count"],
                payload=json.dumps(snapshot, ensure_ascii=False),
            )
            session.add(row)
            session.flush()
            seq = row.id
        logger.info(
            "Checkpoint #%d saved (%s): %d brands, %d API requests",
            seq, status, processed, snapshot["request_count"],
        )
        return seq

    def load_latest(self, daily_quota_limit: int) -> Optional[RunState]:
        """Most recent readable snapshot as a RunState, or None."""
        with session_scope() as session:
            stmt = (
                select(RunCheckpoint.id, RunCheckpoint.payload)
                .where(RunCheckpoint.job_name == self.job_name)
                .where(RunCheckpoint.scope == self.scope)
                .order_by(RunCheckpoint.id.desc())
                .limit(MAX_FALLBACK)
            )
            rows = session.execute(stmt).all()

        for seq, payload in rows:
            try:
                state = RunState.from_snapshot(json.loads(payload), daily_quota_limit)
            except ValueError as exc:
                logger.warning("Checkpoint #%d is unreadable, trying an older one: %s", seq, exc)
                continue
            logger.info(
                "Restored checkpoint #%d: %d processed brands, %d API requests",
                seq, state.total_processed, state.request_count,
            )
            return state
        return None

    def latest_summary(self) -> Optional[dict[str, Any]]:
        with session_scope() as session:
            row = session.execute(
                select(RunCheckpoint)
                .where(RunCheckpoint.job_name == self.job_name)
                .where(RunCheckpoint.scope == self.scope)
                .order_by(RunCheckpoint.id.desc())
                .limit(1)
            ).scalar_one_or_none()
            if row is None:
                return None
            return {
                "sequence": row.id,
                "status": row.status,
                "completed_batches": row.completed_batches,
                "processed_count": row.processed_count,
                "request_count": row.request_count,
                "created_at": row.created_at.isoformat() if row.created_at else None,
            }

    def save_batch(self, batch_index: int, results: list[DiscoveryResult], request_count: int) -> None:
        with session_scope() as session:
            session.add(
                BatchSnapshot(
                    job_run_id=self.job_run_id,
                    job_name=self.job_name,
                    batch_index=batch_index,
                    found_count=sum(1 for r in results if r.succeeded),
                    result_count=len(results),
                    request_count=request_count,
                    results=[r.to_dict() for r in results],
                )
            )
