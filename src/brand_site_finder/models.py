from __future__ import annotations

import uuid
from typing import Optional
from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from .db import Base


class JobRun(Base):
    __tablename__ = "job_runs"
    __table_args__ = (
        Index("job_runs_name_status_idx", "job_name", "status"),
        Index("job_runs_started_at_idx", "started_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    job_name: Mapped[str] = mapped_column(Text, nullable=False)
    scope: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(Text, nullable=False)
    started_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    finished_at: Mapped[Optional[DateTime]] = mapped_column(DateTime(timezone=True))
    processed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    details: Mapped[Optional[dict]] = mapped_column(JSON)
    error: Mapped[Optional[str]] = mapped_column(Text)

    checkpoints: Mapped[list[RunCheckpoint]] = relationship("RunCheckpoint", back_populates="job_run")
    batches: Mapped[list[BatchSnapshot]] = relationship("BatchSnapshot", back_populates="job_run")


class RunCheckpoint(Base):
    """Whole-RunState snapshot. ``id`` doubles as the monotonic sequence."""

    __tablename__ = "run_checkpoints"
    __table_args__ = (
        Index("run_checkpoints_name_scope_idx", "job_name", "scope"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_run_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("job_runs.id", ondelete="SET NULL"))
    job_name: Mapped[str] = mapped_column(Text, nullable=False)
    scope: Mapped[str] = mapped_column(Text, nullable=False, server_default="__global__")
    status: Mapped[str] = mapped_column(Text, nullable=False, default="in_progress")
    completed_batches: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    request_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    job_run: Mapped[Optional[JobRun]] = relationship("JobRun", back_populates="checkpoints")


class BatchSnapshot(Base):
    __tablename__ = "batch_snapshots"
    __table_args__ = (
        Index("batch_snapshots_run_idx", "job_run_id", "batch_index"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    job_run_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("job_runs.id", ondelete="SET NULL"))
    job_name: Mapped[str] = mapped_column(Text, nullable=False)
    batch_index: Mapped[int] = mapped_column(Integer, nullable=False)
    found_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    result_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    request_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    results: Mapped[list] = mapped_column(JSON, nullable=False)
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    job_run: Mapped[Optional[JobRun]] = relationship("JobRun", back_populates="batches")
