"""
ORM models for the run journal.

Contract:
    BatchRunModel and StepExecutionModel persist run state and chunk
    counters.  Each has a ``to_dto()`` method.

Architecture: etl_batch/models. Imports from etl_kernel.db.base only.

Invariants enforced:
    - ``active_key`` is UNIQUE and holds ``job_key`` only while the run is
      non-terminal, so two non-terminal runs with identical parameters
      cannot both be inserted (NULLs do not collide).
    - Step counters default to zero and only ever increase.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from etl_kernel.db.base import IdentityKey, TrackedBase

if TYPE_CHECKING:
    from etl_batch.domain.types import JobRun, StepExecution


class BatchRunModel(TrackedBase):
    """One invocation of a job with a given parameter map."""

    __tablename__ = "batch_run"

    __table_args__ = (
        Index("ix_batch_run_job_key", "job_key"),
        Index("ix_batch_run_status", "status"),
    )

    id: Mapped[int] = mapped_column(IdentityKey, primary_key=True, autoincrement=True)
    job_name: Mapped[str] = mapped_column(String(200), nullable=False)
    job_key: Mapped[str] = mapped_column(String(64), nullable=False)
    active_key: Mapped[str | None] = mapped_column(
        String(64), nullable=True, unique=True,
    )
    parameters: Mapped[dict] = mapped_column(JSON, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    ended_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    exit_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    restart_of: Mapped[int | None] = mapped_column(
        IdentityKey, ForeignKey("batch_run.id"), nullable=True,
    )

    step: Mapped["StepExecutionModel | None"] = relationship(
        "StepExecutionModel",
        back_populates="run",
        uselist=False,
        foreign_keys="StepExecutionModel.run_id",
    )

    def to_dto(self, include_step: bool = True) -> JobRun:
        from etl_batch.domain.types import JobRun, RunStatus

        return JobRun(
            run_id=self.id,
            job_name=self.job_name,
            job_key=self.job_key,
            parameters=dict(self.parameters or {}),
            status=RunStatus(self.status),
            created_at=self.created_at,
            started_at=self.started_at,
            ended_at=self.ended_at,
            exit_message=self.exit_message,
            restart_of=self.restart_of,
            step=(
                self.step.to_dto()
                if include_step and self.step is not None
                else None
            ),
        )


class StepExecutionModel(TrackedBase):
    """The single read/process/write step of a run, with chunk counters."""

    __tablename__ = "batch_step_execution"

    __table_args__ = (
        Index("ix_batch_step_execution_run", "run_id"),
    )

    id: Mapped[int] = mapped_column(IdentityKey, primary_key=True, autoincrement=True)
    run_id: Mapped[int] = mapped_column(
        IdentityKey,
        ForeignKey("batch_run.id", ondelete="CASCADE"),
        nullable=False,
    )
    step_name: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    read_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    filter_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    write_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    commit_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    rollback_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    committed_position: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False,
    )
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    ended_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    exit_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    run: Mapped["BatchRunModel"] = relationship(
        "BatchRunModel",
        back_populates="step",
        foreign_keys=[run_id],
    )

    def to_dto(self) -> StepExecution:
        from etl_batch.domain.types import StepExecution, StepStatus

        return StepExecution(
            step_id=self.id,
            run_id=self.run_id,
            step_name=self.step_name,
            status=StepStatus(self.status),
            read_count=self.read_count,
            filter_count=self.filter_count,
            write_count=self.write_count,
            commit_count=self.commit_count,
            rollback_count=self.rollback_count,
            retry_count=self.retry_count,
            committed_position=self.committed_position,
            started_at=self.started_at,
            ended_at=self.ended_at,
            exit_message=self.exit_message,
        )
