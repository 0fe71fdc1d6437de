"""
RunJournal -- durable record of runs, step executions and chunk commits.

Contract:
    - ``create_run()`` is idempotent per (job name, parameter map).
    - ``transition()`` / ``update_status()`` / ``update_step_status()``
      move statuses forward only and stamp start/end times.
    - ``record_chunk_commit()`` adds chunk counters inside the CALLER's
      session, so they commit or roll back with the chunk's customer rows.
    - ``record_rollback()`` counts a rolled-back attempt in its own
      transaction (the chunk's own transaction is gone by then).

Architecture: etl_batch/services.  Imports from etl_batch.domain,
    etl_batch.models and the kernel.

Invariants enforced:
    - One non-terminal run per job_key (query check + UNIQUE active_key).
    - Terminal statuses are final (InvalidStatusTransitionError).
    - Restarted runs inherit ``committed_position`` so they resume at the
      first uncommitted chunk.
"""

from __future__ import annotations

from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from etl_kernel.db.engine import TransactionManager
from etl_kernel.domain.clock import Clock, SystemClock
from etl_kernel.exceptions import (
    DuplicateRunningRunError,
    InvalidStatusTransitionError,
    RunNotFoundError,
)
from etl_kernel.logging_config import get_logger
from etl_kernel.utils.hashing import job_key

from etl_batch.domain.types import (
    ChunkCounters,
    JobRun,
    RunStatus,
    StepExecution,
    StepStatus,
)
from etl_batch.models.journal import BatchRunModel, StepExecutionModel

logger = get_logger("batch.journal")

DEFAULT_STEP_NAME = "csv-import-step"


class RunJournal:
    """Run/step persistence sharing the store with the customer writer.

    Non-goals:
        - Does NOT execute anything -- the chunk engine drives transitions.
    """

    def __init__(
        self,
        transactions: TransactionManager,
        clock: Clock | None = None,
        step_name: str = DEFAULT_STEP_NAME,
    ):
        self._tx = transactions
        self._clock = clock or SystemClock()
        self._step_name = step_name

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    def create_run(self, job_name: str, parameters: Mapping[str, Any]) -> JobRun:
        """Create (or return) the run for ``parameters``.

        Latest run with the same job_key:
            - COMPLETED: returned unchanged.
            - PENDING/STARTED/RUNNING: DuplicateRunningRunError.
            - FAILED/STOPPED: a new run resumes it from its last committed
              chunk boundary.

        Raises:
            DuplicateRunningRunError: identical parameters not yet terminal.
        """
        params = dict(parameters)
        key = job_key(job_name, params)

        try:
            with self._tx.transaction() as session:
                latest = session.execute(
                    select(BatchRunModel)
                    .where(BatchRunModel.job_key == key)
                    .order_by(BatchRunModel.id.desc())
                    .limit(1)
                    .with_for_update()
                ).scalar_one_or_none()

                restart_of: int | None = None
                position = 0
                if latest is not None:
                    status = RunStatus(latest.status)
                    if status == RunStatus.COMPLETED:
                        logger.info(
                            "run_already_completed",
                            extra={"run_id": latest.id, "job_name": job_name},
                        )
                        return latest.to_dto()
                    if not status.is_terminal:
                        raise DuplicateRunningRunError(job_name, latest.id)
                    restart_of = latest.id
                    if latest.step is not None:
                        position = latest.step.committed_position

                now = self._clock.now()
                run = BatchRunModel(
                    job_name=job_name,
                    job_key=key,
                    active_key=key,
                    parameters=params,
                    status=RunStatus.PENDING.value,
                    restart_of=restart_of,
                    created_at=now,
                    updated_at=now,
                )
                session.add(run)
                session.flush()

                step = StepExecutionModel(
                    run_id=run.id,
                    step_name=self._step_name,
                    status=StepStatus.NEW.value,
                    committed_position=position,
                    created_at=now,
                    updated_at=now,
                )
                session.add(step)
                session.flush()
                run.step = step

                dto = run.to_dto()
        except IntegrityError as exc:
            # Lost the race on active_key against an identical run
            raise DuplicateRunningRunError(job_name) from exc

        logger.info(
            "run_created",
            extra={
                "run_id": dto.run_id,
                "job_name": job_name,
                "parameters": params,
                "restart_of": restart_of,
                "committed_position": position,
            },
        )
        return dto

    # -------------------------------------------------------------------------
    # Status transitions
    # -------------------------------------------------------------------------

    def transition(
        self,
        run_id: int,
        run_status: RunStatus | None = None,
        step_status: StepStatus | None = None,
        exit_message: str | None = None,
    ) -> JobRun:
        """Move the run and/or its step forward in one transaction.

        Raises:
            RunNotFoundError: If run_id does not exist.
            InvalidStatusTransitionError: On a backward or post-terminal move.
        """
        with self._tx.transaction() as session:
            run = self._lock_run(session, run_id)
            now = self._clock.now()

            if step_status is not None:
                if run.step is None:
                    raise RunNotFoundError(run_id)
                self._apply_step_status(run.step, step_status, now, exit_message)
            if run_status is not None:
                self._apply_run_status(run, run_status, now, exit_message)

            session.flush()
            dto = run.to_dto()

        logger.info(
            "run_status_changed",
            extra={
                "run_id": run_id,
                "run_status": dto.status.value,
                "step_status": dto.step.status.value if dto.step else None,
            },
        )
        return dto

    def update_status(
        self,
        run_id: int,
        status: RunStatus,
        exit_message: str | None = None,
    ) -> JobRun:
        """Move the run to ``status``, stamping start/end times."""
        return self.transition(run_id, run_status=status, exit_message=exit_message)

    def update_step_status(
        self,
        run_id: int,
        status: StepStatus,
        exit_message: str | None = None,
    ) -> StepExecution:
        """Move the run's step to ``status``."""
        run = self.transition(run_id, step_status=status, exit_message=exit_message)
        assert run.step is not None
        return run.step

    # -------------------------------------------------------------------------
    # Chunk bookkeeping
    # -------------------------------------------------------------------------

    def record_chunk_commit(
        self,
        session: Session,
        step_id: int,
        counters: ChunkCounters,
    ) -> None:
        """Add a chunk's counters inside the chunk's own transaction."""
        step = session.get(StepExecutionModel, step_id, with_for_update=True)
        if step is None:
            raise RunNotFoundError(step_id)
        step.read_count += counters.read
        step.filter_count += counters.filtered
        step.write_count += counters.written
        step.commit_count += 1
        step.committed_position += counters.read
        session.flush()

    def record_rollback(
        self,
        step_id: int,
        retried: bool,
        read_delta: int = 0,
    ) -> StepExecution:
        """Count one rolled-back attempt (and a retry when one follows)."""
        with self._tx.transaction() as session:
            step = session.get(StepExecutionModel, step_id, with_for_update=True)
            if step is None:
                raise RunNotFoundError(step_id)
            step.rollback_count += 1
            if retried:
                step.retry_count += 1
            step.read_count += read_delta
            session.flush()
            return step.to_dto()

    def record_reads(self, step_id: int, read_delta: int) -> None:
        """Count records drained by a chunk that never reached commit."""
        if read_delta <= 0:
            return
        with self._tx.transaction() as session:
            step = session.get(StepExecutionModel, step_id, with_for_update=True)
            if step is None:
                raise RunNotFoundError(step_id)
            step.read_count += read_delta

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_run(self, run_id: int) -> JobRun:
        """Get a run (with its step) by ID.

        Raises:
            RunNotFoundError: If run_id does not exist.
        """
        with self._tx.transaction() as session:
            run = session.get(BatchRunModel, run_id)
            if run is None:
                raise RunNotFoundError(run_id)
            return run.to_dto()

    def find_step(self, run_id: int) -> StepExecution:
        """Get the step execution belonging to ``run_id``."""
        step = self.get_run(run_id).step
        if step is None:
            raise RunNotFoundError(run_id)
        return step

    def get_step(self, step_id: int) -> StepExecution:
        with self._tx.transaction() as session:
            step = session.get(StepExecutionModel, step_id)
            if step is None:
                raise RunNotFoundError(step_id)
            return step.to_dto()

    def latest_run(self, job_name: str, parameters: Mapping[str, Any]) -> JobRun | None:
        """Most recent run for this job name and parameter map, if any."""
        key = job_key(job_name, dict(parameters))
        with self._tx.transaction() as session:
            run = session.execute(
                select(BatchRunModel)
                .where(BatchRunModel.job_key == key)
                .order_by(BatchRunModel.id.desc())
                .limit(1)
            ).scalar_one_or_none()
            return run.to_dto() if run is not None else None

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _lock_run(session: Session, run_id: int) -> BatchRunModel:
        run = session.execute(
            select(BatchRunModel)
            .where(BatchRunModel.id == run_id)
            .with_for_update()
        ).scalar_one_or_none()
        if run is None:
            raise RunNotFoundError(run_id)
        return run

    @staticmethod
    def _apply_run_status(
        run: BatchRunModel,
        target: RunStatus,
        now: Any,
        exit_message: str | None,
    ) -> None:
        current = RunStatus(run.status)
        if not current.can_transition_to(target):
            raise InvalidStatusTransitionError("run", run.id, current.value, target.value)
        run.status = target.value
        if target == RunStatus.STARTED:
            run.started_at = now
        if target.is_terminal:
            if run.started_at is None:
                run.started_at = now
            run.ended_at = now
            run.active_key = None
            if exit_message is not None:
                run.exit_message = exit_message

    @staticmethod
    def _apply_step_status(
        step: StepExecutionModel,
        target: StepStatus,
        now: Any,
        exit_message: str | None,
    ) -> None:
        current = StepStatus(step.status)
        if not current.can_transition_to(target):
            raise InvalidStatusTransitionError("step", step.id, current.value, target.value)
        step.status = target.value
        if target == StepStatus.STARTING:
            step.started_at = now
        if target.is_terminal:
            if step.started_at is None:
                step.started_at = now
            step.ended_at = now
            if exit_message is not None:
                step.exit_message = exit_message
