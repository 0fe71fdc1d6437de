"""
RunController -- trigger a run, wait for it, report its terminal status.

Contract:
    ``trigger()`` builds the ``{"startAt": <epoch ms>}`` parameter map,
    creates the run in the journal, executes it on a worker thread and
    waits for it, emitting a progress snapshot every poll interval.  The
    result is always a short string: ``JOB FINISHED with Status: <STATUS>``
    or ``Error: <message>``.  Nothing is raised to the caller.

Architecture: etl_batch/services.  Uses the run journal and chunk engine.

Invariants enforced:
    - Identical parameter maps never execute concurrently (journal).
    - Every run handed to the worker reaches a terminal status, even when
      the engine itself raises.
"""

from __future__ import annotations

import threading
from typing import Callable

from etl_kernel.domain.clock import Clock, SystemClock
from etl_kernel.exceptions import EtlError
from etl_kernel.logging_config import LogContext, get_logger

from etl_batch.domain.types import JobRun, RunStatus, StepStatus
from etl_batch.services.chunk_engine import ChunkEngine
from etl_batch.services.journal import RunJournal

logger = get_logger("batch.controller")

DEFAULT_JOB_NAME = "importCustomers"

Observer = Callable[[JobRun], None]


def format_error(exc: BaseException) -> str:
    """Render an error as the controller's ``Error: ...`` reply."""
    if isinstance(exc, EtlError):
        return f"Error: {exc.code}"
    return f"Error: {exc}"


def format_finished(run: JobRun) -> str:
    return f"JOB FINISHED with Status: {run.status.value}"


class RunController:
    """Single entry point used by the HTTP surface and the CLI.

    Contract:
        - ``trigger(start_at=None)`` runs the job to completion.
        - ``stop(run_id)`` requests cancellation at the next chunk boundary.
        - ``status(run_id)`` returns the current JobRun snapshot.

    Non-goals:
        - Does NOT schedule runs; every run is triggered explicitly.
    """

    def __init__(
        self,
        journal: RunJournal,
        engine: ChunkEngine,
        clock: Clock | None = None,
        job_name: str = DEFAULT_JOB_NAME,
        poll_interval: float = 1.0,
        observer: Observer | None = None,
    ):
        self._journal = journal
        self._engine = engine
        self._clock = clock or SystemClock()
        self._job_name = job_name
        self._poll_interval = poll_interval
        self._observer = observer
        self._active_lock = threading.Lock()
        self._active: set[int] = set()

    @property
    def job_name(self) -> str:
        return self._job_name

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def trigger(self, start_at: int | None = None) -> str:
        """Start a run and block until it is terminal."""
        try:
            final = self.run(start_at)
        except Exception as exc:
            logger.warning(
                "trigger_rejected",
                extra={
                    "job_name": self._job_name,
                    "error_code": getattr(exc, "code", None),
                    "error": str(exc),
                },
            )
            return format_error(exc)
        return format_finished(final)

    def run(self, start_at: int | None = None) -> JobRun:
        """Like ``trigger()`` but returns the final JobRun and raises errors.

        Raises:
            DuplicateRunningRunError: An identical run is not terminal yet.
        """
        if start_at is None:
            start_at = self._clock.epoch_millis()
        parameters = {"startAt": start_at}

        run = self._journal.create_run(self._job_name, parameters)
        if run.status.is_terminal:
            # Identical parameters already completed
            return run

        with LogContext.bind(job_name=self._job_name, run_id=run.run_id):
            return self._execute_and_wait(run)

    def stop(self, run_id: int) -> JobRun:
        """Request a stop at the next chunk boundary.

        A PENDING run nobody executes is stopped at once; a run executed by
        another process is returned unchanged.

        Raises:
            RunNotFoundError: If run_id does not exist.
        """
        run = self._journal.get_run(run_id)
        if run.status.is_terminal:
            return run

        with self._active_lock:
            executing = run_id in self._active
        if executing:
            self._engine.request_stop(run_id)
            return self._journal.get_run(run_id)

        if run.status == RunStatus.PENDING:
            logger.info("pending_run_stopped", extra={"run_id": run_id})
            return self._journal.transition(
                run_id, RunStatus.STOPPED, StepStatus.STOPPED, "Stop requested",
            )

        # Executed by another process; this engine cannot reach it
        logger.warning(
            "stop_not_local",
            extra={"run_id": run_id, "run_status": run.status.value},
        )
        return run

    def status(self, run_id: int) -> JobRun:
        return self._journal.get_run(run_id)

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _execute_and_wait(self, run: JobRun) -> JobRun:
        done = threading.Event()
        errors: list[BaseException] = []
        context = LogContext.get_all()

        def work() -> None:
            with LogContext.bind(**context):
                try:
                    self._engine.execute(run.run_id)
                except Exception as exc:
                    logger.exception("worker_failed")
                    errors.append(exc)
                finally:
                    done.set()

        with self._active_lock:
            self._active.add(run.run_id)
        worker = threading.Thread(
            target=work, name=f"etl-run-{run.run_id}", daemon=True,
        )
        try:
            worker.start()
            while not done.wait(timeout=self._poll_interval):
                self._observe(self._journal.get_run(run.run_id))
            worker.join()
        finally:
            with self._active_lock:
                self._active.discard(run.run_id)

        final = self._journal.get_run(run.run_id)
        if errors and not final.status.is_terminal:
            final = self._journal.transition(
                run.run_id,
                RunStatus.FAILED,
                StepStatus.FAILED,
                f"{type(errors[0]).__name__}: {errors[0]}",
            )
        self._observe(final)
        return final

    def _observe(self, snapshot: JobRun) -> None:
        step = snapshot.step
        logger.info(
            "run_progress",
            extra={
                "run_status": snapshot.status.value,
                "read_count": step.read_count if step else 0,
                "write_count": step.write_count if step else 0,
                "commit_count": step.commit_count if step else 0,
            },
        )
        if self._observer is None:
            return
        try:
            self._observer(snapshot)
        except Exception:
            # Snapshots are advisory; the run continues
            logger.exception(
                "observer_failed", extra={"run_status": snapshot.status.value},
            )
