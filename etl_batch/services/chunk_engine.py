"""
ChunkEngine -- chunk-oriented read -> process -> write with retry.

Contract:
    ``execute(run_id)`` drives the run's single step to a terminal status:
    drain up to ``chunk_size`` items, process them, then write the
    survivors and the step counters in ONE transaction.  A failed commit
    is rolled back and, when the RetryPolicy says so, re-attempted from the
    preserved input buffer without advancing the reader.

Architecture: etl_batch/services.  Imports from etl_batch.domain,
    etl_batch.steps, etl_batch.services.journal and the kernel.

Invariants enforced:
    - Chunks are committed strictly in reader order, one at a time.
    - Commit attempts per chunk <= retry_limit + 1.
    - A rolled-back attempt leaves no customer rows and no counters behind.
    - Step counters: read = drained, filter = dropped, write = handed to
      the writer, all committed with the chunk.
    - Stop requests are honoured at chunk boundaries only.

Failure modes (all end the step, never raised to the caller):
    - ReaderError during drain or resume skip -> FAILED.
    - Processor error (e.g. InvalidDateError) -> FAILED, not retried.
    - Retryable commit failure past the limit -> FAILED (RetryExhaustedError).
    - Any other commit failure -> FAILED, not retried.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable

from etl_kernel.db.engine import TransactionManager
from etl_kernel.exceptions import EtlError, ReaderError, RetryExhaustedError
from etl_kernel.logging_config import LogContext, get_logger

from etl_batch.domain.types import (
    STEP_TO_RUN_STATUS,
    ChunkContext,
    ChunkCounters,
    ChunkPolicy,
    JobRun,
    RunStatus,
    StepExecution,
    StepStatus,
)
from etl_batch.services.journal import RunJournal
from etl_batch.steps.base import ItemProcessor, ItemReader, ItemWriter

logger = get_logger("batch.chunk_engine")

# (terminal step status, exit message)
_Outcome = tuple[StepStatus, str | None]


def _describe(exc: BaseException) -> str:
    if isinstance(exc, EtlError):
        return str(exc)
    return f"{type(exc).__name__}: {exc}"


class ChunkEngine:
    """Single-worker chunk loop for one step.

    Contract:
        - ``execute(run_id)`` runs a PENDING run to COMPLETED, FAILED or
          STOPPED and returns the final JobRun.
        - ``request_stop(run_id)`` asks a running (or about to run)
          execution to stop at the next chunk boundary.

    Non-goals:
        - No inter-chunk parallelism.  ``execute`` calls on one engine are
          serialized because the reader is stateful; concurrent runs need
          separate engines.
    """

    def __init__(
        self,
        reader: ItemReader,
        processor: ItemProcessor,
        writer: ItemWriter,
        transactions: TransactionManager,
        journal: RunJournal,
        policy: ChunkPolicy | None = None,
        sleep: Callable[[float], None] | None = None,
    ):
        self._reader = reader
        self._processor = processor
        self._writer = writer
        self._tx = transactions
        self._journal = journal
        self._policy = policy or ChunkPolicy()
        self._sleep = sleep or time.sleep
        self._execution_lock = threading.Lock()
        self._stop_lock = threading.Lock()
        self._stop_requests: set[int] = set()

    @property
    def policy(self) -> ChunkPolicy:
        return self._policy

    # -------------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------------

    def request_stop(self, run_id: int) -> None:
        """Flag ``run_id`` to stop at its next chunk boundary."""
        with self._stop_lock:
            self._stop_requests.add(run_id)
        logger.info("stop_requested", extra={"run_id": run_id})

    def _stop_requested(self, run_id: int) -> bool:
        with self._stop_lock:
            return run_id in self._stop_requests

    # -------------------------------------------------------------------------
    # Execute
    # -------------------------------------------------------------------------

    def execute(self, run_id: int) -> JobRun:
        """Run the step of ``run_id`` to a terminal status.

        Raises:
            RunNotFoundError: If run_id does not exist.
            InvalidStatusTransitionError: If the run is not PENDING.
        """
        with self._execution_lock:
            run = self._journal.get_run(run_id)
            assert run.step is not None

            with LogContext.bind(
                job_name=run.job_name, run_id=run.run_id, step_id=run.step.step_id,
            ):
                try:
                    self._journal.transition(
                        run_id, RunStatus.STARTED, StepStatus.STARTING,
                    )
                    logger.info(
                        "step_started",
                        extra={
                            "step_name": run.step.step_name,
                            "chunk_size": self._policy.chunk_size,
                            "retry_limit": self._policy.retry.retry_limit,
                            "resume_from": run.step.committed_position,
                        },
                    )

                    status, message = self._run_step(run, run.step)
                    final = self._journal.transition(
                        run_id, STEP_TO_RUN_STATUS[status], status, message,
                    )
                finally:
                    with self._stop_lock:
                        self._stop_requests.discard(run_id)

                self._log_outcome(final)
                return final

    # -------------------------------------------------------------------------
    # Step loop
    # -------------------------------------------------------------------------

    def _run_step(self, run: JobRun, step: StepExecution) -> _Outcome:
        try:
            self._reader.open()
        except ReaderError as exc:
            logger.error("reader_open_failed", exc_info=True)
            return StepStatus.FAILED, _describe(exc)

        try:
            position = step.committed_position
            if position:
                skipped = self._reader.skip(position)
                logger.info(
                    "step_resumed",
                    extra={"restart_of": run.restart_of, "skipped": skipped},
                )

            chunk_index = 0
            started = False
            while True:
                if self._stop_requested(run.run_id):
                    return StepStatus.STOPPED, "Stop requested"

                chunk = ChunkContext(chunk_index=chunk_index, first_item_index=position)
                with LogContext.bind(chunk_index=chunk_index):
                    try:
                        self._drain(chunk)
                    except ReaderError as exc:
                        self._journal.record_reads(step.step_id, chunk.size)
                        logger.error(
                            "chunk_read_failed",
                            extra={"drained": chunk.size},
                            exc_info=True,
                        )
                        return StepStatus.FAILED, _describe(exc)

                    if chunk.size == 0:
                        return StepStatus.COMPLETED, None

                    if not started:
                        self._journal.transition(
                            run.run_id, RunStatus.RUNNING, StepStatus.STARTED,
                        )
                        started = True

                    outcome = self._execute_chunk(step.step_id, chunk)
                    if outcome is not None:
                        return outcome

                position += chunk.size
                chunk_index += 1
        except Exception as exc:
            logger.exception("step_unexpected_error")
            return StepStatus.FAILED, _describe(exc)
        finally:
            self._reader.close()

    def _drain(self, chunk: ChunkContext) -> None:
        while chunk.size < self._policy.chunk_size:
            item = self._reader.read()
            if item is None:
                break
            chunk.items.append(item)

    def _process(self, chunk: ChunkContext) -> tuple[list[Any], int]:
        survivors: list[Any] = []
        filtered = 0
        for item in chunk.items:
            result = self._processor.process(item)
            if result is None:
                filtered += 1
            else:
                survivors.append(result)
        return survivors, filtered

    def _execute_chunk(self, step_id: int, chunk: ChunkContext) -> _Outcome | None:
        """Process and commit one chunk; None on success, else the outcome."""
        retry = self._policy.retry

        while True:
            chunk.attempts += 1

            try:
                survivors, filtered = self._process(chunk)
            except Exception as exc:
                self._journal.record_reads(step_id, chunk.size)
                logger.error(
                    "chunk_process_failed",
                    extra={"first_item_index": chunk.first_item_index},
                    exc_info=True,
                )
                return StepStatus.FAILED, _describe(exc)

            counters = ChunkCounters(
                read=chunk.size, filtered=filtered, written=len(survivors),
            )
            try:
                with self._tx.transaction() as session:
                    self._writer.write(session, survivors)
                    self._journal.record_chunk_commit(session, step_id, counters)
            except Exception as exc:
                retryable = retry.is_retryable(exc)
                if retryable and chunk.attempts <= retry.retry_limit:
                    self._journal.record_rollback(step_id, retried=True)
                    logger.warning(
                        "chunk_retry_scheduled",
                        extra={
                            "attempt": chunk.attempts,
                            "retry_limit": retry.retry_limit,
                            "error_code": getattr(exc, "code", None),
                            "error": str(exc),
                        },
                    )
                    if retry.backoff_seconds:
                        self._sleep(retry.backoff_seconds)
                    continue

                self._journal.record_rollback(
                    step_id, retried=False, read_delta=chunk.size,
                )
                if retryable:
                    exhausted = RetryExhaustedError(
                        chunk.chunk_index, chunk.attempts, str(exc),
                    )
                    logger.error("chunk_retry_exhausted", exc_info=exhausted)
                    return StepStatus.FAILED, str(exhausted)

                logger.error(
                    "chunk_rolled_back",
                    extra={"attempt": chunk.attempts},
                    exc_info=True,
                )
                return StepStatus.FAILED, _describe(exc)

            logger.info(
                "chunk_committed",
                extra={
                    "first_item_index": chunk.first_item_index,
                    "read": counters.read,
                    "filtered": counters.filtered,
                    "written": counters.written,
                    "attempts": chunk.attempts,
                },
            )
            return None

    @staticmethod
    def _log_outcome(final: JobRun) -> None:
        step = final.step
        extra = {
            "run_status": final.status.value,
            "read_count": step.read_count if step else 0,
            "filter_count": step.filter_count if step else 0,
            "write_count": step.write_count if step else 0,
            "commit_count": step.commit_count if step else 0,
            "rollback_count": step.rollback_count if step else 0,
            "retry_count": step.retry_count if step else 0,
            "exit_message": final.exit_message,
        }
        if final.status == RunStatus.COMPLETED:
            logger.info("step_completed", extra=extra)
        elif final.status == RunStatus.STOPPED:
            logger.info("step_stopped", extra=extra)
        else:
            logger.error("step_failed", extra=extra)
