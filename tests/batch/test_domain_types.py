"""Tests for etl_batch.domain.types: status machines, policies and DTOs."""

import pytest

from etl_kernel.exceptions import InvalidDateError, OptimisticLockError

from etl_batch.domain.types import (
    STEP_TO_RUN_STATUS,
    ChunkContext,
    ChunkCounters,
    ChunkPolicy,
    JobRun,
    RetryPolicy,
    RunStatus,
    StepStatus,
)


class TestRunStatus:

    @pytest.mark.parametrize(
        "status", [RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.STOPPED],
    )
    def test_terminal_statuses_allow_nothing(self, status):
        assert status.is_terminal
        assert not any(status.can_transition_to(target) for target in RunStatus)

    def test_forward_path(self):
        assert RunStatus.PENDING.can_transition_to(RunStatus.STARTED)
        assert RunStatus.STARTED.can_transition_to(RunStatus.RUNNING)
        assert RunStatus.RUNNING.can_transition_to(RunStatus.COMPLETED)

    def test_backward_transition_rejected(self):
        assert not RunStatus.RUNNING.can_transition_to(RunStatus.STARTED)
        assert not RunStatus.STARTED.can_transition_to(RunStatus.PENDING)

    def test_pending_cannot_skip_to_running_or_completed(self):
        assert not RunStatus.PENDING.can_transition_to(RunStatus.RUNNING)
        assert not RunStatus.PENDING.can_transition_to(RunStatus.COMPLETED)

    def test_pending_can_be_stopped_or_failed(self):
        assert RunStatus.PENDING.can_transition_to(RunStatus.STOPPED)
        assert RunStatus.PENDING.can_transition_to(RunStatus.FAILED)

    def test_string_value(self):
        assert RunStatus("RUNNING") is RunStatus.RUNNING
        assert RunStatus.RUNNING == "RUNNING"


class TestStepStatus:

    def test_forward_path(self):
        assert StepStatus.NEW.can_transition_to(StepStatus.STARTING)
        assert StepStatus.STARTING.can_transition_to(StepStatus.STARTED)
        assert StepStatus.STARTED.can_transition_to(StepStatus.COMPLETED)

    def test_non_terminal(self):
        assert not StepStatus.NEW.is_terminal
        assert not StepStatus.STARTED.is_terminal

    def test_step_to_run_mapping_covers_terminals(self):
        assert set(STEP_TO_RUN_STATUS) == {
            s for s in StepStatus if s.is_terminal
        }
        assert all(run.is_terminal for run in STEP_TO_RUN_STATUS.values())


class TestRetryPolicy:

    def test_defaults(self):
        policy = RetryPolicy()
        assert policy.retry_limit == 3
        assert policy.backoff_seconds == 0.0

    def test_only_optimistic_lock_conflicts_are_retryable(self):
        policy = RetryPolicy()
        assert policy.is_retryable(OptimisticLockError("Customer", "1"))
        assert not policy.is_retryable(InvalidDateError("31-2-1990", 1))
        assert not policy.is_retryable(RuntimeError("boom"))

    def test_negative_limit_rejected(self):
        with pytest.raises(ValueError):
            RetryPolicy(retry_limit=-1)

    def test_negative_backoff_rejected(self):
        with pytest.raises(ValueError):
            RetryPolicy(backoff_seconds=-0.1)


class TestChunkPolicy:

    def test_zero_chunk_size_rejected(self):
        with pytest.raises(ValueError):
            ChunkPolicy(chunk_size=0)

    def test_default_retry_policy(self):
        assert ChunkPolicy().retry == RetryPolicy()


class TestDtos:

    def test_chunk_context_size(self):
        ctx = ChunkContext(chunk_index=2, first_item_index=200, items=["a", "b"])
        assert ctx.size == 2
        assert ctx.attempts == 0

    def test_counters_default_zero(self):
        assert ChunkCounters() == ChunkCounters(read=0, filtered=0, written=0)

    def test_job_run_is_frozen(self):
        run = JobRun(run_id=1, job_name="importCustomers", job_key="k")
        assert run.status == RunStatus.PENDING
        with pytest.raises(AttributeError):
            run.status = RunStatus.RUNNING  # type: ignore[misc]
