"""
etl_batch.domain.types -- Pure types for the run journal and chunk engine.

ZERO I/O.  Status enums carry their allowed transitions; DTOs are frozen
dataclasses.  ``ChunkContext`` is the one mutable type: it lives only
inside the chunk engine for the duration of a chunk.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from etl_kernel.exceptions import OptimisticLockError

# =============================================================================
# Status enums
# =============================================================================


class RunStatus(str, Enum):
    """Run-level lifecycle status."""

    PENDING = "PENDING"  # Created, not yet picked up by the engine
    STARTED = "STARTED"  # Engine entered, reader opening
    RUNNING = "RUNNING"  # First chunk has begun
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    STOPPED = "STOPPED"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_RUN

    def can_transition_to(self, target: RunStatus) -> bool:
        return target in _RUN_TRANSITIONS[self]


class StepStatus(str, Enum):
    """Step execution lifecycle status."""

    NEW = "NEW"  # Created with the run
    STARTING = "STARTING"  # Engine entered
    STARTED = "STARTED"  # First chunk has begun
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    STOPPED = "STOPPED"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STEP

    def can_transition_to(self, target: StepStatus) -> bool:
        return target in _STEP_TRANSITIONS[self]


_TERMINAL_RUN = frozenset({RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.STOPPED})
_TERMINAL_STEP = frozenset({StepStatus.COMPLETED, StepStatus.FAILED, StepStatus.STOPPED})

_RUN_TRANSITIONS: dict[RunStatus, frozenset[RunStatus]] = {
    RunStatus.PENDING: frozenset({RunStatus.STARTED, RunStatus.FAILED, RunStatus.STOPPED}),
    RunStatus.STARTED: frozenset({RunStatus.RUNNING, *_TERMINAL_RUN}),
    RunStatus.RUNNING: _TERMINAL_RUN,
    RunStatus.COMPLETED: frozenset(),
    RunStatus.FAILED: frozenset(),
    RunStatus.STOPPED: frozenset(),
}

_STEP_TRANSITIONS: dict[StepStatus, frozenset[StepStatus]] = {
    StepStatus.NEW: frozenset({StepStatus.STARTING, StepStatus.FAILED, StepStatus.STOPPED}),
    StepStatus.STARTING: frozenset({StepStatus.STARTED, *_TERMINAL_STEP}),
    StepStatus.STARTED: _TERMINAL_STEP,
    StepStatus.COMPLETED: frozenset(),
    StepStatus.FAILED: frozenset(),
    StepStatus.STOPPED: frozenset(),
}

# Step terminal status -> run terminal status
STEP_TO_RUN_STATUS: dict[StepStatus, RunStatus] = {
    StepStatus.COMPLETED: RunStatus.COMPLETED,
    StepStatus.FAILED: RunStatus.FAILED,
    StepStatus.STOPPED: RunStatus.STOPPED,
}


# =============================================================================
# Journal DTOs
# =============================================================================


@dataclass(frozen=True)
class StepExecution:
    """Immutable snapshot of a step execution and its counters."""

    step_id: int
    run_id: int
    step_name: str
    status: StepStatus
    read_count: int = 0
    filter_count: int = 0
    write_count: int = 0
    commit_count: int = 0
    rollback_count: int = 0
    retry_count: int = 0
    committed_position: int = 0  # Absolute input records consumed by committed chunks
    started_at: datetime | None = None
    ended_at: datetime | None = None
    exit_message: str | None = None


@dataclass(frozen=True)
class JobRun:
    """Immutable snapshot of a run.

    Runs with identical ``job_key`` (job name + canonical parameters)
    collapse: a COMPLETED run is returned instead of creating a new one.
    """

    run_id: int
    job_name: str
    job_key: str
    parameters: dict[str, Any] = field(default_factory=dict)
    status: RunStatus = RunStatus.PENDING
    created_at: datetime | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None
    exit_message: str | None = None
    restart_of: int | None = None
    step: StepExecution | None = None


@dataclass(frozen=True)
class ChunkCounters:
    """Counter deltas committed together with one chunk."""

    read: int = 0
    filtered: int = 0
    written: int = 0


# =============================================================================
# Engine configuration and transient state
# =============================================================================


@dataclass(frozen=True)
class RetryPolicy:
    """Which commit failures are retried, and how often.

    ``retry_limit`` counts retries, so a chunk gets at most
    ``retry_limit + 1`` commit attempts.
    """

    retryable: tuple[type[BaseException], ...] = (OptimisticLockError,)
    retry_limit: int = 3
    backoff_seconds: float = 0.0

    def __post_init__(self) -> None:
        if self.retry_limit < 0:
            raise ValueError("retry_limit must be >= 0")
        if self.backoff_seconds < 0:
            raise ValueError("backoff_seconds must be >= 0")

    def is_retryable(self, exc: BaseException) -> bool:
        return isinstance(exc, self.retryable)


@dataclass(frozen=True)
class ChunkPolicy:
    """Chunk size plus retry policy for one step."""

    chunk_size: int = 100
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    def __post_init__(self) -> None:
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")


@dataclass
class ChunkContext:
    """The in-memory input of one chunk, preserved across retries."""

    chunk_index: int  # 0-based, within this run
    first_item_index: int  # Absolute position of items[0] in the input
    items: list[Any] = field(default_factory=list)
    attempts: int = 0

    @property
    def size(self) -> int:
        return len(self.items)
