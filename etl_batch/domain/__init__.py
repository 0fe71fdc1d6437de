"""
etl_batch.domain -- Pure types for the run journal and chunk engine.

ZERO I/O.  DTOs are frozen dataclasses.
"""

from etl_batch.domain.types import (
    STEP_TO_RUN_STATUS,
    ChunkContext,
    ChunkCounters,
    ChunkPolicy,
    JobRun,
    RetryPolicy,
    RunStatus,
    StepExecution,
    StepStatus,
)

__all__ = [
    "STEP_TO_RUN_STATUS",
    "ChunkContext",
    "ChunkCounters",
    "ChunkPolicy",
    "JobRun",
    "RetryPolicy",
    "RunStatus",
    "StepExecution",
    "StepStatus",
]
