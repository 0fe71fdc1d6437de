"""
etl_batch.models -- ORM models for run journal persistence.

Architecture: etl_batch/models. Imports from etl_kernel.db.base only.
"""

from etl_batch.models.journal import BatchRunModel, StepExecutionModel

__all__ = [
    "BatchRunModel",
    "StepExecutionModel",
]
