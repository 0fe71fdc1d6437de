"""
etl_ingestion.domain -- Pure types for customer ingestion.

ZERO I/O.  All types are frozen dataclasses.
"""

from etl_ingestion.domain.types import Customer

__all__ = [
    "Customer",
]
