"""Sinks that persist accepted records inside the chunk transaction."""

from etl_ingestion.writers.customer import CustomerWriter

__all__ = [
    "CustomerWriter",
]
