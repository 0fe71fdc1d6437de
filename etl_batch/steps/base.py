"""
ItemReader / ItemProcessor / ItemWriter protocols.

Contract:
    The chunk engine depends only on these shapes.  The customer import
    plugs in FlatFileItemReader, CustomerProcessor and CustomerWriter from
    etl_ingestion; tests plug in fakes.

Architecture:
    etl_batch/steps.  No imports from etl_ingestion.

Non-goals:
    - Implementations do NOT manage transactions -- the engine owns the
      chunk transaction and passes its session to the writer.
    - Implementations do NOT retry -- the engine applies the RetryPolicy.
"""

from __future__ import annotations

from typing import Any, Protocol, Sequence, runtime_checkable

from sqlalchemy.orm import Session


@runtime_checkable
class ItemReader(Protocol):
    """Finite, forward-only source of items."""

    def open(self) -> None: ...

    def read(self) -> Any | None:
        """Return the next item, or None at end-of-stream."""
        ...

    def skip(self, count: int) -> int:
        """Advance past ``count`` items; returns how many were skipped."""
        ...

    def close(self) -> None: ...


@runtime_checkable
class ItemProcessor(Protocol):
    """Per-item transform; ``None`` means the item is filtered out."""

    def process(self, item: Any) -> Any | None: ...


@runtime_checkable
class ItemWriter(Protocol):
    """Persists a chunk's surviving items inside the given session."""

    def write(self, session: Session, items: Sequence[Any]) -> int: ...
