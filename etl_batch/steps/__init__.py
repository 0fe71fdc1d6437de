"""Item reader/processor/writer contracts consumed by the chunk engine."""

from etl_batch.steps.base import ItemProcessor, ItemReader, ItemWriter

__all__ = [
    "ItemProcessor",
    "ItemReader",
    "ItemWriter",
]
