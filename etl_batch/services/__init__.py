"""Run journal, chunk engine and run controller."""

from etl_batch.services.chunk_engine import ChunkEngine
from etl_batch.services.controller import RunController
from etl_batch.services.journal import RunJournal

__all__ = [
    "ChunkEngine",
    "RunController",
    "RunJournal",
]
