"""
EtlOrchestrator -- composition root for the customer import job.

Contract:
    ``from_settings()`` builds the database engine, creates the tables and
    wires reader, processor, writer, run journal, chunk engine and run
    controller.  The single place where the job's dependencies are
    composed; the HTTP app and the standalone runner both start here.

Architecture: etl_batch (top-level).

Invariants enforced:
    - Every collaborator receives the same Clock.
    - The writer and the journal share one TransactionManager, so chunk
      rows and chunk counters commit together.
"""

from __future__ import annotations

from sqlalchemy.engine import Engine

from etl_config import EtlSettings
from etl_kernel.db.engine import TransactionManager, build_engine, create_tables
from etl_kernel.domain.clock import Clock, SystemClock
from etl_kernel.logging_config import get_logger

from etl_ingestion.adapters.flat_file import DelimitedLineTokenizer, FlatFileItemReader
from etl_ingestion.mapping.customer import CustomerFieldSetMapper
from etl_ingestion.processors.customer import CustomerProcessor
from etl_ingestion.writers.customer import CustomerWriter

from etl_batch.domain.types import ChunkPolicy, RetryPolicy
from etl_batch.services.chunk_engine import ChunkEngine
from etl_batch.services.controller import Observer, RunController
from etl_batch.services.journal import RunJournal

logger = get_logger("batch.orchestrator")


def build_reader(settings: EtlSettings) -> FlatFileItemReader:
    """Reader for the configured input file."""
    source = settings.input
    tokenizer = DelimitedLineTokenizer(
        names=source.field_names,
        delimiter=source.delimiter,
        strict=source.strict,
        optional_fields=source.optional_fields,
    )
    return FlatFileItemReader(
        tokenizer=tokenizer,
        mapper=CustomerFieldSetMapper(),
        resource=source.path,
        lines_to_skip=source.lines_to_skip,
        encoding=source.encoding,
    )


def build_policy(settings: EtlSettings) -> ChunkPolicy:
    return ChunkPolicy(
        chunk_size=settings.chunk_size,
        retry=RetryPolicy(
            retry_limit=settings.retry_limit,
            backoff_seconds=settings.retry_backoff_seconds,
        ),
    )


class EtlOrchestrator:
    """Holds the wired object graph for one configured job.

    Non-goals:
        - Does NOT run anything on construction -- callers use
          ``controller.trigger()``.
    """

    def __init__(
        self,
        settings: EtlSettings,
        db_engine: Engine,
        transactions: TransactionManager,
        journal: RunJournal,
        chunk_engine: ChunkEngine,
        controller: RunController,
    ) -> None:
        self.settings = settings
        self.db_engine = db_engine
        self.transactions = transactions
        self.journal = journal
        self.chunk_engine = chunk_engine
        self.controller = controller

    @classmethod
    def from_settings(
        cls,
        settings: EtlSettings,
        clock: Clock | None = None,
        db_engine: Engine | None = None,
        observer: Observer | None = None,
    ) -> EtlOrchestrator:
        """Create a fully wired orchestrator.

        Args:
            settings: Validated job configuration.
            clock: Optional clock for deterministic testing.
            db_engine: Optional pre-built engine (tests share one).
            observer: Optional callback receiving progress snapshots.
        """
        effective_clock = clock or SystemClock()
        engine = db_engine or build_engine(
            settings.database.database_url(), echo=settings.database.echo,
        )
        create_tables(engine)

        transactions = TransactionManager.from_engine(engine)
        journal = RunJournal(transactions, clock=effective_clock)
        chunk_engine = ChunkEngine(
            reader=build_reader(settings),
            processor=CustomerProcessor(clock=effective_clock),
            writer=CustomerWriter(),
            transactions=transactions,
            journal=journal,
            policy=build_policy(settings),
        )
        controller = RunController(
            journal=journal,
            engine=chunk_engine,
            clock=effective_clock,
            job_name=settings.job_name,
            poll_interval=settings.poll_interval_seconds,
            observer=observer,
        )

        logger.info(
            "orchestrator_created",
            extra={
                "job_name": settings.job_name,
                "input_path": str(settings.input.path),
                "chunk_size": settings.chunk_size,
                "retry_limit": settings.retry_limit,
            },
        )
        return cls(
            settings=settings,
            db_engine=engine,
            transactions=transactions,
            journal=journal,
            chunk_engine=chunk_engine,
            controller=controller,
        )

    def dispose(self) -> None:
        """Release pooled database connections."""
        self.db_engine.dispose()
