"""
etl_batch -- Chunk-oriented batch execution for the customer import.

Provides a run journal (runs, step executions, chunk counters), a chunk
engine that drives read -> process -> write in transactional chunks with
retry on optimistic-lock conflicts, and a run controller that starts a
run and waits for its terminal status.

Architecture:
    etl_batch/ is the top-level package.  Nothing in etl_kernel/ or
    etl_ingestion/ imports from etl_batch (except create_tables, which
    imports the journal models so the schema is complete).

Invariants:
    - Chunk counters are committed in the same transaction as the chunk's
      customer rows.
    - At most retry_limit + 1 commit attempts per chunk.
    - Run and step statuses never move backward or leave a terminal state.
    - One non-terminal run per (job name, parameter map).
    - Stop requests are honoured at chunk boundaries only.
"""
