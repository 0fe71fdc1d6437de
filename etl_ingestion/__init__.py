"""
etl_ingestion -- Reading, transforming and persisting customer records.

Architecture: read -> process -> write collaborators for the chunk
engine in etl_batch.  Nothing here opens or commits transactions; the
writer works inside the session the engine hands it.
"""
