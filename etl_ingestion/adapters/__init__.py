"""Record sources for the ingestion pipeline."""

from etl_ingestion.adapters.flat_file import (
    DelimitedLineTokenizer,
    FieldSetMapper,
    FlatFileItemReader,
)

__all__ = [
    "DelimitedLineTokenizer",
    "FieldSetMapper",
    "FlatFileItemReader",
]
