"""
Delimited flat-file record source.

Contract:
    ``DelimitedLineTokenizer`` splits one physical line into named tokens.
    ``FlatFileItemReader`` streams Customer records from a file: ``open()``
    discards ``lines_to_skip`` lines, ``read()`` returns the next record or
    ``None`` at end-of-stream, ``close()`` releases the handle.

Architecture: etl_ingestion/adapters.  File I/O only, no DB imports.
    Uses the csv module for quoting, one line at a time, so memory is
    bounded by the longest line.

Failure modes:
    - MalformedRecordError: token count mismatch (strict mode) or a token
      that cannot be bound to its field.  Carries the physical line number.
    - ReaderIOError: the file cannot be opened, read or decoded.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import IO, Iterator, Protocol

from etl_kernel.exceptions import MalformedRecordError, ReaderIOError
from etl_kernel.logging_config import get_logger

from etl_ingestion.domain.types import Customer

logger = get_logger("ingestion.flat_file")


def _get_encoding(encoding: str) -> str:
    if encoding.lower() in ("utf-8", "utf8"):
        return "utf-8-sig"  # Strip BOM if present
    return encoding


class FieldSetMapper(Protocol):
    """Binds a tokenized line to a record."""

    def map_field_set(
        self, fields: dict[str, str], line_number: int, line: str,
    ) -> Customer: ...


class DelimitedLineTokenizer:
    """Split a line on a single-character delimiter into named tokens.

    Non-strict mode pads missing trailing fields with empty strings and
    ignores surplus trailing fields.  Strict mode rejects surplus fields
    and any missing field that is not one of the trailing
    ``optional_fields``.
    """

    def __init__(
        self,
        names: tuple[str, ...],
        delimiter: str = ",",
        strict: bool = False,
        quote_character: str = '"',
        optional_fields: tuple[str, ...] = (),
    ):
        if len(delimiter) != 1:
            raise ValueError(f"Delimiter must be a single character, got {delimiter!r}")
        if not names:
            raise ValueError("Tokenizer requires at least one field name")
        self._names = tuple(names)
        self._delimiter = delimiter
        self._strict = strict
        self._quote_character = quote_character

        # Only a trailing run of optional names may be omitted
        required = len(self._names)
        while required > 1 and self._names[required - 1] in optional_fields:
            required -= 1
        self._required = required

    @property
    def names(self) -> tuple[str, ...]:
        return self._names

    @property
    def required_count(self) -> int:
        return self._required

    def tokenize(self, line: str, line_number: int = 0) -> dict[str, str]:
        try:
            tokens = next(
                csv.reader(
                    [line],
                    delimiter=self._delimiter,
                    quotechar=self._quote_character,
                    strict=True,
                ),
                [],
            )
        except csv.Error as exc:
            raise MalformedRecordError(line_number, line, str(exc)) from exc

        expected = len(self._names)
        if self._strict and not self._required <= len(tokens) <= expected:
            if self._required == expected:
                wanted = str(expected)
            else:
                wanted = f"{self._required} to {expected}"
            raise MalformedRecordError(
                line_number,
                line,
                f"expected {wanted} fields, found {len(tokens)}",
            )
        if len(tokens) < expected:
            tokens = tokens + [""] * (expected - len(tokens))
        return dict(zip(self._names, tokens))


class FlatFileItemReader:
    """Lazy, finite, non-restartable source of Customer records.

    Blank lines and lines starting with one of ``comment_prefixes`` are
    skipped and are not records.  ``lines_to_skip`` discards leading
    physical lines regardless of content; nothing else is skipped, so a
    header row is only dropped when ``lines_to_skip`` says so.
    """

    def __init__(
        self,
        tokenizer: DelimitedLineTokenizer,
        mapper: FieldSetMapper,
        resource: Path | None = None,
        lines_to_skip: int = 0,
        encoding: str = "utf-8",
        comment_prefixes: tuple[str, ...] = ("#",),
        name: str = "customerReader",
    ):
        if lines_to_skip < 0:
            raise ValueError("lines_to_skip must be >= 0")
        self._tokenizer = tokenizer
        self._mapper = mapper
        self._resource = resource
        self._lines_to_skip = lines_to_skip
        self._encoding = _get_encoding(encoding)
        self._comment_prefixes = comment_prefixes
        self._name = name
        self._handle: IO[str] | None = None
        self._line_number = 0
        self._position = 0

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def open(self, resource: Path | None = None) -> None:
        """Open the resource and discard ``lines_to_skip`` lines."""
        if self._handle is not None:
            raise RuntimeError(f"Reader '{self._name}' is already open")
        if resource is not None:
            self._resource = resource
        if self._resource is None:
            raise ValueError(f"Reader '{self._name}' has no resource")

        try:
            self._handle = Path(self._resource).open(
                "r", encoding=self._encoding, newline="",
            )
        except OSError as exc:
            raise ReaderIOError(str(self._resource), str(exc)) from exc

        self._line_number = 0
        self._position = 0
        for _ in range(self._lines_to_skip):
            if self._next_line() is None:
                break

        logger.debug(
            "reader_opened",
            extra={
                "reader": self._name,
                "resource": str(self._resource),
                "lines_skipped": self._line_number,
            },
        )

    def close(self) -> None:
        """Release the file handle. Safe to call more than once."""
        if self._handle is not None:
            self._handle.close()
            self._handle = None
            logger.debug(
                "reader_closed",
                extra={"reader": self._name, "records_read": self._position},
            )

    def __enter__(self) -> FlatFileItemReader:
        self.open()
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    def read(self) -> Customer | None:
        """Return the next record, or None at end-of-stream."""
        if self._handle is None:
            raise RuntimeError(f"Reader '{self._name}' is not open")

        while True:
            raw = self._next_line()
            if raw is None:
                return None
            line = raw.rstrip("\r\n")
            if not line.strip() or line.startswith(self._comment_prefixes):
                continue
            fields = self._tokenizer.tokenize(line, self._line_number)
            record = self._mapper.map_field_set(fields, self._line_number, line)
            self._position += 1
            return record

    def skip(self, count: int) -> int:
        """Advance past ``count`` records; returns how many were skipped."""
        skipped = 0
        while skipped < count and self.read() is not None:
            skipped += 1
        return skipped

    def __iter__(self) -> Iterator[Customer]:
        while (record := self.read()) is not None:
            yield record

    @property
    def position(self) -> int:
        """Records returned (or skipped) since ``open()``."""
        return self._position

    @property
    def line_number(self) -> int:
        """Physical line number of the last line consumed (1-based)."""
        return self._line_number

    def _next_line(self) -> str | None:
        assert self._handle is not None
        try:
            raw = self._handle.readline()
        except (OSError, UnicodeDecodeError) as exc:
            raise ReaderIOError(str(self._resource), str(exc)) from exc
        if raw == "":
            return None
        self._line_number += 1
        return raw
