"""
Typed Exception Hierarchy for the customer ETL pipeline.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from EtlError:

    EtlError (base)
    |
    +-- ReaderError
    |   +-- MalformedRecordError
    |   +-- ReaderIOError
    |
    +-- ProcessorError
    |   +-- InvalidDateError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ConfigurationError
    |
    +-- RunError
        +-- DuplicateRunningRunError
        +-- RunNotFoundError
        +-- InvalidStatusTransitionError
        +-- RetryExhaustedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                         | When Raised
----------------|------------------------------|------------------------------------
Reader          | malformed-record             | Line cannot be tokenized / bound
                | transient-io                 | Input file cannot be read
----------------|------------------------------|------------------------------------
Processor       | invalid-date                 | dob is not a valid past d-M-yyyy
----------------|------------------------------|------------------------------------
Concurrency     | optimistic-locking-conflict  | Row modified by another transaction
----------------|------------------------------|------------------------------------
Configuration   | configuration-error          | Missing or invalid option at startup
----------------|------------------------------|------------------------------------
Run             | duplicate-running-run        | Identical parameters already running
                | run-not-found                | Run ID doesn't exist
                | invalid-status-transition    | Backward or post-terminal transition
                | retry-exhausted              | Chunk failed after retry_limit retries

===============================================================================
HANDLING PATTERNS
===============================================================================

1. CLASSIFY BY TYPE (never by message):

    try:
        sink.write(session, items)
    except OptimisticLockError:
        # retryable
        ...

2. USE STRUCTURED DATA:

    except MalformedRecordError as e:
        log.error("bad line", extra={"line_number": e.line_number})

3. ERROR CODES ARE API-SAFE:

    except EtlError as e:
        return f"Error: {e.code}"
"""


class EtlError(Exception):
    """
    Base exception for all ETL errors.

    All subclasses carry a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "etl-error"


# Reader exceptions


class ReaderError(EtlError):
    """Base exception for record source errors."""

    code: str = "reader-error"


class MalformedRecordError(ReaderError):
    """A line could not be tokenized or bound to a Customer."""

    code: str = "malformed-record"

    def __init__(self, line_number: int, line: str, reason: str):
        self.line_number = line_number
        self.line = line
        self.reason = reason
        super().__init__(
            f"Malformed record at line {line_number}: {reason} (input: {line!r})"
        )


class ReaderIOError(ReaderError):
    """The input resource could not be opened or read."""

    code: str = "transient-io"

    def __init__(self, resource: str, reason: str):
        self.resource = resource
        self.reason = reason
        super().__init__(f"I/O failure reading {resource}: {reason}")


# Processor exceptions


class ProcessorError(EtlError):
    """Base exception for per-record transformation errors."""

    code: str = "processor-error"


class InvalidDateError(ProcessorError):
    """Date of birth is not a valid past date in d-M-yyyy form."""

    code: str = "invalid-date"

    def __init__(self, value: str, customer_id: int | None = None, reason: str = ""):
        self.value = value
        self.customer_id = customer_id
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(
            f"Invalid date of birth {value!r} for customer {customer_id}{detail}"
        )


# Concurrency exceptions


class ConcurrencyError(EtlError):
    """Base exception for concurrency-related errors."""

    code: str = "concurrency-error"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "optimistic-locking-conflict"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Configuration exceptions


class ConfigurationError(EtlError):
    """A configuration option is missing or invalid."""

    code: str = "configuration-error"

    def __init__(self, option: str, reason: str):
        self.option = option
        self.reason = reason
        super().__init__(f"Invalid configuration for '{option}': {reason}")


# Run exceptions


class RunError(EtlError):
    """Base exception for run journal / lifecycle errors."""

    code: str = "run-error"


class DuplicateRunningRunError(RunError):
    """A run with identical parameters has not reached a terminal status."""

    code: str = "duplicate-running-run"

    def __init__(self, job_name: str, run_id: int | None = None):
        self.job_name = job_name
        self.run_id = run_id
        super().__init__(
            f"Run {run_id} of job '{job_name}' with identical parameters "
            "is not yet terminal"
        )


class RunNotFoundError(RunError):
    """Run with given ID was not found."""

    code: str = "run-not-found"

    def __init__(self, run_id: int):
        self.run_id = run_id
        super().__init__(f"Run not found: {run_id}")


class InvalidStatusTransitionError(RunError):
    """Attempted a backward or post-terminal status transition."""

    code: str = "invalid-status-transition"

    def __init__(self, entity: str, entity_id: int, current: str, target: str):
        self.entity = entity
        self.entity_id = entity_id
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot move {entity} {entity_id} from {current} to {target}"
        )


class RetryExhaustedError(RunError):
    """A chunk kept failing with a retryable error past the retry limit."""

    code: str = "retry-exhausted"

    def __init__(self, chunk_index: int, attempts: int, last_error: str):
        self.chunk_index = chunk_index
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Chunk {chunk_index} failed after {attempts} attempt(s): {last_error}"
        )
