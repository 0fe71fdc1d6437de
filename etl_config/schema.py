"""
EtlSettings schema.

The runtime configuration for one import job.  Parsed from a YAML file
and environment overrides by ``etl_config.loader``; consumed by the
orchestrator, the standalone runner and the HTTP app.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from sqlalchemy.engine import make_url

DEFAULT_FIELD_NAMES: tuple[str, ...] = (
    "id",
    "firstName",
    "lastName",
    "email",
    "gender",
    "contactNo",
    "country",
    "dob",
    "balance",
)

# Trailing fields a record may omit (a missing balance reads as 0.0)
OPTIONAL_FIELD_NAMES: tuple[str, ...] = ("balance",)


@dataclass(frozen=True)
class InputSettings:
    """Where and how the delimited flat file is read."""

    path: Path
    delimiter: str = ","
    lines_to_skip: int = 0
    strict: bool = False
    encoding: str = "utf-8"
    field_names: tuple[str, ...] = DEFAULT_FIELD_NAMES
    optional_fields: tuple[str, ...] = OPTIONAL_FIELD_NAMES


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection string plus optional credentials merged into it."""

    url: str = "sqlite:///customers.db"
    user: str | None = None
    password: str | None = None
    echo: bool = False

    def database_url(self) -> str:
        """Return ``url`` with ``user``/``password`` applied when provided."""
        url = make_url(self.url)
        if self.user:
            url = url.set(username=self.user)
        if self.password:
            url = url.set(password=self.password)
        return url.render_as_string(hide_password=False)


@dataclass(frozen=True)
class EtlSettings:
    """Complete, validated configuration for the customer import job."""

    input: InputSettings
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    job_name: str = "importCustomers"
    chunk_size: int = 100
    retry_limit: int = 3
    retry_backoff_seconds: float = 0.0
    poll_interval_seconds: float = 1.0
    log_level: str = "INFO"
