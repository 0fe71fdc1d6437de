"""
Configuration Loader (``etl_config.loader``).

Responsibility
--------------
Loads the YAML settings file, overlays environment variables, and parses
the result into the frozen ``etl_config.schema`` dataclasses.

Recognized options (dotted keys; YAML may nest or use the dotted form):

==============================  ==========================  ===========
option                          environment variable        default
==============================  ==========================  ===========
input.path                      ETL_INPUT_PATH              (required)
input.delimiter                 ETL_INPUT_DELIMITER         ``,``
input.lines_to_skip             ETL_INPUT_LINES_TO_SKIP     0
input.strict                    ETL_INPUT_STRICT            false
input.encoding                  ETL_INPUT_ENCODING          utf-8
chunk.size                      ETL_CHUNK_SIZE              100
retry.limit                     ETL_RETRY_LIMIT             3
retry.backoff_seconds           ETL_RETRY_BACKOFF_SECONDS   0.0
controller.poll_interval_seconds ETL_POLL_INTERVAL_SECONDS  1.0
job.name                        ETL_JOB_NAME                importCustomers
db.url                          ETL_DB_URL                  sqlite:///customers.db
db.user                         ETL_DB_USER                 (none)
db.password                     ETL_DB_PASSWORD             (none)
db.echo                         ETL_DB_ECHO                 false
log.level                       ETL_LOG_LEVEL               INFO
==============================  ==========================  ===========

Failure modes
-------------
* Missing YAML file  -> ``ConfigurationError`` (option ``config``).
* Malformed YAML  -> ``ConfigurationError`` wrapping ``yaml.YAMLError``.
* Missing ``input.path`` or out-of-range values  -> ``ConfigurationError``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

import yaml
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from etl_kernel.exceptions import ConfigurationError
from etl_config.schema import DatabaseSettings, EtlSettings, InputSettings

ENV_OVERRIDES: dict[str, str] = {
    "ETL_INPUT_PATH": "input.path",
    "ETL_INPUT_DELIMITER": "input.delimiter",
    "ETL_INPUT_LINES_TO_SKIP": "input.lines_to_skip",
    "ETL_INPUT_STRICT": "input.strict",
    "ETL_INPUT_ENCODING": "input.encoding",
    "ETL_CHUNK_SIZE": "chunk.size",
    "ETL_RETRY_LIMIT": "retry.limit",
    "ETL_RETRY_BACKOFF_SECONDS": "retry.backoff_seconds",
    "ETL_POLL_INTERVAL_SECONDS": "controller.poll_interval_seconds",
    "ETL_JOB_NAME": "job.name",
    "ETL_DB_URL": "db.url",
    "ETL_DB_USER": "db.user",
    "ETL_DB_PASSWORD": "db.password",
    "ETL_DB_ECHO": "db.echo",
    "ETL_LOG_LEVEL": "log.level",
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        ConfigurationError: if the file is missing, unreadable, malformed,
            or does not contain a mapping.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise ConfigurationError("config", f"file not found: {path}") from None
    except OSError as exc:
        raise ConfigurationError("config", f"cannot read {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError("config", f"invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError("config", f"{path} must contain a mapping")
    return data


def flatten(data: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten nested mappings into dotted keys (``{"a": {"b": 1}}`` -> ``{"a.b": 1}``)."""
    flat: dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, Mapping):
            flat.update(flatten(value, prefix=f"{dotted}."))
        else:
            flat[dotted] = value
    return flat


def parse_int(option: str, value: Any, minimum: int) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(option, f"expected an integer, got {value!r}")
    try:
        parsed = int(str(value).strip())
    except ValueError:
        raise ConfigurationError(option, f"expected an integer, got {value!r}") from None
    if parsed < minimum:
        raise ConfigurationError(option, f"must be >= {minimum}, got {parsed}")
    return parsed


def parse_float(option: str, value: Any, minimum: float) -> float:
    try:
        parsed = float(str(value).strip())
    except ValueError:
        raise ConfigurationError(option, f"expected a number, got {value!r}") from None
    if parsed < minimum:
        raise ConfigurationError(option, f"must be >= {minimum}, got {parsed}")
    return parsed


def parse_bool(option: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigurationError(option, f"expected a boolean, got {value!r}")


def parse_settings(options: Mapping[str, Any]) -> EtlSettings:
    """
    Build ``EtlSettings`` from a flat dotted-key mapping.

    Raises:
        ConfigurationError: on the first missing or invalid option.
    """
    raw_path = options.get("input.path")
    if raw_path is None or str(raw_path).strip() == "":
        raise ConfigurationError("input.path", "is required")

    delimiter = str(options.get("input.delimiter", ","))
    if len(delimiter) != 1:
        raise ConfigurationError(
            "input.delimiter", f"must be a single character, got {delimiter!r}",
        )

    input_settings = InputSettings(
        path=Path(str(raw_path)),
        delimiter=delimiter,
        lines_to_skip=parse_int(
            "input.lines_to_skip", options.get("input.lines_to_skip", 0), 0,
        ),
        strict=parse_bool("input.strict", options.get("input.strict", False)),
        encoding=str(options.get("input.encoding", "utf-8")),
    )

    db_url = str(options.get("db.url", DatabaseSettings.url))
    try:
        make_url(db_url)
    except ArgumentError as exc:
        raise ConfigurationError("db.url", str(exc)) from exc

    database = DatabaseSettings(
        url=db_url,
        user=_optional_str(options.get("db.user")),
        password=_optional_str(options.get("db.password")),
        echo=parse_bool("db.echo", options.get("db.echo", False)),
    )

    log_level = str(options.get("log.level", "INFO")).upper()
    if log_level not in _LOG_LEVELS:
        raise ConfigurationError("log.level", f"unknown level {log_level!r}")

    job_name = str(options.get("job.name", "importCustomers")).strip()
    if not job_name:
        raise ConfigurationError("job.name", "must not be empty")

    return EtlSettings(
        input=input_settings,
        database=database,
        job_name=job_name,
        chunk_size=parse_int("chunk.size", options.get("chunk.size", 100), 1),
        retry_limit=parse_int("retry.limit", options.get("retry.limit", 3), 0),
        retry_backoff_seconds=parse_float(
            "retry.backoff_seconds", options.get("retry.backoff_seconds", 0.0), 0.0,
        ),
        poll_interval_seconds=parse_float(
            "controller.poll_interval_seconds",
            options.get("controller.poll_interval_seconds", 1.0),
            0.01,
        ),
        log_level=log_level,
    )


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text or None


def env_options(environ: Mapping[str, str]) -> dict[str, str]:
    """Extract recognized options from environment variables."""
    return {
        option: environ[name]
        for name, option in ENV_OVERRIDES.items()
        if name in environ
    }
