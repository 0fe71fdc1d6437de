"""
etl_config -- single public entrypoint for job configuration.

Responsibility:
    ``load_settings()`` is the only way the runner and the HTTP app obtain
    configuration.  Settings come from an optional YAML file, then
    environment variables (which win), then explicit overrides (which win
    over both).

Failure modes:
    - ``ConfigurationError`` for a missing file, malformed YAML, a missing
      ``input.path`` or an out-of-range option.  Surfaced before any run
      begins; the standalone runner maps it to exit code 3.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

from etl_kernel.logging_config import get_logger

from etl_config.loader import env_options, flatten, load_yaml_file, parse_settings
from etl_config.schema import DatabaseSettings, EtlSettings, InputSettings

_logger = get_logger("config")

__all__ = [
    "DatabaseSettings",
    "EtlSettings",
    "InputSettings",
    "load_settings",
]


def load_settings(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> EtlSettings:
    """Assemble and validate ``EtlSettings``.

    Args:
        config_path: Optional YAML file (nested or dotted keys).
        environ: Environment mapping; defaults to ``os.environ``.
        overrides: Dotted-key options applied last (CLI flags).
    """
    options: dict[str, Any] = {}
    if config_path is not None:
        options.update(flatten(load_yaml_file(config_path)))
    options.update(env_options(os.environ if environ is None else environ))
    if overrides:
        options.update({k: v for k, v in overrides.items() if v is not None})

    settings = parse_settings(options)

    _logger.info(
        "settings_loaded",
        extra={
            "config_path": str(config_path) if config_path else None,
            "input_path": str(settings.input.path),
            "chunk_size": settings.chunk_size,
            "retry_limit": settings.retry_limit,
            "job_name": settings.job_name,
        },
    )
    return settings
