"""
Standalone runner for the customer import job.

Usage:
    etl-import run   [--config etl.yaml] [--input customers.csv] [options]
    etl-import serve [--config etl.yaml] [--host 127.0.0.1] [--port 8080]

Examples:
    # One-off run against a local SQLite file
    etl-import run --input data/customers.csv --db-url sqlite:///customers.db

    # Re-run a failed invocation from its last committed chunk
    etl-import run --config etl.yaml --start-at 1735732800000

    # Expose POST /job/start
    etl-import serve --config etl.yaml --port 8080

Exit codes (run):
    0  COMPLETED
    1  FAILED (or the trigger was rejected)
    2  STOPPED
    3  configuration error
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

from etl_config import EtlSettings, load_settings
from etl_kernel.exceptions import ConfigurationError, EtlError
from etl_kernel.logging_config import configure_logging, get_logger

from etl_batch.domain.types import RunStatus

logger = get_logger("batch.cli")

EXIT_COMPLETED = 0
EXIT_FAILED = 1
EXIT_STOPPED = 2
EXIT_CONFIG_ERROR = 3

_EXIT_CODES = {
    RunStatus.COMPLETED: EXIT_COMPLETED,
    RunStatus.FAILED: EXIT_FAILED,
    RunStatus.STOPPED: EXIT_STOPPED,
}


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML configuration file (ETL_* environment variables override it).",
    )
    common.add_argument("--input", default=None, help="Path to the CSV input (input.path).")
    common.add_argument("--db-url", default=None, help="Database URL (db.url).")
    common.add_argument("--chunk-size", type=int, default=None, help="Records per chunk.")
    common.add_argument("--retry-limit", type=int, default=None, help="Retries per chunk.")
    common.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ...")

    parser = argparse.ArgumentParser(
        prog="etl-import",
        description="Chunked customer CSV import.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    commands = parser.add_subparsers(dest="command", required=True)

    run = commands.add_parser(
        "run", parents=[common], help="Run the job once and exit with its status.",
    )
    run.add_argument(
        "--start-at",
        type=int,
        default=None,
        help="startAt parameter in epoch ms (default: now). Reuse it to restart a run.",
    )

    serve = commands.add_parser(
        "serve", parents=[common], help="Serve the HTTP trigger endpoint.",
    )
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8080)

    return parser.parse_args(argv)


def _settings(args: argparse.Namespace) -> EtlSettings:
    return load_settings(
        config_path=args.config,
        overrides={
            "input.path": args.input,
            "db.url": args.db_url,
            "chunk.size": args.chunk_size,
            "retry.limit": args.retry_limit,
            "log.level": args.log_level,
        },
    )


def run_once(settings: EtlSettings, start_at: int | None = None) -> int:
    """Run the job to a terminal status and map it to an exit code."""
    from etl_batch.orchestrator import EtlOrchestrator

    orchestrator = EtlOrchestrator.from_settings(settings)
    try:
        final = orchestrator.controller.run(start_at)
    except EtlError as exc:
        print(f"Error: {exc.code}: {exc}", file=sys.stderr)
        return EXIT_FAILED
    finally:
        orchestrator.dispose()

    step = final.step
    logger.info(
        "runner_finished",
        extra={"run_id": final.run_id, "run_status": final.status.value},
    )
    print(f"JOB FINISHED with Status: {final.status.value}")
    if step is not None:
        print(
            f"  read={step.read_count} filtered={step.filter_count} "
            f"written={step.write_count} commits={step.commit_count} "
            f"rollbacks={step.rollback_count} retries={step.retry_count}"
        )
    if final.exit_message:
        print(f"  {final.exit_message}")
    return _EXIT_CODES.get(final.status, EXIT_FAILED)


def serve(settings: EtlSettings, host: str, port: int) -> int:
    import uvicorn

    from etl_batch.api import create_app
    from etl_batch.orchestrator import EtlOrchestrator

    orchestrator = EtlOrchestrator.from_settings(settings)
    try:
        uvicorn.run(
            create_app(orchestrator.controller),
            host=host,
            port=port,
            log_level=settings.log_level.lower(),
        )
    finally:
        orchestrator.dispose()
    return EXIT_COMPLETED


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    try:
        settings = _settings(args)
    except ConfigurationError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    configure_logging(level=settings.log_level)

    if args.command == "serve":
        return serve(settings, args.host, args.port)
    return run_once(settings, args.start_at)


if __name__ == "__main__":
    sys.exit(main())
