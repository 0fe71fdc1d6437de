"""
HTTP trigger surface for the customer import job.

Routes:
    POST /job/start            -> text/plain ``JOB FINISHED with Status: X``
                                  or ``Error: <message>``; always HTTP 200.
    GET  /job/{run_id}         -> JSON snapshot of the run and its step.
    POST /job/{run_id}/stop    -> text/plain stop acknowledgement.

The handlers are plain ``def`` functions, so FastAPI runs them in its
threadpool and a blocking ``trigger()`` never stalls the event loop.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from etl_kernel.exceptions import RunNotFoundError
from etl_kernel.logging_config import get_logger

from etl_batch.domain.types import JobRun
from etl_batch.services.controller import RunController, format_error

logger = get_logger("batch.api")


class StepStatusResponse(BaseModel):
    step_id: int
    step_name: str
    status: str
    read_count: int
    filter_count: int
    write_count: int
    commit_count: int
    rollback_count: int
    retry_count: int
    started_at: datetime | None = None
    ended_at: datetime | None = None
    exit_message: str | None = None


class RunStatusResponse(BaseModel):
    run_id: int
    job_name: str
    status: str
    parameters: dict[str, Any]
    started_at: datetime | None = None
    ended_at: datetime | None = None
    exit_message: str | None = None
    restart_of: int | None = None
    step: StepStatusResponse | None = None


def to_response(run: JobRun) -> RunStatusResponse:
    step = None
    if run.step is not None:
        step = StepStatusResponse(
            step_id=run.step.step_id,
            step_name=run.step.step_name,
            status=run.step.status.value,
            read_count=run.step.read_count,
            filter_count=run.step.filter_count,
            write_count=run.step.write_count,
            commit_count=run.step.commit_count,
            rollback_count=run.step.rollback_count,
            retry_count=run.step.retry_count,
            started_at=run.step.started_at,
            ended_at=run.step.ended_at,
            exit_message=run.step.exit_message,
        )
    return RunStatusResponse(
        run_id=run.run_id,
        job_name=run.job_name,
        status=run.status.value,
        parameters=run.parameters,
        started_at=run.started_at,
        ended_at=run.ended_at,
        exit_message=run.exit_message,
        restart_of=run.restart_of,
        step=step,
    )


def create_app(controller: RunController) -> FastAPI:
    app = FastAPI(title="Customer import")

    @app.post("/job/start", response_class=PlainTextResponse)
    def start_job() -> str:
        logger.info("trigger_received", extra={"job_name": controller.job_name})
        return controller.trigger()

    @app.get("/job/{run_id}", response_model=RunStatusResponse)
    def job_status(run_id: int) -> RunStatusResponse:
        try:
            run = controller.status(run_id)
        except RunNotFoundError:
            raise HTTPException(404, "Unknown run")
        return to_response(run)

    @app.post("/job/{run_id}/stop", response_class=PlainTextResponse)
    def stop_job(run_id: int) -> str:
        try:
            run = controller.stop(run_id)
        except RunNotFoundError:
            raise HTTPException(404, "Unknown run")
        except Exception as exc:
            logger.warning("stop_rejected", extra={"run_id": run_id, "error": str(exc)})
            return format_error(exc)
        return f"STOP REQUESTED, Status: {run.status.value}"

    return app
