"""
FastAPI backend for the MeetIQ job core.

Endpoints:
    GET  /health                                  — Health check
    POST /api/v2/jobs                             — Submit a job (text or audio ref)
    GET  /api/v2/jobs/{job_id}                    — Poll job status
    POST /api/v2/jobs/{job_id}/resubmit           — Re-queue a failed job as a new job
    GET  /api/v2/meetings/{meeting_id}            — Stored meeting artifact
    GET  /api/v2/meetings/{meeting_id}/export     — JSON or Markdown export

Jobs are only written to the store here; worker processes pick them up.
"""

from typing import Any, Dict

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from slowapi import Limiter
from slowapi.util import get_remote_address
import uvicorn

from domain.models import Job, JobStatus
from services.exporters import default_export_filenames, to_export_json, to_markdown
from shared_utils.config_loader import get_settings
from shared_utils.logging_utils import ContextualLogger
from shared_utils.constants import Defaults, ErrorCode, LogScope, APIEndpoints
from shared_utils.error_handler import (
    AppException, JobNotFoundError, JobStateError, ValidationError, handle_error
)
from shared_utils.validation import InputValidator
from shared_utils.di_container import get_di_container


# ---------------------------------------------------------------------------
# Application bootstrap
# ---------------------------------------------------------------------------

settings = get_settings()
logger = ContextualLogger(scope=LogScope.API)

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description=settings.app_description,
)

limiter = Limiter(key_func=get_remote_address)
app.state.limiter = limiter

logger.info(
    "api_initialized",
    environment=settings.environment,
    job_store_backend=settings.job_store_backend,
)


def _error_response(e: Exception, event: str) -> JSONResponse:
    if isinstance(e, AppException):
        logger.warning(event, error_code=e.error_code)
        return JSONResponse(status_code=e.http_status, content=e.to_dict())
    error_response = handle_error(e, scope=LogScope.API)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response,
    )


def _job_body(job: Job) -> Dict[str, Any]:
    body = job.model_dump(mode="json", exclude={"transcript_text"})
    body["has_transcript"] = bool(job.transcript_text)
    return body


def _load_job(job_id: str) -> Job:
    job_id = InputValidator.validate_uuid(job_id, "job_id")
    job = get_di_container().get_job_store().get_job(job_id)
    if job is None:
        raise JobNotFoundError(f"Job {job_id} not found", context={"job_id": job_id})
    return job


def _load_meeting(meeting_id: str):
    meeting_id = InputValidator.validate_uuid(meeting_id, "meeting_id")
    meeting = get_di_container().get_job_store().get_meeting(meeting_id)
    if meeting is None:
        raise JobNotFoundError(
            f"Meeting {meeting_id} not found",
            error_code=ErrorCode.MEETING_NOT_FOUND.value,
            context={"meeting_id": meeting_id},
        )
    return meeting


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@app.get(APIEndpoints.HEALTH)
def health_check() -> dict:
    """Health check endpoint."""
    logger.debug("health_check_requested")
    return {
        "status": "healthy",
        "environment": settings.environment,
        "llm_provider": settings.llm_provider,
        "job_store_backend": settings.job_store_backend,
    }


# ======================================================================
# Jobs
# ======================================================================

@app.post(APIEndpoints.JOBS)
@limiter.limit("30/minute")
async def submit_job(request: Request, body: dict) -> JSONResponse:
    """Queue a new job.

    Body JSON:
        transcript_text (str, optional): Transcript to summarize.
        input_ref (str, optional): Storage path of uploaded audio.
        meeting_mode (str, optional): Summary mode label.

    At least one of ``transcript_text`` / ``input_ref`` is required.
    """
    try:
        transcript_text = InputValidator.validate_optional_string(
            body.get("transcript_text"), "transcript_text"
        )
        input_ref = body.get("input_ref")
        if input_ref is not None:
            input_ref = InputValidator.validate_storage_path(input_ref)
        if not transcript_text and not input_ref:
            raise ValidationError(
                "transcript_text or input_ref is required",
                context={"fields": ["transcript_text", "input_ref"]},
            )
        meeting_mode = (
            InputValidator.validate_optional_string(body.get("meeting_mode"), "meeting_mode")
            or Defaults.MEETING_MODE
        )

        job = Job(
            transcript_text=transcript_text,
            input_ref=input_ref,
            meeting_mode=meeting_mode,
        )
        get_di_container().get_job_store().insert_job(job)

        logger.info(
            "job_submitted",
            job_id=job.id,
            source="text" if transcript_text else "audio",
        )
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED,
            content={"job_id": job.id, "status": job.status.value},
        )

    except Exception as e:
        return _error_response(e, "job_submit_error")


@app.get(APIEndpoints.JOB)
async def get_job(job_id: str) -> JSONResponse:
    """Poll a job's status; ``output_ref`` is the meeting id once done."""
    try:
        return JSONResponse(content=_job_body(_load_job(job_id)))
    except Exception as e:
        return _error_response(e, "job_get_error")


@app.post(APIEndpoints.JOB_RESUBMIT)
@limiter.limit("10/minute")
async def resubmit_job(request: Request, job_id: str) -> JSONResponse:
    """Queue a fresh job with the same input as a failed one.

    The failed job stays in ``error``; only ``error`` jobs can be resubmitted.
    """
    try:
        failed = _load_job(job_id)
        if failed.status != JobStatus.ERROR:
            raise JobStateError(
                f"Job {failed.id} is {failed.status.value}; only failed jobs can be resubmitted",
                context={"job_id": failed.id, "status": failed.status.value},
            )

        job = Job(
            transcript_text=failed.transcript_text,
            input_ref=failed.input_ref,
            meeting_mode=failed.meeting_mode,
        )
        get_di_container().get_job_store().insert_job(job)

        logger.info("job_resubmitted", job_id=job.id, previous_job_id=failed.id)
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED,
            content={"job_id": job.id, "status": job.status.value, "previous_job_id": failed.id},
        )

    except Exception as e:
        return _error_response(e, "job_resubmit_error")


# ======================================================================
# Meetings
# ======================================================================

@app.get(APIEndpoints.MEETING)
async def get_meeting(meeting_id: str) -> JSONResponse:
    """Return the stored artifact for a finished job."""
    try:
        meeting = _load_meeting(meeting_id)
        return JSONResponse(content=meeting.model_dump(mode="json"))
    except Exception as e:
        return _error_response(e, "meeting_get_error")


@app.get(APIEndpoints.MEETING_EXPORT)
async def export_meeting(meeting_id: str, format: str = "json") -> Response:
    """Download a meeting as ``json`` or ``markdown``."""
    try:
        export_format = format.strip().lower()
        if export_format not in ("json", "markdown", "md"):
            raise ValidationError(
                f"Unsupported export format: {format}",
                context={"allowed": ["json", "markdown"]},
            )

        meeting = _load_meeting(meeting_id)
        filenames = default_export_filenames(meeting)

        if export_format == "json":
            return JSONResponse(
                content=to_export_json(meeting),
                headers={"Content-Disposition": f'attachment; filename="{filenames["json"]}"'},
            )
        return PlainTextResponse(
            content=to_markdown(meeting),
            media_type="text/markdown",
            headers={"Content-Disposition": f'attachment; filename="{filenames["md"]}"'},
        )

    except Exception as e:
        return _error_response(e, "meeting_export_error")


if __name__ == "__main__":
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=settings.api_port,
        log_level="info"
    )
