"""
Structured error handling and response formatting.
Provides consistent error types with error codes and context for the job
pipeline, the worker loop and the job API.
"""

from typing import Any, Dict, List, Optional
import logging

from shared_utils.constants import ErrorCode, LogScope
from shared_utils.logging_utils import get_scoped_logger


class AppException(Exception):
    """Base exception for application errors."""

    def __init__(
        self,
        error_code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        http_status: int = 500
    ):
        self.error_code = error_code
        self.message = message
        self.context = context or {}
        self.http_status = http_status
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to response dictionary."""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "context": self.context
            }
        }


class ValidationError(AppException):
    """Validation/input error."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            error_code=ErrorCode.INVALID_INPUT.value,
            message=message,
            context=context,
            http_status=400
        )


class ConfigurationError(AppException):
    """Configuration error."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            error_code=ErrorCode.INVALID_CONFIG.value,
            message=message,
            context=context,
            http_status=500
        )


class ExternalServiceError(AppException):
    """External service unavailable error."""

    def __init__(self, service: str, message: str, context: Optional[Dict[str, Any]] = None):
        full_message = f"{service} unavailable: {message}"
        super().__init__(
            error_code=ErrorCode.EXTERNAL_SERVICE_ERROR.value,
            message=full_message,
            context={**(context or {}), "service": service},
            http_status=503
        )


# ---------------------------------------------------------------------------
# Job pipeline failures
#
# Every one of these aborts the current job; the worker records
# "<ClassName>: <message>" on the job and moves on.
# ---------------------------------------------------------------------------


class PipelineError(AppException):
    """Base class for failures that end a job in the ``error`` state."""

    code: ErrorCode = ErrorCode.EXTERNAL_SERVICE_ERROR

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            error_code=self.code.value,
            message=message,
            context=context,
            http_status=500,
        )

    def job_error_message(self) -> str:
        """Human-readable reason stored on the failed job."""
        return f"{type(self).__name__}: {self.message}"


class InputMissing(PipelineError):
    """Job has neither transcript text nor an input reference."""

    code = ErrorCode.INPUT_MISSING


class DownloadFailure(PipelineError):
    """Upstream object fetch failed."""

    code = ErrorCode.DOWNLOAD_FAILED


class TranscriptionEmpty(PipelineError):
    """Transcription returned blank text."""

    code = ErrorCode.TRANSCRIPTION_EMPTY


class StageOutputError(PipelineError):
    """Provider output for a stage could not be used.

    ``raw`` keeps a prefix of the provider text for debugging.
    """

    def __init__(
        self,
        message: str,
        raw: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = {**(context or {})}
        if raw is not None:
            ctx["raw_preview"] = raw[:300]
        super().__init__(message, context=ctx)
        self.raw = raw


class ExtractFailure(StageOutputError):
    code = ErrorCode.EXTRACT_FAILED


class WriteFailure(StageOutputError):
    code = ErrorCode.WRITE_FAILED


class MergeFailure(StageOutputError):
    code = ErrorCode.MERGE_FAILED


class SchemaValidationFailure(PipelineError):
    """Candidate result violates the artifact schema (no repair allowed)."""

    code = ErrorCode.SCHEMA_VALIDATION_FAILED

    def __init__(
        self,
        message: str,
        violations: Optional[List[Any]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.violations = list(violations or [])
        ctx = {**(context or {}), "violations": [_violation_dict(v) for v in self.violations]}
        super().__init__(message, context=ctx)


class RepairExhausted(SchemaValidationFailure):
    """Repair was attempted and the result is still unusable."""

    code = ErrorCode.REPAIR_EXHAUSTED


class PersistenceFailure(PipelineError):
    """Job store write failed after a successful validation."""

    code = ErrorCode.PERSISTENCE_FAILED


# ---------------------------------------------------------------------------
# Job API errors
# ---------------------------------------------------------------------------


class JobNotFoundError(AppException):
    """Requested job or meeting does not exist."""

    def __init__(self, message: str, error_code: str = ErrorCode.JOB_NOT_FOUND.value,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(
            error_code=error_code,
            message=message,
            context=context,
            http_status=404,
        )


class JobStateError(AppException):
    """Operation not allowed in the job's current status."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            error_code=ErrorCode.INVALID_JOB_STATE.value,
            message=message,
            context=context,
            http_status=409,
        )


def _violation_dict(violation: Any) -> Dict[str, Any]:
    if hasattr(violation, "model_dump"):
        return violation.model_dump()
    return dict(violation)


def log_exception(
    exc: Exception,
    scope: str = LogScope.ERROR_HANDLER,
    logger: Optional[logging.Logger] = None
) -> None:
    """Log exception with structured context.

    Args:
        exc: Exception to log
        scope: Log scope identifier
        logger: Optional custom logger (uses structlog if not provided)
    """
    if logger is None:
        logger = get_scoped_logger(scope)

    if isinstance(exc, AppException):
        logger.error(
            "app_exception",
            error_code=exc.error_code,
            message=exc.message,
            http_status=exc.http_status,
            context=exc.context
        )
    else:
        logger.error(
            "unexpected_exception",
            error_type=type(exc).__name__,
            message=str(exc),
            traceback=True
        )


def handle_error(
    exc: Exception,
    scope: str = LogScope.ERROR_HANDLER,
    default_error_code: str = ErrorCode.EXTERNAL_SERVICE_ERROR.value
) -> Dict[str, Any]:
    """Handle exception and return structured error response.

    Args:
        exc: Exception to handle
        scope: Log scope
        default_error_code: Default error code for non-AppException errors

    Returns:
        Structured error response dictionary
    """
    log_exception(exc, scope)

    if isinstance(exc, AppException):
        return exc.to_dict()
    return {
        "error": {
            "code": default_error_code,
            "message": f"An unexpected error occurred: {str(exc)}",
            "context": {"error_type": type(exc).__name__}
        }
    }


def job_error_message(exc: BaseException) -> str:
    """Format any exception as the reason stored on an ``error`` job."""
    if isinstance(exc, PipelineError):
        return exc.job_error_message()
    if isinstance(exc, AppException):
        return f"{type(exc).__name__}: {exc.message}"
    text = str(exc) or "Job failed"
    return f"{type(exc).__name__}: {text}"
