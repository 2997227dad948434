"""
Constants management.
Centralized configuration for all magic values, model IDs, and defaults.
"""

from enum import Enum
from typing import Final


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LLMProvider(str, Enum):
    """Supported completion providers."""
    BEDROCK = "bedrock"
    OPENAI = "openai"


class JobStoreBackend(str, Enum):
    """Supported job store backends."""
    MEMORY = "memory"
    DYNAMODB = "dynamodb"


# Version of the produced meeting artifact wire format
SCHEMA_VERSION: Final[str] = "1.0"


# Model IDs
class ModelIDs:
    """Centralized model identifiers."""
    # Bedrock LLM
    BEDROCK_CLAUDE_3_HAIKU: Final[str] = "anthropic.claude-3-haiku-20240307-v1:0"

    # OpenAI
    OPENAI_CHAT_MODEL: Final[str] = "gpt-4o-mini"
    OPENAI_TRANSCRIBE_MODEL: Final[str] = "gpt-4o-mini-transcribe"


# Default values
class Defaults:
    """Defaults for worker, pipeline and adapter configuration."""
    POLL_INTERVAL_SECONDS: Final[float] = 1.5
    ERROR_BACKOFF_SECONDS: Final[float] = 2.0
    STALE_JOB_TIMEOUT_SECONDS: Final[int] = 1800
    SIGNED_URL_TTL_SECONDS: Final[int] = 600
    REPAIR_MAX_ATTEMPTS: Final[int] = 1
    REQUEST_TIMEOUT: Final[float] = 300.0
    LOG_LEVEL: Final[str] = "INFO"
    AWS_REGION: Final[str] = "eu-west-2"
    MEETING_MODE: Final[str] = "Default"
    MEETING_TITLE: Final[str] = "Meeting Summary"
    TEMP_FILE_PREFIX: Final[str] = "meetiq_"


# DynamoDB settings
class DynamoConfig:
    """Job store table configuration."""
    JOBS_TABLE: Final[str] = "meetiq-jobs"
    MEETINGS_TABLE: Final[str] = "meetiq-meetings"
    STATUS_INDEX: Final[str] = "status-created_at-index"


# Logging scopes
class LogScope:
    """Standardized logging scope names."""
    CONFIG = "config_loader"
    API = "api"
    VALIDATION = "validation"
    ERROR_HANDLER = "error_handler"
    PROVIDER = "provider"
    WORKER = "worker"
    ADAPTER = "adapter"
    PIPELINE = "pipeline"
    REPAIR = "repair"
    PROCESSOR = "job_processor"


# API endpoints and paths
class APIEndpoints:
    """API route definitions."""
    HEALTH = "/health"
    JOBS = "/api/v2/jobs"
    JOB = "/api/v2/jobs/{job_id}"
    JOB_RESUBMIT = "/api/v2/jobs/{job_id}/resubmit"
    MEETING = "/api/v2/meetings/{meeting_id}"
    MEETING_EXPORT = "/api/v2/meetings/{meeting_id}/export"


# Error codes
class ErrorCode(str, Enum):
    """Standardized error codes for consistency."""
    INVALID_CONFIG = "INVALID_CONFIG"
    INVALID_INPUT = "INVALID_INPUT"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    # job pipeline
    INPUT_MISSING = "INPUT_MISSING"
    DOWNLOAD_FAILED = "DOWNLOAD_FAILED"
    TRANSCRIPTION_EMPTY = "TRANSCRIPTION_EMPTY"
    EXTRACT_FAILED = "EXTRACT_FAILED"
    WRITE_FAILED = "WRITE_FAILED"
    MERGE_FAILED = "MERGE_FAILED"
    SCHEMA_VALIDATION_FAILED = "SCHEMA_VALIDATION_FAILED"
    REPAIR_EXHAUSTED = "REPAIR_EXHAUSTED"
    PERSISTENCE_FAILED = "PERSISTENCE_FAILED"
    # job API
    JOB_NOT_FOUND = "JOB_NOT_FOUND"
    MEETING_NOT_FOUND = "MEETING_NOT_FOUND"
    INVALID_JOB_STATE = "INVALID_JOB_STATE"
