from pydantic_settings import BaseSettings
from pydantic import ConfigDict, field_validator
from functools import lru_cache
from typing import Optional
import json
import os

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from shared_utils.constants import Defaults, DynamoConfig, LogScope, ModelIDs
from shared_utils.logging_utils import get_scoped_logger

logger = get_scoped_logger(LogScope.CONFIG)


def get_secret_from_aws(secret_name: str, region: str = Defaults.AWS_REGION) -> str:
    """Fetch the OpenAI API key from AWS Secrets Manager.

    Args:
        secret_name: Name of the secret in Secrets Manager
        region: AWS region

    Returns:
        Secret value or empty string if fetch fails
    """
    try:
        client = boto3.client("secretsmanager", region_name=region)
        response = client.get_secret_value(SecretId=secret_name)
        if "SecretString" in response:
            secret = json.loads(response["SecretString"])
            return secret.get("openai_api_key", "")
        return ""
    except (BotoCoreError, ClientError, ValueError) as e:
        logger.warning("secret_fetch_failed", secret_name=secret_name, error=str(e))
        return ""


class Settings(BaseSettings):
    """Application configuration with environment variable precedence.

    Precedence: 1) Environment Variables > 2) .env file > 3) Class defaults
    (required fields have no defaults).
    """
    # Application metadata
    app_name: str = "MeetIQ Job Core"
    app_version: str = "1.0.0"
    app_description: str = "Transcript to structured meeting artifact job pipeline"
    log_level: str = Defaults.LOG_LEVEL

    # API Base URL Configuration
    api_host: str = "localhost"
    api_port: int = 8000
    api_protocol: str = "http"

    # Completion provider
    llm_provider: str  # "bedrock" or "openai"
    openai_llm_model_id: str = ModelIDs.OPENAI_CHAT_MODEL
    openai_api_key: Optional[str] = None
    openai_secret_name: Optional[str] = None
    bedrock_region: str = Defaults.AWS_REGION
    bedrock_llm_model_id: str = ModelIDs.BEDROCK_CLAUDE_3_HAIKU

    # Transcription
    transcription_model_id: str = ModelIDs.OPENAI_TRANSCRIBE_MODEL

    # Job store
    job_store_backend: str = "memory"  # "memory" or "dynamodb"
    dynamodb_jobs_table: str = DynamoConfig.JOBS_TABLE
    dynamodb_meetings_table: str = DynamoConfig.MEETINGS_TABLE
    dynamodb_status_index: str = DynamoConfig.STATUS_INDEX

    # AWS
    aws_region: str = Defaults.AWS_REGION
    aws_endpoint_url: str = ""  # LocalStack / DynamoDB Local
    audio_bucket: str = ""
    audio_signed_url_ttl_seconds: int = Defaults.SIGNED_URL_TTL_SECONDS

    # Worker loop
    worker_poll_interval_seconds: float = Defaults.POLL_INTERVAL_SECONDS
    worker_error_backoff_seconds: float = Defaults.ERROR_BACKOFF_SECONDS
    stale_job_timeout_seconds: int = Defaults.STALE_JOB_TIMEOUT_SECONDS

    # Validation / repair
    repair_max_attempts: int = Defaults.REPAIR_MAX_ATTEMPTS
    schema_allow_extra_keys: bool = False

    # Environment
    environment: str

    model_config = ConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    @field_validator('llm_provider')
    @classmethod
    def validate_llm_provider(cls, v: str) -> str:
        """Validate LLM provider is supported."""
        valid_providers = {"openai", "bedrock"}
        if v.lower() not in valid_providers:
            raise ValueError(f"llm_provider must be one of {valid_providers}, got {v}")
        return v.lower()

    @field_validator('job_store_backend')
    @classmethod
    def validate_job_store_backend(cls, v: str) -> str:
        """Validate job store backend is supported."""
        valid_backends = {"memory", "dynamodb"}
        if v.lower() not in valid_backends:
            raise ValueError(f"job_store_backend must be one of {valid_backends}, got {v}")
        return v.lower()

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is recognized."""
        valid_envs = {"development", "staging", "production"}
        if v.lower() not in valid_envs:
            raise ValueError(f"environment must be one of {valid_envs}, got {v}")
        return v.lower()

    @field_validator('repair_max_attempts')
    @classmethod
    def validate_repair_max_attempts(cls, v: int) -> int:
        """Repair is bounded: zero disables it, negatives are rejected."""
        if v < 0:
            raise ValueError(f"repair_max_attempts must be >= 0, got {v}")
        return v

    @field_validator('worker_poll_interval_seconds', 'worker_error_backoff_seconds')
    @classmethod
    def validate_positive_interval(cls, v: float) -> float:
        """Sleep intervals must be positive."""
        if v <= 0:
            raise ValueError(f"worker intervals must be > 0, got {v}")
        return v

    def get_api_base_url(self) -> str:
        """Get full API base URL constructed from host, port and protocol.

        Returns:
            Full API base URL (e.g., "http://localhost:8000")
        """
        # Don't add port if it's standard (80 for http, 443 for https)
        port_str = "" if (
            (self.api_protocol == "http" and self.api_port == 80) or
            (self.api_protocol == "https" and self.api_port == 443)
        ) else f":{self.api_port}"

        return f"{self.api_protocol}://{self.api_host}{port_str}"


@lru_cache()
def get_settings() -> Settings:
    """Load and cache application settings.

    If OPENAI_SECRET_NAME is provided and no key is configured, fetches the
    OpenAI API key from AWS Secrets Manager (needed by the OpenAI completion
    provider and the transcriber).

    Returns:
        Validated Settings instance

    Raises:
        pydantic.ValidationError: If required settings are missing or invalid
    """
    settings = Settings()

    if not settings.openai_api_key and settings.openai_secret_name:
        secret_key = get_secret_from_aws(settings.openai_secret_name, settings.aws_region)
        if secret_key:
            settings.openai_api_key = secret_key
            os.environ["OPENAI_API_KEY"] = secret_key
            logger.debug("fetched_openai_key_from_secrets_manager")

    # Log loaded configuration (sensitive values omitted)
    logger.info(
        "configuration_loaded",
        environment=settings.environment,
        llm_provider=settings.llm_provider,
        job_store_backend=settings.job_store_backend,
        repair_max_attempts=settings.repair_max_attempts,
        schema_allow_extra_keys=settings.schema_allow_extra_keys,
    )

    return settings
