"""
Dependency injection container for managing application dependencies.
Centralizes provider, adapter and service creation and lifecycle management.

Every accessor is a lazy singleton; ``reset()`` drops them all (tests).
"""

from typing import Optional
import logging

from core_intelligence.providers import CompletionProviderBase
from core_intelligence.providers.factory import LLMProviderFactory
from shared_utils.config_loader import get_settings
from shared_utils.constants import JobStoreBackend, LogScope


logger = logging.getLogger(__name__)


class DIContainer:
    """Singleton dependency injection container."""

    _instance: Optional['DIContainer'] = None
    _completion_provider: Optional[CompletionProviderBase] = None

    _job_store: Optional[object] = None
    _audio_store: Optional[object] = None
    _transcriber: Optional[object] = None
    _schema_validator: Optional[object] = None
    _orchestrator: Optional[object] = None
    _repair_stage: Optional[object] = None
    _job_processor: Optional[object] = None
    _job_poller: Optional[object] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def reset(self):
        """Reset container (useful for testing)."""
        self._completion_provider = None
        self._job_store = None
        self._audio_store = None
        self._transcriber = None
        self._schema_validator = None
        self._orchestrator = None
        self._repair_stage = None
        self._job_processor = None
        self._job_poller = None

    def get_completion_provider(self) -> CompletionProviderBase:
        """Get or create the completion provider (lazy singleton).

        Raises:
            RuntimeError: If provider initialization fails.
        """
        if self._completion_provider is None:
            logger.info(
                "Initializing completion provider",
                extra={"scope": LogScope.CONFIG}
            )
            try:
                self._completion_provider = LLMProviderFactory.create()
            except Exception as e:
                logger.error(
                    "Failed to initialize completion provider",
                    extra={"scope": LogScope.CONFIG, "error": str(e)}
                )
                raise RuntimeError(f"Completion provider initialization failed: {e}") from e

        return self._completion_provider

    def validate_all_providers(self) -> bool:
        """Validate that the completion provider is available.

        Raises:
            RuntimeError: If the provider is unavailable.
        """
        if not self.get_completion_provider().is_available():
            raise RuntimeError("Provider validation failed: completion provider is not available")
        logger.info("All providers validated", extra={"scope": LogScope.CONFIG})
        return True

    # ------------------------------------------------------------------
    # Adapter accessors
    # ------------------------------------------------------------------

    def get_job_store(self):
        """Get or create the job store (lazy singleton).

        Uses InMemoryJobStoreAdapter when JOB_STORE_BACKEND=memory (local dev,
        tests) and DynamoJobStoreAdapter when it is ``dynamodb``.
        """
        if self._job_store is None:
            settings = get_settings()
            if settings.job_store_backend == JobStoreBackend.DYNAMODB:
                from adapters.dynamo_job_store import DynamoJobStoreAdapter

                self._job_store = DynamoJobStoreAdapter(
                    jobs_table=settings.dynamodb_jobs_table,
                    meetings_table=settings.dynamodb_meetings_table,
                    status_index=settings.dynamodb_status_index,
                    region=settings.aws_region,
                    endpoint_url=settings.aws_endpoint_url,
                )
                logger.info("Initialized DynamoJobStoreAdapter")
            else:
                from adapters.in_memory_job_store import InMemoryJobStoreAdapter

                self._job_store = InMemoryJobStoreAdapter()
                logger.info("Initialized InMemoryJobStoreAdapter (local dev)")
        return self._job_store

    def get_audio_store(self):
        """Get or create S3AudioStoreAdapter; None when AUDIO_BUCKET is unset."""
        if self._audio_store is None:
            settings = get_settings()
            if not settings.audio_bucket:
                return None
            from adapters.s3_audio_store import S3AudioStoreAdapter

            self._audio_store = S3AudioStoreAdapter(
                bucket=settings.audio_bucket,
                region=settings.aws_region,
                endpoint_url=settings.aws_endpoint_url,
            )
            logger.info("Initialized S3AudioStoreAdapter")
        return self._audio_store

    def get_transcriber(self):
        """Get or create OpenAITranscriberAdapter; None without an OpenAI key."""
        if self._transcriber is None:
            settings = get_settings()
            if not settings.openai_api_key:
                return None
            from adapters.openai_transcriber import OpenAITranscriberAdapter

            self._transcriber = OpenAITranscriberAdapter(
                api_key=settings.openai_api_key,
                model_id=settings.transcription_model_id,
            )
            logger.info("Initialized OpenAITranscriberAdapter")
        return self._transcriber

    # ------------------------------------------------------------------
    # Service accessors
    # ------------------------------------------------------------------

    def get_schema_validator(self):
        if self._schema_validator is None:
            from services.schema_validator import SchemaValidator

            self._schema_validator = SchemaValidator(
                allow_extra_keys=get_settings().schema_allow_extra_keys
            )
        return self._schema_validator

    def get_pipeline_orchestrator(self):
        """Get or create PipelineOrchestrator (lazy singleton)."""
        if self._orchestrator is None:
            from services.pipeline_service import PipelineOrchestrator

            self._orchestrator = PipelineOrchestrator(self.get_completion_provider())
            logger.info("Initialized PipelineOrchestrator")
        return self._orchestrator

    def get_repair_stage(self):
        """Get or create RepairStage (lazy singleton)."""
        if self._repair_stage is None:
            from services.repair_service import RepairPolicy, RepairStage

            self._repair_stage = RepairStage(
                provider=self.get_completion_provider(),
                validator=self.get_schema_validator(),
                policy=RepairPolicy(max_attempts=get_settings().repair_max_attempts),
            )
            logger.info("Initialized RepairStage")
        return self._repair_stage

    def get_job_processor(self):
        """Get or create JobProcessor (lazy singleton)."""
        if self._job_processor is None:
            from services.job_processor import JobProcessor

            self._job_processor = JobProcessor(
                job_store=self.get_job_store(),
                orchestrator=self.get_pipeline_orchestrator(),
                repair_stage=self.get_repair_stage(),
                audio_store=self.get_audio_store(),
                transcriber=self.get_transcriber(),
                signed_url_ttl_seconds=get_settings().audio_signed_url_ttl_seconds,
            )
            logger.info("Initialized JobProcessor")
        return self._job_processor

    def get_job_poller(self):
        """Get or create JobPoller (lazy singleton)."""
        if self._job_poller is None:
            from worker.poller import JobPoller

            settings = get_settings()
            self._job_poller = JobPoller(
                job_store=self.get_job_store(),
                processor=self.get_job_processor(),
                poll_interval_seconds=settings.worker_poll_interval_seconds,
                error_backoff_seconds=settings.worker_error_backoff_seconds,
                stale_after_seconds=settings.stale_job_timeout_seconds,
            )
            logger.info("Initialized JobPoller")
        return self._job_poller


# Global singleton instance
_container = DIContainer()


def get_di_container() -> DIContainer:
    """Get global DI container instance."""
    return _container
