"""
Factory for creating the configured completion provider.
Handles provider instantiation with dependency injection.
"""

from typing import Optional
import logging

from core_intelligence.providers import CompletionProviderBase
from core_intelligence.providers.bedrock_llm import BedrockLLMProvider
from core_intelligence.providers.openai_llm import OpenAILLMProvider
from shared_utils.config_loader import Settings, get_settings
from shared_utils.constants import LLMProvider, LogScope
from shared_utils.error_handler import ConfigurationError


logger = logging.getLogger(__name__)


class LLMProviderFactory:
    """Factory for creating completion providers."""

    @staticmethod
    def create(settings: Optional[Settings] = None) -> CompletionProviderBase:
        """Create configured completion provider.

        Args:
            settings: Optional override; defaults to the cached settings.

        Returns:
            Initialized completion provider.

        Raises:
            ConfigurationError: If config is invalid.
        """
        settings = settings or get_settings()
        llm_provider = settings.llm_provider

        logger.info(
            "Creating completion provider",
            extra={"scope": LogScope.CONFIG, "provider": llm_provider}
        )

        if llm_provider == LLMProvider.OPENAI:
            if not settings.openai_api_key:
                raise ConfigurationError("OPENAI_API_KEY not configured")
            provider: CompletionProviderBase = OpenAILLMProvider(
                model_id=settings.openai_llm_model_id,
                api_key=settings.openai_api_key
            )
        elif llm_provider == LLMProvider.BEDROCK:
            if not settings.bedrock_region or not settings.bedrock_llm_model_id:
                raise ConfigurationError("BEDROCK_REGION or BEDROCK_LLM_MODEL_ID not configured")
            provider = BedrockLLMProvider(
                model_id=settings.bedrock_llm_model_id,
                region=settings.bedrock_region
            )
        else:
            raise ConfigurationError(f"Unknown LLM provider: {llm_provider}")

        try:
            provider.initialize()
        except Exception as e:
            logger.error(
                "Failed to create completion provider",
                extra={"scope": LogScope.CONFIG, "provider": llm_provider, "error": str(e)}
            )
            raise
        return provider
