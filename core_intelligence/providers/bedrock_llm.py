"""
Bedrock completion provider implementation.
"""

from typing import List

from llama_index.llms.bedrock import Bedrock

from core_intelligence.providers import CompletionProviderBase
from domain.models import ChatMessage
from shared_utils.constants import LogScope


class BedrockLLMProvider(CompletionProviderBase):
    """AWS Bedrock completion provider."""

    def __init__(self, model_id: str, region: str, temperature: float = 0.0):
        super().__init__(name=f"BedrockLLM({model_id})")
        self.model_id = model_id
        self.region = region
        self.temperature = temperature
        self._llm = None

    def initialize(self) -> None:
        """Initialize Bedrock LLM client."""
        try:
            self._llm = Bedrock(
                model=self.model_id,
                region_name=self.region,
                temperature=self.temperature,
                # one attempt only
                max_retries=1,
            )
            self.logger.info(
                "Initialized Bedrock LLM provider",
                extra={
                    "scope": LogScope.PROVIDER,
                    "model_id": self.model_id,
                    "region": self.region
                }
            )
        except Exception as e:
            self.logger.error(
                "Failed to initialize Bedrock LLM provider",
                extra={"scope": LogScope.PROVIDER, "error": str(e)}
            )
            raise

    def is_available(self) -> bool:
        """Check if Bedrock LLM is available."""
        return self._llm is not None

    def complete(self, messages: List[ChatMessage]) -> str:
        """Run one chat completion and return the assistant text."""
        if not self.is_available():
            raise RuntimeError("Bedrock LLM provider not initialized")

        try:
            response = self._llm.chat(self.to_llama_messages(messages))
            return response.message.content or ""
        except Exception as e:
            self.logger.error(
                "LLM completion failed",
                extra={"scope": LogScope.PROVIDER, "error": str(e)}
            )
            raise
