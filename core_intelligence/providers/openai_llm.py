"""
OpenAI completion provider implementation.
"""

from typing import List, Optional

from llama_index.llms.openai import OpenAI

from core_intelligence.providers import CompletionProviderBase
from domain.models import ChatMessage
from shared_utils.constants import LogScope


class OpenAILLMProvider(CompletionProviderBase):
    """OpenAI chat completion provider.

    The client is built with ``max_retries=0``.
    """

    def __init__(self, model_id: str, api_key: str, temperature: float = 0.0,
                 timeout: Optional[float] = None):
        super().__init__(name=f"OpenAILLM({model_id})")
        self.model_id = model_id
        self.api_key = api_key
        self.temperature = temperature
        self.timeout = timeout
        self._llm = None

    def initialize(self) -> None:
        """Initialize OpenAI LLM client."""
        try:
            kwargs = {
                "model": self.model_id,
                "api_key": self.api_key,
                "temperature": self.temperature,
                "max_retries": 0,
            }
            if self.timeout is not None:
                kwargs["timeout"] = self.timeout
            self._llm = OpenAI(**kwargs)
            self.logger.info(
                "Initialized OpenAI LLM provider",
                extra={
                    "scope": LogScope.PROVIDER,
                    "model_id": self.model_id
                }
            )
        except Exception as e:
            self.logger.error(
                "Failed to initialize OpenAI LLM provider",
                extra={"scope": LogScope.PROVIDER, "error": str(e)}
            )
            raise

    def is_available(self) -> bool:
        """Check if OpenAI LLM is available."""
        return self._llm is not None

    def complete(self, messages: List[ChatMessage]) -> str:
        """Run one chat completion and return the assistant text."""
        if not self.is_available():
            raise RuntimeError("OpenAI LLM provider not initialized")

        try:
            response = self._llm.chat(self.to_llama_messages(messages))
            return response.message.content or ""
        except Exception as e:
            self.logger.error(
                "LLM completion failed",
                extra={"scope": LogScope.PROVIDER, "error": str(e)}
            )
            raise
