"""
Abstract base classes for swappable completion providers.
Enables dependency injection and flexible component swapping.
"""

from abc import ABC, abstractmethod
from typing import List
import logging

from domain.models import ChatMessage


class BaseProvider(ABC):
    """Base class for all providers."""

    def __init__(self, name: str):
        self.name = name
        self.logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")

    @abstractmethod
    def initialize(self) -> None:
        """Initialize provider. Called after instantiation."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if provider is available and credentials are valid."""
        pass


class CompletionProviderBase(BaseProvider):
    """Abstract base for completion providers (CompletionProviderPort)."""

    @abstractmethod
    def complete(self, messages: List[ChatMessage]) -> str:
        """Send role-tagged messages, return the reply text."""
        pass

    @staticmethod
    def to_llama_messages(messages: List[ChatMessage]) -> list:
        """Convert domain messages into llama_index chat messages."""
        from llama_index.core.llms import ChatMessage as LlamaChatMessage, MessageRole

        return [
            LlamaChatMessage(role=MessageRole(m.role), content=m.content)
            for m in messages
        ]
