"""
Port interface for the generative completion service.

Implementations live in core_intelligence/providers/. Services depend on
this protocol, never on a concrete provider.
"""

from __future__ import annotations

from typing import List, Protocol, runtime_checkable

from domain.models import ChatMessage


@runtime_checkable
class CompletionProviderPort(Protocol):
    """Abstract interface for role-tagged prompt completion."""

    def complete(self, messages: List[ChatMessage]) -> str:
        """Send an ordered sequence of messages and return the text reply.

        The reply is expected to be strict JSON for pipeline stages, but the
        provider does not check that. Implementations must not retry
        implicitly.

        Args:
            messages: System/user messages in order.

        Returns:
            Raw reply text.
        """
        ...
