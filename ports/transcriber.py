"""Port interface for the upstream speech-to-text service."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class TranscriberPort(Protocol):
    """Convert a local audio file into transcript text."""

    def transcribe(self, file_path: str) -> str:
        """Return the transcript text (may be blank; the caller checks)."""
        ...
