"""
Port interface for the object storage holding uploaded audio.

Implementations: S3AudioStoreAdapter (adapters/)
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class AudioStorePort(Protocol):
    """Signed-URL issuance and download for stored audio objects."""

    def create_signed_url(self, path: str, expires_in: int) -> str:
        """Return a time-limited URL for the object at *path*.

        Raises:
            DownloadFailure: If the URL cannot be issued.
        """
        ...

    def download(self, url: str, destination: str) -> int:
        """Download *url* into the local file *destination*.

        Returns:
            Number of bytes written.

        Raises:
            DownloadFailure: On any fetch error or non-2xx response.
        """
        ...
