"""
OpenAI speech-to-text adapter.

Implements TranscriberPort with the ``openai`` SDK's audio transcription
endpoint.
"""

from __future__ import annotations

from typing import Optional

from openai import OpenAI, OpenAIError

from shared_utils.constants import LogScope, ModelIDs
from shared_utils.error_handler import ExternalServiceError
from shared_utils.logging_utils import get_scoped_logger


logger = get_scoped_logger(LogScope.ADAPTER)


class OpenAITranscriberAdapter:
    """Transcribe a local audio file with an OpenAI transcription model."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_id: str = ModelIDs.OPENAI_TRANSCRIBE_MODEL,
        client: Optional[object] = None,
    ) -> None:
        self.model_id = model_id
        self._client = client or OpenAI(api_key=api_key, max_retries=0)

    def transcribe(self, file_path: str) -> str:
        """Return the transcript text for *file_path* (possibly blank)."""
        try:
            with open(file_path, "rb") as audio:
                result = self._client.audio.transcriptions.create(
                    model=self.model_id,
                    file=audio,
                )
        except OpenAIError as exc:
            logger.error("transcription_failed", model_id=self.model_id, error=str(exc))
            raise ExternalServiceError("OpenAI", f"Transcription failed: {exc}") from exc

        text = getattr(result, "text", "") or ""
        logger.info("transcription_completed", model_id=self.model_id, chars=len(text))
        return text
