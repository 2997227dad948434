"""
S3-backed audio store adapter.

Implements AudioStorePort: issues presigned GET URLs for uploaded audio and
downloads them over HTTP into a local file owned by the caller.
"""

from __future__ import annotations

from typing import Optional

import boto3
import requests
from botocore.exceptions import BotoCoreError, ClientError

from shared_utils.constants import Defaults, LogScope
from shared_utils.error_handler import DownloadFailure
from shared_utils.logging_utils import get_scoped_logger


logger = get_scoped_logger(LogScope.ADAPTER)

_CHUNK_SIZE = 64 * 1024


class S3AudioStoreAdapter:
    """Amazon S3 implementation of AudioStorePort.

    Audio objects live at ``s3://{bucket}/{path}``; *path* is the job's
    ``input_ref``.
    """

    def __init__(
        self,
        bucket: str,
        region: str = Defaults.AWS_REGION,
        endpoint_url: str = "",
        s3_client: Optional[object] = None,
        http_session: Optional[requests.Session] = None,
        timeout: float = Defaults.REQUEST_TIMEOUT,
    ) -> None:
        self.bucket = bucket
        client_kwargs: dict = {"region_name": region}
        if endpoint_url:
            client_kwargs["endpoint_url"] = endpoint_url
        self._s3 = s3_client or boto3.client("s3", **client_kwargs)
        self._http = http_session or requests.Session()
        self._timeout = timeout

    # ------------------------------------------------------------------
    # AudioStorePort implementation
    # ------------------------------------------------------------------

    def create_signed_url(self, path: str, expires_in: int) -> str:
        """Presigned GET URL for the audio object at *path*."""
        key = path.lstrip("/")
        try:
            url = self._s3.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("s3_signed_url_failed", key=key, error=str(exc))
            raise DownloadFailure(
                f"Failed to sign audio URL: {exc}", context={"path": path}
            ) from exc
        logger.info("s3_signed_url_created", key=key, expires_in=expires_in)
        return url

    def download(self, url: str, destination: str) -> int:
        """Stream *url* into *destination*; non-2xx responses are failures."""
        written = 0
        try:
            with self._http.get(url, stream=True, timeout=self._timeout) as resp:
                if not resp.ok:
                    raise DownloadFailure(
                        f"Failed to download audio ({resp.status_code})",
                        context={"status_code": resp.status_code},
                    )
                with open(destination, "wb") as fh:
                    for chunk in resp.iter_content(chunk_size=_CHUNK_SIZE):
                        if chunk:
                            fh.write(chunk)
                            written += len(chunk)
        except requests.RequestException as exc:
            logger.error("audio_download_failed", error=str(exc))
            raise DownloadFailure(f"Failed to download audio: {exc}") from exc
        except OSError as exc:
            logger.error("audio_write_failed", destination=destination, error=str(exc))
            raise DownloadFailure(f"Failed to write audio file: {exc}") from exc

        logger.info("audio_downloaded", destination=destination, size_bytes=written)
        return written
