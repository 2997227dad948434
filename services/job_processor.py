"""
Job processor: runs one claimed job from transcript to stored artifact.

Flow:  resolve transcript (text, or audio -> signed URL -> temp file ->
transcribe) -> pipeline candidate -> validate/repair -> commit artifact and
mark the job done.

Any failure propagates as a PipelineError subclass; the worker loop turns
it into the job's ``error`` state. Depends only on ports.
"""

from __future__ import annotations

import os
import tempfile
import time
from contextlib import contextmanager
from typing import Iterator, Optional

from domain.models import Job, JobStatus, MeetingArtifact, ProcessingReport
from ports.audio_store import AudioStorePort
from ports.job_store import JobStorePort
from ports.transcriber import TranscriberPort
from services.pipeline_service import PipelineOrchestrator
from services.repair_service import RepairStage
from shared_utils.constants import Defaults, LogScope
from shared_utils.error_handler import (
    AppException,
    DownloadFailure,
    InputMissing,
    PersistenceFailure,
    PipelineError,
    TranscriptionEmpty,
)
from shared_utils.logging_utils import ContextualLogger


@contextmanager
def temporary_audio_file(input_ref: str) -> Iterator[str]:
    """Yield a temp file path for *input_ref*; the file is always removed."""
    suffix = os.path.splitext(input_ref)[1] or ".bin"
    fd, path = tempfile.mkstemp(prefix=Defaults.TEMP_FILE_PREFIX, suffix=suffix)
    os.close(fd)
    try:
        yield path
    finally:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass


class JobProcessor:
    """Processes a single job that the caller has already claimed."""

    def __init__(
        self,
        job_store: JobStorePort,
        orchestrator: PipelineOrchestrator,
        repair_stage: RepairStage,
        audio_store: Optional[AudioStorePort] = None,
        transcriber: Optional[TranscriberPort] = None,
        signed_url_ttl_seconds: int = Defaults.SIGNED_URL_TTL_SECONDS,
    ) -> None:
        self.job_store = job_store
        self.orchestrator = orchestrator
        self.repair_stage = repair_stage
        self.audio_store = audio_store
        self.transcriber = transcriber
        self.signed_url_ttl_seconds = signed_url_ttl_seconds

    def process(self, job: Job) -> ProcessingReport:
        """Run the pipeline for *job* and commit the result.

        Raises:
            PipelineError: Any stage failure (the job is left ``processing``
                for the caller to fail).
        """
        start = time.time()
        log = ContextualLogger(LogScope.PROCESSOR, job_id=job.id)
        log.info("job_processing_started", has_text=bool(job.transcript_text), input_ref=job.input_ref)

        transcript_text = self.resolve_transcript(job, log)
        candidate = self.orchestrator.run(transcript_text)
        outcome = self.repair_stage.validate_and_repair(candidate)

        artifact = MeetingArtifact.from_result(job, outcome.result, transcript_text)
        try:
            done = self.job_store.complete_job(job.id, artifact)
        except PipelineError:
            raise
        except Exception as e:
            raise PersistenceFailure(
                f"Could not store result: {e}", context={"job_id": job.id}
            ) from e

        duration_ms = round((time.time() - start) * 1000, 1)
        log.info(
            "job_processing_completed",
            meeting_id=artifact.meeting_id,
            repaired=outcome.repaired,
            action_items=len(outcome.result.action_items),
            duration_ms=duration_ms,
        )
        return ProcessingReport(
            job_id=job.id,
            status=JobStatus.DONE,
            output_ref=done.output_ref,
            repaired=outcome.repaired,
            duration_ms=duration_ms,
        )

    def resolve_transcript(self, job: Job, log: ContextualLogger) -> str:
        """Return the job's transcript, transcribing its audio if needed."""
        if not job.has_input():
            raise InputMissing("Job has no transcript text or input reference")
        if (job.transcript_text or "").strip():
            return job.transcript_text

        input_ref = job.input_ref.strip()
        if self.audio_store is None or self.transcriber is None:
            raise DownloadFailure(
                "Audio storage is not configured", context={"input_ref": input_ref}
            )

        log = log.bind(input_ref=input_ref)
        signed_url = self.audio_store.create_signed_url(input_ref, self.signed_url_ttl_seconds)
        with temporary_audio_file(input_ref) as path:
            size = self.audio_store.download(signed_url, path)
            log.info("audio_downloaded", bytes=size)
            text = self.transcriber.transcribe(path)

        if not (text or "").strip():
            raise TranscriptionEmpty("Transcription returned no text", context={"input_ref": input_ref})

        try:
            self.job_store.set_transcript(job.id, text)
        except AppException:
            raise
        except Exception as e:
            raise PersistenceFailure(
                f"Could not store transcript: {e}", context={"job_id": job.id}
            ) from e
        log.info("transcript_stored", characters=len(text))
        return text
