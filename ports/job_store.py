"""
Port interface for durable job and meeting-artifact storage.

The store is the single source of truth for job state so that several
worker processes can consume the same queue. Every status write is
conditional on the status the caller expects the job to be in.

Implementations: InMemoryJobStoreAdapter, DynamoJobStoreAdapter (adapters/)
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Protocol, runtime_checkable

from domain.models import Job, MeetingArtifact


@runtime_checkable
class JobStorePort(Protocol):
    """Abstract interface for the job queue and produced artifacts."""

    def insert_job(self, job: Job) -> Job:
        """Persist a new job (normally in ``queued`` state).

        Raises:
            PersistenceFailure: If the id already exists or the store fails.
        """
        ...

    def get_job(self, job_id: str) -> Optional[Job]:
        """Return a job by id, or None."""
        ...

    def next_queued_job(self) -> Optional[Job]:
        """Return the oldest ``queued`` job (FIFO by created_at), or None."""
        ...

    def claim_job(self, job_id: str) -> bool:
        """Atomically move a job from ``queued`` to ``processing``.

        Returns:
            True for the single caller that won the claim, False if the job
            was no longer ``queued`` at commit time.
        """
        ...

    def set_transcript(self, job_id: str, transcript_text: str) -> None:
        """Store the transcript on a ``processing`` job.

        Raises:
            PersistenceFailure: If the job is not ``processing`` or the write fails.
        """
        ...

    def complete_job(self, job_id: str, artifact: MeetingArtifact) -> Job:
        """Insert *artifact* and move the job ``processing -> done`` atomically.

        ``output_ref`` is set to ``artifact.meeting_id`` and ``error`` cleared.
        Either both writes happen or neither does.

        Raises:
            PersistenceFailure: On condition failure or store error.
        """
        ...

    def fail_job(self, job_id: str, error_message: str) -> bool:
        """Move a ``processing`` job to ``error`` with a reason.

        Returns:
            False if the job was not ``processing`` (nothing written).
        """
        ...

    def fail_stale_jobs(self, older_than: datetime, error_message: str) -> List[str]:
        """Move ``processing`` jobs not updated since *older_than* to ``error``.

        Returns:
            Ids of the jobs that were failed.
        """
        ...

    def get_meeting(self, meeting_id: str) -> Optional[MeetingArtifact]:
        """Return a stored meeting artifact, or None."""
        ...
