"""
In-memory job store adapter for local development and tests.

Implements JobStorePort with plain dicts guarded by a lock, so conditional
updates behave like the durable store when several worker threads race on
the same job.

NOT for production: no persistence across restarts.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Callable, Dict, List, Optional

from domain.models import (
    Job,
    JobStatus,
    MeetingArtifact,
    can_transition,
    to_iso,
    transition_source,
    utc_now,
)
from shared_utils.constants import LogScope
from shared_utils.error_handler import PersistenceFailure
from shared_utils.logging_utils import get_scoped_logger


logger = get_scoped_logger(LogScope.ADAPTER)


class InMemoryJobStoreAdapter:
    """Dict-backed implementation of JobStorePort.

    Jobs are stored by id and copied on the way in and out so callers never
    hold a live reference to store state.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._jobs: Dict[str, Job] = {}
        self._meetings: Dict[str, MeetingArtifact] = {}
        self._lock = threading.Lock()
        self._clock = clock

    # ------------------------------------------------------------------
    # JobStorePort implementation
    # ------------------------------------------------------------------

    def insert_job(self, job: Job) -> Job:
        """Store a new job."""
        with self._lock:
            if job.id in self._jobs:
                raise PersistenceFailure(
                    f"Job {job.id} already exists", context={"job_id": job.id}
                )
            self._jobs[job.id] = job.model_copy(deep=True)
        logger.info("inmemory_job_inserted", job_id=job.id, status=job.status.value)
        return job.model_copy(deep=True)

    def get_job(self, job_id: str) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy(deep=True) if job else None

    def next_queued_job(self) -> Optional[Job]:
        """Oldest queued job by created_at (insertion order breaks ties)."""
        with self._lock:
            queued = [j for j in self._jobs.values() if j.status == JobStatus.QUEUED]
            if not queued:
                return None
            oldest = min(queued, key=lambda j: j.created_at)
            return oldest.model_copy(deep=True)

    def claim_job(self, job_id: str) -> bool:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or not can_transition(job.status, JobStatus.PROCESSING):
                logger.info("inmemory_claim_lost", job_id=job_id)
                return False
            self._jobs[job_id] = job.model_copy(
                update={"status": JobStatus.PROCESSING, "updated_at": self._now()}
            )
        logger.info("inmemory_job_claimed", job_id=job_id)
        return True

    def set_transcript(self, job_id: str, transcript_text: str) -> None:
        with self._lock:
            job = self._require(job_id, JobStatus.PROCESSING)
            self._jobs[job_id] = job.model_copy(
                update={"transcript_text": transcript_text, "updated_at": self._now()}
            )

    def complete_job(self, job_id: str, artifact: MeetingArtifact) -> Job:
        with self._lock:
            job = self._require_transition(job_id, JobStatus.DONE)
            if artifact.meeting_id in self._meetings:
                raise PersistenceFailure(
                    f"Meeting {artifact.meeting_id} already exists",
                    context={"job_id": job_id, "meeting_id": artifact.meeting_id},
                )
            done = job.model_copy(
                update={
                    "status": JobStatus.DONE,
                    "output_ref": artifact.meeting_id,
                    "error": None,
                    "updated_at": self._now(),
                }
            )
            # Both writes happen under the same lock.
            self._meetings[artifact.meeting_id] = artifact.model_copy(deep=True)
            self._jobs[job_id] = done
        logger.info(
            "inmemory_job_completed",
            job_id=job_id,
            meeting_id=artifact.meeting_id,
        )
        return done.model_copy(deep=True)

    def fail_job(self, job_id: str, error_message: str) -> bool:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or not can_transition(job.status, JobStatus.ERROR):
                logger.warning("inmemory_fail_skipped", job_id=job_id)
                return False
            self._jobs[job_id] = job.model_copy(
                update={
                    "status": JobStatus.ERROR,
                    "error": error_message,
                    "output_ref": None,
                    "updated_at": self._now(),
                }
            )
        logger.info("inmemory_job_failed", job_id=job_id)
        return True

    def fail_stale_jobs(self, older_than: datetime, error_message: str) -> List[str]:
        cutoff = to_iso(older_than)
        stale_status = transition_source(JobStatus.ERROR)
        failed: List[str] = []
        with self._lock:
            for job_id, job in self._jobs.items():
                if job.status == stale_status and job.updated_at < cutoff:
                    self._jobs[job_id] = job.model_copy(
                        update={
                            "status": JobStatus.ERROR,
                            "error": error_message,
                            "updated_at": self._now(),
                        }
                    )
                    failed.append(job_id)
        if failed:
            logger.warning("inmemory_stale_jobs_failed", job_ids=failed)
        return failed

    def get_meeting(self, meeting_id: str) -> Optional[MeetingArtifact]:
        with self._lock:
            meeting = self._meetings.get(meeting_id)
            return meeting.model_copy(deep=True) if meeting else None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _now(self) -> str:
        return to_iso(self._clock())

    def _require(self, job_id: str, status: JobStatus) -> Job:
        """Return the stored job if it is in *status*; caller holds the lock."""
        job = self._jobs.get(job_id)
        if job is None:
            raise PersistenceFailure(f"Job {job_id} not found", context={"job_id": job_id})
        if job.status != status:
            raise PersistenceFailure(
                f"Job {job_id} is {job.status.value}, expected {status.value}",
                context={"job_id": job_id, "status": job.status.value},
            )
        return job

    def _require_transition(self, job_id: str, target: JobStatus) -> Job:
        """Return the stored job if it may move to *target*; caller holds the lock."""
        job = self._jobs.get(job_id)
        if job is None:
            raise PersistenceFailure(f"Job {job_id} not found", context={"job_id": job_id})
        if not can_transition(job.status, target):
            raise PersistenceFailure(
                f"Job {job_id} cannot move from {job.status.value} to {target.value}",
                context={"job_id": job_id, "status": job.status.value},
            )
        return job
