"""
Job poller: the worker loop that drains the shared job queue.

Each cycle takes the oldest ``queued`` job, claims it conditionally and
processes it. Losing a claim is normal when several workers share the
store; the loser simply polls again. A failing job is recorded as
``error`` and never stops the loop.

On idle cycles the poller also sweeps jobs stranded in ``processing``
(e.g. after a worker was killed) into ``error``. Jobs are never moved back
to ``queued``.
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from domain.models import utc_now
from ports.job_store import JobStorePort
from services.job_processor import JobProcessor
from shared_utils.constants import Defaults, LogScope
from shared_utils.error_handler import job_error_message, log_exception
from shared_utils.logging_utils import get_scoped_logger

logger = get_scoped_logger(LogScope.WORKER)

STALE_ERROR_PREFIX = "StaleProcessing"


class PollOutcome(str, Enum):
    """Result of a single poll cycle."""

    IDLE = "idle"
    CLAIM_LOST = "claim_lost"
    DONE = "done"
    FAILED = "failed"


class JobPoller:
    """Sequential poll -> claim -> process loop over a JobStorePort."""

    def __init__(
        self,
        job_store: JobStorePort,
        processor: JobProcessor,
        poll_interval_seconds: float = Defaults.POLL_INTERVAL_SECONDS,
        error_backoff_seconds: float = Defaults.ERROR_BACKOFF_SECONDS,
        stale_after_seconds: float = Defaults.STALE_JOB_TIMEOUT_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self.job_store = job_store
        self.processor = processor
        self.poll_interval_seconds = poll_interval_seconds
        self.error_backoff_seconds = error_backoff_seconds
        self.stale_after_seconds = stale_after_seconds
        self._sleep = sleep
        self._now = now
        self._last_sweep: Optional[datetime] = None

    def run_once(self) -> PollOutcome:
        """Run one poll cycle.

        Store errors raised while polling or claiming propagate to the
        caller; errors raised by processing are recorded on the job.
        """
        job = self.job_store.next_queued_job()
        if job is None:
            self.sweep_stale_jobs()
            self._sleep(self.poll_interval_seconds)
            return PollOutcome.IDLE

        if not self.job_store.claim_job(job.id):
            logger.info("job_claim_lost", job_id=job.id)
            return PollOutcome.CLAIM_LOST

        logger.info("job_claimed", job_id=job.id)
        try:
            report = self.processor.process(job)
        except Exception as exc:
            message = job_error_message(exc)
            log_exception(exc, scope=LogScope.WORKER)
            logger.error("job_failed", job_id=job.id, error=message)
            self._record_failure(job.id, message)
            return PollOutcome.FAILED

        logger.info(
            "job_done",
            job_id=job.id,
            output_ref=report.output_ref,
            repaired=report.repaired,
            duration_ms=report.duration_ms,
        )
        return PollOutcome.DONE

    def run_forever(self, max_cycles: Optional[int] = None) -> int:
        """Loop over ``run_once``; returns the number of cycles run.

        *max_cycles* bounds the loop (None runs until the process is killed).
        """
        cycles = 0
        logger.info(
            "worker_loop_started",
            poll_interval_seconds=self.poll_interval_seconds,
            stale_after_seconds=self.stale_after_seconds,
        )
        while max_cycles is None or cycles < max_cycles:
            cycles += 1
            try:
                self.run_once()
            except Exception as exc:
                log_exception(exc, scope=LogScope.WORKER)
                logger.error("worker_loop_error", error=str(exc), backoff_seconds=self.error_backoff_seconds)
                self._sleep(self.error_backoff_seconds)
        logger.info("worker_loop_stopped", cycles=cycles)
        return cycles

    def sweep_stale_jobs(self) -> list:
        """Fail jobs stuck in ``processing`` past the stale timeout.

        Runs at most once per half timeout. Disabled when the timeout is <= 0.
        """
        if self.stale_after_seconds <= 0:
            return []
        now = self._now()
        if self._last_sweep is not None and (
            now - self._last_sweep
        ).total_seconds() < self.stale_after_seconds / 2:
            return []
        self._last_sweep = now

        cutoff = now - timedelta(seconds=self.stale_after_seconds)
        message = (
            f"{STALE_ERROR_PREFIX}: no progress for more than "
            f"{int(self.stale_after_seconds)} seconds"
        )
        failed = self.job_store.fail_stale_jobs(cutoff, message)
        if failed:
            logger.warning("stale_jobs_failed", job_ids=failed, count=len(failed))
        return failed

    def _record_failure(self, job_id: str, message: str) -> None:
        try:
            recorded = self.job_store.fail_job(job_id, message)
        except Exception as exc:
            log_exception(exc, scope=LogScope.WORKER)
            logger.error("job_failure_not_recorded", job_id=job_id, error=str(exc))
            return
        if not recorded:
            logger.warning("job_failure_not_recorded", job_id=job_id, reason="not_processing")
