"""
Worker entrypoint: long-running job consumer.

Run one or more of these processes against the same job store:

    python -m worker.entrypoint

Environment:
    WORKER_MAX_CYCLES  optional; stop after this many poll cycles
                       (useful for one-shot runs and smoke tests)

The worker:
    1. Loads settings, checks the completion provider and wires the
       poller from the DI container.
    2. Polls, claims and processes queued jobs until killed.
    3. Exits 1 if configuration or dependency wiring fails.

All logging is JSON (structlog) on stdout.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional

from shared_utils.config_loader import get_settings
from shared_utils.constants import LogScope
from shared_utils.logging_utils import get_scoped_logger
from shared_utils.di_container import get_di_container

logger = get_scoped_logger(LogScope.WORKER)


def _max_cycles() -> Optional[int]:
    raw = os.environ.get("WORKER_MAX_CYCLES", "").strip()
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"WORKER_MAX_CYCLES must be an integer, got {raw!r}")
    if value <= 0:
        raise ValueError(f"WORKER_MAX_CYCLES must be positive, got {value}")
    return value


def main() -> int:
    """Worker main: build deps, run the poll loop."""
    try:
        max_cycles = _max_cycles()
        settings = get_settings()
        logging.basicConfig(level=settings.log_level.upper(), format="%(message)s", stream=sys.stdout)
        container = get_di_container()
        container.validate_all_providers()
        poller = container.get_job_poller()
    except Exception as exc:
        logger.error("worker_startup_failed", error=str(exc), error_type=type(exc).__name__)
        print(f"ERROR: worker startup failed: {exc}", file=sys.stderr)
        return 1

    logger.info(
        "worker_started",
        environment=settings.environment,
        job_store_backend=settings.job_store_backend,
        llm_provider=settings.llm_provider,
        max_cycles=max_cycles,
    )
    cycles = poller.run_forever(max_cycles=max_cycles)
    logger.info("worker_completed", cycles=cycles)
    return 0


if __name__ == "__main__":
    sys.exit(main())
