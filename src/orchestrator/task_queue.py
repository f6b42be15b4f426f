"""
SQLite-backed chunk queue that feeds scan chunks to the orchestrator.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta
from typing import Callable, Optional

from config import AppConfig
from database import StateStore
from database.state import JOB_ACTIVE, JOB_DONE, JOB_FAILED, JOB_PENDING

ChunkHandler = Callable[[dict], object]


class ChunkQueue:
    """Job queue with attempt tracking; at most one chunk is active at a time."""

    def __init__(
        self,
        state: StateStore,
        logger: Optional[logging.Logger] = None,
        config: Optional[AppConfig] = None,
    ) -> None:
        self.state = state
        self.logger = logger or logging.getLogger("media_organizer")
        self.config = config

    def enqueue(self, chunk: dict) -> int:
        return self.state.enqueue_job(chunk)

    def cancel_pending(self) -> int:
        """Drop chunks that have not started; the active chunk runs to completion."""
        cancelled = self.state.cancel_pending_jobs()
        if cancelled:
            self.logger.info("Cancelled %s pending chunks", cancelled)
        return cancelled

    def is_idle(self, stale_after_seconds: Optional[float] = None) -> bool:
        """True when no chunk is pending or active.

        With ``stale_after_seconds``, chunks not touched within that window
        are ignored as abandoned.
        """
        if stale_after_seconds is None:
            return self.state.count_jobs(JOB_PENDING, JOB_ACTIVE) == 0
        cutoff = (datetime.utcnow() - timedelta(seconds=stale_after_seconds)).isoformat()
        return self.state.count_jobs(JOB_PENDING, JOB_ACTIVE, updated_since=cutoff) == 0

    def pending_count(self) -> int:
        return self.state.count_jobs(JOB_PENDING)

    def abandon_active(self) -> int:
        """Mark chunks stuck in the active state as failed so new work can be claimed."""
        abandoned = self.state.fail_active_jobs("abandoned by a stopped worker")
        if abandoned:
            self.logger.warning("Marked %s abandoned chunks as failed", abandoned)
        return abandoned

    def requeue_abandoned(self) -> int:
        """Return chunks left active by a killed worker to the pending state."""
        requeued = self.state.requeue_active_jobs()
        if requeued:
            self.logger.warning("Requeued %s abandoned chunks", requeued)
        return requeued

    def run_pending(self, handler: ChunkHandler, limit: Optional[int] = None) -> int:
        """Run queued chunks one at a time until the queue is empty.

        Transient failures are retried with backoff up to ``max_attempts``;
        anything else marks the chunk failed and propagates.
        """
        self.requeue_abandoned()
        completed = 0
        while limit is None or completed < limit:
            claimed = self.state.claim_job()
            if claimed is None:
                break
            job_id, chunk, attempts = claimed
            try:
                handler(chunk)
            except Exception as exc:
                max_attempts = self._max_attempts()
                if self._should_retry(exc) and (not max_attempts or attempts < max_attempts):
                    self.state.update_job_status(job_id, JOB_PENDING, last_error=str(exc))
                    delay = self._retry_delay_seconds(attempts)
                    self.logger.warning(
                        "Chunk %s failed: %s. Retrying in %.1fs (%s/%s)",
                        chunk.get("chunk_index"),
                        exc,
                        delay,
                        attempts,
                        max_attempts if max_attempts else "unlimited",
                    )
                    time.sleep(delay)
                    continue
                self.state.update_job_status(job_id, JOB_FAILED, last_error=str(exc))
                self.logger.exception("Chunk %s failed", chunk.get("chunk_index"))
                raise
            self.state.update_job_status(job_id, JOB_DONE)
            completed += 1
        return completed

    def _max_attempts(self) -> int:
        if self.config is None:
            return 1
        return int(self.config.get("task_queue", "max_attempts", default=3))

    def _retry_delay_seconds(self, attempt: int) -> float:
        if self.config is None:
            return 0.0
        base = float(self.config.get("task_queue", "retry_delay_seconds", default=0))
        backoff = float(self.config.get("task_queue", "retry_backoff", default=2))
        if base <= 0:
            return 0.0
        return base * (backoff ** max(attempt - 1, 0))

    def _should_retry(self, exc: Exception) -> bool:
        if self.config is None:
            return False
        if not bool(self.config.get("task_queue", "retry_enabled", default=True)):
            return False
        return isinstance(exc, (OSError, TimeoutError))
