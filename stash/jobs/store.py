"""Durable, bounded, time-windowed job history.

The whole history is one record in a KeyValueStore: ``{"jobs": [...], "counter": N}``.
Every mutation re-serializes the full state; there is no append log.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from pydantic import ValidationError

from stash.jobs.models import JobRecord, JobStatus, JobStoreSnapshot
from stash.storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

STORAGE_KEY = "stash-ai-jobs"
MAX_JOBS = 20
JOB_RETENTION_HOURS = 24
INTERRUPTED_ERROR = "Interrupted by application restart"

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStore:
    """In-memory job list backed by a single persisted record.

    Only JobLifecycleController should mutate ``jobs``; everything else reads.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        clock: Clock = utcnow,
        max_jobs: int = MAX_JOBS,
        retention_hours: int = JOB_RETENTION_HOURS,
        storage_key: str = STORAGE_KEY,
    ):
        self._kv = kv
        self._clock = clock
        self._max_jobs = max_jobs
        self._retention = timedelta(hours=retention_hours)
        self._key = storage_key
        self.jobs: List[JobRecord] = []
        self.counter = 0

    @property
    def max_jobs(self) -> int:
        return self._max_jobs

    def now(self) -> datetime:
        return self._clock()

    def load(self) -> None:
        """Restore state from the persisted record.

        A missing, unreadable or corrupt record yields empty history. Jobs left
        pending/processing by a previous run can never resume, so they are
        marked failed here.
        """
        self.jobs = []
        self.counter = 0

        result = self._kv.load(self._key)
        if not result.ok:
            logger.warning("Could not read job history: %s", result.error)
            return
        if result.value is None:
            return

        snapshot = self._parse(result.value)
        if snapshot is None:
            return

        self.jobs = snapshot.jobs
        self.counter = snapshot.counter

        now = self._clock()
        for job in self.jobs:
            if job.is_active:
                logger.info("Job %s (%s) was interrupted, marking failed", job.id, job.title)
                job.status = JobStatus.FAILED
                job.error = INTERRUPTED_ERROR
                job.completed_at = now

        self.persist()

    def _parse(self, raw: str) -> Optional[JobStoreSnapshot]:
        try:
            return JobStoreSnapshot.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Discarding corrupt job history: %s", e.error_count())
            return None

    def evict_expired(self) -> int:
        """Drop jobs started before the retention window. Returns count dropped."""
        cutoff = self._clock() - self._retention
        kept = [job for job in self.jobs if job.started_at > cutoff]
        dropped = len(self.jobs) - len(kept)
        self.jobs = kept
        return dropped

    def capped(self) -> List[JobRecord]:
        """Trim the in-memory list to the most recent max_jobs and return it."""
        if len(self.jobs) > self._max_jobs:
            self.jobs = self.jobs[: self._max_jobs]
        return self.jobs

    def snapshot(self) -> JobStoreSnapshot:
        return JobStoreSnapshot(jobs=self.jobs[: self._max_jobs], counter=self.counter)

    def persist(self) -> bool:
        """Apply retention, then write the full state. Never raises."""
        dropped = self.evict_expired()
        if dropped:
            logger.debug("Evicted %d expired job(s)", dropped)

        payload = self.snapshot().model_dump_json(by_alias=True)
        result = self._kv.save(self._key, payload)
        if not result.ok:
            logger.warning("Failed to persist job history: %s", result.error)
        return result.ok
