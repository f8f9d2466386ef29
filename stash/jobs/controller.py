"""Job lifecycle controller: the only writer of the JobStore.

State machine::

    pending -> processing -> completed | failed
    pending -> completed | failed          (work that fails before it starts)

Terminal jobs are never transitioned again.
"""

import logging
from typing import List, Optional

from stash.jobs.models import JobRecord, JobStatus, JobSummary, JobView
from stash.jobs.store import JobStore

logger = logging.getLogger(__name__)

_STATUS_ORDER = {
    JobStatus.PENDING: 0,
    JobStatus.PROCESSING: 1,
    JobStatus.COMPLETED: 2,
    JobStatus.FAILED: 2,
}


class JobLifecycleController:
    """Creates and transitions job records, persisting after every change."""

    def __init__(self, store: JobStore):
        self._store = store

    @property
    def store(self) -> JobStore:
        return self._store

    def create(self, title: str, total_items: int = 1) -> JobRecord:
        """Allocate the next id and insert a pending job at the front of the list."""
        if total_items < 1:
            raise ValueError("total_items must be at least 1")

        self._store.counter += 1
        job = JobRecord(
            id=self._store.counter,
            title=title,
            total_items=total_items,
            started_at=self._store.now(),
        )
        self._store.jobs.insert(0, job)
        self._store.persist()
        logger.debug("Created job %s: %s (%d item(s))", job.id, title, total_items)
        return job

    def get(self, job_id: int) -> Optional[JobRecord]:
        for job in self._store.jobs:
            if job.id == job_id:
                return job
        return None

    def update(
        self,
        job_id: int,
        status: Optional[JobStatus] = None,
        completed_items: Optional[int] = None,
        error: Optional[str] = None,
    ) -> Optional[JobRecord]:
        """Merge fields into a job and persist.

        Unknown ids are a no-op (returns None). Updates to a terminal job are
        ignored. completed_items never decreases and never exceeds
        total_items. error is only recorded on failed jobs. Reaching a
        terminal status stamps completed_at.
        """
        job = self.get(job_id)
        if job is None:
            logger.debug("Ignoring update for unknown job %s", job_id)
            return None

        if job.status.is_terminal:
            logger.warning("Ignoring update to %s job %s", job.status.value, job_id)
            return job

        if completed_items is not None:
            clamped = max(job.completed_items, min(completed_items, job.total_items))
            if clamped != completed_items:
                logger.debug(
                    "Clamped completed_items for job %s: %d -> %d",
                    job_id, completed_items, clamped,
                )
            job.completed_items = clamped

        if status is not None:
            status = JobStatus(status)
            if _STATUS_ORDER[status] < _STATUS_ORDER[job.status]:
                logger.warning(
                    "Ignoring backwards transition %s -> %s for job %s",
                    job.status.value, status.value, job_id,
                )
            else:
                job.status = status

        if job.status == JobStatus.FAILED:
            job.error = error or job.error or "Failed"
        if job.status.is_terminal:
            job.completed_at = self._store.now()

        self._store.persist()
        return job

    def start(self, job_id: int) -> Optional[JobRecord]:
        return self.update(job_id, status=JobStatus.PROCESSING)

    def complete(self, job_id: int) -> Optional[JobRecord]:
        return self.update(job_id, status=JobStatus.COMPLETED)

    def fail(self, job_id: int, error: str) -> Optional[JobRecord]:
        return self.update(job_id, status=JobStatus.FAILED, error=error)

    # -- queries ---------------------------------------------------------

    def active_jobs(self) -> List[JobRecord]:
        """Jobs still pending or processing (drives the activity badge)."""
        return [job for job in self._store.jobs if job.is_active]

    def active_count(self) -> int:
        return len(self.active_jobs())

    def all_jobs(self) -> List[JobRecord]:
        """The most recent jobs, newest first, capped to max_jobs."""
        return list(self._store.capped())

    def summary(self) -> JobSummary:
        active = self.active_count()
        return JobSummary(
            active_count=active,
            has_active_jobs=active > 0,
            total=len(self._store.capped()),
        )

    def views(self) -> List[JobView]:
        now = self._store.now()
        return [job_view(job, now) for job in self.all_jobs()]


def progress_percent(job: JobRecord) -> int:
    if job.total_items > 1:
        return round(job.completed_items / job.total_items * 100)
    if job.status == JobStatus.COMPLETED:
        return 100
    if job.status == JobStatus.PROCESSING:
        return 50
    return 0


def status_text(job: JobRecord) -> str:
    if job.status == JobStatus.PENDING:
        return "Queued"
    if job.status == JobStatus.PROCESSING:
        if job.total_items > 1:
            return f"Processing ({job.completed_items}/{job.total_items})"
        return "Processing..."
    if job.status == JobStatus.COMPLETED:
        return "Completed"
    return job.error or "Failed"


def time_ago(then, now) -> str:
    seconds = int((now - then).total_seconds())
    if seconds < 60:
        return "just now"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    return f"{hours // 24}d ago"


def job_view(job: JobRecord, now) -> JobView:
    return JobView(
        id=job.id,
        title=job.title,
        status=job.status,
        status_text=status_text(job),
        progress_percent=progress_percent(job),
        show_progress_bar=job.status == JobStatus.PROCESSING and job.total_items > 1,
        time_ago=time_ago(job.completed_at or job.started_at, now),
    )
