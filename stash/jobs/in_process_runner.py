"""In-process job runner using asyncio tasks.

Each spawned job gets its own task on the running event loop. The caller gets
a JobHandle back immediately; failures inside the work are written onto the
job record rather than raised at the caller.
"""

import asyncio
import logging
from typing import Dict, Optional

from stash.jobs.controller import JobLifecycleController
from stash.jobs.dispatcher import JobDispatcher, JobHandle, JobWork
from stash.jobs.models import JobRecord

logger = logging.getLogger(__name__)


class InProcessJobRunner(JobDispatcher):
    """Local fire-and-forget job runner on the current event loop."""

    def __init__(self, controller: JobLifecycleController):
        self._controller = controller
        self._handles: Dict[int, JobHandle] = {}

    def spawn(self, title: str, work: JobWork, total_items: int = 1) -> JobHandle:
        job = self._controller.create(title, total_items)
        task = asyncio.get_running_loop().create_task(
            self._run(job, work), name=f"job-{job.id}"
        )
        handle = JobHandle(job_id=job.id, task=task)
        self._handles[job.id] = handle
        task.add_done_callback(lambda _t, job_id=job.id: self._handles.pop(job_id, None))
        return handle

    def get_handle(self, job_id: int) -> Optional[JobHandle]:
        return self._handles.get(job_id)

    async def _run(self, job: JobRecord, work: JobWork) -> None:
        try:
            await work(job)
        except asyncio.CancelledError:
            # Left non-terminal on purpose; the next load reports it as interrupted
            raise
        except Exception as e:
            logger.warning("Job %s (%s) failed: %s", job.id, job.title, e)
            self._controller.fail(job.id, str(e) or type(e).__name__)

    async def drain(self) -> None:
        handles = list(self._handles.values())
        if handles:
            await asyncio.gather(*(h.task for h in handles), return_exceptions=True)

    async def stop(self) -> None:
        handles = list(self._handles.values())
        for handle in handles:
            handle.task.cancel()
        for handle in handles:
            try:
                await handle.task
            except asyncio.CancelledError:
                pass
        self._handles.clear()
