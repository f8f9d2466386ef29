"""Job dispatcher interface and background task handles."""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from stash.jobs.models import JobRecord

# Work receives the job it was spawned for and reports progress through the
# controller itself (see stash.jobs.batch.run_batch).
JobWork = Callable[[JobRecord], Awaitable[None]]


@dataclass
class JobHandle:
    """A spawned unit of background work and the job record it drives."""
    job_id: int
    task: "asyncio.Task[None]"

    def done(self) -> bool:
        return self.task.done()

    async def wait(self) -> None:
        """Wait for the work to finish. Errors were already recorded on the job."""
        await asyncio.shield(self.task)


class JobDispatcher(ABC):
    """Abstract interface for running tracked background work."""

    @abstractmethod
    def spawn(self, title: str, work: JobWork, total_items: int = 1) -> JobHandle:
        """Create a job and start work for it without blocking the caller."""
        ...

    @abstractmethod
    def get_handle(self, job_id: int) -> Optional[JobHandle]:
        """Handle for a job spawned by this dispatcher, if still tracked."""
        ...

    @abstractmethod
    async def drain(self) -> None:
        """Wait until all outstanding work has finished."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Cancel outstanding work."""
        ...
