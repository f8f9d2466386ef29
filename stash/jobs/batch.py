"""Sequential batch execution against a tracked job.

Items run one at a time: provider calls are rate limited per key, and the
progress bar must only move forward. One item failing does not stop the
batch; it is counted in the BatchOutcome and the job still completes.
"""

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, List, Sequence, Tuple, TypeVar

from stash.jobs.controller import JobLifecycleController
from stash.jobs.models import JobRecord, JobStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class BatchOutcome(Generic[T]):
    """Per-item results of a batch, for the caller's own summary message."""
    succeeded: List[T] = field(default_factory=list)
    failed: List[Tuple[T, str]] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    @property
    def total(self) -> int:
        return self.success_count + self.failure_count


async def run_batch(
    controller: JobLifecycleController,
    job: JobRecord,
    items: Sequence[T],
    process_item: Callable[[T], Awaitable[None]],
) -> BatchOutcome[T]:
    """Drive job through processing -> completed over items.

    Exceptions raised by process_item are recorded per item. Anything raised
    outside the item loop propagates so the caller (or the runner) can fail
    the whole job.
    """
    controller.update(job.id, status=JobStatus.PROCESSING)
    outcome: BatchOutcome[T] = BatchOutcome()

    for index, item in enumerate(items):
        try:
            await process_item(item)
        except Exception as e:
            logger.warning("Job %s: item %d/%d failed: %s", job.id, index + 1, len(items), e)
            outcome.failed.append((item, str(e) or type(e).__name__))
        else:
            outcome.succeeded.append(item)
        controller.update(job.id, completed_items=index + 1)

    controller.update(job.id, status=JobStatus.COMPLETED)
    logger.info(
        "Job %s finished: %d succeeded, %d failed",
        job.id, outcome.success_count, outcome.failure_count,
    )
    return outcome
