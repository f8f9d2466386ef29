"""Kindle highlight import as a tracked batch job."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel

from stash.db.saves import SavesRepository
from stash.jobs.batch import run_batch
from stash.jobs.dispatcher import JobHandle
from stash.jobs.models import JobRecord
from stash.notifications import NotificationType
from stash.processors.base import ProcessorContext, plural


DEFAULT_BATCH_SIZE = 50


class KindleHighlight(BaseModel):
    """One parsed clipping."""
    title: str
    author: Optional[str] = None
    highlight: str
    added_at: Optional[datetime] = None

    def dedupe_key(self) -> str:
        return f"{self.highlight}|||{self.title}"


class KindleImportPreview(BaseModel):
    new_highlights: List[KindleHighlight]
    duplicate_count: int
    total: int


def deduplicate_highlights(
    highlights: Sequence[KindleHighlight], existing: Sequence[Dict[str, Any]]
) -> List[KindleHighlight]:
    """Drop highlights whose (text, title) pair is already saved."""
    seen = {f"{row.get('highlight')}|||{row.get('title')}" for row in existing}
    return [h for h in highlights if h.dedupe_key() not in seen]


async def prepare_import(saves: SavesRepository, highlights: Sequence[KindleHighlight]) -> KindleImportPreview:
    if not highlights:
        raise ValueError("No highlights found. Make sure it's a valid My Clippings.txt file.")
    new = deduplicate_highlights(highlights, await saves.existing_highlights())
    return KindleImportPreview(
        new_highlights=new,
        duplicate_count=len(highlights) - len(new),
        total=len(highlights),
    )


def highlight_row(highlight: KindleHighlight, user_id: str, now: datetime) -> Dict[str, Any]:
    return {
        "user_id": user_id,
        "title": highlight.title,
        "author": highlight.author,
        "highlight": highlight.highlight,
        "site_name": "Kindle",
        "source": "kindle",
        "created_at": (highlight.added_at or now).isoformat(),
    }


def chunked(items: Sequence[Any], size: int) -> List[List[Any]]:
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def start_import(
    ctx: ProcessorContext,
    highlights: Sequence[KindleHighlight],
    user_id: str,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> Optional[JobHandle]:
    """Insert highlights in batches as one background job (one item per batch).

    Returns None when there is nothing to import.
    """
    if not highlights:
        return None

    batches = chunked(list(highlights), batch_size)

    async def work(job: JobRecord) -> None:
        now = ctx.controller.store.now()

        async def insert_batch(batch: List[KindleHighlight]) -> None:
            await ctx.saves.insert_saves([highlight_row(h, user_id, now) for h in batch])

        outcome = await run_batch(ctx.controller, job, batches, insert_batch)
        imported = sum(len(batch) for batch in outcome.succeeded)
        message = f"Imported {plural(imported, 'highlight')}"
        if outcome.failure_count:
            failed = sum(len(batch) for batch, _ in outcome.failed)
            message += f" ({failed} failed)"
            ctx.notifications.notify(message, NotificationType.ERROR if not imported else NotificationType.INFO)
        else:
            ctx.notifications.notify(message)

    title = f"Importing {plural(len(highlights), 'Kindle highlight')}"
    return ctx.dispatcher.spawn(title, work, total_items=len(batches))
