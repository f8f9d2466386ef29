"""Podcast transcript import as a tracked batch job."""

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from pydantic import BaseModel

from stash.jobs.batch import run_batch
from stash.jobs.dispatcher import JobHandle
from stash.jobs.models import JobRecord
from stash.notifications import NotificationType
from stash.processors.base import ProcessorContext, excerpt, plural, truncate
from stash.processors.transcripts import SINGLE_PASS_LIMIT, clean_transcript

logger = logging.getLogger(__name__)


class PodcastEpisode(BaseModel):
    """One episode transcript picked for import."""
    id: str
    title: str
    show_name: Optional[str] = None
    content: str
    published_at: Optional[datetime] = None


def podcast_row(
    episode: PodcastEpisode,
    user_id: str,
    content: str,
    key_points,
    processed: bool,
) -> Dict[str, Any]:
    return {
        "user_id": user_id,
        "title": episode.title,
        "site_name": episode.show_name,
        "content": content,
        "excerpt": excerpt(content),
        "source": "apple-podcasts",
        "content_type": "podcast",
        "podcast_metadata": {
            "show_name": episode.show_name,
            "episode_title": episode.title,
            "episode_date": episode.published_at.date().isoformat() if episode.published_at else None,
            "apple_podcast_id": episode.id,
            "key_points": key_points,
            "original_length": len(episode.content),
            "processed": processed,
        },
    }


def start_import(
    ctx: ProcessorContext,
    episodes: Sequence[PodcastEpisode],
    user_id: str,
    ai_cleanup: bool = True,
    single_pass_limit: int = SINGLE_PASS_LIMIT,
) -> Optional[JobHandle]:
    """Import episodes one by one, optionally cleaning each transcript with AI.

    An episode whose AI cleanup fails is saved with its raw transcript. An
    episode whose insert fails is counted as failed; the batch carries on.
    """
    if not episodes:
        return None

    config = ctx.preferences.ai_config()
    use_ai = ai_cleanup and config.has_key
    ai_processed = []

    async def import_episode(episode: PodcastEpisode) -> None:
        content, key_points, processed = episode.content, None, False
        if use_ai:
            result = await clean_transcript(ctx.ai_client, config, episode.content, single_pass_limit)
            if result is not None:
                content, key_points, processed = result.content, result.key_points, True
            else:
                logger.warning("AI processing failed for %r, saving raw transcript", episode.title)
        await ctx.saves.insert_saves([podcast_row(episode, user_id, content, key_points, processed)])
        if processed:
            ai_processed.append(episode.id)

    async def work(job: JobRecord) -> None:
        outcome = await run_batch(ctx.controller, job, list(episodes), import_episode)
        message = f"Imported {plural(outcome.success_count, 'podcast')}"
        if use_ai and ai_processed:
            message += f" ({len(ai_processed)} with AI)"
        if outcome.failure_count:
            message += f", {outcome.failure_count} failed"
        ctx.notifications.notify(
            message, NotificationType.SUCCESS if outcome.success_count else NotificationType.ERROR
        )

    if len(episodes) == 1:
        label = truncate(episodes[0].title, 50, ellipsis=False)
    else:
        label = f"{len(episodes)} podcasts"
    title = f"AI processing: {label}" if use_ai else f"Importing: {label}"
    return ctx.dispatcher.spawn(title, work, total_items=len(episodes))
