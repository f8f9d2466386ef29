"""AI enrichment of a single save: key points and topic tags."""

import json
from typing import Any, Dict

from stash.ai.providers import AIConfig, MissingCredentialError, ProviderClient
from stash.jobs.dispatcher import JobHandle
from stash.jobs.models import JobRecord, JobStatus
from stash.notifications import NotificationType
from stash.processors.base import ProcessorContext, truncate


ENRICH_MAX_TOKENS = 1024
CONTENT_SAMPLE = 8000

ENRICH_PROMPT = """Analyze this {content_type} and provide:
1. 3-5 key points or takeaways (as a JSON array of strings)
2. 3-7 relevant tags/topics for categorization (as a JSON array of strings, lowercase, single words or short phrases)

{content}

Respond ONLY with valid JSON in this exact format:
{{
  "key_points": ["point 1", "point 2", "point 3"],
  "tags": ["tag1", "tag2", "tag3"]
}}"""


def content_to_analyze(save: Dict[str, Any]) -> str:
    content_type = save.get("content_type") or "article"
    title = save.get("title")
    body = (save.get("content") or save.get("excerpt") or "")

    if content_type == "book":
        try:
            book = json.loads(save.get("content") or "{}")
        except ValueError:
            return body
        author = save.get("author") or save.get("site_name") or "Unknown"
        return (
            f"Title: {title}\nAuthor: {author}\n"
            f"Description: {book.get('description') or ''}\nNotes: {book.get('notes') or ''}"
        )
    if content_type == "podcast":
        return f"Title: {title}\nShow: {save.get('site_name') or 'Unknown'}\nTranscript: {body[:CONTENT_SAMPLE]}"
    return f"Title: {title}\nSource: {save.get('site_name') or 'Unknown'}\nContent: {body[:CONTENT_SAMPLE]}"


async def enrich(client: ProviderClient, config: AIConfig, save: Dict[str, Any], now) -> Dict[str, Any]:
    """Ask the model for key points and tags; returns the ai_metadata payload."""
    if not config.has_key:
        raise MissingCredentialError()

    prompt = ENRICH_PROMPT.format(
        content_type=save.get("content_type") or "article",
        content=content_to_analyze(save),
    )
    result = await client.complete_json(prompt, config, ENRICH_MAX_TOKENS)
    key_points = result.get("key_points") or result.get("keyPoints") or []
    return {
        "key_points": key_points,
        "tags": result.get("tags") or [],
        "enriched_at": now.isoformat(),
    }


def start_enrichment(ctx: ProcessorContext, save: Dict[str, Any], user_id: str) -> JobHandle:
    """Enrich a save in the background as a one-item job.

    A missing API key or a failed provider call fails the job.
    """
    title = save.get("title") or "Untitled"

    async def work(job: JobRecord) -> None:
        ctx.controller.update(job.id, status=JobStatus.PROCESSING)
        try:
            metadata = await enrich(ctx.ai_client, ctx.preferences.ai_config(), save, ctx.controller.store.now())
            await ctx.saves.update_save(save["id"], {"ai_metadata": metadata})
            if metadata["tags"]:
                await ctx.saves.add_tags(save["id"], user_id, metadata["tags"])
        except Exception as e:
            ctx.notifications.notify(f"AI enrichment failed: {str(e) or 'Unknown error'}", NotificationType.ERROR)
            raise

        ctx.controller.update(job.id, status=JobStatus.COMPLETED, completed_items=1)
        ctx.notifications.notify("AI enrichment completed")

    return ctx.dispatcher.spawn(f"Enrich: {truncate(title, 40)}", work)
