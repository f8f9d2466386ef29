"""AI cleanup of podcast transcripts.

Short transcripts go to the model in one request that returns cleaned text
and key points as JSON. Long ones are split at paragraph or speaker
boundaries and cleaned chunk by chunk (sequentially); key points then come
from a separate request over the start of the transcript.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from stash.ai.providers import AIConfig, MissingCredentialError, ProviderClient, extract_json_array
from stash.jobs.dispatcher import JobHandle
from stash.jobs.models import JobRecord, JobStatus
from stash.notifications import NotificationType
from stash.processors.base import ProcessorContext, excerpt, truncate

logger = logging.getLogger(__name__)

SINGLE_PASS_LIMIT = 15000
CHUNK_SIZE = 12000
KEY_POINTS_SAMPLE = 10000
CLEANUP_MAX_TOKENS = 16000
KEY_POINTS_MAX_TOKENS = 2000

CLEANUP_PROMPT = """You are a helpful assistant that processes podcast transcripts. Please:

1. Clean up the transcript: fix punctuation, add paragraph breaks, remove excessive filler words (um, uh, like) and improve readability while preserving the speaker's voice.
2. If you can identify different speakers, label them (e.g. "Host:", "Guest:", or names if mentioned).
3. Remove advertisement reads (sponsor mentions, promo codes, "brought to you by" segments). Be conservative: only remove content you are highly confident is an ad.
4. Extract 3-5 key points or takeaways.

Return the COMPLETE cleaned transcript (minus obvious ads). Do not truncate or summarize it.

Respond in this exact JSON format:
{{
  "content": "The cleaned up transcript...",
  "keyPoints": ["Key point 1", "Key point 2", "Key point 3"]
}}

Here is the transcript to process:

{transcript}"""

CHUNK_PROMPT = """You are a helpful assistant that processes podcast transcripts. This is chunk {index} of {count}.

Clean up this transcript chunk:
- Fix punctuation and add proper paragraph breaks
- Remove excessive filler words (um, uh, like)
- Preserve speaker labels if present
- Remove obvious advertisement reads. Be conservative: only remove content you are highly confident is an ad.
- Return the COMPLETE cleaned chunk (minus ads). Do not truncate, summarize, or omit content.

{position_start}
{position_end}

Return ONLY the cleaned transcript text, no JSON wrapper.

Here is the chunk to process:

{chunk}"""

KEY_POINTS_PROMPT = """Based on this podcast transcript, extract 3-5 key points or takeaways. Return ONLY a JSON array of strings, like: ["Point 1", "Point 2", "Point 3"]

Transcript (first {sample} chars):
{transcript}"""


@dataclass
class TranscriptCleanup:
    content: str
    key_points: Optional[List[str]]


def split_transcript(transcript: str, chunk_size: int = CHUNK_SIZE) -> List[str]:
    """Split into chunks of at most chunk_size, preferring natural breaks.

    Tries a blank line, then a speaker label (``\\n**``), then any newline,
    accepting a break only in the second half of the window.
    """
    chunks = []
    remaining = transcript
    while remaining:
        if len(remaining) <= chunk_size:
            chunks.append(remaining)
            break

        half = chunk_size * 0.5
        break_point = remaining.rfind("\n\n", 0, chunk_size)
        if break_point < half:
            break_point = remaining.rfind("\n**", 0, chunk_size)
        if break_point < half:
            break_point = remaining.rfind("\n", 0, chunk_size)
        if break_point < half:
            break_point = chunk_size

        chunks.append(remaining[:break_point])
        remaining = remaining[break_point:].strip()
    return chunks


async def _clean_single(client: ProviderClient, config: AIConfig, transcript: str) -> Optional[TranscriptCleanup]:
    try:
        result = await client.complete_json(
            CLEANUP_PROMPT.format(transcript=transcript), config, CLEANUP_MAX_TOKENS
        )
    except Exception as e:
        logger.warning("Transcript cleanup failed: %s", e)
        return None

    content = result.get("content")
    if not isinstance(content, str) or not content:
        return None
    key_points = result.get("keyPoints", result.get("key_points"))
    return TranscriptCleanup(content=content, key_points=key_points if isinstance(key_points, list) else None)


async def _clean_chunked(
    client: ProviderClient, config: AIConfig, transcript: str, chunk_size: int
) -> TranscriptCleanup:
    chunks = split_transcript(transcript, chunk_size)
    logger.info("Processing transcript in %d chunks", len(chunks))

    cleaned = []
    for i, chunk in enumerate(chunks):
        prompt = CHUNK_PROMPT.format(
            index=i + 1,
            count=len(chunks),
            position_start="This is the beginning of the transcript." if i == 0
            else "This continues from the previous chunk.",
            position_end="This is the end of the transcript." if i == len(chunks) - 1
            else "More chunks will follow.",
            chunk=chunk,
        )
        try:
            cleaned.append(await client.complete_raw(prompt, config, CLEANUP_MAX_TOKENS))
        except Exception as e:
            logger.warning("Chunk %d/%d failed, keeping original text: %s", i + 1, len(chunks), e)
            cleaned.append(chunk)

    sample = transcript[:KEY_POINTS_SAMPLE]
    if len(transcript) > KEY_POINTS_SAMPLE:
        sample += "\n\n[... transcript continues ...]"
    key_points = None
    try:
        reply = await client.complete_raw(
            KEY_POINTS_PROMPT.format(sample=KEY_POINTS_SAMPLE, transcript=sample),
            config,
            KEY_POINTS_MAX_TOKENS,
        )
        key_points = extract_json_array(reply)
    except Exception as e:
        logger.warning("Failed to extract key points: %s", e)

    return TranscriptCleanup(content="\n\n".join(cleaned), key_points=key_points)


async def clean_transcript(
    client: ProviderClient,
    config: AIConfig,
    transcript: str,
    single_pass_limit: int = SINGLE_PASS_LIMIT,
) -> Optional[TranscriptCleanup]:
    """Clean a transcript with the configured model. None if the model call failed."""
    if len(transcript) > single_pass_limit:
        return await _clean_chunked(client, config, transcript, CHUNK_SIZE)
    return await _clean_single(client, config, transcript)


def start_cleanup(ctx: ProcessorContext, save: dict, single_pass_limit: int = SINGLE_PASS_LIMIT) -> JobHandle:
    """Clean up an already saved transcript in the background (a one-item job)."""
    title = save.get("title") or "Transcript"

    async def work(job: JobRecord) -> None:
        ctx.controller.update(job.id, status=JobStatus.PROCESSING)
        config = ctx.preferences.ai_config()
        try:
            if not config.has_key:
                raise MissingCredentialError()
            result = await clean_transcript(ctx.ai_client, config, save.get("content") or "", single_pass_limit)
            if result is None:
                raise ValueError("AI processing returned no result")

            metadata = dict(save.get("podcast_metadata") or {})
            metadata.update(key_points=result.key_points, processed=True)
            await ctx.saves.update_save(save["id"], {
                "content": result.content,
                "excerpt": excerpt(result.content),
                "podcast_metadata": metadata,
            })
        except Exception:
            ctx.notifications.notify("Error processing transcript", NotificationType.ERROR)
            raise

        ctx.controller.update(job.id, status=JobStatus.COMPLETED, completed_items=1)
        ctx.notifications.notify(f'"{truncate(title, 30)}" processed successfully')

    return ctx.dispatcher.spawn(f"AI cleanup: {truncate(title, 40, ellipsis=False)}", work)
