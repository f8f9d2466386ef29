import json
from datetime import datetime, timezone

import pytest

from stash.ai.preferences import api_key_key
from stash.ai.providers import AIConfig, AIProviderError
from stash.ai.tiers import Provider, Tier
from stash.jobs.models import JobStatus
from stash.notifications import NotificationType
from stash.processors import enrichment, kindle, podcasts, transcripts
from stash.processors.base import excerpt, plural, truncate
from stash.processors.kindle import KindleHighlight
from stash.processors.podcasts import PodcastEpisode

CONFIG = AIConfig(Provider.CLAUDE, "sk-ant-key", "claude-sonnet-4-20250514", Tier.BALANCED)


@pytest.fixture
def with_key(kv):
    kv.save(api_key_key(Provider.CLAUDE), "sk-ant-key")


def highlights(n, title="Dune"):
    return [KindleHighlight(title=title, author="Frank Herbert", highlight=f"quote {i}") for i in range(n)]


def test_helpers():
    assert truncate("abcdef", 3) == "abc..."
    assert truncate("abcdef", 3, ellipsis=False) == "abc"
    assert truncate("abc", 3) == "abc"
    assert excerpt("x" * 400) == "x" * 300 + "..."
    assert plural(1, "podcast") == "1 podcast"
    assert plural(3, "podcast") == "3 podcasts"


# Kindle

@pytest.mark.asyncio
async def test_kindle_preview_skips_saved_highlights(saves):
    saves.highlights = [{"highlight": "quote 0", "title": "Dune"}, {"highlight": "quote 1", "title": "Other"}]

    preview = await kindle.prepare_import(saves, highlights(3))

    assert [h.highlight for h in preview.new_highlights] == ["quote 1", "quote 2"]
    assert preview.duplicate_count == 1
    assert preview.total == 3


@pytest.mark.asyncio
async def test_kindle_preview_rejects_empty_file(saves):
    with pytest.raises(ValueError):
        await kindle.prepare_import(saves, [])


@pytest.mark.asyncio
async def test_kindle_import_in_batches(processor_ctx, saves):
    handle = kindle.start_import(processor_ctx, highlights(120), "user-1", batch_size=50)
    await handle.wait()

    job = processor_ctx.controller.get(handle.job_id)
    assert job.title == "Importing 120 Kindle highlights"
    assert job.total_items == 3
    assert job.completed_items == 3
    assert job.status == JobStatus.COMPLETED
    assert len(saves.inserted) == 120
    row = saves.inserted[0]
    assert row["user_id"] == "user-1"
    assert row["source"] == "kindle"
    assert row["site_name"] == "Kindle"
    assert processor_ctx.notifications.recent()[0].message == "Imported 120 highlights"


@pytest.mark.asyncio
async def test_kindle_failed_batch_is_counted(processor_ctx, saves):
    saves.fail_insert_when = lambda row: row["highlight"] == "quote 55"

    handle = kindle.start_import(processor_ctx, highlights(60), "user-1", batch_size=50)
    await handle.wait()

    job = processor_ctx.controller.get(handle.job_id)
    assert job.status == JobStatus.COMPLETED
    assert len(saves.inserted) == 50
    note = processor_ctx.notifications.recent()[0]
    assert note.message == "Imported 50 highlights (10 failed)"
    assert note.type == NotificationType.INFO


def test_kindle_nothing_to_import(processor_ctx):
    assert kindle.start_import(processor_ctx, [], "user-1") is None
    assert processor_ctx.controller.all_jobs() == []


def test_kindle_row_uses_added_at():
    added = datetime(2024, 3, 1, tzinfo=timezone.utc)
    row = kindle.highlight_row(
        KindleHighlight(title="Dune", highlight="fear", added_at=added), "u", datetime.now(timezone.utc)
    )
    assert row["created_at"] == added.isoformat()


# Podcasts

def episodes(n):
    return [
        PodcastEpisode(id=f"ep{i}", title=f"Episode {i}", show_name="The Show", content=f"raw transcript {i}")
        for i in range(n)
    ]


@pytest.mark.asyncio
async def test_podcast_import_with_ai(processor_ctx, saves, ai_client, with_key):
    ai_client.replies = [
        json.dumps({"content": "clean 0", "keyPoints": ["k0"]}),
        AIProviderError("Claude API error: 529 - overloaded", 529),
        json.dumps({"content": "clean 2", "keyPoints": ["k2"]}),
    ]
    saves.fail_insert_when = lambda row: row["title"] == "Episode 2"

    handle = podcasts.start_import(processor_ctx, episodes(3), "user-1")
    await handle.wait()

    job = processor_ctx.controller.get(handle.job_id)
    assert job.title == "AI processing: 3 podcasts"
    assert job.status == JobStatus.COMPLETED
    assert job.completed_items == 3

    first, second = saves.inserted
    assert first["content"] == "clean 0"
    assert first["podcast_metadata"]["key_points"] == ["k0"]
    assert first["podcast_metadata"]["processed"] is True
    assert second["content"] == "raw transcript 1"
    assert second["podcast_metadata"]["processed"] is False
    assert second["podcast_metadata"]["original_length"] == len("raw transcript 1")

    note = processor_ctx.notifications.recent()[0]
    assert note.message == "Imported 2 podcasts (1 with AI), 1 failed"
    assert note.type == NotificationType.SUCCESS


@pytest.mark.asyncio
async def test_podcast_import_without_key_skips_ai(processor_ctx, saves, ai_client):
    handle = podcasts.start_import(processor_ctx, episodes(1), "user-1")
    await handle.wait()

    job = processor_ctx.controller.get(handle.job_id)
    assert job.title == "Importing: Episode 0"
    assert ai_client.prompts == []
    assert saves.inserted[0]["content"] == "raw transcript 0"
    assert saves.inserted[0]["source"] == "apple-podcasts"
    assert processor_ctx.notifications.recent()[0].message == "Imported 1 podcast"


@pytest.mark.asyncio
async def test_podcast_import_all_failed(processor_ctx, saves):
    saves.fail_insert_when = lambda row: True
    handle = podcasts.start_import(processor_ctx, episodes(2), "user-1", ai_cleanup=False)
    await handle.wait()

    assert processor_ctx.controller.get(handle.job_id).status == JobStatus.COMPLETED
    note = processor_ctx.notifications.recent()[0]
    assert note.message == "Imported 0 podcasts, 2 failed"
    assert note.type == NotificationType.ERROR


# Enrichment

ARTICLE = {"id": "s1", "title": "Why tests matter", "content": "Body text", "site_name": "Blog"}


@pytest.mark.asyncio
async def test_enrichment_updates_save_and_tags(processor_ctx, saves, ai_client, with_key):
    ai_client.replies = ['{"key_points": ["a", "b"], "tags": ["testing", "python"]}']

    handle = enrichment.start_enrichment(processor_ctx, ARTICLE, "user-1")
    await handle.wait()

    job = processor_ctx.controller.get(handle.job_id)
    assert job.title == "Enrich: Why tests matter"
    assert job.status == JobStatus.COMPLETED
    assert job.completed_items == 1

    save_id, updates = saves.updates[0]
    assert save_id == "s1"
    assert updates["ai_metadata"]["key_points"] == ["a", "b"]
    assert updates["ai_metadata"]["tags"] == ["testing", "python"]
    assert "enriched_at" in updates["ai_metadata"]
    assert saves.tags == {"s1": ["testing", "python"]}
    assert "Source: Blog" in ai_client.prompts[0]


@pytest.mark.asyncio
async def test_enrichment_without_key_fails_job(processor_ctx, saves):
    handle = enrichment.start_enrichment(processor_ctx, ARTICLE, "user-1")
    await handle.wait()

    job = processor_ctx.controller.get(handle.job_id)
    assert job.status == JobStatus.FAILED
    assert job.error.startswith("No API key configured")
    assert saves.updates == []
    note = processor_ctx.notifications.recent()[0]
    assert note.type == NotificationType.ERROR
    assert note.message.startswith("AI enrichment failed: No API key configured")


@pytest.mark.asyncio
async def test_enrichment_provider_error_fails_job(processor_ctx, ai_client, with_key):
    ai_client.replies = [AIProviderError("Claude API error: 401 - unauthorized", 401)]
    handle = enrichment.start_enrichment(processor_ctx, ARTICLE, "user-1")
    await handle.wait()

    job = processor_ctx.controller.get(handle.job_id)
    assert job.status == JobStatus.FAILED
    assert job.error == "Claude API error: 401 - unauthorized"


def test_content_to_analyze_book_and_podcast():
    book = {"title": "Dune", "content_type": "book", "author": "Herbert",
            "content": json.dumps({"description": "Desert planet", "notes": "Loved it"})}
    text = enrichment.content_to_analyze(book)
    assert "Author: Herbert" in text
    assert "Description: Desert planet" in text

    podcast = {"title": "Ep", "content_type": "podcast", "site_name": "Show", "content": "x" * 9000}
    text = enrichment.content_to_analyze(podcast)
    assert text.startswith("Title: Ep\nShow: Show\nTranscript: ")
    assert len(text) < 9000


# Transcripts

def test_split_prefers_paragraph_breaks():
    text = "a" * 70 + "\n\n" + "b" * 70
    assert transcripts.split_transcript(text, chunk_size=100) == ["a" * 70, "b" * 70]


def test_split_falls_back_to_hard_cut():
    text = "x" * 250
    chunks = transcripts.split_transcript(text, chunk_size=100)
    assert chunks == ["x" * 100, "x" * 100, "x" * 50]


def test_split_ignores_breaks_in_first_half():
    text = "a" * 10 + "\n\n" + "b" * 150
    chunks = transcripts.split_transcript(text, chunk_size=100)
    assert chunks[0] == text[:100]


@pytest.mark.asyncio
async def test_clean_single_pass(ai_client):
    ai_client.replies = ['{"content": "Host: hello", "keyPoints": ["greeting"]}']
    result = await transcripts.clean_transcript(ai_client, CONFIG, "um hello")
    assert result.content == "Host: hello"
    assert result.key_points == ["greeting"]


@pytest.mark.asyncio
async def test_clean_single_pass_failure_returns_none(ai_client):
    ai_client.replies = [AIProviderError("boom")]
    assert await transcripts.clean_transcript(ai_client, CONFIG, "um hello") is None


@pytest.mark.asyncio
async def test_clean_chunked_keeps_original_for_failed_chunk(ai_client):
    transcript = ("a" * 8000 + "\n\n") * 2
    ai_client.replies = ["clean one", AIProviderError("overloaded"), '["point"]']

    result = await transcripts.clean_transcript(ai_client, CONFIG, transcript, single_pass_limit=15000)

    chunks = transcripts.split_transcript(transcript)
    assert len(chunks) == 2
    assert result.content == "clean one\n\n" + chunks[1]
    assert result.key_points == ["point"]
    assert "chunk 1 of 2" in ai_client.prompts[0]


@pytest.mark.asyncio
async def test_start_cleanup_updates_save(processor_ctx, saves, ai_client, with_key):
    save = {"id": "p1", "title": "Episode 9", "content": "um so yeah",
            "podcast_metadata": {"show_name": "Show", "processed": False}}
    ai_client.replies = ['{"content": "So, yeah.", "keyPoints": ["one"]}']

    handle = transcripts.start_cleanup(processor_ctx, save)
    await handle.wait()

    job = processor_ctx.controller.get(handle.job_id)
    assert job.title == "AI cleanup: Episode 9"
    assert job.status == JobStatus.COMPLETED
    _, updates = saves.updates[0]
    assert updates["content"] == "So, yeah."
    assert updates["excerpt"] == "So, yeah...."
    assert updates["podcast_metadata"] == {"show_name": "Show", "processed": True, "key_points": ["one"]}


@pytest.mark.asyncio
async def test_start_cleanup_no_result_fails_job(processor_ctx, saves, ai_client, with_key):
    ai_client.replies = [AIProviderError("overloaded")]
    handle = transcripts.start_cleanup(processor_ctx, {"id": "p1", "title": "Ep", "content": "text"})
    await handle.wait()

    job = processor_ctx.controller.get(handle.job_id)
    assert job.status == JobStatus.FAILED
    assert job.error == "AI processing returned no result"
    assert saves.updates == []
    assert processor_ctx.notifications.recent()[0].message == "Error processing transcript"
