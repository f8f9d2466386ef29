"""Background import and enrichment endpoints.

Each endpoint validates its input, spawns a tracked job and returns at once
with 202; progress is polled through GET /api/v1/jobs/{id}.
"""

from typing import List

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from stash.processors import enrichment, kindle, podcasts, transcripts

router = APIRouter()

# Wired in during lifespan (same pattern as jobs.py / ai.py)
_context = None
_kindle_batch_size = kindle.DEFAULT_BATCH_SIZE
_transcript_limit = transcripts.SINGLE_PASS_LIMIT


def set_context(context, kindle_batch_size=None, transcript_limit=None):
    global _context, _kindle_batch_size, _transcript_limit
    _context = context
    if kindle_batch_size:
        _kindle_batch_size = kindle_batch_size
    if transcript_limit:
        _transcript_limit = transcript_limit


class KindleImportRequest(BaseModel):
    user_id: str
    highlights: List[kindle.KindleHighlight]


class PodcastImportRequest(BaseModel):
    user_id: str
    episodes: List[podcasts.PodcastEpisode]
    ai_cleanup: bool = True


class EnrichRequest(BaseModel):
    user_id: str


def _require_context():
    if _context is None:
        raise HTTPException(status_code=503, detail="Processors not initialized")
    return _context


def _accepted(handle, message: str) -> JSONResponse:
    job = _context.controller.get(handle.job_id)
    return JSONResponse(
        status_code=202,
        content={
            "job": job.model_dump(by_alias=True, mode="json"),
            "message": message + f" Poll GET /api/v1/jobs/{handle.job_id} for status.",
        },
    )


async def _load_save(ctx, save_id: str) -> dict:
    save = await ctx.saves.get_save(save_id)
    if save is None:
        raise HTTPException(status_code=404, detail="Save not found")
    return save


@router.post("/imports/kindle/preview")
async def preview_kindle_import(request: KindleImportRequest):
    """Report how many highlights are new versus already saved."""
    ctx = _require_context()
    try:
        preview = await kindle.prepare_import(ctx.saves, request.highlights)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return preview.model_dump(mode="json")


@router.post("/imports/kindle")
async def import_kindle(request: KindleImportRequest):
    ctx = _require_context()
    try:
        preview = await kindle.prepare_import(ctx.saves, request.highlights)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    handle = kindle.start_import(ctx, preview.new_highlights, request.user_id, _kindle_batch_size)
    if handle is None:
        return {"job": None, "message": "All highlights are already imported.",
                "duplicate_count": preview.duplicate_count}
    return _accepted(handle, f"Importing {len(preview.new_highlights)} highlight(s).")


@router.post("/imports/podcasts")
async def import_podcasts(request: PodcastImportRequest):
    ctx = _require_context()
    if not request.episodes:
        raise HTTPException(status_code=400, detail="No episodes selected")
    handle = podcasts.start_import(
        ctx, request.episodes, request.user_id, request.ai_cleanup, _transcript_limit
    )
    return _accepted(handle, f"Importing {len(request.episodes)} podcast(s).")


@router.post("/saves/{save_id}/enrich")
async def enrich_save(save_id: str, request: EnrichRequest):
    ctx = _require_context()
    save = await _load_save(ctx, save_id)
    handle = enrichment.start_enrichment(ctx, save, request.user_id)
    return _accepted(handle, "AI enrichment started.")


@router.post("/saves/{save_id}/transcript-cleanup")
async def cleanup_transcript(save_id: str):
    ctx = _require_context()
    save = await _load_save(ctx, save_id)
    handle = transcripts.start_cleanup(ctx, save, _transcript_limit)
    title = save.get("title") or "Transcript"
    return _accepted(handle, f'Processing "{title[:30]}" with AI.')
