"""Record store for saves, tags and save/tag links.

Batch processors talk to the SavesRepository interface; SupabaseSavesRepository
is the hosted implementation. supabase-py is synchronous, so its calls run in
the default thread executor to keep the event loop free.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from functools import partial
from typing import Any, Dict, List, Optional, Sequence

from supabase import Client, create_client

from stash.config import settings

logger = logging.getLogger(__name__)

_client: Client | None = None


def get_supabase() -> Client:
    """Get or create the service-role Supabase client."""
    global _client
    if _client is None:
        if not settings.supabase_url or not settings.supabase_service_role_key:
            raise RuntimeError(
                "STASH_SUPABASE_URL and STASH_SUPABASE_SERVICE_ROLE_KEY must be set"
            )
        _client = create_client(settings.supabase_url, settings.supabase_service_role_key)
    return _client


class SavesRepository(ABC):
    """CRUD surface the batch processors need."""

    @abstractmethod
    async def insert_saves(self, rows: Sequence[Dict[str, Any]]) -> int:
        """Insert rows into saves. Returns the number inserted."""
        ...

    @abstractmethod
    async def update_save(self, save_id: str, updates: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def get_save(self, save_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def existing_highlights(self) -> List[Dict[str, Any]]:
        """All saves that carry a highlight, as {highlight, title} rows."""
        ...

    @abstractmethod
    async def add_tags(self, save_id: str, user_id: str, tag_names: Sequence[str]) -> int:
        """Link tags (created on demand) to a save. Returns the number linked."""
        ...


def normalize_tags(tag_names: Sequence[str]) -> List[str]:
    seen = []
    for name in tag_names:
        name = (name or "").strip().lower()
        if name and name not in seen:
            seen.append(name)
    return seen


class SupabaseSavesRepository(SavesRepository):

    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase()
        return self._client

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(fn, *args))

    async def insert_saves(self, rows: Sequence[Dict[str, Any]]) -> int:
        if not rows:
            return 0
        await self._run(lambda: self.client.table("saves").insert(list(rows)).execute())
        return len(rows)

    async def update_save(self, save_id: str, updates: Dict[str, Any]) -> None:
        await self._run(lambda: self.client.table("saves").update(updates).eq("id", save_id).execute())

    async def get_save(self, save_id: str) -> Optional[Dict[str, Any]]:
        response = await self._run(
            lambda: self.client.table("saves").select("*").eq("id", save_id).limit(1).execute()
        )
        return response.data[0] if response.data else None

    async def existing_highlights(self) -> List[Dict[str, Any]]:
        response = await self._run(
            lambda: self.client.table("saves")
            .select("highlight, title")
            .not_.is_("highlight", "null")
            .execute()
        )
        return response.data or []

    def _add_tags_sync(self, save_id: str, user_id: str, tag_names: Sequence[str]) -> int:
        existing = (
            self.client.table("save_tags")
            .select("tag_id, tags(name)")
            .eq("save_id", save_id)
            .execute()
        )
        existing_names = {
            ((row.get("tags") or {}).get("name") or "").lower() for row in existing.data or []
        }

        linked = 0
        for name in normalize_tags(tag_names):
            if name in existing_names:
                continue
            try:
                found = (
                    self.client.table("tags")
                    .select("id")
                    .eq("name", name)
                    .eq("user_id", user_id)
                    .limit(1)
                    .execute()
                )
                if found.data:
                    tag_id = found.data[0]["id"]
                else:
                    created = (
                        self.client.table("tags")
                        .insert({"name": name, "user_id": user_id})
                        .execute()
                    )
                    tag_id = created.data[0]["id"]
                self.client.table("save_tags").insert({"save_id": save_id, "tag_id": tag_id}).execute()
                linked += 1
            except Exception as e:
                logger.warning("Error adding tag %r to save %s: %s", name, save_id, e)
        return linked

    async def add_tags(self, save_id: str, user_id: str, tag_names: Sequence[str]) -> int:
        return await self._run(self._add_tags_sync, save_id, user_id, list(tag_names))
