from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

import pytest

from stash.ai.catalog import ModelCatalogCache, ModelListResult
from stash.ai.preferences import AIPreferences
from stash.ai.providers import AIProviderError
from stash.ai.resolver import TierResolver
from stash.db.saves import SavesRepository
from stash.jobs.controller import JobLifecycleController
from stash.jobs.in_process_runner import InProcessJobRunner
from stash.jobs.store import JobStore
from stash.notifications import NotificationCenter
from stash.processors.base import ProcessorContext
from stash.storage.kv_store import InMemoryKeyValueStore, StoreResult


class FakeClock:
    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2025, 6, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


class BrokenKeyValueStore(InMemoryKeyValueStore):
    """Every operation fails, as a full disk or revoked storage would."""

    def load(self, key: str) -> StoreResult:
        return StoreResult.failure("storage unavailable")

    def save(self, key: str, value: str) -> StoreResult:
        return StoreResult.failure("storage unavailable")


class FakeSavesRepository(SavesRepository):
    def __init__(self, saves: Optional[Dict[str, Dict[str, Any]]] = None):
        self.saves = dict(saves or {})
        self.inserted: List[Dict[str, Any]] = []
        self.updates: List[tuple] = []
        self.tags: Dict[str, List[str]] = {}
        self.highlights: List[Dict[str, Any]] = []
        self.fail_insert_when = None

    async def insert_saves(self, rows: Sequence[Dict[str, Any]]) -> int:
        for row in rows:
            if self.fail_insert_when is not None and self.fail_insert_when(row):
                raise RuntimeError(f"insert rejected: {row.get('title')}")
        self.inserted.extend(rows)
        return len(rows)

    async def update_save(self, save_id: str, updates: Dict[str, Any]) -> None:
        self.updates.append((save_id, updates))
        self.saves.setdefault(save_id, {"id": save_id}).update(updates)

    async def get_save(self, save_id: str) -> Optional[Dict[str, Any]]:
        return self.saves.get(save_id)

    async def existing_highlights(self) -> List[Dict[str, Any]]:
        return list(self.highlights)

    async def add_tags(self, save_id: str, user_id: str, tag_names: Sequence[str]) -> int:
        self.tags.setdefault(save_id, []).extend(tag_names)
        return len(tag_names)


class FakeAIClient:
    """Scripted stand-in for ProviderClient.

    replies is consumed in order; an Exception instance is raised instead of
    returned.
    """

    def __init__(self, replies=None, models=None):
        self.replies = list(replies or [])
        self.models = models
        self.prompts: List[str] = []
        self.configs = []

    async def complete_raw(self, prompt, config, max_tokens=8000):
        self.prompts.append(prompt)
        self.configs.append(config)
        if not self.replies:
            raise AIProviderError("no scripted reply")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def complete_json(self, prompt, config, max_tokens=8000):
        from stash.ai.providers import extract_json_object
        return extract_json_object(await self.complete_raw(prompt, config, max_tokens))

    async def list_models(self, provider, api_key):
        if self.models is None:
            return ModelListResult.failure("API error: 500", 500)
        return ModelListResult.success(self.models)

    async def validate_credential(self, provider, api_key):
        return await self.list_models(provider, api_key)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def kv():
    return InMemoryKeyValueStore()


@pytest.fixture
def store(kv, clock):
    return JobStore(kv, clock=clock)


@pytest.fixture
def controller(store):
    return JobLifecycleController(store)


@pytest.fixture
def saves():
    return FakeSavesRepository()


@pytest.fixture
def ai_client():
    return FakeAIClient()


@pytest.fixture
def catalog(kv, ai_client):
    return ModelCatalogCache(kv, lister=ai_client)


@pytest.fixture
def preferences(kv, catalog, ai_client):
    return AIPreferences(kv, catalog, TierResolver(catalog), ai_client)


@pytest.fixture
def processor_ctx(controller, saves, ai_client, preferences):
    return ProcessorContext(
        controller=controller,
        dispatcher=InProcessJobRunner(controller),
        saves=saves,
        ai_client=ai_client,
        preferences=preferences,
        notifications=NotificationCenter(),
    )
