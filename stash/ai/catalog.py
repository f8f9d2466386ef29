"""Per-provider cache of available model ids, refreshed opportunistically.

Each provider's list lives under its own key in the KeyValueStore and is
replaced wholesale on every successful refresh. A failed refresh keeps
whatever was cached before.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Protocol, Sequence, Tuple, Union

from stash.ai.tiers import Provider, parse_provider
from stash.storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelListResult:
    """Outcome of asking a provider for its model list."""
    ok: bool
    models: Tuple[str, ...] = ()
    error: Optional[str] = None
    status_code: Optional[int] = None

    @classmethod
    def success(cls, models: Sequence[str]) -> "ModelListResult":
        return cls(ok=True, models=tuple(models))

    @classmethod
    def failure(cls, error: str, status_code: Optional[int] = None) -> "ModelListResult":
        return cls(ok=False, error=error, status_code=status_code)


class ModelLister(Protocol):
    async def list_models(self, provider: Provider, api_key: str) -> ModelListResult:
        ...


@dataclass(frozen=True)
class CatalogLookup:
    """What the cache holds for one provider. models is empty unless ok."""
    ok: bool
    models: Tuple[str, ...] = ()
    reason: Optional[str] = None


def cache_key(provider: Provider) -> str:
    return f"stash-{provider.value}-models-cache"


class ModelCatalogCache:
    """Process-wide model catalog; the refresh methods are its only writers."""

    def __init__(self, kv: KeyValueStore, lister: Optional[ModelLister] = None):
        self._kv = kv
        self._lister = lister
        self._background: Optional["asyncio.Task[Dict[Provider, bool]]"] = None

    def get(self, provider: Union[str, Provider]) -> CatalogLookup:
        provider = parse_provider(provider)
        result = self._kv.load(cache_key(provider))
        if not result.ok:
            return CatalogLookup(ok=False, reason=result.error)
        if result.value is None:
            return CatalogLookup(ok=False, reason="not cached")

        try:
            models = json.loads(result.value)
        except ValueError as e:
            logger.warning("Failed to parse cached %s models: %s", provider.value, e)
            return CatalogLookup(ok=False, reason="unparsable")

        if not isinstance(models, list) or not all(isinstance(m, str) for m in models):
            logger.warning("Cached %s models are not a list of ids", provider.value)
            return CatalogLookup(ok=False, reason="unparsable")
        if not models:
            return CatalogLookup(ok=False, reason="empty")
        return CatalogLookup(ok=True, models=tuple(models))

    def replace(self, provider: Union[str, Provider], models: Sequence[str]) -> bool:
        provider = parse_provider(provider)
        result = self._kv.save(cache_key(provider), json.dumps(list(models)))
        if not result.ok:
            logger.warning("Failed to store %s models: %s", provider.value, result.error)
        return result.ok

    def clear(self, provider: Union[str, Provider]) -> None:
        provider = parse_provider(provider)
        self._kv.delete(cache_key(provider))

    async def refresh(self, provider: Union[str, Provider], api_key: str) -> bool:
        """Fetch and store the provider's models. Returns False (cache untouched) on failure."""
        provider = parse_provider(provider)
        if self._lister is None or not api_key:
            return False

        try:
            result = await self._lister.list_models(provider, api_key)
        except Exception as e:
            result = ModelListResult.failure(f"{type(e).__name__}: {e}")

        if not result.ok:
            logger.warning("Model catalog refresh for %s failed: %s", provider.value, result.error)
            return False

        logger.info("Cached %d %s model(s)", len(result.models), provider.value)
        return self.replace(provider, result.models)

    async def refresh_all(self, credentials: Mapping[Provider, str]) -> Dict[Provider, bool]:
        """Refresh every provider that has a credential, concurrently."""
        providers = [p for p, key in credentials.items() if key]
        results = await asyncio.gather(*(self.refresh(p, credentials[p]) for p in providers))
        return dict(zip(providers, results))

    def start_background_refresh(
        self, credentials: Mapping[Provider, str]
    ) -> "asyncio.Task[Dict[Provider, bool]]":
        """Kick off the once-per-session refresh without waiting for it.

        Calling this again while (or after) the first refresh runs returns the
        same task.
        """
        if self._background is None:
            self._background = asyncio.get_running_loop().create_task(
                self.refresh_all(dict(credentials)), name="model-catalog-refresh"
            )
        return self._background

    @property
    def background_refresh(self) -> Optional["asyncio.Task[Dict[Provider, bool]]"]:
        return self._background
