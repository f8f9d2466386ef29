"""User AI settings: selected provider, tier, and per-provider API keys."""

import logging
from typing import Dict, Optional, Union

from stash.ai.catalog import ModelCatalogCache
from stash.ai.display import format_model_display_name
from stash.ai.providers import AIConfig, ProviderClient
from stash.ai.resolver import TierResolver
from stash.ai.tiers import DEFAULT_TIER, Provider, Tier, parse_provider, parse_tier
from stash.storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

PROVIDER_KEY = "stash-ai-provider"
TIER_KEY = "stash-ai-tier"


def api_key_key(provider: Provider) -> str:
    return f"stash-{provider.value}-api-key"


class AIPreferences:
    """Reads and writes AI settings; resolves the tier to a model per call."""

    def __init__(
        self,
        kv: KeyValueStore,
        catalog: ModelCatalogCache,
        resolver: TierResolver,
        client: ProviderClient,
    ):
        self._kv = kv
        self._catalog = catalog
        self._resolver = resolver
        self._client = client

    def _read(self, key: str) -> Optional[str]:
        result = self._kv.load(key)
        if not result.ok:
            logger.warning("Could not read %s: %s", key, result.error)
            return None
        return result.value

    @property
    def provider(self) -> Provider:
        try:
            return parse_provider(self._read(PROVIDER_KEY) or Provider.CLAUDE.value)
        except ValueError:
            return Provider.CLAUDE

    @property
    def tier(self) -> Tier:
        return parse_tier(self._read(TIER_KEY) or DEFAULT_TIER.value)

    def api_key(self, provider: Union[str, Provider]) -> str:
        return self._read(api_key_key(parse_provider(provider))) or ""

    def credentials(self) -> Dict[Provider, str]:
        keys = {p: self.api_key(p) for p in Provider}
        return {p: key for p, key in keys.items() if key}

    def save_settings(self, provider: Union[str, Provider], tier: Union[str, Tier, None]) -> None:
        self._kv.save(PROVIDER_KEY, parse_provider(provider).value)
        self._kv.save(TIER_KEY, parse_tier(tier).value)

    def ai_config(self) -> AIConfig:
        """Current settings with the tier resolved against the catalog right now."""
        provider = self.provider
        tier = self.tier
        return AIConfig(
            provider=provider,
            api_key=self.api_key(provider),
            model=self._resolver.resolve(provider, tier),
            tier=tier,
        )

    def resolved_model_name(self, provider: Union[str, Provider], tier: Union[str, Tier, None]) -> str:
        provider = parse_provider(provider)
        return format_model_display_name(self._resolver.resolve(provider, tier), provider)

    async def save_credential(self, provider: Union[str, Provider], api_key: str) -> None:
        """Validate a key with the provider, store it, and refresh that catalog.

        Raises CredentialValidationError if the key is rejected.
        """
        provider = parse_provider(provider)
        api_key = (api_key or "").strip()
        await self._client.validate_credential(provider, api_key)
        self._kv.save(api_key_key(provider), api_key)
        await self._catalog.refresh(provider, api_key)

    def reset_credential(self, provider: Union[str, Provider]) -> None:
        """Forget the key and its cached catalog; resolution falls back to defaults."""
        provider = parse_provider(provider)
        self._kv.delete(api_key_key(provider))
        self._catalog.clear(provider)
