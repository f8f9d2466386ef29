"""Resolve an abstract capability tier to a concrete provider model id."""

from typing import Mapping, Optional, Sequence, Union

from stash.ai.catalog import ModelCatalogCache
from stash.ai.scoring import ModelScorer, scorer_for
from stash.ai.tiers import (
    TIER_CONFIG,
    Provider,
    Tier,
    TierModelConfig,
    parse_provider,
    parse_tier,
)


def model_matches_tier(model_id: str, config: TierModelConfig) -> bool:
    """Case-insensitive: contains a tier pattern and none of its exclusions."""
    model_id = model_id.lower()
    if any(x.lower() in model_id for x in config.exclude):
        return False
    return any(p.lower() in model_id for p in config.patterns)


def resolve_model_for_tier(
    provider: Union[str, Provider],
    tier: Union[str, Tier, None],
    models: Optional[Sequence[str]],
    scorers: Optional[Mapping[Provider, ModelScorer]] = None,
    table: Mapping[Tier, Mapping[Provider, TierModelConfig]] = TIER_CONFIG,
) -> str:
    """Pick the best catalog model for (provider, tier), or the static default.

    Pure function of its arguments. Ties in score go to the lexicographically
    smallest id.
    """
    provider = parse_provider(provider)
    config = table[parse_tier(tier)][provider]

    candidates = [m for m in (models or ()) if isinstance(m, str) and model_matches_tier(m, config)]
    if not candidates:
        return config.default

    scorer = scorer_for(provider, scorers)
    return min(candidates, key=lambda m: (-scorer.score(m), m))


class TierResolver:
    """Resolves tiers against the live model catalog cache."""

    def __init__(
        self,
        catalog: ModelCatalogCache,
        scorers: Optional[Mapping[Provider, ModelScorer]] = None,
    ):
        self._catalog = catalog
        self._scorers = scorers

    def resolve(self, provider: Union[str, Provider], tier: Union[str, Tier, None]) -> str:
        provider = parse_provider(provider)
        lookup = self._catalog.get(provider)
        return resolve_model_for_tier(provider, tier, lookup.models, self._scorers)
