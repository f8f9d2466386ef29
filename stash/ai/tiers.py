"""Capability tiers and the static tier x provider model table."""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Tuple, Union


class Tier(str, Enum):
    FAST = "fast"
    BALANCED = "balanced"
    QUALITY = "quality"


class Provider(str, Enum):
    CLAUDE = "claude"
    OPENAI = "openai"


DEFAULT_TIER = Tier.BALANCED


@dataclass(frozen=True)
class TierModelConfig:
    """How one tier maps onto one provider's model catalog."""
    patterns: Tuple[str, ...]
    default: str
    exclude: Tuple[str, ...] = ()


@dataclass(frozen=True)
class TierInfo:
    name: str
    description: str


TIER_INFO: Mapping[Tier, TierInfo] = MappingProxyType({
    Tier.FAST: TierInfo("Fast", "Quick responses, lower cost"),
    Tier.BALANCED: TierInfo("Balanced", "Best balance of speed and quality (recommended)"),
    Tier.QUALITY: TierInfo("Quality", "Best results, slower and more expensive"),
})


TIER_CONFIG: Mapping[Tier, Mapping[Provider, TierModelConfig]] = MappingProxyType({
    Tier.FAST: MappingProxyType({
        Provider.CLAUDE: TierModelConfig(
            patterns=("haiku",),
            default="claude-3-5-haiku-20241022",
        ),
        Provider.OPENAI: TierModelConfig(
            patterns=("mini",),
            default="gpt-4o-mini",
        ),
    }),
    Tier.BALANCED: MappingProxyType({
        Provider.CLAUDE: TierModelConfig(
            patterns=("sonnet",),
            default="claude-sonnet-4-20250514",
        ),
        Provider.OPENAI: TierModelConfig(
            patterns=("gpt-4o", "gpt-4.1", "gpt-5"),
            exclude=("mini", "nano"),
            default="gpt-4o",
        ),
    }),
    Tier.QUALITY: MappingProxyType({
        Provider.CLAUDE: TierModelConfig(
            patterns=("opus",),
            default="claude-opus-4-20250514",
        ),
        Provider.OPENAI: TierModelConfig(
            patterns=("o1", "o3"),
            exclude=("mini",),
            default="o1",
        ),
    }),
})


def _check_table_complete() -> None:
    for tier in Tier:
        missing = set(Provider) - set(TIER_CONFIG.get(tier, {}))
        if missing:
            raise RuntimeError(f"Tier {tier.value} has no config for {sorted(p.value for p in missing)}")


_check_table_complete()


def parse_tier(value: Union[str, Tier, None]) -> Tier:
    """Coerce a user-supplied tier, substituting the default for anything unknown."""
    if isinstance(value, Tier):
        return value
    try:
        return Tier(str(value).lower())
    except ValueError:
        return DEFAULT_TIER


def parse_provider(value: Union[str, Provider]) -> Provider:
    """Coerce a provider name. Unknown providers raise ValueError."""
    if isinstance(value, Provider):
        return value
    return Provider(str(value).lower())


def tier_config(provider: Union[str, Provider], tier: Union[str, Tier, None]) -> TierModelConfig:
    return TIER_CONFIG[parse_tier(tier)][parse_provider(provider)]
