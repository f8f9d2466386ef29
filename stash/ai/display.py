"""Human-readable names for model ids and tiers."""

from typing import Union

from stash.ai.tiers import TIER_INFO, Provider, Tier, parse_tier

_CLAUDE_NAMES = (
    (("opus-4", "opus4"), "Claude Opus 4"),
    (("sonnet-4", "sonnet4"), "Claude Sonnet 4"),
    (("3-7-sonnet", "3.7-sonnet"), "Claude 3.7 Sonnet"),
    (("3-5-sonnet", "3.5-sonnet"), "Claude 3.5 Sonnet"),
    (("3-5-haiku", "3.5-haiku"), "Claude 3.5 Haiku"),
    (("opus",), "Claude Opus"),
    (("sonnet",), "Claude Sonnet"),
    (("haiku",), "Claude Haiku"),
)

_OPENAI_EXACT = {
    "o1": "o1",
    "o1-mini": "o1 Mini",
    "o3": "o3",
    "o3-mini": "o3 Mini",
    "gpt-4o": "GPT-4o",
    "gpt-4o-mini": "GPT-4o Mini",
}


def _openai_name(model_id: str) -> str:
    if model_id in _OPENAI_EXACT:
        return _OPENAI_EXACT[model_id]
    mini = "mini" in model_id
    if "gpt-5" in model_id and not mini:
        return "GPT-5"
    if "gpt-5-mini" in model_id:
        return "GPT-5 Mini"
    if "gpt-4.1" in model_id and not mini:
        return "GPT-4.1"
    if "gpt-4.1-mini" in model_id:
        return "GPT-4.1 Mini"
    if "gpt-4-turbo" in model_id:
        return "GPT-4 Turbo"
    if "gpt-4" in model_id:
        return "GPT-4"
    if "gpt-3.5" in model_id:
        return "GPT-3.5 Turbo"
    return model_id


def format_model_display_name(model_id: str, provider: Union[str, Provider]) -> str:
    if not model_id:
        return "Unknown"
    if provider == Provider.CLAUDE:
        for needles, name in _CLAUDE_NAMES:
            if any(n in model_id for n in needles):
                return name
        return model_id
    if provider == Provider.OPENAI:
        return _openai_name(model_id)
    return model_id


def tier_display_name(tier: Union[str, Tier, None]) -> str:
    return TIER_INFO[parse_tier(tier)].name
