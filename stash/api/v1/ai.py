"""AI settings API: tiers, tier resolution, preferences and credentials."""

from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from stash.ai.display import format_model_display_name
from stash.ai.providers import CredentialValidationError
from stash.ai.tiers import TIER_INFO, Provider, Tier, parse_provider, parse_tier

router = APIRouter()

# Set by main.py during lifespan (same pattern as jobs.py)
_resolver = None
_preferences = None


def set_resolver(resolver):
    global _resolver
    _resolver = resolver


def set_preferences(preferences):
    global _preferences
    _preferences = preferences


class PreferencesRequest(BaseModel):
    provider: str
    tier: Optional[str] = None


class CredentialRequest(BaseModel):
    api_key: str


def _provider_or_400(value: str) -> Provider:
    try:
        return parse_provider(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown provider '{value}'")


def _require(service, name: str):
    if service is None:
        raise HTTPException(status_code=503, detail=f"{name} not initialized")
    return service


@router.get("/ai/tiers")
async def list_tiers():
    """Every tier with the model it currently resolves to for each provider."""
    resolver = _require(_resolver, "Tier resolver")
    tiers = []
    for tier in Tier:
        models = {}
        for provider in Provider:
            model = resolver.resolve(provider, tier)
            models[provider.value] = {
                "model": model,
                "display_name": format_model_display_name(model, provider),
            }
        tiers.append({
            "id": tier.value,
            "name": TIER_INFO[tier].name,
            "description": TIER_INFO[tier].description,
            "models": models,
        })
    return {"tiers": tiers}


@router.get("/ai/resolve")
async def resolve_tier(provider: str, tier: Optional[str] = None):
    resolver = _require(_resolver, "Tier resolver")
    resolved_provider = _provider_or_400(provider)
    resolved_tier = parse_tier(tier)
    model = resolver.resolve(resolved_provider, resolved_tier)
    return {
        "provider": resolved_provider.value,
        "tier": resolved_tier.value,
        "model": model,
        "display_name": format_model_display_name(model, resolved_provider),
    }


@router.get("/ai/preferences")
async def get_preferences():
    preferences = _require(_preferences, "AI preferences")
    config = preferences.ai_config()
    keys = preferences.credentials()
    return {
        "provider": config.provider.value,
        "tier": config.tier.value,
        "model": config.model,
        "display_name": format_model_display_name(config.model, config.provider),
        "has_key": {p.value: p in keys for p in Provider},
    }


@router.put("/ai/preferences")
async def update_preferences(request: PreferencesRequest):
    preferences = _require(_preferences, "AI preferences")
    provider = _provider_or_400(request.provider)
    preferences.save_settings(provider, request.tier)
    tier = parse_tier(request.tier)
    return {
        "provider": provider.value,
        "tier": tier.value,
        "message": f"Settings saved! Using {provider.value} ({TIER_INFO[tier].name} tier).",
    }


@router.post("/ai/credentials/{provider}")
async def save_credential(provider: str, request: CredentialRequest):
    """Validate and store an API key; refreshes that provider's model catalog."""
    preferences = _require(_preferences, "AI preferences")
    resolved = _provider_or_400(provider)
    try:
        await preferences.save_credential(resolved, request.api_key)
    except CredentialValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "provider": resolved.value,
        "status": "validated",
        "resolved_model": preferences.resolved_model_name(resolved, preferences.tier),
    }


@router.delete("/ai/credentials/{provider}")
async def reset_credential(provider: str):
    preferences = _require(_preferences, "AI preferences")
    resolved = _provider_or_400(provider)
    preferences.reset_credential(resolved)
    return {"provider": resolved.value, "status": "empty"}
