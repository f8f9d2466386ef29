"""HTTP client for the Claude and OpenAI APIs: model listing and completions."""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

import httpx

from stash.ai.catalog import ModelListResult
from stash.ai.tiers import Provider, Tier, parse_provider

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MAX_TOKENS = 8000

_KEY_PREFIXES = {
    Provider.CLAUDE: "sk-ant-",
    Provider.OPENAI: "sk-",
}

_OPENAI_CHAT_MARKERS = ("gpt-4", "gpt-5", "gpt-3.5")
_OPENAI_REASONING_PREFIXES = ("o1", "o3")
_OPENAI_NON_CHAT = ("instruct", "vision", "audio", "realtime", "embed")


class AIProviderError(Exception):
    """A provider call returned a non-success response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MissingCredentialError(Exception):
    """No API key is configured for the selected provider."""

    def __init__(self, message: str = "No API key configured. Please add your API key in AI Settings."):
        super().__init__(message)


class CredentialValidationError(Exception):
    """A credential failed format checks or was rejected by the provider."""


@dataclass(frozen=True)
class AIConfig:
    """Provider settings for one call, with the tier already resolved to a model."""
    provider: Provider
    api_key: str
    model: str
    tier: Tier

    @property
    def has_key(self) -> bool:
        return bool(self.api_key)


def _is_openai_chat_model(model_id: str) -> bool:
    model_id = model_id.lower()
    is_chat = any(m in model_id for m in _OPENAI_CHAT_MARKERS) or model_id.startswith(
        _OPENAI_REASONING_PREFIXES
    )
    return is_chat and not any(x in model_id for x in _OPENAI_NON_CHAT)


def filter_model_ids(provider: Provider, entries: List[Dict[str, Any]]) -> List[str]:
    """Keep only chat-capable model ids from a provider's /v1/models payload."""
    ids = []
    for entry in entries:
        model_id = entry.get("id")
        if not isinstance(model_id, str):
            continue
        if provider == Provider.CLAUDE:
            if entry.get("type") == "model" and "claude" in model_id:
                ids.append(model_id)
        elif _is_openai_chat_model(model_id):
            ids.append(model_id)
    return ids


def extract_json_object(text: str) -> Dict[str, Any]:
    """Parse the first {...} block of a completion, else wrap the raw text."""
    match = re.search(r"\{[\s\S]*\}", text)
    if match:
        return json.loads(match.group(0))
    return {"content": text, "keyPoints": None}


def extract_json_array(text: str) -> Optional[List[Any]]:
    match = re.search(r"\[[\s\S]*\]", text)
    if not match:
        return None
    value = json.loads(match.group(0))
    return value if isinstance(value, list) else None


class ProviderClient:
    """Async client for both providers.

    Pass an httpx.AsyncClient to share connections (or to inject a mock
    transport in tests); otherwise a short-lived client is opened per call.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        claude_api_base: str = "https://api.anthropic.com",
        openai_api_base: str = "https://api.openai.com",
        timeout: float = 30.0,
    ):
        self._client = client
        self._bases = {
            Provider.CLAUDE: claude_api_base.rstrip("/"),
            Provider.OPENAI: openai_api_base.rstrip("/"),
        }
        self._timeout = timeout

    def _headers(self, provider: Provider, api_key: str) -> Dict[str, str]:
        if provider == Provider.CLAUDE:
            return {
                "x-api-key": api_key,
                "anthropic-version": ANTHROPIC_VERSION,
                "content-type": "application/json",
            }
        return {
            "Authorization": f"Bearer {api_key}",
            "content-type": "application/json",
        }

    async def _request(
        self, method: str, provider: Provider, path: str, api_key: str, body: Optional[dict] = None
    ) -> httpx.Response:
        url = f"{self._bases[provider]}{path}"
        headers = self._headers(provider, api_key)
        if self._client is not None:
            return await self._client.request(method, url, headers=headers, json=body, timeout=self._timeout)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.request(method, url, headers=headers, json=body)

    async def list_models(self, provider: Union[str, Provider], api_key: str) -> ModelListResult:
        """Fetch the provider's chat model ids. Never raises."""
        provider = parse_provider(provider)
        try:
            response = await self._request("GET", provider, "/v1/models", api_key)
        except httpx.HTTPError as e:
            return ModelListResult.failure(f"{type(e).__name__}: {e}")

        if not response.is_success:
            return ModelListResult.failure(f"API error: {response.status_code}", response.status_code)

        try:
            entries = response.json().get("data") or []
        except (ValueError, AttributeError):
            return ModelListResult.failure("Malformed model list response", response.status_code)
        return ModelListResult.success(filter_model_ids(provider, entries))

    async def validate_credential(self, provider: Union[str, Provider], api_key: str) -> ModelListResult:
        """Check key format, then prove it works by listing models.

        Raises CredentialValidationError with a user-facing message on failure.
        """
        provider = parse_provider(provider)
        api_key = (api_key or "").strip()
        if not api_key:
            raise CredentialValidationError("Please enter an API key")
        prefix = _KEY_PREFIXES[provider]
        if not api_key.startswith(prefix):
            name = "Claude" if provider == Provider.CLAUDE else "OpenAI"
            raise CredentialValidationError(f"Invalid key format. {name} keys start with {prefix}")

        result = await self.list_models(provider, api_key)
        if not result.ok:
            if result.status_code == 401:
                raise CredentialValidationError("Invalid API key")
            raise CredentialValidationError(result.error or "Validation failed")
        return result

    async def complete_raw(self, prompt: str, config: AIConfig, max_tokens: int = DEFAULT_MAX_TOKENS) -> str:
        """Send one user prompt and return the text of the reply."""
        if not config.has_key:
            raise MissingCredentialError()

        if config.provider == Provider.CLAUDE:
            path = "/v1/messages"
        else:
            path = "/v1/chat/completions"
        body = {
            "model": config.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }

        try:
            response = await self._request("POST", config.provider, path, config.api_key, body)
        except httpx.HTTPError as e:
            raise AIProviderError(f"{config.provider.value} request failed: {e}") from e

        if not response.is_success:
            name = "Claude" if config.provider == Provider.CLAUDE else "OpenAI"
            raise AIProviderError(
                f"{name} API error: {response.status_code} - {response.text}", response.status_code
            )

        data = response.json()
        if config.provider == Provider.CLAUDE:
            return data["content"][0]["text"]
        return data["choices"][0]["message"]["content"]

    async def complete_json(self, prompt: str, config: AIConfig, max_tokens: int = DEFAULT_MAX_TOKENS) -> Dict[str, Any]:
        return extract_json_object(await self.complete_raw(prompt, config, max_tokens))
