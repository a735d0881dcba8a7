"""
Model metadata resolution.

The compaction pipeline needs the model's context window as its token
limit. Anthropic and OpenAI models come from static tables; Ollama and
other OpenAI-compatible servers are asked directly via /api/show.
"""

import re
from dataclasses import dataclass, replace
from typing import Any

import httpx
import structlog

from ..cache import TTLCache

logger = structlog.get_logger()

DEFAULT_CONTEXT_WINDOW = 200_000
DEFAULT_FAMILY = "unknown"
DEFAULT_CACHE_TTL_SECONDS = 3600.0
OLLAMA_SHOW_TIMEOUT = 3.0


@dataclass(frozen=True)
class ModelMeta:
    """Resolved metadata about a model."""

    name: str
    family: str
    context_window: int


class OllamaModelResolver:
    """Resolve model metadata from an Ollama-compatible /api/show endpoint."""

    def __init__(
        self,
        cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._cache: TTLCache[ModelMeta] = TTLCache(cache_ttl_seconds)
        self._transport = transport

    async def resolve(self, model: str, endpoint: str) -> ModelMeta | None:
        return await self._cache.get_or_load(
            f"{endpoint}::{model}",
            lambda: self._fetch(model, endpoint),
        )

    async def _fetch(self, model: str, endpoint: str) -> ModelMeta | None:
        base = re.sub(r"/v1/?$", "", endpoint.rstrip("/"))

        try:
            async with httpx.AsyncClient(
                timeout=OLLAMA_SHOW_TIMEOUT,
                transport=self._transport,
            ) as client:
                response = await client.post(f"{base}/api/show", json={"name": model})
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Model metadata lookup failed", model=model, endpoint=base, error=str(e))
            return None

        model_info: dict[str, Any] | None = data.get("model_info") if isinstance(data, dict) else None
        if not model_info:
            return None

        family = model_info.get("general.architecture") or DEFAULT_FAMILY
        context_window = DEFAULT_CONTEXT_WINDOW
        for key, value in model_info.items():
            if key.endswith(".context_length") and isinstance(value, int):
                context_window = value
                break

        return ModelMeta(name=model, family=family, context_window=context_window)


class AnthropicModelResolver:
    """Static lookup for Anthropic models."""

    MODELS: dict[str, ModelMeta] = {
        # Claude 4
        "claude-opus-4-20250514": ModelMeta("claude-opus-4-20250514", "claude-4", 200_000),
        "claude-sonnet-4-20250514": ModelMeta("claude-sonnet-4-20250514", "claude-4", 200_000),
        # Claude 3.5
        "claude-3-5-sonnet-20241022": ModelMeta("claude-3-5-sonnet-20241022", "claude-3.5", 200_000),
        "claude-3-5-sonnet-20240620": ModelMeta("claude-3-5-sonnet-20240620", "claude-3.5", 200_000),
        "claude-3-5-haiku-20241022": ModelMeta("claude-3-5-haiku-20241022", "claude-3.5", 200_000),
        # Claude 3
        "claude-3-opus-20240229": ModelMeta("claude-3-opus-20240229", "claude-3", 200_000),
        "claude-3-sonnet-20240229": ModelMeta("claude-3-sonnet-20240229", "claude-3", 200_000),
        "claude-3-haiku-20240307": ModelMeta("claude-3-haiku-20240307", "claude-3", 200_000),
    }

    def resolve(self, model: str) -> ModelMeta | None:
        if model in self.MODELS:
            return self.MODELS[model]
        for key, meta in self.MODELS.items():
            if model.startswith(key):
                return replace(meta, name=model)
        if model.startswith("claude-"):
            return ModelMeta(name=model, family="claude", context_window=200_000)
        return None


class OpenAIModelResolver:
    """Static lookup for OpenAI models."""

    MODELS: dict[str, ModelMeta] = {
        "gpt-4o": ModelMeta("gpt-4o", "gpt-4o", 128_000),
        "gpt-4o-mini": ModelMeta("gpt-4o-mini", "gpt-4o", 128_000),
        "gpt-4-turbo": ModelMeta("gpt-4-turbo", "gpt-4", 128_000),
        "gpt-4": ModelMeta("gpt-4", "gpt-4", 8_192),
        "gpt-3.5-turbo": ModelMeta("gpt-3.5-turbo", "gpt-3.5", 16_385),
    }

    def resolve(self, model: str) -> ModelMeta | None:
        if model in self.MODELS:
            return self.MODELS[model]
        for key, meta in self.MODELS.items():
            if model.startswith(key):
                return replace(meta, name=model)
        return None


def normalize_bedrock_model(model: str) -> str:
    """Strip Bedrock's vendor prefix and version suffix from a model id."""
    return re.sub(r"-v\d+:\d+$", "", re.sub(r"^anthropic\.", "", model))


class ModelResolver:
    """Resolve model metadata for any provider type.

    - ollama / openai-compatible: query the server, then static tables
    - anthropic: static lookup
    - bedrock: resolved as Anthropic after stripping the Bedrock id format
    - unknown: generous defaults
    """

    def __init__(self, ollama: OllamaModelResolver | None = None):
        self.ollama = ollama or OllamaModelResolver()
        self.anthropic = AnthropicModelResolver()
        self.openai = OpenAIModelResolver()

    async def resolve(
        self,
        model: str,
        provider_type: str | None = None,
        endpoint: str | None = None,
    ) -> ModelMeta:
        if provider_type in ("ollama", "openai-compatible") and endpoint:
            meta = await self.ollama.resolve(model, endpoint)
            if meta:
                return meta
        elif provider_type == "anthropic":
            meta = self.anthropic.resolve(model)
            if meta:
                return meta
        elif provider_type == "bedrock":
            meta = self.anthropic.resolve(normalize_bedrock_model(model))
            if meta:
                return replace(meta, name=model)

        meta = self.anthropic.resolve(model) or self.openai.resolve(model)
        if meta:
            return meta

        return ModelMeta(name=model, family=DEFAULT_FAMILY, context_window=DEFAULT_CONTEXT_WINDOW)

    async def resolve_context_window(
        self,
        model: str,
        provider_type: str | None = None,
        endpoint: str | None = None,
    ) -> int:
        meta = await self.resolve(model, provider_type, endpoint)
        return meta.context_window
