"""
LLM factory for creating provider instances.

Every provider type speaks the Anthropic Messages API: Ollama and
OpenAI-compatible servers are reached through their Anthropic-compatible
endpoint, Bedrock through the Bedrock client.
"""

from ..config import LLMConfig, Settings
from .base import BaseLLM
from .anthropic import AnthropicLLM


def create_llm(config: LLMConfig | None = None, settings: Settings | None = None) -> BaseLLM:
    """Create an LLM instance based on configuration.

    Provider routing:
    - anthropic -> AnthropicLLM (native Anthropic SDK)
    - ollama -> AnthropicLLM pointed at the Ollama endpoint
    - openai-compatible -> AnthropicLLM pointed at the configured endpoint
    - bedrock -> AnthropicLLM with the Bedrock client
    """
    if config is None:
        if settings is None:
            from ..config import get_settings
            settings = get_settings()
        config = settings.get_llm_config()

    provider = config.provider

    if provider in ("anthropic", "ollama", "openai-compatible"):
        if provider != "anthropic" and not config.base_url:
            raise ValueError(f"Provider '{provider}' requires an endpoint")
        return AnthropicLLM(
            api_key=config.api_key,
            model=config.model,
            base_url=config.base_url,
            max_tokens=config.max_tokens,
            temperature=config.temperature,
        )
    elif provider == "bedrock":
        return AnthropicLLM.for_bedrock(
            model=config.model,
            aws_region=config.aws_region,
            max_tokens=config.max_tokens,
            temperature=config.temperature,
        )
    else:
        raise ValueError(f"Unknown LLM provider: {provider}")
