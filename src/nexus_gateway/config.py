"""
Configuration management for Nexus Gateway

Uses pydantic-settings for environment variable parsing and validation.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ProviderType = Literal["anthropic", "ollama", "openai-compatible", "bedrock"]

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant with access to tools from the Nexus platform."


class LLMConfig(BaseSettings):
    """Configuration for a single LLM provider."""

    model_config = SettingsConfigDict(extra="ignore")

    provider: ProviderType = "anthropic"
    model: str = "claude-sonnet-4-20250514"
    api_key: str = ""
    base_url: str | None = None
    aws_region: str | None = None
    max_tokens: int = 4096
    temperature: float = 0.7


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    # Application
    app_name: str = "Nexus-Gateway"
    debug: bool = False
    log_level: str = "INFO"

    # LLM provider
    default_provider: ProviderType = "anthropic"
    default_model: str = "claude-sonnet-4-20250514"
    anthropic_api_key: str = Field(default="", description="Anthropic API key for Claude")
    llm_endpoint: str = Field(default="http://localhost:11434", description="Ollama / compatible endpoint")
    llm_api_key: str = Field(default="", description="API key for an OpenAI-compatible endpoint")
    aws_region: str = Field(default="us-east-1", description="AWS region for Bedrock")
    max_tokens: int = 4096
    temperature: float = 0.7
    system_prompt: str = DEFAULT_SYSTEM_PROMPT

    # Agent loop
    max_tool_rounds: int = Field(default=10, description="Max model rounds per turn")

    # Compaction
    compaction_enabled: bool = True
    compaction_recent_window: int = Field(default=4, description="User turns protected from compaction")
    inter_round_keep_results: int = Field(default=6, description="Tool results kept intact between rounds")
    model_cache_ttl_seconds: float = Field(default=3600.0, description="TTL for model metadata lookups")

    @field_validator("compaction_recent_window", mode="before")
    @classmethod
    def clamp_recent_window(cls, v: int | str) -> int:
        return max(1, int(v))

    def get_llm_config(self, provider: str | None = None) -> LLMConfig:
        """Get LLM configuration for a provider."""
        provider = provider or self.default_provider

        api_key_map = {
            "anthropic": self.anthropic_api_key,
            "ollama": "ollama",
            "openai-compatible": self.llm_api_key or "no-key",
            "bedrock": "",
        }

        base_url_map = {
            "anthropic": None,
            "ollama": self.llm_endpoint,
            "openai-compatible": self.llm_endpoint,
            "bedrock": None,
        }

        return LLMConfig(
            provider=provider,  # type: ignore
            model=self.default_model,
            api_key=api_key_map.get(provider, ""),
            base_url=base_url_map.get(provider),
            aws_region=self.aws_region if provider == "bedrock" else None,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
