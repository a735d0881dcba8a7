"""
LLM module for model provider access.

Providers:
- Anthropic Claude (native SDK)
- Ollama / OpenAI-compatible servers (Anthropic-compatible endpoint)
- AWS Bedrock (Anthropic Bedrock client)
"""

from .base import ApiMessage, BaseLLM, LLMResponse, ToolCall, ToolDefinition
from .anthropic import AnthropicLLM
from .factory import create_llm

__all__ = [
    "ApiMessage",
    "BaseLLM",
    "LLMResponse",
    "ToolCall",
    "ToolDefinition",
    "AnthropicLLM",
    "create_llm",
]
