"""
Anthropic Messages API provider.

Also serves Ollama and other Anthropic-compatible endpoints through
``base_url``, and Bedrock through the Bedrock client.
"""

from typing import Any

import anthropic
import structlog

from .base import ApiMessage, BaseLLM, LLMResponse, ToolCall, ToolDefinition

logger = structlog.get_logger()


class AnthropicLLM(BaseLLM):
    """Anthropic Claude LLM provider."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        base_url: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
        client: Any = None,
    ):
        super().__init__(api_key, model, base_url, max_tokens, temperature)
        self.client = client or anthropic.AsyncAnthropic(
            api_key=api_key,
            base_url=base_url,
        )

    @classmethod
    def for_bedrock(
        cls,
        model: str,
        aws_region: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> "AnthropicLLM":
        """Create a provider backed by AWS Bedrock (credentials from the environment)."""
        return cls(
            api_key="",
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            client=anthropic.AsyncAnthropicBedrock(aws_region=aws_region),
        )

    @property
    def provider_name(self) -> str:
        return "anthropic"

    def _convert_tools(self, tools: list[ToolDefinition]) -> list[dict[str, Any]]:
        """Convert ToolDefinitions to Anthropic format."""
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "input_schema": tool.parameters,
            }
            for tool in tools
        ]

    async def generate(
        self,
        messages: list[ApiMessage],
        tools: list[ToolDefinition] | None = None,
        system_prompt: str | None = None,
        model: str | None = None,
    ) -> LLMResponse:
        """Generate a response from Claude."""
        kwargs: dict[str, Any] = {
            "model": model or self.model,
            "max_tokens": self.max_tokens,
            "messages": messages,
            "temperature": self.temperature,
        }

        if system_prompt:
            kwargs["system"] = system_prompt

        if tools:
            kwargs["tools"] = self._convert_tools(tools)

        try:
            response = await self.client.messages.create(**kwargs)
        except anthropic.APIError as e:
            logger.error("Anthropic API error", error=str(e))
            raise

        content = ""
        tool_calls = []

        for block in response.content:
            if block.type == "text":
                content += block.text
            elif block.type == "tool_use":
                tool_calls.append(ToolCall(
                    id=block.id,
                    name=block.name,
                    arguments=dict(block.input) if isinstance(block.input, dict) else {},
                ))

        return LLMResponse(
            content=content,
            tool_calls=tool_calls,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=response.model,
            stop_reason=response.stop_reason,
            raw_response=response,
        )
