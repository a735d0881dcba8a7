"""
Agent turn handler.

This is where compaction meets the model. For each turn it:
1. Estimates the prompt size against the model's context window
2. Runs the compaction pipeline over the incoming wire messages
3. Builds the system prompt and the provider prompt buffer from the compacted messages
4. Loops model rounds, executing server-side tools between them
5. Trims old tool results in the working buffer after every tool round

Compacted messages only ever shape the prompt. The caller's wire messages
and the stored conversation are never rewritten.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Literal

import structlog

from ..compaction import (
    CompactionContext,
    CompactionPipeline,
    CompactionReport,
    ModelResolver,
    OllamaModelResolver,
    WireMessage,
    WireToolCall,
    calculate_cost,
    create_default_pipeline,
    resolve_price,
    truncate_old_tool_results,
)
from ..compaction.budget import estimate_context_tokens
from ..config import Settings, get_settings
from ..llm import ApiMessage, BaseLLM, LLMResponse, create_llm
from ..tools import ToolRegistry, get_tool_registry
from .prompt import build_api_messages
from .system_prompt import build_system_prompt
from .usage import ConversationUsage, TokenUsage

logger = structlog.get_logger()


class TurnInProgressError(RuntimeError):
    """Raised when a conversation already has an active turn."""

    def __init__(self, conversation_id: str):
        super().__init__(f"Conversation {conversation_id} already has an active turn in progress")
        self.conversation_id = conversation_id


@dataclass
class ConversationContext:
    """Agent-owned state for a conversation, kept between turns."""

    conversation_id: str
    system_prompt: str = ""
    model: str = ""
    last_token_usage: TokenUsage | None = None
    usage: ConversationUsage = field(default_factory=ConversationUsage)
    compaction_count: int = 0  # Turns where compaction changed something


@dataclass
class TurnResult:
    """Outcome of a single agent turn."""

    content: str
    tool_calls: list[WireToolCall] = field(default_factory=list)
    report: CompactionReport = field(default_factory=CompactionReport)
    rounds: int = 0
    stop_reason: Literal["end_turn", "max_rounds", "error"] = "end_turn"
    error: str | None = None


class Agent:
    """Runs agent turns with compaction and a bounded tool loop."""

    def __init__(
        self,
        llm: BaseLLM | None = None,
        tool_registry: ToolRegistry | None = None,
        settings: Settings | None = None,
        pipeline: CompactionPipeline | None = None,
        model_resolver: ModelResolver | None = None,
    ):
        self.settings = settings or get_settings()
        self.llm = llm or create_llm(settings=self.settings)
        self.tool_registry = tool_registry or get_tool_registry()
        self.pipeline = pipeline or create_default_pipeline()
        self.model_resolver = model_resolver or ModelResolver(
            OllamaModelResolver(cache_ttl_seconds=self.settings.model_cache_ttl_seconds)
        )
        self.max_tool_rounds = self.settings.max_tool_rounds

        llm_config = self.settings.get_llm_config()
        self.provider_type = llm_config.provider
        self.endpoint = llm_config.base_url

        self._active_turns: set[str] = set()

    def new_context(self, conversation_id: str) -> ConversationContext:
        """Create fresh state for a conversation."""
        return ConversationContext(
            conversation_id=conversation_id,
            system_prompt=self.settings.system_prompt,
            model=self.llm.model,
        )

    async def run_turn(
        self,
        context: ConversationContext,
        wire_messages: list[WireMessage],
    ) -> TurnResult:
        """Run one turn over the active branch of a conversation."""
        conversation_id = context.conversation_id
        if conversation_id in self._active_turns:
            raise TurnInProgressError(conversation_id)
        self._active_turns.add(conversation_id)

        try:
            return await self._run_turn_inner(context, wire_messages)
        finally:
            self._active_turns.discard(conversation_id)

    def compact(
        self,
        context: ConversationContext,
        wire_messages: list[WireMessage],
        token_usage: int,
        context_window: int,
    ) -> tuple[list[WireMessage], CompactionReport]:
        """Run the compaction pipeline ahead of a model call."""
        if not self.settings.compaction_enabled:
            return wire_messages, CompactionReport()

        result = self.pipeline.run(wire_messages, CompactionContext(
            token_usage=token_usage,
            token_limit=context_window,
            recent_window_size=self.settings.compaction_recent_window,
        ))

        if result.report.entries:
            context.compaction_count += 1

        return result.messages, result.report

    async def _run_turn_inner(
        self,
        context: ConversationContext,
        wire_messages: list[WireMessage],
    ) -> TurnResult:
        model = context.model or self.llm.model
        context_window = await self.model_resolver.resolve_context_window(
            model,
            self.provider_type,
            self.endpoint,
        )

        last_input = context.last_token_usage.input_tokens if context.last_token_usage else 0
        token_usage = estimate_context_tokens(wire_messages, last_input)

        compacted, report = self.compact(context, wire_messages, token_usage, context_window)
        api_messages = build_api_messages(compacted)
        tools = self.tool_registry.get_definitions()
        system_prompt = build_system_prompt(
            context.system_prompt,
            message_count=len(wire_messages),
            token_usage=token_usage,
            token_limit=context_window,
            tool_names=[tool.name for tool in tools],
        )

        text_parts: list[str] = []
        executed: list[WireToolCall] = []
        round_number = 0
        stop_reason: Literal["end_turn", "max_rounds", "error"] = "max_rounds"

        while round_number < self.max_tool_rounds:
            round_number += 1
            logger.info("Calling LLM", conversation_id=context.conversation_id, round=round_number)

            try:
                response = await self.llm.generate(
                    messages=api_messages,
                    tools=tools if tools else None,
                    system_prompt=system_prompt,
                    model=model,
                )
            except Exception as e:
                logger.error("LLM generation error", round=round_number, error=str(e))
                return TurnResult(
                    content="\n\n".join(text_parts),
                    tool_calls=executed,
                    report=report,
                    rounds=round_number,
                    stop_reason="error",
                    error=str(e),
                )

            self._record_usage(context, response, model, context_window)

            if response.content:
                text_parts.append(response.content)

            if not response.tool_calls:
                stop_reason = "end_turn"
                break

            executed.extend(await self._execute_tools(response, api_messages))
            truncate_old_tool_results(api_messages, self.settings.inter_round_keep_results)

        if stop_reason == "max_rounds":
            logger.warning(
                "Reached max tool rounds",
                conversation_id=context.conversation_id,
                rounds=round_number,
            )

        return TurnResult(
            content="\n\n".join(text_parts),
            tool_calls=executed,
            report=report,
            rounds=round_number,
            stop_reason=stop_reason,
        )

    async def _execute_tools(
        self,
        response: LLMResponse,
        api_messages: list[ApiMessage],
    ) -> list[WireToolCall]:
        """Execute a round's tool calls and append them to the prompt buffer."""
        results = await asyncio.gather(*(
            self.tool_registry.execute(tc.name, tc.arguments)
            for tc in response.tool_calls
        ))

        assistant_blocks: list[dict[str, Any]] = []
        if response.content:
            assistant_blocks.append({"type": "text", "text": response.content})

        result_blocks: list[dict[str, Any]] = []
        executed: list[WireToolCall] = []

        for tc, result in zip(response.tool_calls, results):
            assistant_blocks.append({
                "type": "tool_use",
                "id": tc.id,
                "name": tc.name,
                "input": tc.arguments,
            })
            result_blocks.append({
                "type": "tool_result",
                "tool_use_id": tc.id,
                "content": result.content,
                "is_error": not result.success,
            })
            executed.append(WireToolCall(
                id=tc.id,
                name=tc.name,
                args=tc.arguments,
                result=result.content,
                is_error=not result.success,
            ))

        api_messages.append({"role": "assistant", "content": assistant_blocks})
        api_messages.append({"role": "user", "content": result_blocks})
        return executed

    def _record_usage(
        self,
        context: ConversationContext,
        response: LLMResponse,
        model: str,
        context_window: int,
    ) -> None:
        context.last_token_usage = TokenUsage(
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
        )
        cost = calculate_cost(response.input_tokens, response.output_tokens, resolve_price(model))
        context.usage.record(response.input_tokens, response.output_tokens, cost, context_window)
