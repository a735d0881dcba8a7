"""
Tests for the agent turn handler.
"""

import asyncio
import os
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from nexus_gateway.agent.core import Agent, ConversationContext, TurnInProgressError
from nexus_gateway.agent.prompt import build_api_messages
from nexus_gateway.agent.usage import ConversationUsage, TokenUsage
from nexus_gateway.compaction.types import WireMessage, WireToolCall
from nexus_gateway.config import Settings
from nexus_gateway.llm.base import LLMResponse, ToolCall
from nexus_gateway.tools import Tool, ToolParameter, ToolRegistry, ToolResult


def _settings(**overrides) -> Settings:
    with patch.dict(os.environ, {}, clear=True):
        return Settings(_env_file=None, **overrides)


def _mock_llm(*responses: LLMResponse) -> MagicMock:
    llm = MagicMock()
    llm.model = "claude-sonnet-4-20250514"
    llm.generate = AsyncMock(side_effect=list(responses))
    return llm


def _registry(output: str = "result") -> ToolRegistry:
    registry = ToolRegistry()

    async def fetch(url: str) -> ToolResult:
        return ToolResult(success=True, output=output)

    async def broken() -> ToolResult:
        raise RuntimeError("disk on fire")

    registry.register(Tool(
        name="fetch",
        description="Fetch a URL",
        parameters=[ToolParameter(name="url", param_type="string", description="URL")],
        handler=fetch,
    ))
    registry.register(Tool(name="broken", description="Always fails", parameters=[], handler=broken))
    return registry


def _long_conversation() -> list[WireMessage]:
    """Five user turns; the first has a large tool result."""
    messages = [
        WireMessage(role="user", content="fetch the docs"),
        WireMessage(role="assistant", content="Fetched", tool_calls=[
            WireToolCall(id="old", name="fetch", args={"url": "a"}, result="d" * 40_000),
        ]),
    ]
    for i in range(4):
        messages.append(WireMessage(role="user", content=f"question {i}"))
        messages.append(WireMessage(role="assistant", content=f"answer {i}"))
    messages.append(WireMessage(role="user", content="last question"))
    return messages


def test_build_api_messages():
    """Test conversion of wire messages to the provider buffer."""
    messages = [
        WireMessage(role="user", content="hi"),
        WireMessage(role="assistant", content="checking", tool_calls=[
            WireToolCall(id="t1", name="fetch", args={"url": "x"}, result="page"),
            WireToolCall(id="t2", name="fetch", args={"url": "y"}, result="oops", is_error=True),
            WireToolCall(id="t3", name="fetch", args={"url": "z"}),
        ]),
        WireMessage(role="assistant", content=""),
    ]

    api = build_api_messages(messages)

    assert api[0] == {"role": "user", "content": "<user_message>\nhi\n</user_message>"}
    assert api[1]["role"] == "assistant"
    assert api[1]["content"][0] == {"type": "text", "text": "checking"}
    assert [b["id"] for b in api[1]["content"][1:]] == ["t1", "t2", "t3"]
    assert api[2]["role"] == "user"
    assert api[2]["content"] == [
        {"type": "tool_result", "tool_use_id": "t1", "content": "page", "is_error": False},
        {"type": "tool_result", "tool_use_id": "t2", "content": "oops", "is_error": True},
    ]
    assert len(api) == 3


def test_conversation_usage_record():
    """Test cumulative usage accounting."""
    usage = ConversationUsage()
    usage.record(1000, 200, 0.01, 200_000)
    usage.record(3000, 100, 0.02, 200_000)

    assert usage.total_input_tokens == 4000
    assert usage.total_output_tokens == 300
    assert usage.total_cost == pytest.approx(0.03)
    assert usage.context_tokens == 3000
    assert usage.context_ratio == pytest.approx(0.015)


@pytest.mark.asyncio
async def test_run_turn_simple_response():
    """Test a turn without tool calls."""
    llm = _mock_llm(LLMResponse(content="Hello!", input_tokens=10, output_tokens=5))
    agent = Agent(llm=llm, tool_registry=ToolRegistry(), settings=_settings())
    context = agent.new_context("conv-1")

    result = await agent.run_turn(context, [WireMessage(role="user", content="Hi")])

    assert result.content == "Hello!"
    assert result.stop_reason == "end_turn"
    assert result.rounds == 1
    assert result.report.entries == []
    assert context.last_token_usage.input_tokens == 10
    assert context.usage.total_output_tokens == 5
    assert context.usage.context_window == 200_000
    assert context.usage.total_cost > 0

    kwargs = llm.generate.await_args.kwargs
    assert kwargs["tools"] is None
    assert kwargs["model"] == "claude-sonnet-4-20250514"
    assert context.system_prompt in kwargs["system_prompt"]
    assert "<message_boundary_policy>" in kwargs["system_prompt"]


@pytest.mark.asyncio
async def test_run_turn_executes_tools():
    """Test tool rounds append tool_use and tool_result messages."""
    llm = _mock_llm(
        LLMResponse(
            content="Let me look",
            tool_calls=[
                ToolCall(id="t1", name="fetch", arguments={"url": "x"}),
                ToolCall(id="t2", name="broken", arguments={}),
            ],
        ),
        LLMResponse(content="Done"),
    )
    agent = Agent(llm=llm, tool_registry=_registry("page body"), settings=_settings())

    result = await agent.run_turn(agent.new_context("conv-1"), [WireMessage(role="user", content="go")])

    assert result.content == "Let me look\n\nDone"
    assert result.rounds == 2
    assert [(tc.id, tc.result, tc.is_error) for tc in result.tool_calls] == [
        ("t1", "page body", False),
        ("t2", "Error: disk on fire", True),
    ]

    buffer = llm.generate.await_args_list[1].kwargs["messages"]
    assert buffer[-2]["role"] == "assistant"
    assert [b["type"] for b in buffer[-2]["content"]] == ["text", "tool_use", "tool_use"]
    assert buffer[-1]["content"][1]["is_error"] is True


@pytest.mark.asyncio
async def test_run_turn_compacts_when_over_threshold():
    """Test that a large old tool result is pruned before the model call."""
    llm = _mock_llm(LLMResponse(content="ok"))
    agent = Agent(llm=llm, tool_registry=ToolRegistry(), settings=_settings())
    context = agent.new_context("conv-1")
    context.last_token_usage = TokenUsage(input_tokens=150_000, output_tokens=100)
    messages = _long_conversation()

    result = await agent.run_turn(context, messages)

    assert result.report.passes_run == ["tool-response-pruner"]
    assert result.report.entries[0].tool_call_id == "old"
    assert context.compaction_count == 1

    sent = llm.generate.await_args.kwargs["messages"]
    assert "40000 chars" in sent[2]["content"][0]["content"]
    # The caller's messages are never rewritten
    assert messages[1].tool_calls[0].result == "d" * 40_000


@pytest.mark.asyncio
async def test_run_turn_compaction_disabled():
    """Test that compaction can be switched off."""
    llm = _mock_llm(LLMResponse(content="ok"))
    agent = Agent(llm=llm, tool_registry=ToolRegistry(), settings=_settings(compaction_enabled=False))
    context = agent.new_context("conv-1")
    context.last_token_usage = TokenUsage(input_tokens=190_000, output_tokens=100)

    result = await agent.run_turn(context, _long_conversation())

    assert result.report.entries == []
    assert context.compaction_count == 0


@pytest.mark.asyncio
async def test_run_turn_truncates_between_rounds():
    """Test old tool results in the working buffer are trimmed between rounds."""
    responses = [
        LLMResponse(content="", tool_calls=[ToolCall(id=f"t{i}", name="fetch", arguments={"url": str(i)})])
        for i in range(3)
    ]
    responses.append(LLMResponse(content="finished"))
    llm = _mock_llm(*responses)
    agent = Agent(
        llm=llm,
        tool_registry=_registry("p" * 1000),
        settings=_settings(inter_round_keep_results=1),
    )

    result = await agent.run_turn(agent.new_context("conv-1"), [WireMessage(role="user", content="go")])

    assert result.stop_reason == "end_turn"
    buffer = llm.generate.await_args_list[-1].kwargs["messages"]
    results = [
        block["content"]
        for msg in buffer if isinstance(msg["content"], list)
        for block in msg["content"] if block["type"] == "tool_result"
    ]
    assert results[0] == "[Tool result truncated: 1000 chars]"
    assert results[1] == "[Tool result truncated: 1000 chars]"
    assert results[2] == "p" * 1000
    # Results reported to the caller are the full ones
    assert all(tc.result == "p" * 1000 for tc in result.tool_calls)


@pytest.mark.asyncio
async def test_run_turn_stops_at_max_rounds():
    """Test the tool loop is bounded."""
    llm = MagicMock()
    llm.model = "claude-sonnet-4-20250514"
    llm.generate = AsyncMock(return_value=LLMResponse(
        content="again",
        tool_calls=[ToolCall(id="t", name="fetch", arguments={"url": "x"})],
    ))
    agent = Agent(llm=llm, tool_registry=_registry(), settings=_settings(max_tool_rounds=3))

    result = await agent.run_turn(agent.new_context("conv-1"), [WireMessage(role="user", content="loop")])

    assert result.stop_reason == "max_rounds"
    assert result.rounds == 3
    assert llm.generate.await_count == 3


@pytest.mark.asyncio
async def test_run_turn_handles_llm_error():
    """Test model errors end the turn with an error result."""
    llm = MagicMock()
    llm.model = "claude-sonnet-4-20250514"
    llm.generate = AsyncMock(side_effect=Exception("API Error"))
    agent = Agent(llm=llm, tool_registry=ToolRegistry(), settings=_settings())

    result = await agent.run_turn(agent.new_context("conv-1"), [WireMessage(role="user", content="Hi")])

    assert result.stop_reason == "error"
    assert result.error == "API Error"


@pytest.mark.asyncio
async def test_concurrent_turn_rejected():
    """Test a second turn on the same conversation is refused while one runs."""
    started = asyncio.Event()
    release = asyncio.Event()

    async def slow_generate(**kwargs):
        started.set()
        await release.wait()
        return LLMResponse(content="done")

    llm = MagicMock()
    llm.model = "claude-sonnet-4-20250514"
    llm.generate = slow_generate
    agent = Agent(llm=llm, tool_registry=ToolRegistry(), settings=_settings())
    context = agent.new_context("conv-1")
    messages = [WireMessage(role="user", content="Hi")]

    first = asyncio.create_task(agent.run_turn(context, messages))
    await started.wait()

    with pytest.raises(TurnInProgressError):
        await agent.run_turn(context, messages)

    # Other conversations are unaffected
    other = asyncio.create_task(agent.run_turn(agent.new_context("conv-2"), messages))
    release.set()

    assert (await first).content == "done"
    assert (await other).content == "done"

    # The guard is released after the turn
    assert (await agent.run_turn(context, messages)).stop_reason == "end_turn"


@pytest.mark.asyncio
async def test_run_turn_uses_context_model_throughout():
    """Test the conversation's model drives the window lookup, the call and the cost."""
    llm = _mock_llm(LLMResponse(content="ok", input_tokens=1_000_000, output_tokens=0))
    resolver = MagicMock()
    resolver.resolve_context_window = AsyncMock(return_value=100_000)
    agent = Agent(llm=llm, tool_registry=ToolRegistry(), settings=_settings(), model_resolver=resolver)
    context = agent.new_context("conv-1")
    context.model = "claude-3-5-haiku-20241022"

    await agent.run_turn(context, [WireMessage(role="user", content="Hi")])

    assert resolver.resolve_context_window.await_args.args[0] == "claude-3-5-haiku-20241022"
    assert llm.generate.await_args.kwargs["model"] == "claude-3-5-haiku-20241022"
    assert context.usage.total_cost == pytest.approx(0.80)
    assert context.usage.context_window == 100_000


@pytest.mark.asyncio
async def test_system_prompt_describes_turn():
    """Test the system prompt carries the boundary policy, usage and tools."""
    llm = _mock_llm(LLMResponse(content="ok"))
    agent = Agent(llm=llm, tool_registry=_registry(), settings=_settings(system_prompt="Be terse."))
    context = agent.new_context("conv-1")
    context.last_token_usage = TokenUsage(input_tokens=50_000, output_tokens=10)

    await agent.run_turn(context, [WireMessage(role="user", content="a" * 36)])

    system_prompt = llm.generate.await_args.kwargs["system_prompt"]
    assert system_prompt.startswith("<message_boundary_policy>")
    assert "Be terse." in system_prompt
    assert "Messages in history: 1" in system_prompt
    assert "Token usage: 50,009/200,000 (25%)" in system_prompt
    assert "- **fetch**" in system_prompt
    assert "Current date and time:" in system_prompt
