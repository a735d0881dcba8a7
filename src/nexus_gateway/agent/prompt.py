"""
Conversion from wire messages to the provider prompt buffer.
"""

from typing import Any

from ..compaction.types import WireMessage
from ..llm.base import ApiMessage


def build_api_messages(wire_messages: list[WireMessage]) -> list[ApiMessage]:
    """Translate the active branch into Anthropic Messages format.

    Completed tool results are sent back as a user message of tool_result
    blocks directly after the assistant message that requested them.
    """
    result: list[ApiMessage] = []

    for msg in wire_messages:
        if msg.role == "user":
            result.append({
                "role": "user",
                "content": f"<user_message>\n{msg.content or ''}\n</user_message>",
            })
            continue

        blocks: list[dict[str, Any]] = []
        if msg.content:
            blocks.append({"type": "text", "text": msg.content})
        for tc in msg.tool_calls:
            blocks.append({
                "type": "tool_use",
                "id": tc.id,
                "name": tc.name,
                "input": tc.args,
            })
        if blocks:
            result.append({"role": "assistant", "content": blocks})

        tool_results = [
            {
                "type": "tool_result",
                "tool_use_id": tc.id,
                "content": tc.result,
                "is_error": tc.is_error,
            }
            for tc in msg.tool_calls
            if tc.result is not None
        ]
        if tool_results:
            result.append({"role": "user", "content": tool_results})

    return result
