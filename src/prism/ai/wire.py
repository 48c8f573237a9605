"""Conversion between conversation types and the OpenAI chat wire schema."""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, List, Mapping, Sequence, cast

from openai.types.chat import ChatCompletionMessageParam, ChatCompletionToolParam

from .ai_types import Message, Role, Tool, ToolCall, ToolResult

LOGGER = logging.getLogger(__name__)

__all__ = [
    "encode_message",
    "encode_messages",
    "encode_tools",
    "decode_message",
    "decode_messages",
    "build_request_payload",
]


def encode_message(message: Message) -> ChatCompletionMessageParam:
    """Render a single message in the provider's wire schema."""

    if message.role is Role.TOOL and message.tool_result is not None:
        result = message.tool_result
        return cast(
            ChatCompletionMessageParam,
            {
                "role": "tool",
                "content": json.dumps(result.data, ensure_ascii=False),
                "tool_call_id": result.id,
            },
        )
    if message.role is Role.ASSISTANT and message.tool_calls:
        return cast(
            ChatCompletionMessageParam,
            {
                "role": "assistant",
                "content": message.content or None,
                "tool_calls": [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {"name": call.name, "arguments": call.arguments},
                    }
                    for call in message.tool_calls
                ],
            },
        )
    return cast(ChatCompletionMessageParam, {"role": message.role.value, "content": message.content})


def encode_messages(messages: Iterable[Message]) -> List[ChatCompletionMessageParam]:
    return [encode_message(message) for message in messages]


def encode_tools(tools: Iterable[Tool]) -> List[ChatCompletionToolParam]:
    return [
        cast(
            ChatCompletionToolParam,
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": dict(tool.parameters),
                },
            },
        )
        for tool in tools
    ]


def decode_message(payload: Mapping[str, Any]) -> Message:
    """Rebuild a :class:`Message` from its wire representation.

    Tool-role entries keep their correlation id and JSON-decode the content
    back into the result payload; non-JSON content is kept as a string.
    """

    role = Role(str(payload.get("role") or ""))
    content = payload.get("content")
    if role is Role.TOOL and payload.get("tool_call_id") is not None:
        data: Any = content
        if isinstance(content, str):
            try:
                data = json.loads(content)
            except json.JSONDecodeError:
                LOGGER.debug("Tool result content is not JSON; keeping raw text")
        return Message.tool(ToolResult(id=str(payload["tool_call_id"]), data=data))

    raw_calls = payload.get("tool_calls") or ()
    tool_calls: list[ToolCall] = []
    for entry in raw_calls:
        function = entry.get("function") or {}
        tool_calls.append(
            ToolCall(
                id=str(entry.get("id") or ""),
                name=str(function.get("name") or ""),
                arguments=str(function.get("arguments") or ""),
            )
        )
    return Message(role=role, content=content if isinstance(content, str) else "", tool_calls=tuple(tool_calls))


def decode_messages(payloads: Iterable[Mapping[str, Any]]) -> List[Message]:
    return [decode_message(payload) for payload in payloads]


def build_request_payload(
    *,
    model: str,
    system_prompt: str,
    history: Sequence[Message],
    tools: Sequence[Tool],
    temperature: float | None = None,
) -> dict[str, Any]:
    """Assemble the streamed chat completion request body."""

    messages: list[ChatCompletionMessageParam] = [
        cast(ChatCompletionMessageParam, {"role": "system", "content": system_prompt})
    ]
    messages.extend(encode_messages(history))
    payload: dict[str, Any] = {
        "model": model,
        "messages": messages,
        "stream": True,
    }
    if tools:
        payload["tools"] = encode_tools(tools)
    if temperature is not None:
        payload["temperature"] = temperature
    return payload
