"""Tests for the conversation driver's tool-use loop."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Callable, Iterable, Sequence

import pytest

from prism.ai.ai_types import Message, Role, Tool, ToolCall
from prism.ai.errors import CompletionHTTPError
from prism.ai.orchestration.conversation import ConversationDriver, TurnState
from prism.ai.orchestration.event_log import ChatEventLogger
from prism.ai.orchestration.tool_dispatcher import ToolDispatcher
from prism.ai.prompts import ITERATION_LIMIT_MESSAGE
from prism.ai.streaming import DeltaCallback
from prism.ai.tools.declarations import REQUEST_TOOLS
from prism.requests import KeyValuePair, RequestStore

Reply = Message | BaseException | Callable[[asyncio.Event | None], Message]


class _StubCompleter:
    """Replays scripted assistant replies and records each request."""

    def __init__(self, replies: Iterable[Reply]) -> None:
        self._replies = list(replies)
        self.calls: list[dict[str, Any]] = []

    async def complete(
        self,
        model: str,
        system_prompt: str,
        history: Sequence[Message],
        tools: Sequence[Tool] = (),
        on_delta: DeltaCallback | None = None,
        *,
        cancel: asyncio.Event | None = None,
    ) -> Message:
        self.calls.append(
            {"model": model, "system_prompt": system_prompt, "history": tuple(history), "tools": tuple(tools)}
        )
        reply = self._replies.pop(0) if len(self._replies) > 1 else self._replies[0]
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            reply = reply(cancel)
        if reply.content and on_delta is not None:
            on_delta(reply.content, reply.content)
        return reply


def _tool_turn(*calls: tuple[str, str, dict[str, Any] | str]) -> Message:
    return Message.assistant(
        "",
        [
            ToolCall(id=call_id, name=name, arguments=args if isinstance(args, str) else json.dumps(args))
            for call_id, name, args in calls
        ],
    )


def _driver(completer: _StubCompleter, store: RequestStore, **kwargs: Any) -> ConversationDriver:
    return ConversationDriver(completer, ToolDispatcher(store), model="gpt-test", **kwargs)


@pytest.mark.asyncio
async def test_plain_answer_finishes_in_one_round_trip(store: RequestStore) -> None:
    completer = _StubCompleter([Message.assistant("Hi there")])
    driver = _driver(completer, store)
    deltas: list[str] = []

    result = await driver.run("hello", on_delta=lambda fragment, snapshot: deltas.append(snapshot))

    assert result.state is TurnState.DONE
    assert driver.state is TurnState.DONE
    assert result.iterations == 1
    assert result.response.content == "Hi there"
    assert [m.role for m in result.history] == [Role.USER, Role.ASSISTANT]
    assert deltas == ["Hi there"]
    assert completer.calls[0]["tools"] == REQUEST_TOOLS
    assert completer.calls[0]["model"] == "gpt-test"
    assert "HTTP client" in completer.calls[0]["system_prompt"]


@pytest.mark.asyncio
async def test_set_method_round_trip(store: RequestStore) -> None:
    completer = _StubCompleter(
        [
            _tool_turn(("c1", "set_method", {"method": "POST"})),
            Message.assistant("Done, switched to POST."),
        ]
    )
    calls: list[tuple[str, dict[str, Any]]] = []

    result = await _driver(completer, store).run(
        "make it a POST", on_tool_call=lambda name, args: calls.append((name, args))
    )

    assert store.get_request().method == "POST"
    assert len(result.history) == 4
    assert [m.role for m in result.history] == [Role.USER, Role.ASSISTANT, Role.TOOL, Role.ASSISTANT]
    tool_message = result.history[2]
    assert tool_message.tool_result is not None
    assert tool_message.tool_result.id == "c1"
    assert tool_message.tool_result.data == {"success": True, "method": "POST"}
    assert calls == [("set_method", {"method": "POST"})]
    assert result.response.content.startswith("Done")
    assert result.iterations == 2


@pytest.mark.asyncio
async def test_second_request_sees_tool_results(store: RequestStore) -> None:
    completer = _StubCompleter(
        [_tool_turn(("c1", "get_current_request", {})), Message.assistant("It is a GET.")]
    )

    await _driver(completer, store).run("what is it?")

    second_history = completer.calls[1]["history"]
    assert [m.role for m in second_history] == [Role.USER, Role.ASSISTANT, Role.TOOL]
    assert second_history[2].tool_result.data["method"] == "GET"


@pytest.mark.asyncio
async def test_tool_calls_run_in_order_and_see_earlier_mutations(store: RequestStore) -> None:
    completer = _StubCompleter(
        [
            _tool_turn(
                ("c1", "add_header", {"key": "X-Foo", "value": "1"}),
                ("c2", "remove_header", {"key": "x-foo"}),
                ("c3", "remove_header", {"key": "X-Foo"}),
            ),
            Message.assistant("ok"),
        ]
    )

    result = await _driver(completer, store).run("shuffle headers")

    results = [m.tool_result for m in result.history if m.role is Role.TOOL]
    assert [r.id for r in results] == ["c1", "c2", "c3"]
    assert results[1].data["success"] is True
    assert results[2].data == {"success": False, "error": "Header 'X-Foo' not found"}
    assert [h.key for h in store.get_request().headers] == ["Accept"]


@pytest.mark.asyncio
async def test_remove_missing_header_is_reported_to_model(store: RequestStore) -> None:
    store.set_headers([KeyValuePair(key="Accept", value="*/*")])
    completer = _StubCompleter(
        [_tool_turn(("c1", "remove_header", {"key": "X-Foo"})), Message.assistant("There was no X-Foo header.")]
    )

    result = await _driver(completer, store).run("drop X-Foo")

    assert result.history[2].tool_result.data == {"success": False, "error": "Header 'X-Foo' not found"}
    assert result.state is TurnState.DONE


@pytest.mark.asyncio
async def test_bad_arguments_do_not_abort_the_loop(store: RequestStore) -> None:
    completer = _StubCompleter(
        [_tool_turn(("c1", "set_url", '{"url": ')), Message.assistant("Let me retry.")]
    )
    observed: list[dict[str, Any]] = []

    result = await _driver(completer, store).run(
        "set url", on_tool_call=lambda name, args: observed.append(args)
    )

    assert result.state is TurnState.DONE
    assert result.history[2].tool_result.data["success"] is False
    assert observed == [{}]


@pytest.mark.asyncio
async def test_iteration_limit_returns_fallback_message(store: RequestStore) -> None:
    completer = _StubCompleter([_tool_turn(("c1", "get_current_request", {}))])
    driver = _driver(completer, store)

    result = await driver.run("loop forever")

    assert len(completer.calls) == 10
    assert result.iterations == 10
    assert result.state is TurnState.ABORTED
    assert result.response.content == ITERATION_LIMIT_MESSAGE
    assert result.history[-1].role is Role.TOOL


@pytest.mark.asyncio
async def test_custom_iteration_limit(store: RequestStore) -> None:
    completer = _StubCompleter([_tool_turn(("c1", "get_current_request", {}))])

    result = await _driver(completer, store, max_iterations=3).run("loop")

    assert len(completer.calls) == 3
    assert result.response.content == ITERATION_LIMIT_MESSAGE


@pytest.mark.asyncio
async def test_prior_history_is_preserved_and_not_mutated(store: RequestStore) -> None:
    prior = (Message.user("earlier"), Message.assistant("earlier answer"))
    completer = _StubCompleter([Message.assistant("now")])

    result = await _driver(completer, store).run("again", prior)

    assert result.history[:2] == prior
    assert result.history[2] == Message.user("again")
    assert len(prior) == 2


@pytest.mark.asyncio
async def test_transport_errors_propagate(store: RequestStore) -> None:
    completer = _StubCompleter([CompletionHTTPError(502, "bad gateway")])

    with pytest.raises(CompletionHTTPError):
        await _driver(completer, store).run("hi")


@pytest.mark.asyncio
async def test_async_observer_is_awaited_and_failures_ignored(store: RequestStore) -> None:
    completer = _StubCompleter(
        [
            _tool_turn(("c1", "set_url", {"url": "https://a"}), ("c2", "set_method", {"method": "PUT"})),
            Message.assistant("done"),
        ]
    )
    seen: list[str] = []

    async def _observer(name: str, args: dict[str, Any]) -> None:
        await asyncio.sleep(0)
        seen.append(name)
        if name == "set_url":
            raise RuntimeError("observer bug")

    result = await _driver(completer, store).run("edit", on_tool_call=_observer)

    assert seen == ["set_url", "set_method"]
    assert result.state is TurnState.DONE
    assert store.get_request().method == "PUT"


@pytest.mark.asyncio
async def test_cancel_before_start_does_not_call_model(store: RequestStore) -> None:
    completer = _StubCompleter([Message.assistant("never")])
    cancel = asyncio.Event()
    cancel.set()

    result = await _driver(completer, store).run("hi", cancel=cancel)

    assert completer.calls == []
    assert result.state is TurnState.ABORTED
    assert [m.role for m in result.history] == [Role.USER]


@pytest.mark.asyncio
async def test_cancel_during_stream_keeps_partial_text_and_skips_tools(store: RequestStore) -> None:
    def _cancelled_reply(cancel: asyncio.Event | None) -> Message:
        assert cancel is not None
        cancel.set()
        return Message.assistant("Partial ans", [ToolCall(id="c1", name="set_method", arguments='{"method": "DELETE"}')])

    completer = _StubCompleter([_cancelled_reply])

    result = await _driver(completer, store).run("hi", cancel=asyncio.Event())

    assert result.state is TurnState.ABORTED
    assert result.response == Message.assistant("Partial ans")
    assert result.history[-1] == Message.assistant("Partial ans")
    assert store.get_request().method == "GET"


@pytest.mark.asyncio
async def test_cancel_during_tools_finishes_batch_then_stops(store: RequestStore) -> None:
    cancel = asyncio.Event()
    completer = _StubCompleter(
        [
            _tool_turn(("c1", "set_method", {"method": "PATCH"}), ("c2", "set_url", {"url": "https://b"})),
            Message.assistant("unreachable"),
        ]
    )

    def _observer(name: str, args: dict[str, Any]) -> None:
        cancel.set()

    result = await _driver(completer, store).run("edit", on_tool_call=_observer, cancel=cancel)

    assert len(completer.calls) == 1
    assert result.state is TurnState.ABORTED
    assert store.get_request().method == "PATCH"
    assert store.get_request().url == "https://b"
    assert [m.role for m in result.history] == [Role.USER, Role.ASSISTANT, Role.TOOL, Role.TOOL]


@pytest.mark.asyncio
async def test_event_log_records_run(store: RequestStore, tmp_path: Path) -> None:
    completer = _StubCompleter([_tool_turn(("c1", "set_method", {"method": "POST"})), Message.assistant("ok")])
    driver = _driver(completer, store, event_logger=ChatEventLogger(enabled=True, base_dir=tmp_path))

    await driver.run("post it")

    log_files = list(tmp_path.glob("*.jsonl"))
    assert len(log_files) == 1
    events = [json.loads(line)["event"] for line in log_files[0].read_text(encoding="utf-8").splitlines()]
    assert events == ["start", "assistant", "tools", "assistant", "completion"]
