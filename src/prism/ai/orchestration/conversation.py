"""Bounded tool-use loop between the completion client and the dispatcher."""

from __future__ import annotations

import asyncio
import inspect
import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Sequence

from ..ai_types import Message, Tool
from ..prompts import ITERATION_LIMIT_MESSAGE, request_instructions
from ..retry import Completer
from ..streaming import DeltaCallback
from ..tools.declarations import REQUEST_TOOLS
from .event_log import ChatEventLogger
from .tool_dispatcher import ToolDispatcher, try_parse_arguments

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 10

ToolCallObserver = Callable[[str, Dict[str, Any]], Awaitable[None] | None]


class TurnState(str, Enum):
    IDLE = "idle"
    AWAITING_COMPLETION = "awaiting_completion"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    ABORTED = "aborted"


@dataclass(frozen=True, slots=True)
class ConversationResult:
    """Final assistant message plus the history that produced it."""

    response: Message
    history: tuple[Message, ...]
    state: TurnState
    iterations: int


class ConversationDriver:
    """Round-trips between the model and the tools until the model answers.

    The loop is an explicit state machine with one round-trip counter. Tool
    calls within a turn run strictly in order against the live request, so a
    later call observes the mutations of an earlier one. Transport errors
    from the completer propagate to the caller untouched.
    """

    def __init__(
        self,
        completer: Completer,
        dispatcher: ToolDispatcher,
        *,
        model: str,
        instructions: str | None = None,
        tools: Sequence[Tool] = REQUEST_TOOLS,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        event_logger: ChatEventLogger | None = None,
    ) -> None:
        self._completer = completer
        self._dispatcher = dispatcher
        self._model = model
        self._instructions = instructions if instructions is not None else request_instructions()
        self._tools = tuple(tools)
        self._max_iterations = max(1, int(max_iterations))
        self._event_logger = event_logger or ChatEventLogger(enabled=False)
        self._state = TurnState.IDLE

    @property
    def state(self) -> TurnState:
        return self._state

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    @property
    def tools(self) -> tuple[Tool, ...]:
        return self._tools

    async def run(
        self,
        user_text: str,
        history: Sequence[Message] = (),
        *,
        on_delta: DeltaCallback | None = None,
        on_tool_call: ToolCallObserver | None = None,
        cancel: asyncio.Event | None = None,
    ) -> ConversationResult:
        """Append ``user_text`` to ``history`` and drive the loop to completion.

        Args:
            user_text: The new user utterance.
            history: Prior conversation; not modified.
            on_delta: Streaming callback receiving ``(fragment, snapshot)``.
            on_tool_call: Observer receiving ``(tool_name, parsed_arguments)``
                once per executed call.
            cancel: When set, stops the active stream and prevents another
                turn from being requested.
        """

        conversation: List[Message] = [*history, Message.user(user_text)]
        iterations = 0
        self._state = TurnState.IDLE
        run_id = uuid.uuid4().hex
        LOGGER.debug(
            "Starting conversation run %s (history=%s, tools=%s)",
            run_id,
            len(history),
            [tool.name for tool in self._tools],
        )

        with self._event_logger.start_run(
            run_id=run_id,
            prompt=user_text,
            model=self._model,
            history=history,
        ) as event_log:
            while True:
                if cancel is not None and cancel.is_set():
                    return self._finish_cancelled(conversation, iterations, event_log)
                if iterations >= self._max_iterations:
                    LOGGER.warning(
                        "Conversation run %s hit the iteration limit (%s)", run_id, self._max_iterations
                    )
                    return self._finish(
                        TurnState.ABORTED,
                        Message.assistant(ITERATION_LIMIT_MESSAGE),
                        conversation,
                        iterations,
                        event_log,
                    )

                self._state = TurnState.AWAITING_COMPLETION
                iterations += 1
                response = await self._completer.complete(
                    self._model,
                    self._instructions,
                    tuple(conversation),
                    self._tools,
                    on_delta,
                    cancel=cancel,
                )
                event_log.log_assistant_message(turn_index=iterations, message=response)

                if cancel is not None and cancel.is_set():
                    partial = Message.assistant(response.content)
                    if partial.content:
                        conversation.append(partial)
                    return self._finish(TurnState.ABORTED, partial, conversation, iterations, event_log)

                if not response.tool_calls:
                    conversation.append(response)
                    return self._finish(TurnState.DONE, response, conversation, iterations, event_log)

                conversation.append(response)
                self._state = TurnState.EXECUTING_TOOLS
                tool_messages = await self._execute_tools(response, on_tool_call)
                conversation.extend(tool_messages)
                event_log.log_tool_batch(turn_index=iterations, messages=tool_messages)

    async def _execute_tools(
        self, response: Message, observer: ToolCallObserver | None
    ) -> List[Message]:
        messages: List[Message] = []
        for call in response.tool_calls:
            result = self._dispatcher.execute(call)
            messages.append(Message.tool(result))
            success = isinstance(result.data, dict) and result.data.get("success") is True
            LOGGER.debug("Tool %s (%s) finished (success=%s)", call.name, call.id, success)
            await self._notify_observer(observer, call.name, try_parse_arguments(call.arguments))
        return messages

    async def _notify_observer(
        self, observer: ToolCallObserver | None, name: str, arguments: Dict[str, Any]
    ) -> None:
        if observer is None:
            return
        try:
            result = observer(name, arguments)
            if inspect.isawaitable(result):
                await result
        except Exception:
            LOGGER.debug("Tool call observer failed for %s", name, exc_info=True)

    def _finish(
        self,
        state: TurnState,
        response: Message,
        conversation: Sequence[Message],
        iterations: int,
        event_log: Any,
    ) -> ConversationResult:
        self._state = state
        event_log.log_completion(state=state.value, response_text=response.content, iterations=iterations)
        LOGGER.debug("Conversation finished in state %s after %s round-trip(s)", state.value, iterations)
        return ConversationResult(
            response=response,
            history=tuple(conversation),
            state=state,
            iterations=iterations,
        )

    def _finish_cancelled(
        self, conversation: Sequence[Message], iterations: int, event_log: Any
    ) -> ConversationResult:
        LOGGER.info("Conversation cancelled before requesting another turn")
        return self._finish(TurnState.ABORTED, Message.assistant(""), conversation, iterations, event_log)


__all__ = [
    "ConversationDriver",
    "ConversationResult",
    "DEFAULT_MAX_ITERATIONS",
    "ToolCallObserver",
    "TurnState",
]
