"""Conversation session bound to one live request."""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Tuple

from ..ai.ai_types import Message
from ..ai.client import ClientSettings, CompletionClient
from ..ai.orchestration.conversation import (
    ConversationDriver,
    ConversationResult,
    ToolCallObserver,
)
from ..ai.orchestration.event_log import ChatEventLogger
from ..ai.orchestration.tool_dispatcher import ToolDispatcher
from ..ai.retry import Completer, RetryingCompleter, RetryPolicy
from ..ai.streaming import DeltaCallback
from ..ai.tools.base import RequestHandle
from ..services.settings import Settings

LOGGER = logging.getLogger(__name__)

_MAX_ITERATIONS_CAP = 50


@dataclass(slots=True)
class ChatSession:
    """Append-only conversation with the assistant about one request.

    The history is dropped on :meth:`clear` and whenever the live request
    turns out to be a different request than the one the conversation
    started with. Only one completion runs per session at a time.
    """

    driver: ConversationDriver
    handle: RequestHandle
    completer: Any = None
    _history: Tuple[Message, ...] = field(default=(), init=False)
    _request_id: str | None = field(default=None, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)
    _cancel: asyncio.Event | None = field(default=None, init=False, repr=False)

    @property
    def history(self) -> Tuple[Message, ...]:
        return self._history

    @property
    def request_id(self) -> str | None:
        return self._request_id

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def clear(self) -> None:
        """Forget the conversation so far."""

        if self._history:
            LOGGER.debug("Clearing chat history (%s message(s))", len(self._history))
        self._history = ()
        self._request_id = None

    def cancel(self) -> None:
        """Stop the in-flight completion, if any."""

        if self._cancel is not None and not self._cancel.is_set():
            LOGGER.debug("Cancelling active chat turn")
            self._cancel.set()

    async def send(
        self,
        text: str,
        *,
        on_delta: DeltaCallback | None = None,
        on_tool_call: ToolCallObserver | None = None,
        cancel: asyncio.Event | None = None,
    ) -> ConversationResult:
        """Send ``text`` and wait for the assistant's final answer.

        Transport errors propagate and leave the stored history untouched.
        """

        async with self._lock:
            self._sync_request_binding()
            self._cancel = cancel or asyncio.Event()
            try:
                result = await self.driver.run(
                    text,
                    self._history,
                    on_delta=on_delta,
                    on_tool_call=on_tool_call,
                    cancel=self._cancel,
                )
            finally:
                self._cancel = None
            self._history = result.history
            return result

    async def aclose(self) -> None:
        """Cancel any active turn and release the completion client."""

        self.cancel()
        close = getattr(self.completer, "aclose", None)
        if callable(close):
            result = close()
            if inspect.isawaitable(result):
                await result

    def _sync_request_binding(self) -> None:
        current_id = self.handle.get_request().id
        if self._request_id is not None and self._request_id != current_id:
            LOGGER.info("Active request changed (%s -> %s); starting a new chat", self._request_id, current_id)
            self._history = ()
        self._request_id = current_id


def build_session(
    settings: Settings,
    handle: RequestHandle,
    *,
    completer: Completer | None = None,
    debug_logging: bool = False,
) -> ChatSession:
    """Wire a client, dispatcher and driver from ``settings``."""

    client = completer or CompletionClient(
        ClientSettings(
            base_url=settings.base_url,
            request_timeout=settings.request_timeout,
            temperature=settings.temperature,
            default_headers=settings.default_headers,
            debug_logging=debug_logging or settings.debug_logging,
        )
    )
    active: Completer = client
    if settings.max_retries > 1:
        active = RetryingCompleter(
            client,
            RetryPolicy(
                max_attempts=settings.max_retries,
                min_seconds=settings.retry_min_seconds,
                max_seconds=settings.retry_max_seconds,
            ),
        )
    driver = ConversationDriver(
        active,
        ToolDispatcher(handle),
        model=settings.model,
        max_iterations=resolve_max_tool_iterations(settings),
        event_logger=ChatEventLogger(enabled=settings.debug_event_logging),
    )
    return ChatSession(driver=driver, handle=handle, completer=client)


def resolve_max_tool_iterations(settings: Settings | None) -> int:
    """Clamp the configured iteration limit into a safe operating range."""

    raw_value = getattr(settings, "max_tool_iterations", 10) if settings else 10
    try:
        value = int(raw_value)
    except (TypeError, ValueError):
        value = 10
    return max(1, min(value, _MAX_ITERATIONS_CAP))
