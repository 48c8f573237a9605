"""Caller-side retry policy for streamed completions."""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Protocol, Sequence

import httpx
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from .ai_types import Message, Tool
from .errors import CompletionHTTPError, CompletionNoBodyError
from .streaming import DeltaCallback

LOGGER = logging.getLogger(__name__)


class Completer(Protocol):
    """Anything exposing the streamed ``complete`` contract."""

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
        ...


@dataclass(slots=True)
class RetryPolicy:
    max_attempts: int = 1
    min_seconds: float = 0.5
    max_seconds: float = 6.0


def is_retriable(exc: BaseException) -> bool:
    if isinstance(exc, CompletionHTTPError):
        return exc.retriable
    return isinstance(exc, (CompletionNoBodyError, httpx.TransportError))


class _DeliveryTracker:
    """Wraps the caller's delta callback and records whether it fired."""

    def __init__(self, callback: DeltaCallback | None) -> None:
        self._callback = callback
        self.delivered = False

    async def __call__(self, fragment: str, snapshot: str) -> None:
        self.delivered = True
        if self._callback is None:
            return
        result = self._callback(fragment, snapshot)
        if inspect.isawaitable(result):
            await result


class RetryingCompleter:
    """Retries transient completion failures that happened before any output.

    Once a text fragment has been handed to the caller the attempt is not
    repeated, so a partially streamed answer is never delivered twice.
    """

    def __init__(self, inner: Completer, policy: RetryPolicy | None = None) -> None:
        self._inner = inner
        self._policy = policy or RetryPolicy()

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

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
        tracker = _DeliveryTracker(on_delta)

        def _should_retry(exc: BaseException) -> bool:
            if tracker.delivered or not is_retriable(exc):
                return False
            LOGGER.info("Retrying completion after transient failure: %s", exc)
            return True

        async for attempt in self._retrying(_should_retry):
            with attempt:
                return await self._inner.complete(
                    model,
                    system_prompt,
                    history,
                    tools,
                    tracker,
                    cancel=cancel,
                )
        raise RuntimeError("Completion retry loop ended without an attempt")

    def _retrying(self, predicate: Any) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self._policy.max_attempts)),
            wait=wait_exponential(
                multiplier=self._policy.min_seconds,
                max=self._policy.max_seconds,
            ),
            retry=retry_if_exception(predicate),
        )


__all__ = ["Completer", "RetryPolicy", "RetryingCompleter", "is_retriable"]
