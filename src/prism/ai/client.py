"""Async streaming client for OpenAI-compatible chat completion endpoints."""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

import httpx

from .ai_types import Message, Tool
from .errors import CompletionHTTPError, CompletionNoBodyError
from .streaming import DeltaCallback, SSEFrameDecoder, StreamAssembler
from .wire import build_request_payload

LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://127.0.0.1:8080/openai/v1"
_COMPLETIONS_PATH = "/chat/completions"


@dataclass(slots=True)
class ClientSettings:
    """Subset of settings required to configure the completion client."""

    base_url: str = DEFAULT_BASE_URL
    request_timeout: float | None = 90.0
    temperature: float | None = None
    default_headers: Mapping[str, str] | None = None
    debug_logging: bool = False


class CompletionClient:
    """Issues streamed chat completions and assembles the final message.

    The client performs a single attempt per call. Failures surface as
    :class:`~prism.ai.errors.CompletionTransportError` subclasses (or the
    underlying ``httpx`` exception for network failures); retry policy is left
    to the caller.
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or ClientSettings()
        self._owns_http_client = http_client is None
        self._http = http_client or self._build_http_client(self._settings)

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def endpoint(self) -> str:
        return self._settings.base_url.rstrip("/") + _COMPLETIONS_PATH

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
        """Stream one completion and return the assembled assistant message.

        Args:
            model: Model identifier forwarded to the endpoint.
            system_prompt: Instructions prepended as the system message.
            history: Conversation so far, oldest first.
            tools: Capability declarations; omitted from the request when empty.
            on_delta: Called with ``(fragment, snapshot)`` for every text delta.
            cancel: When set, reading stops after the current frame and the
                partially assembled message is returned.

        Raises:
            CompletionHTTPError: The endpoint answered with a non-2xx status.
            CompletionNoBodyError: The endpoint returned no body to stream.
        """

        payload = build_request_payload(
            model=model,
            system_prompt=system_prompt,
            history=history,
            tools=tools,
            temperature=self._settings.temperature,
        )
        LOGGER.debug(
            "Starting streamed completion via %s with %s message(s) and %s tool(s)",
            model,
            len(payload["messages"]),
            len(tools),
        )
        if self._settings.debug_logging:
            self._log_prompt_payload(payload)

        assembler = StreamAssembler(on_delta)
        decoder = SSEFrameDecoder()
        received = 0
        async with self._http.stream("POST", self.endpoint, json=payload) as response:
            if not response.is_success:
                body = (await response.aread()).decode("utf-8", errors="replace")
                LOGGER.warning("Completion request failed with status %s", response.status_code)
                raise CompletionHTTPError(response.status_code, body)
            if response.status_code == 204:
                raise CompletionNoBodyError()

            async for chunk in response.aiter_bytes():
                received += len(chunk)
                for frame in decoder.feed(chunk):
                    result = assembler.feed_payload(frame)
                    if inspect.isawaitable(result):
                        await result
                    if cancel is not None and cancel.is_set():
                        break
                if decoder.done or (cancel is not None and cancel.is_set()):
                    break
            decoder.close()

        if received == 0:
            raise CompletionNoBodyError()

        cancelled = cancel is not None and cancel.is_set()
        message = assembler.finalize()
        LOGGER.debug(
            "Completion finished (chars=%s, tool_calls=%s, frames=%s, skipped=%s, cancelled=%s)",
            len(message.content),
            len(message.tool_calls),
            assembler.frames_seen,
            assembler.frames_skipped,
            cancelled,
        )
        return message

    def _build_http_client(self, settings: ClientSettings) -> httpx.AsyncClient:
        headers = {"Content-Type": "application/json", "Accept": "text/event-stream"}
        if settings.default_headers:
            headers.update(settings.default_headers)
        return httpx.AsyncClient(headers=headers, timeout=settings.request_timeout)

    def _log_prompt_payload(self, payload: Mapping[str, Any]) -> None:
        try:
            serialized = json.dumps(payload, ensure_ascii=False, indent=2)
        except (TypeError, ValueError):
            LOGGER.debug("Completion payload (unserializable): %s", payload)
        else:
            LOGGER.debug("Completion payload:\n%s", serialized)

    async def aclose(self) -> None:
        """Close the underlying HTTP client when this instance created it."""

        if self._owns_http_client:
            await self._http.aclose()


__all__ = ["ClientSettings", "CompletionClient", "DEFAULT_BASE_URL"]
