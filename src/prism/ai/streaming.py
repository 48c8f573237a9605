"""Incremental decoding of server-sent chat completion streams.

Two pieces live here:

* :class:`SSEFrameDecoder` turns arbitrarily chunked bytes into complete
  ``data:`` payloads, only releasing a frame once its blank-line boundary has
  arrived.
* :class:`StreamAssembler` folds decoded chunk objects into the running text
  snapshot and per-index tool-call accumulators, then finalises a single
  assistant :class:`~prism.ai.ai_types.Message`.
"""

from __future__ import annotations

import codecs
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping

from .ai_types import Message, ToolCall

LOGGER = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"
_FRAME_BOUNDARY = "\n\n"
_DATA_PREFIX = "data:"

DeltaCallback = Callable[[str, str], Any]


class SSEFrameDecoder:
    """Split a byte stream into ``data:`` payload strings.

    Frames are separated by a blank line. Lines other than ``data:`` lines
    (comments, ``event:``, ``id:``) are ignored; several ``data:`` lines in
    one frame are joined with newlines.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._done = False

    @property
    def done(self) -> bool:
        """True once the terminating sentinel frame has been seen."""

        return self._done

    def feed(self, chunk: bytes) -> List[str]:
        """Consume ``chunk`` and return the payloads of completed frames."""

        if self._done:
            return []
        self._buffer += self._decoder.decode(chunk)
        self._buffer = self._buffer.replace("\r\n", "\n")
        payloads: List[str] = []
        while not self._done:
            boundary = self._buffer.find(_FRAME_BOUNDARY)
            if boundary < 0:
                break
            frame = self._buffer[:boundary]
            self._buffer = self._buffer[boundary + len(_FRAME_BOUNDARY):]
            data = self._extract_data(frame)
            if data is None:
                continue
            if data.strip() == DONE_SENTINEL:
                self._done = True
                break
            payloads.append(data)
        return payloads

    def close(self) -> None:
        """Flush decoder state; an unterminated trailing frame is dropped."""

        self._buffer += self._decoder.decode(b"", final=True)
        if self._buffer.strip() and not self._done:
            LOGGER.debug("Discarding %s byte(s) of unterminated stream frame", len(self._buffer))
        self._buffer = ""

    @staticmethod
    def _extract_data(frame: str) -> str | None:
        lines: List[str] = []
        for line in frame.split("\n"):
            if not line.startswith(_DATA_PREFIX):
                continue
            value = line[len(_DATA_PREFIX):]
            if value.startswith(" "):
                value = value[1:]
            lines.append(value)
        if not lines:
            return None
        return "\n".join(lines)


@dataclass(slots=True)
class ToolCallAccumulator:
    """In-progress reconstruction of one tool call."""

    index: int
    id: str = ""
    name: str = ""
    arguments: str = ""

    def absorb(self, fragment: Mapping[str, Any]) -> None:
        call_id = fragment.get("id")
        if call_id and not self.id:
            self.id = str(call_id)
        function = fragment.get("function")
        if not isinstance(function, Mapping):
            return
        name = function.get("name")
        if name and not self.name:
            self.name = str(name)
        arguments = function.get("arguments")
        if arguments:
            self.arguments += str(arguments)

    def finalize(self) -> ToolCall:
        call_id = self.id or f"{self.name or 'tool'}:{self.index}"
        return ToolCall(id=call_id, name=self.name, arguments=self.arguments)


class StreamAssembler:
    """Accumulates decoded chunk objects into one assistant message."""

    def __init__(self, on_delta: DeltaCallback | None = None) -> None:
        self._on_delta = on_delta
        self._content: List[str] = []
        self._snapshot = ""
        self._tool_calls: Dict[int, ToolCallAccumulator] = {}
        self.frames_seen = 0
        self.frames_skipped = 0

    @property
    def content(self) -> str:
        return self._snapshot

    @property
    def delivered_content(self) -> bool:
        """True once any text fragment has been handed to the callback."""

        return bool(self._content)

    def feed_payload(self, payload: str) -> Any:
        """Decode one frame payload and apply it.

        Returns the callback's return value for a text delta (which may be an
        awaitable the caller should await) and ``None`` otherwise. Undecodable
        payloads are skipped.
        """

        try:
            chunk = json.loads(payload)
        except json.JSONDecodeError:
            self.frames_skipped += 1
            LOGGER.debug("Skipping malformed stream frame: %.80r", payload)
            return None
        if not isinstance(chunk, Mapping):
            self.frames_skipped += 1
            return None
        self.frames_seen += 1
        return self.feed_chunk(chunk)

    def feed_chunk(self, chunk: Mapping[str, Any]) -> Any:
        choices = chunk.get("choices")
        if not isinstance(choices, list) or not choices:
            return None
        first = choices[0]
        if not isinstance(first, Mapping):
            return None
        delta = first.get("delta")
        if not isinstance(delta, Mapping):
            return None

        tool_calls = delta.get("tool_calls")
        if isinstance(tool_calls, list):
            for fragment in tool_calls:
                if isinstance(fragment, Mapping):
                    self._apply_tool_fragment(fragment)

        text = delta.get("content")
        if isinstance(text, str) and text:
            self._content.append(text)
            self._snapshot += text
            if self._on_delta is not None:
                return self._on_delta(text, self._snapshot)
        return None

    def _apply_tool_fragment(self, fragment: Mapping[str, Any]) -> None:
        raw_index = fragment.get("index", 0)
        if isinstance(raw_index, bool) or not isinstance(raw_index, int):
            LOGGER.debug("Dropping tool call fragment with invalid index %r", raw_index)
            return
        function = fragment.get("function")
        if function is not None and not isinstance(function, Mapping):
            LOGGER.debug("Dropping tool call fragment with invalid function %.80r", function)
            return
        accumulator = self._tool_calls.get(raw_index)
        if accumulator is None:
            accumulator = ToolCallAccumulator(index=raw_index)
            self._tool_calls[raw_index] = accumulator
        accumulator.absorb(fragment)

    def finalize(self, *, include_tool_calls: bool = True) -> Message:
        tool_calls: tuple[ToolCall, ...] = ()
        if include_tool_calls and self._tool_calls:
            tool_calls = tuple(self._tool_calls[index].finalize() for index in sorted(self._tool_calls))
        return Message.assistant(self._snapshot, tool_calls)


__all__ = [
    "DONE_SENTINEL",
    "DeltaCallback",
    "SSEFrameDecoder",
    "StreamAssembler",
    "ToolCallAccumulator",
]
