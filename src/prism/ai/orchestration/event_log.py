"""Debug event logging utilities for assistant conversation runs."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Mapping, Sequence

from ...utils import logging as logging_utils
from ..ai_types import Message
from ..wire import encode_message

LOGGER = logging.getLogger(__name__)


def _default_event_dir() -> Path:
    log_path = logging_utils.get_log_path()
    if log_path is not None:
        return log_path.parent / "events"
    return Path.home() / ".prism" / "logs" / "events"


@dataclass(slots=True)
class _NullChatEventLogRun:
    """No-op implementation used when event logging is disabled."""

    path: Path | None = None

    def __enter__(self) -> "_NullChatEventLogRun":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        return False

    def log_assistant_message(self, *_: Any, **__: Any) -> None:
        return

    def log_tool_batch(self, *_: Any, **__: Any) -> None:
        return

    def log_completion(self, *_: Any, **__: Any) -> None:
        return

    def log_failure(self, *_: Any, **__: Any) -> None:
        return


class ChatEventLogRun:
    """Context manager that writes structured JSONL entries for one run."""

    def __init__(self, path: Path, *, context: Mapping[str, Any]) -> None:
        self.path = path
        self._file = path.open("w", encoding="utf-8")
        self._finalized = False
        self._write_entry("start", context)

    def __enter__(self) -> "ChatEventLogRun":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc is not None and not self._finalized:
            self.log_failure(message=str(exc) or type(exc).__name__)
        elif not self._finalized:
            self.log_failure(message="run ended without completion")
        return False

    def close(self) -> None:
        self._file.close()

    def log_assistant_message(self, *, turn_index: int, message: Message) -> None:
        self._write_entry(
            "assistant",
            {"turn_index": turn_index, "message": encode_message(message)},
        )

    def log_tool_batch(self, *, turn_index: int, messages: Sequence[Message]) -> None:
        if not messages:
            return
        self._write_entry(
            "tools",
            {
                "turn_index": turn_index,
                "tool_messages": [encode_message(message) for message in messages],
            },
        )

    def log_completion(self, *, state: str, response_text: str, iterations: int) -> None:
        if self._finalized:
            return
        self._write_entry(
            "completion",
            {"status": state, "response_text": response_text, "iterations": iterations},
        )
        self._finalized = True
        self.close()

    def log_failure(self, *, message: str) -> None:
        if self._finalized:
            return
        self._write_entry("failure", {"status": "failure", "message": message})
        self._finalized = True
        self.close()

    def _write_entry(self, event: str, payload: Mapping[str, Any] | None = None) -> None:
        entry: dict[str, Any] = {"event": event, "timestamp": time.time()}
        if payload:
            for key, value in payload.items():
                entry[key] = self._safe_json(value)
        json.dump(entry, self._file, ensure_ascii=False)
        self._file.write("\n")
        self._file.flush()

    def _safe_json(self, value: Any, *, depth: int = 0) -> Any:
        if depth > 6:
            return repr(value)
        if value is None or isinstance(value, (str, int, float, bool)):
            return value
        if isinstance(value, Mapping):
            return {str(key): self._safe_json(val, depth=depth + 1) for key, val in value.items()}
        if isinstance(value, (list, tuple, set)):
            return [self._safe_json(item, depth=depth + 1) for item in value]
        if isinstance(value, bytes):
            return value.decode("utf-8", errors="replace")
        return repr(value)


class ChatEventLogger:
    """Factory for per-run event logs when debug event logging is enabled."""

    def __init__(self, *, enabled: bool, base_dir: Path | str | None = None) -> None:
        self.enabled = bool(enabled)
        self._base_dir = Path(base_dir) if base_dir else _default_event_dir()

    def start_run(
        self,
        *,
        run_id: str,
        prompt: str,
        model: str,
        history: Sequence[Message],
    ) -> ChatEventLogRun | _NullChatEventLogRun:
        if not self.enabled:
            return _NullChatEventLogRun()
        try:
            self._base_dir.mkdir(parents=True, exist_ok=True)
            path = self._allocate_path(run_id)
            context = {
                "run_id": run_id,
                "prompt": prompt,
                "model": model,
                "history": [encode_message(message) for message in history],
            }
            log_run = ChatEventLogRun(path, context=context)
        except OSError:
            LOGGER.warning("Failed to start chat event log in %s", self._base_dir, exc_info=True)
            return _NullChatEventLogRun()
        LOGGER.debug("Assistant event log started: %s", path)
        return log_run

    def _allocate_path(self, run_id: str) -> Path:
        timestamp = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
        safe_run_id = "".join(ch for ch in run_id if ch.isalnum())[:12] or "run"
        return self._base_dir / f"chat-{timestamp}-{safe_run_id}.jsonl"


__all__ = ["ChatEventLogger", "ChatEventLogRun"]
