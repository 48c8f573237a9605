"""Tool Dispatcher for the request assistant.

Routes a completed :class:`~prism.ai.ai_types.ToolCall` to the capability
with the same name and executes it against the live request. Every failure
(undecodable arguments, schema violations, unknown names, capability errors)
becomes a failed :class:`~prism.ai.ai_types.ToolResult` so the conversation
can continue and the model can correct itself.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Protocol

from jsonschema import Draft7Validator

from ..ai_types import Tool, ToolCall, ToolResult
from ..tools.base import RequestHandle
from ..tools.declarations import REQUEST_TOOLS
from ..tools.errors import ErrorCode, InvalidArgumentsError, ToolError, UnknownToolError
from ..tools.request_tools import CAPABILITIES, Capability

LOGGER = logging.getLogger(__name__)


def parse_arguments(raw: str | None) -> Dict[str, Any]:
    """Decode tool-call argument text into an object.

    Empty text decodes to ``{}``.

    Raises:
        InvalidArgumentsError: when the text is not a JSON object.
    """

    if raw is None or not raw.strip():
        return {}
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InvalidArgumentsError(message=f"Invalid tool arguments: {exc.msg}") from exc
    if not isinstance(decoded, dict):
        raise InvalidArgumentsError(message="Tool arguments must be a JSON object")
    return decoded


def try_parse_arguments(raw: str | None) -> Dict[str, Any]:
    """Lenient variant of :func:`parse_arguments` returning ``{}`` on failure."""

    try:
        return parse_arguments(raw)
    except InvalidArgumentsError:
        return {}


@dataclass(slots=True)
class DispatchRecord:
    """Bookkeeping for one executed tool call."""

    tool_name: str
    success: bool
    duration_ms: float = 0.0
    error_code: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class DispatchListener(Protocol):
    """Callback protocol for dispatch events."""

    def on_tool_complete(self, record: DispatchRecord) -> None:
        ...


class ToolDispatcher:
    """Executes tool calls against an injected request handle.

    Example:
        dispatcher = ToolDispatcher(store)
        result = dispatcher.execute(ToolCall(id="call_1", name="set_method", arguments='{"method": "POST"}'))
    """

    def __init__(
        self,
        handle: RequestHandle,
        *,
        tools: Iterable[Tool] = REQUEST_TOOLS,
        capabilities: Mapping[str, Capability] = CAPABILITIES,
        listener: DispatchListener | None = None,
    ) -> None:
        self._handle = handle
        self._capabilities = dict(capabilities)
        self._validators: Dict[str, Draft7Validator] = {
            tool.name: Draft7Validator(dict(tool.parameters)) for tool in tools
        }
        self._listener = listener

    @property
    def handle(self) -> RequestHandle:
        return self._handle

    def set_listener(self, listener: DispatchListener | None) -> None:
        self._listener = listener

    def execute(self, tool_call: ToolCall, handle: RequestHandle | None = None) -> ToolResult:
        """Run ``tool_call`` and return its correlated result.

        Args:
            tool_call: Completed call emitted by the model.
            handle: Optional handle overriding the injected one for this call.

        Returns:
            ToolResult whose ``data`` is ``{"success": True, ...}`` or
            ``{"success": False, "error": message}``. Never raises.
        """

        started = time.perf_counter()
        target = handle or self._handle
        try:
            data = self._run(tool_call, target)
            record = DispatchRecord(tool_name=tool_call.name, success=True)
        except ToolError as exc:
            LOGGER.debug("Tool %s failed: %s", tool_call.name, exc)
            data = exc.to_dict()
            record = DispatchRecord(tool_name=tool_call.name, success=False, error_code=exc.error_code)
        except Exception as exc:
            LOGGER.exception("Tool %s failed unexpectedly", tool_call.name)
            data = ToolError(error_code=ErrorCode.INTERNAL_ERROR, message=str(exc)).to_dict()
            record = DispatchRecord(
                tool_name=tool_call.name, success=False, error_code=ErrorCode.INTERNAL_ERROR
            )
        record.duration_ms = (time.perf_counter() - started) * 1000
        self._notify(record)
        return ToolResult(id=tool_call.id, data=data)

    def _run(self, tool_call: ToolCall, handle: RequestHandle) -> Dict[str, Any]:
        arguments = parse_arguments(tool_call.arguments)
        capability = self._capabilities.get(tool_call.name)
        if capability is None:
            raise UnknownToolError(message=f"Unknown tool: {tool_call.name}")
        self._validate(tool_call.name, arguments)
        LOGGER.debug("Executing tool %s with %s", tool_call.name, sorted(arguments))
        return capability(handle, arguments)

    def _validate(self, name: str, arguments: Mapping[str, Any]) -> None:
        validator = self._validators.get(name)
        if validator is None:
            return
        errors = sorted(validator.iter_errors(arguments), key=lambda error: list(error.path))
        if not errors:
            return
        first = errors[0]
        location = ".".join(str(part) for part in first.path)
        prefix = f"{location}: " if location else ""
        raise InvalidArgumentsError(message=f"Invalid arguments for {name}: {prefix}{first.message}")

    def _notify(self, record: DispatchRecord) -> None:
        if self._listener is None:
            return
        try:
            self._listener.on_tool_complete(record)
        except Exception:
            LOGGER.debug("Listener on_tool_complete failed", exc_info=True)


__all__ = [
    "DispatchListener",
    "DispatchRecord",
    "ToolDispatcher",
    "parse_arguments",
    "try_parse_arguments",
]
