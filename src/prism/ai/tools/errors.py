"""Structured error types for request tools.

Errors raised inside a capability are caught by the dispatcher and rendered
as ``{"success": False, "error": message}``; the code is kept for logs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class ErrorCode:
    """Constants for error codes used in tool responses."""

    INVALID_ARGUMENTS = "invalid_arguments"
    INVALID_PARAMETER = "invalid_parameter"
    INVALID_CONTENT = "invalid_content"
    NOT_FOUND = "not_found"
    NO_RESPONSE = "no_response"
    UNKNOWN_TOOL = "unknown_tool"
    INTERNAL_ERROR = "internal_error"


@dataclass
class ToolError(Exception):
    """Base exception class for all tool errors.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable error description.
        details: Additional structured error information.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": False, "error": self.message}
        if self.details:
            result["details"] = dict(self.details)
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


@dataclass
class InvalidArgumentsError(ToolError):
    """The argument text of a tool call could not be decoded or validated."""

    error_code: str = field(default=ErrorCode.INVALID_ARGUMENTS)
    message: str = field(default="Tool arguments must be a JSON object")
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class InvalidContentError(ToolError):
    """A string argument expected to embed JSON did not."""

    error_code: str = field(default=ErrorCode.INVALID_CONTENT)
    message: str = field(default="Invalid content")
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class EntryNotFoundError(ToolError):
    """A remove operation matched nothing."""

    error_code: str = field(default=ErrorCode.NOT_FOUND)
    message: str = field(default="Entry not found")
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class UnknownToolError(ToolError):
    error_code: str = field(default=ErrorCode.UNKNOWN_TOOL)
    message: str = field(default="Unknown tool")
    details: dict[str, Any] = field(default_factory=dict)


__all__ = [
    "ErrorCode",
    "ToolError",
    "InvalidArgumentsError",
    "InvalidContentError",
    "EntryNotFoundError",
    "UnknownToolError",
]
