"""Exceptions raised by the streaming completion client."""

from __future__ import annotations

__all__ = [
    "CompletionTransportError",
    "CompletionHTTPError",
    "CompletionNoBodyError",
]


class CompletionTransportError(RuntimeError):
    """Base class for failures talking to the completion endpoint."""


class CompletionHTTPError(CompletionTransportError):
    """The completion endpoint answered with a non-success status."""

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"Completion API error: {status_code} {body}".rstrip())

    @property
    def retriable(self) -> bool:
        return self.status_code in {408, 429} or self.status_code >= 500


class CompletionNoBodyError(CompletionTransportError):
    """The completion endpoint returned no response body to stream."""

    def __init__(self, message: str = "No response body") -> None:
        super().__init__(message)
