"""Contracts shared by the request-editing tools."""

from __future__ import annotations

from typing import Iterable, Protocol

from ...requests.model import KeyValuePair, Request, RequestBody


class RequestHandle(Protocol):
    """Live access to the request owned by the host.

    ``get_request`` must return the current state on every call; the tools
    never cache it. Setters are fire-and-forget.
    """

    def get_request(self) -> Request:
        ...

    def set_method(self, method: str) -> None:
        ...

    def set_url(self, url: str) -> None:
        ...

    def set_headers(self, headers: Iterable[KeyValuePair]) -> None:
        ...

    def set_query(self, query: Iterable[KeyValuePair]) -> None:
        ...

    def set_body(self, body: RequestBody) -> None:
        ...


__all__ = ["RequestHandle"]
