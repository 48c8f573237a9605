"""In-memory owner of the live request edited by the host and the assistant."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, List

from .model import HttpResponse, KeyValuePair, Request, RequestBody

LOGGER = logging.getLogger(__name__)

ChangeListener = Callable[[Request, str], None]


class RequestStore:
    """Holds one mutable :class:`Request` and notifies listeners on change.

    Setters mutate the live instance in place; readers always see the current
    state. Listener failures are logged and never interrupt a mutation.
    """

    def __init__(self, request: Request | None = None) -> None:
        self._request = request or Request()
        self._listeners: List[ChangeListener] = []

    def get_request(self) -> Request:
        return self._request

    def replace_request(self, request: Request) -> None:
        """Swap in a different request (a new request identity)."""

        self._request = request
        self._notify("request")

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def set_method(self, method: str) -> None:
        self._request.method = method
        self._notify("method")

    def set_url(self, url: str) -> None:
        self._request.url = url
        self._notify("url")

    def set_headers(self, headers: Iterable[KeyValuePair]) -> None:
        self._request.headers = list(headers)
        self._notify("headers")

    def set_query(self, query: Iterable[KeyValuePair]) -> None:
        self._request.query = list(query)
        self._notify("query")

    def set_body(self, body: RequestBody) -> None:
        self._request.body = body
        self._notify("body")

    def set_response(self, response: HttpResponse | None) -> None:
        self._request.response = response
        self._notify("response")

    def _notify(self, field_name: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._request, field_name)
            except Exception:
                LOGGER.debug("Request listener failed for %s", field_name, exc_info=True)


__all__ = ["ChangeListener", "RequestStore"]
