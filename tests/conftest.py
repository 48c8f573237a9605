"""Shared pytest fixtures."""

from __future__ import annotations

import json
from typing import Any, Callable

import pytest

from prism.requests import KeyValuePair, Request, RequestStore


@pytest.fixture
def store() -> RequestStore:
    return RequestStore(
        Request(
            method="GET",
            url="https://api.example.com/users",
            headers=[KeyValuePair(key="Accept", value="application/json")],
            query=[KeyValuePair(key="page", value="1")],
        )
    )


@pytest.fixture
def sse_body() -> Callable[..., bytes]:
    """Build a server-sent event body from chunk objects."""

    def _build(*chunks: Any, done: bool = True) -> bytes:
        frames = [
            f"data: {chunk if isinstance(chunk, str) else json.dumps(chunk)}\n\n" for chunk in chunks
        ]
        if done:
            frames.append("data: [DONE]\n\n")
        return "".join(frames).encode("utf-8")

    return _build
