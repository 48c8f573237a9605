"""Editable HTTP request model shared by the editor and the AI assistant."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import ClassVar, Literal, Union

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]
HTTP_METHODS: tuple[str, ...] = ("GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD")

BODY_TYPES: tuple[str, ...] = ("none", "json", "xml", "raw", "form-urlencoded", "form-data", "binary")


def generate_id() -> str:
    """Return a short random identifier for editor rows."""

    return uuid.uuid4().hex[:7]


@dataclass(slots=True)
class KeyValuePair:
    """One header, query parameter or urlencoded form row."""

    key: str
    value: str = ""
    enabled: bool = True
    id: str = field(default_factory=generate_id)


@dataclass(slots=True)
class FormDataField:
    """A multipart form field; file fields carry raw bytes."""

    key: str
    type: Literal["text", "file"] = "text"
    value: str = ""
    enabled: bool = True
    file: bytes | None = None
    file_name: str = ""
    content_type: str = ""
    id: str = field(default_factory=generate_id)


@dataclass(frozen=True, slots=True)
class NoneBody:
    type: ClassVar[str] = "none"


@dataclass(frozen=True, slots=True)
class JsonBody:
    content: str = ""
    type: ClassVar[str] = "json"


@dataclass(frozen=True, slots=True)
class XmlBody:
    content: str = ""
    type: ClassVar[str] = "xml"


@dataclass(frozen=True, slots=True)
class RawBody:
    content: str = ""
    type: ClassVar[str] = "raw"


@dataclass(frozen=True, slots=True)
class FormUrlEncodedBody:
    data: tuple[KeyValuePair, ...] = ()
    type: ClassVar[str] = "form-urlencoded"


@dataclass(frozen=True, slots=True)
class FormDataBody:
    data: tuple[FormDataField, ...] = ()
    type: ClassVar[str] = "form-data"


@dataclass(frozen=True, slots=True)
class BinaryBody:
    file: bytes | None = None
    file_name: str = ""
    type: ClassVar[str] = "binary"


RequestBody = Union[NoneBody, JsonBody, XmlBody, RawBody, FormUrlEncodedBody, FormDataBody, BinaryBody]


@dataclass(slots=True)
class HttpResponse:
    """Result of the last executed request."""

    status: str
    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: str | bytes = ""
    duration_ms: float = 0.0
    error: str | None = None


@dataclass(slots=True)
class Request:
    """The request currently being edited."""

    method: str = "GET"
    url: str = ""
    query: list[KeyValuePair] = field(default_factory=list)
    headers: list[KeyValuePair] = field(default_factory=list)
    body: RequestBody = field(default_factory=NoneBody)
    name: str = ""
    response: HttpResponse | None = None
    id: str = field(default_factory=generate_id)


__all__ = [
    "BODY_TYPES",
    "BinaryBody",
    "FormDataBody",
    "FormDataField",
    "FormUrlEncodedBody",
    "HTTP_METHODS",
    "HttpMethod",
    "HttpResponse",
    "JsonBody",
    "KeyValuePair",
    "NoneBody",
    "RawBody",
    "Request",
    "RequestBody",
    "XmlBody",
    "generate_id",
]
