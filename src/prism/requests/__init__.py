"""Request model and its in-memory store."""

from .model import (
    BODY_TYPES,
    HTTP_METHODS,
    BinaryBody,
    FormDataBody,
    FormDataField,
    FormUrlEncodedBody,
    HttpResponse,
    JsonBody,
    KeyValuePair,
    NoneBody,
    RawBody,
    Request,
    RequestBody,
    XmlBody,
)
from .store import RequestStore

__all__ = [
    "BODY_TYPES",
    "HTTP_METHODS",
    "BinaryBody",
    "FormDataBody",
    "FormDataField",
    "FormUrlEncodedBody",
    "HttpResponse",
    "JsonBody",
    "KeyValuePair",
    "NoneBody",
    "RawBody",
    "Request",
    "RequestBody",
    "RequestStore",
    "XmlBody",
]
