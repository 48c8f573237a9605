"""Static capability declarations advertised to the model on every turn."""

from __future__ import annotations

from typing import Any, Mapping

from ...requests.model import HTTP_METHODS
from ..ai_types import Tool

_EMPTY: Mapping[str, Any] = {"type": "object", "properties": {}}
_PAIRS_HINT = (
    'JSON array of {label} objects with "key", "value", and optional "enabled" (default true) '
    'properties. Example: {example}'
)
SETTABLE_BODY_TYPES: tuple[str, ...] = ("none", "json", "xml", "form-urlencoded", "form-data", "raw")


def _key_value_schema(name_hint: str, value_hint: str) -> Mapping[str, Any]:
    return {
        "type": "object",
        "properties": {
            "key": {"type": "string", "description": name_hint},
            "value": {"type": "string", "description": value_hint},
        },
        "required": ["key", "value"],
    }


def _key_schema(description: str) -> Mapping[str, Any]:
    return {
        "type": "object",
        "properties": {"key": {"type": "string", "description": description}},
        "required": ["key"],
    }


GET_CURRENT_REQUEST = Tool(
    name="get_current_request",
    description=(
        "Get the current HTTP request configuration including method, URL, headers, "
        "query params, and body"
    ),
    parameters=_EMPTY,
)

GET_RESPONSE = Tool(
    name="get_response",
    description="Get the response from the last executed request, including status, headers, and body",
    parameters=_EMPTY,
)

SET_METHOD = Tool(
    name="set_method",
    description="Set the HTTP method for the request",
    parameters={
        "type": "object",
        "properties": {
            "method": {
                "type": "string",
                "description": "The HTTP method",
                "enum": list(HTTP_METHODS),
            }
        },
        "required": ["method"],
    },
)

SET_URL = Tool(
    name="set_url",
    description="Set the URL for the request",
    parameters={
        "type": "object",
        "properties": {"url": {"type": "string", "description": "The full URL for the request"}},
        "required": ["url"],
    },
)

SET_HEADERS = Tool(
    name="set_headers",
    description="Set the headers for the request. This replaces all existing headers.",
    parameters={
        "type": "object",
        "properties": {
            "headers": {
                "type": "string",
                "description": _PAIRS_HINT.format(
                    label="header",
                    example='[{"key": "Content-Type", "value": "application/json"}]',
                ),
            }
        },
        "required": ["headers"],
    },
)

ADD_HEADER = Tool(
    name="add_header",
    description="Add a single header to the request",
    parameters=_key_value_schema("The header name", "The header value"),
)

REMOVE_HEADER = Tool(
    name="remove_header",
    description="Remove a header from the request by name",
    parameters=_key_schema("The header name to remove (case-insensitive)"),
)

SET_QUERY_PARAMS = Tool(
    name="set_query_params",
    description="Set the query parameters for the request. This replaces all existing query params.",
    parameters={
        "type": "object",
        "properties": {
            "params": {
                "type": "string",
                "description": _PAIRS_HINT.format(
                    label="parameter",
                    example='[{"key": "page", "value": "1"}]',
                ),
            }
        },
        "required": ["params"],
    },
)

ADD_QUERY_PARAM = Tool(
    name="add_query_param",
    description="Add a single query parameter to the request",
    parameters=_key_value_schema("The parameter name", "The parameter value"),
)

REMOVE_QUERY_PARAM = Tool(
    name="remove_query_param",
    description="Remove a query parameter from the request by name",
    parameters=_key_schema("The query parameter name to remove"),
)

SET_BODY = Tool(
    name="set_body",
    description="Set the request body",
    parameters={
        "type": "object",
        "properties": {
            "type": {
                "type": "string",
                "description": "The body type",
                "enum": list(SETTABLE_BODY_TYPES),
            },
            "content": {
                "type": "string",
                "description": (
                    "The body content. For JSON/XML/raw, provide the content string. For "
                    "form-urlencoded/form-data, provide JSON array like headers/params. Note: "
                    "form-data only supports text fields (not file uploads) via this tool."
                ),
            },
        },
        "required": ["type"],
    },
)

REQUEST_TOOLS: tuple[Tool, ...] = (
    GET_CURRENT_REQUEST,
    GET_RESPONSE,
    SET_METHOD,
    SET_URL,
    SET_HEADERS,
    ADD_HEADER,
    REMOVE_HEADER,
    SET_QUERY_PARAMS,
    ADD_QUERY_PARAM,
    REMOVE_QUERY_PARAM,
    SET_BODY,
)

__all__ = [
    "ADD_HEADER",
    "ADD_QUERY_PARAM",
    "GET_CURRENT_REQUEST",
    "GET_RESPONSE",
    "REMOVE_HEADER",
    "REMOVE_QUERY_PARAM",
    "REQUEST_TOOLS",
    "SETTABLE_BODY_TYPES",
    "SET_BODY",
    "SET_HEADERS",
    "SET_METHOD",
    "SET_QUERY_PARAMS",
    "SET_URL",
]
