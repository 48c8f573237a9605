"""Capabilities that read and edit the live request.

Every capability takes the :class:`~prism.ai.tools.base.RequestHandle` and the
already-decoded arguments, and returns a ``{"success": True, ...}`` payload.
Failures are raised as :class:`~prism.ai.tools.errors.ToolError` and rendered
by the dispatcher.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Mapping

from ...requests.model import (
    FormDataBody,
    FormDataField,
    FormUrlEncodedBody,
    JsonBody,
    KeyValuePair,
    NoneBody,
    RawBody,
    RequestBody,
    XmlBody,
    generate_id,
)
from .base import RequestHandle
from .errors import EntryNotFoundError, ToolError, ErrorCode
from .formatting import format_json, format_request_for_ai, format_response_for_ai, parse_pairs

Capability = Callable[[RequestHandle, Mapping[str, Any]], Dict[str, Any]]


def get_current_request(handle: RequestHandle, args: Mapping[str, Any]) -> Dict[str, Any]:
    return {"success": True, **format_request_for_ai(handle.get_request())}


def get_response(handle: RequestHandle, args: Mapping[str, Any]) -> Dict[str, Any]:
    projected = format_response_for_ai(handle.get_request().response)
    if projected is None:
        raise ToolError(
            error_code=ErrorCode.NO_RESPONSE,
            message="No response available. Execute the request first.",
        )
    return {"success": True, **projected}


def set_method(handle: RequestHandle, args: Mapping[str, Any]) -> Dict[str, Any]:
    method = str(args["method"])
    handle.set_method(method)
    return {"success": True, "method": method}


def set_url(handle: RequestHandle, args: Mapping[str, Any]) -> Dict[str, Any]:
    url = str(args["url"])
    handle.set_url(url)
    return {"success": True, "url": url}


def set_headers(handle: RequestHandle, args: Mapping[str, Any]) -> Dict[str, Any]:
    headers = parse_pairs(args["headers"], label="headers")
    handle.set_headers(headers)
    return {"success": True, "headerCount": len(headers)}


def add_header(handle: RequestHandle, args: Mapping[str, Any]) -> Dict[str, Any]:
    key, value = str(args["key"]), str(args["value"])
    current = handle.get_request().headers
    handle.set_headers([*current, KeyValuePair(key=key, value=value)])
    return {"success": True, "added": {"key": key, "value": value}}


def remove_header(handle: RequestHandle, args: Mapping[str, Any]) -> Dict[str, Any]:
    key = str(args["key"])
    current = handle.get_request().headers
    wanted = key.lower()
    remaining = [pair for pair in current if pair.key.lower() != wanted]
    removed = len(current) - len(remaining)
    if removed == 0:
        raise EntryNotFoundError(message=f"Header '{key}' not found")
    handle.set_headers(remaining)
    return {"success": True, "removed": key, "removedCount": removed}


def set_query_params(handle: RequestHandle, args: Mapping[str, Any]) -> Dict[str, Any]:
    params = parse_pairs(args["params"], label="query params")
    handle.set_query(params)
    return {"success": True, "paramCount": len(params)}


def add_query_param(handle: RequestHandle, args: Mapping[str, Any]) -> Dict[str, Any]:
    key, value = str(args["key"]), str(args["value"])
    current = handle.get_request().query
    handle.set_query([*current, KeyValuePair(key=key, value=value)])
    return {"success": True, "added": {"key": key, "value": value}}


def remove_query_param(handle: RequestHandle, args: Mapping[str, Any]) -> Dict[str, Any]:
    # Query keys are matched exactly; header names are not.
    key = str(args["key"])
    current = handle.get_request().query
    remaining = [pair for pair in current if pair.key != key]
    removed = len(current) - len(remaining)
    if removed == 0:
        raise EntryNotFoundError(message=f"Query parameter '{key}' not found")
    handle.set_query(remaining)
    return {"success": True, "removed": key, "removedCount": removed}


def set_body(handle: RequestHandle, args: Mapping[str, Any]) -> Dict[str, Any]:
    body_type = str(args["type"])
    content = args.get("content") or ""
    body = _build_body(body_type, content)
    handle.set_body(body)
    return {"success": True, "bodyType": body_type}


def _build_body(body_type: str, content: str) -> RequestBody:
    if body_type == "json":
        return JsonBody(content=format_json(content))
    if body_type == "xml":
        return XmlBody(content=content)
    if body_type == "raw":
        return RawBody(content=content)
    if body_type == "form-urlencoded":
        pairs = parse_pairs(content, label="body content") if content else []
        return FormUrlEncodedBody(data=tuple(pairs))
    if body_type == "form-data":
        pairs = parse_pairs(content, label="body content") if content else []
        fields = tuple(
            FormDataField(key=pair.key, type="text", value=pair.value, enabled=pair.enabled, id=generate_id())
            for pair in pairs
        )
        return FormDataBody(data=fields)
    return NoneBody()


CAPABILITIES: Mapping[str, Capability] = {
    "get_current_request": get_current_request,
    "get_response": get_response,
    "set_method": set_method,
    "set_url": set_url,
    "set_headers": set_headers,
    "add_header": add_header,
    "remove_header": remove_header,
    "set_query_params": set_query_params,
    "add_query_param": add_query_param,
    "remove_query_param": remove_query_param,
    "set_body": set_body,
}


__all__ = ["CAPABILITIES", "Capability"]
