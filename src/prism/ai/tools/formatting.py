"""Compact, size-bounded projections of the request model for the model."""

from __future__ import annotations

import json
from typing import Any, Iterable, List, Mapping

from ...requests.model import (
    BinaryBody,
    FormDataBody,
    FormDataField,
    FormUrlEncodedBody,
    HttpResponse,
    JsonBody,
    KeyValuePair,
    RawBody,
    Request,
    RequestBody,
    XmlBody,
    generate_id,
)
from .errors import InvalidContentError

MAX_BODY_SIZE = 10 * 1024
TRUNCATION_MARKER = "\n...[TRUNCATED]"
EMPTY_BODY = "(empty)"


def format_json(text: str) -> str:
    """Pretty-print ``text`` when it is JSON, otherwise return it unchanged."""

    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return text
    return json.dumps(parsed, indent=2, ensure_ascii=False)


def truncate_body(body: str | bytes | None) -> str:
    if body is None or len(body) == 0:
        return EMPTY_BODY
    if isinstance(body, bytes):
        try:
            body = body.decode("utf-8")
        except UnicodeDecodeError:
            return f"[binary content, {len(body)} bytes]"
    if len(body) <= MAX_BODY_SIZE:
        return body
    return body[:MAX_BODY_SIZE] + TRUNCATION_MARKER


def _truncate_text(text: str) -> str:
    if len(text) <= MAX_BODY_SIZE:
        return text
    return text[:MAX_BODY_SIZE] + TRUNCATION_MARKER


def project_pairs(pairs: Iterable[KeyValuePair], *, enabled_only: bool = True) -> List[dict[str, Any]]:
    return [
        {"key": pair.key, "value": pair.value, "enabled": pair.enabled}
        for pair in pairs
        if pair.enabled or not enabled_only
    ]


def _project_form_field(item: FormDataField) -> dict[str, Any]:
    if item.type == "file":
        projected: dict[str, Any] = {"key": item.key, "type": "file", "value": item.file_name}
        if item.content_type:
            projected["contentType"] = item.content_type
        return projected
    return {"key": item.key, "type": "text", "value": item.value}


def project_body(body: RequestBody) -> dict[str, Any]:
    """Project a body variant; file bytes are reduced to name and size."""

    content: Any = None
    if isinstance(body, (JsonBody, XmlBody, RawBody)):
        content = _truncate_text(body.content)
    elif isinstance(body, FormUrlEncodedBody):
        content = project_pairs(body.data, enabled_only=False)
    elif isinstance(body, FormDataBody):
        content = [_project_form_field(item) for item in body.data]
    elif isinstance(body, BinaryBody):
        content = {
            "fileName": body.file_name,
            "size": len(body.file) if body.file is not None else 0,
        }
    return {"type": body.type, "content": content}


def format_request_for_ai(request: Request) -> dict[str, Any]:
    return {
        "method": request.method,
        "url": request.url,
        "headers": project_pairs(request.headers),
        "queryParams": project_pairs(request.query),
        "body": project_body(request.body),
    }


def format_response_for_ai(response: HttpResponse | None) -> dict[str, Any] | None:
    if response is None:
        return None
    payload: dict[str, Any] = {
        "status": response.status,
        "statusCode": response.status_code,
        "headers": dict(response.headers),
        "body": truncate_body(response.body),
        "duration": response.duration_ms,
    }
    if response.error:
        payload["error"] = response.error
    return payload


def parse_pairs(text: str, *, label: str) -> List[KeyValuePair]:
    """Decode a JSON array of ``{key, value, enabled?}`` objects.

    Raises:
        InvalidContentError: when ``text`` is not such an array.
    """

    try:
        entries = json.loads(text)
    except (json.JSONDecodeError, TypeError) as exc:
        raise InvalidContentError(message=f"Invalid JSON for {label}: {exc}") from exc
    if not isinstance(entries, list):
        raise InvalidContentError(message=f"Invalid JSON for {label}: expected an array")
    pairs: List[KeyValuePair] = []
    for entry in entries:
        if not isinstance(entry, Mapping) or not isinstance(entry.get("key"), str):
            raise InvalidContentError(
                message=f"Invalid JSON for {label}: each entry needs a string 'key'"
            )
        value = entry.get("value", "")
        pairs.append(
            KeyValuePair(
                key=entry["key"],
                value=value if isinstance(value, str) else json.dumps(value),
                enabled=entry.get("enabled") is not False,
                id=generate_id(),
            )
        )
    return pairs


__all__ = [
    "EMPTY_BODY",
    "MAX_BODY_SIZE",
    "TRUNCATION_MARKER",
    "format_json",
    "format_request_for_ai",
    "format_response_for_ai",
    "parse_pairs",
    "project_body",
    "project_pairs",
    "truncate_body",
]
