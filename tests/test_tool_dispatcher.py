"""Tests for ToolDispatcher and the request-editing capabilities.

Tests cover:
- Every capability against a live RequestStore
- Argument decoding and schema validation failures
- Unknown tool names and unexpected capability errors
- Size-bounded projections of bodies and responses
"""

from __future__ import annotations

import json
from typing import Any

import pytest

from prism.ai.ai_types import ToolCall
from prism.ai.orchestration.tool_dispatcher import (
    DispatchRecord,
    ToolDispatcher,
    parse_arguments,
    try_parse_arguments,
)
from prism.ai.tools.errors import InvalidArgumentsError
from prism.ai.tools.formatting import MAX_BODY_SIZE, TRUNCATION_MARKER
from prism.requests import (
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
    RequestStore,
    XmlBody,
)


def _call(name: str, arguments: Any = None, call_id: str = "call_1") -> ToolCall:
    if arguments is None:
        text = ""
    elif isinstance(arguments, str):
        text = arguments
    else:
        text = json.dumps(arguments)
    return ToolCall(id=call_id, name=name, arguments=text)


def _run(store: RequestStore, name: str, arguments: Any = None) -> dict[str, Any]:
    result = ToolDispatcher(store).execute(_call(name, arguments))
    assert result.id == "call_1"
    return result.data


class _RecordingListener:
    def __init__(self) -> None:
        self.records: list[DispatchRecord] = []

    def on_tool_complete(self, record: DispatchRecord) -> None:
        self.records.append(record)


# =============================================================================
# Argument decoding
# =============================================================================


def test_parse_arguments_treats_blank_text_as_empty_object() -> None:
    assert parse_arguments("") == {}
    assert parse_arguments("   ") == {}
    assert parse_arguments(None) == {}


@pytest.mark.parametrize("raw", ['{"url": ', "[1, 2]", '"text"'])
def test_parse_arguments_rejects_non_objects(raw: str) -> None:
    with pytest.raises(InvalidArgumentsError):
        parse_arguments(raw)
    assert try_parse_arguments(raw) == {}


def test_malformed_arguments_become_failed_result(store: RequestStore) -> None:
    data = _run(store, "set_url", '{"url": "https://trunc')

    assert data["success"] is False
    assert data["error"].startswith("Invalid tool arguments")
    assert store.get_request().url == "https://api.example.com/users"


def test_schema_violations_are_reported(store: RequestStore) -> None:
    data = _run(store, "set_method", {"method": "FETCH"})

    assert data["success"] is False
    assert data["error"].startswith("Invalid arguments for set_method: method:")
    assert store.get_request().method == "GET"


def test_missing_required_argument_is_reported(store: RequestStore) -> None:
    data = _run(store, "add_header", {"key": "X-Only-Key"})

    assert data == {
        "success": False,
        "error": "Invalid arguments for add_header: 'value' is a required property",
    }


def test_unknown_tool(store: RequestStore) -> None:
    assert _run(store, "send_request", {}) == {"success": False, "error": "Unknown tool: send_request"}


def test_unexpected_capability_errors_are_contained(store: RequestStore) -> None:
    def _boom(handle: Any, args: Any) -> dict[str, Any]:
        raise RuntimeError("kaboom")

    listener = _RecordingListener()
    dispatcher = ToolDispatcher(store, capabilities={"get_current_request": _boom}, listener=listener)

    result = dispatcher.execute(_call("get_current_request"))

    assert result.data == {"success": False, "error": "kaboom"}
    assert listener.records[0].success is False
    assert listener.records[0].error_code == "internal_error"


def test_listener_receives_success_record(store: RequestStore) -> None:
    listener = _RecordingListener()
    dispatcher = ToolDispatcher(store)
    dispatcher.set_listener(listener)

    dispatcher.execute(_call("set_url", {"url": "https://x.test"}))

    assert [(r.tool_name, r.success) for r in listener.records] == [("set_url", True)]


def test_handle_override_targets_another_request(store: RequestStore) -> None:
    other = RequestStore()
    dispatcher = ToolDispatcher(store)

    dispatcher.execute(_call("set_url", {"url": "https://other.test"}), other)

    assert other.get_request().url == "https://other.test"
    assert store.get_request().url == "https://api.example.com/users"


# =============================================================================
# Reading
# =============================================================================


def test_get_current_request_projects_enabled_rows(store: RequestStore) -> None:
    store.set_headers([*store.get_request().headers, KeyValuePair(key="X-Off", value="1", enabled=False)])
    store.set_body(JsonBody(content='{"a": 1}'))

    data = _run(store, "get_current_request")

    assert data == {
        "success": True,
        "method": "GET",
        "url": "https://api.example.com/users",
        "headers": [{"key": "Accept", "value": "application/json", "enabled": True}],
        "queryParams": [{"key": "page", "value": "1", "enabled": True}],
        "body": {"type": "json", "content": '{"a": 1}'},
    }


def test_get_current_request_accepts_missing_arguments(store: RequestStore) -> None:
    result = ToolDispatcher(store).execute(ToolCall(id="x", name="get_current_request", arguments=""))

    assert result.data["success"] is True


def test_get_current_request_describes_form_data_files_without_bytes(store: RequestStore) -> None:
    store.set_body(
        FormDataBody(
            data=(
                FormDataField(key="name", value="prism"),
                FormDataField(
                    key="avatar",
                    type="file",
                    file=b"\x89PNG",
                    file_name="me.png",
                    content_type="image/png",
                ),
            )
        )
    )

    body = _run(store, "get_current_request")["body"]

    assert body == {
        "type": "form-data",
        "content": [
            {"key": "name", "type": "text", "value": "prism"},
            {"key": "avatar", "type": "file", "value": "me.png", "contentType": "image/png"},
        ],
    }


def test_get_current_request_describes_binary_body(store: RequestStore) -> None:
    store.set_body(BinaryBody(file=b"\x00" * 42, file_name="blob.bin"))

    body = _run(store, "get_current_request")["body"]

    assert body == {"type": "binary", "content": {"fileName": "blob.bin", "size": 42}}


def test_get_current_request_truncates_large_text_bodies(store: RequestStore) -> None:
    store.set_body(RawBody(content="x" * (MAX_BODY_SIZE + 50)))

    content = _run(store, "get_current_request")["body"]["content"]

    assert content == "x" * MAX_BODY_SIZE + TRUNCATION_MARKER


def test_get_current_request_reports_none_body(store: RequestStore) -> None:
    assert _run(store, "get_current_request")["body"] == {"type": "none", "content": None}


def test_get_response_without_response(store: RequestStore) -> None:
    assert _run(store, "get_response") == {
        "success": False,
        "error": "No response available. Execute the request first.",
    }


def test_get_response_projects_and_truncates(store: RequestStore) -> None:
    store.set_response(
        HttpResponse(
            status="200 OK",
            status_code=200,
            headers={"Content-Type": "text/plain"},
            body="y" * (MAX_BODY_SIZE + 1),
            duration_ms=12.5,
        )
    )

    data = _run(store, "get_response")

    assert data["success"] is True
    assert data["status"] == "200 OK"
    assert data["statusCode"] == 200
    assert data["headers"] == {"Content-Type": "text/plain"}
    assert data["duration"] == 12.5
    assert data["body"].endswith(TRUNCATION_MARKER)
    assert len(data["body"]) == MAX_BODY_SIZE + len(TRUNCATION_MARKER)
    assert "error" not in data


@pytest.mark.parametrize(
    ("body", "expected"),
    [
        ("", "(empty)"),
        (b"", "(empty)"),
        (b"\xff\xfe\x00\x01", "[binary content, 4 bytes]"),
        ("short", "short"),
    ],
)
def test_get_response_body_placeholders(store: RequestStore, body: Any, expected: str) -> None:
    store.set_response(HttpResponse(status="500", status_code=500, body=body, error="upstream"))

    data = _run(store, "get_response")

    assert data["body"] == expected
    assert data["error"] == "upstream"


# =============================================================================
# Editing
# =============================================================================


def test_set_method_and_url(store: RequestStore) -> None:
    assert _run(store, "set_method", {"method": "POST"}) == {"success": True, "method": "POST"}
    assert _run(store, "set_url", {"url": "https://x.test/a"}) == {"success": True, "url": "https://x.test/a"}

    request = store.get_request()
    assert (request.method, request.url) == ("POST", "https://x.test/a")


def test_set_headers_replaces_all(store: RequestStore) -> None:
    headers = json.dumps(
        [
            {"key": "Authorization", "value": "Bearer t"},
            {"key": "X-Off", "value": "0", "enabled": False},
        ]
    )

    data = _run(store, "set_headers", {"headers": headers})

    assert data == {"success": True, "headerCount": 2}
    stored = store.get_request().headers
    assert [(h.key, h.value, h.enabled) for h in stored] == [
        ("Authorization", "Bearer t", True),
        ("X-Off", "0", False),
    ]
    assert all(h.id for h in stored)


def test_set_headers_rejects_invalid_json(store: RequestStore) -> None:
    data = _run(store, "set_headers", {"headers": "not json"})

    assert data["success"] is False
    assert data["error"].startswith("Invalid JSON for headers")
    assert [h.key for h in store.get_request().headers] == ["Accept"]


def test_add_header_appends(store: RequestStore) -> None:
    data = _run(store, "add_header", {"key": "X-Trace", "value": "abc"})

    assert data == {"success": True, "added": {"key": "X-Trace", "value": "abc"}}
    assert [h.key for h in store.get_request().headers] == ["Accept", "X-Trace"]


def test_remove_header_is_case_insensitive(store: RequestStore) -> None:
    store.set_headers(
        [
            KeyValuePair(key="Accept", value="*/*"),
            KeyValuePair(key="X-Foo", value="1"),
            KeyValuePair(key="x-foo", value="2"),
        ]
    )

    data = _run(store, "remove_header", {"key": "X-FOO"})

    assert data == {"success": True, "removed": "X-FOO", "removedCount": 2}
    assert [h.key for h in store.get_request().headers] == ["Accept"]


def test_remove_missing_header_leaves_request_unchanged(store: RequestStore) -> None:
    store.set_headers([KeyValuePair(key="Accept", value="*/*")])

    data = _run(store, "remove_header", {"key": "X-Foo"})

    assert data == {"success": False, "error": "Header 'X-Foo' not found"}
    assert [h.key for h in store.get_request().headers] == ["Accept"]


def test_query_param_operations(store: RequestStore) -> None:
    assert _run(store, "set_query_params", {"params": '[{"key": "q", "value": "cats"}]'}) == {
        "success": True,
        "paramCount": 1,
    }
    assert _run(store, "add_query_param", {"key": "limit", "value": "5"})["success"] is True
    assert [(p.key, p.value) for p in store.get_request().query] == [("q", "cats"), ("limit", "5")]

    assert _run(store, "remove_query_param", {"key": "q"}) == {
        "success": True,
        "removed": "q",
        "removedCount": 1,
    }
    assert [p.key for p in store.get_request().query] == ["limit"]


def test_remove_query_param_matches_exactly(store: RequestStore) -> None:
    data = _run(store, "remove_query_param", {"key": "PAGE"})

    assert data == {"success": False, "error": "Query parameter 'PAGE' not found"}
    assert [p.key for p in store.get_request().query] == ["page"]


def test_set_body_json_is_pretty_printed(store: RequestStore) -> None:
    data = _run(store, "set_body", {"type": "json", "content": '{"name":"prism","tags":[1,2]}'})

    assert data == {"success": True, "bodyType": "json"}
    body = store.get_request().body
    assert isinstance(body, JsonBody)
    assert body.content == json.dumps({"name": "prism", "tags": [1, 2]}, indent=2)


def test_set_body_json_keeps_invalid_text(store: RequestStore) -> None:
    _run(store, "set_body", {"type": "json", "content": "{oops"})

    assert store.get_request().body == JsonBody(content="{oops")


@pytest.mark.parametrize(
    ("body_type", "expected"),
    [
        ("xml", XmlBody(content="<a/>")),
        ("raw", RawBody(content="<a/>")),
    ],
)
def test_set_body_text_variants(store: RequestStore, body_type: str, expected: Any) -> None:
    _run(store, "set_body", {"type": body_type, "content": "<a/>"})

    assert store.get_request().body == expected


def test_set_body_form_variants(store: RequestStore) -> None:
    content = '[{"key": "user", "value": "ada"}]'

    _run(store, "set_body", {"type": "form-urlencoded", "content": content})
    body = store.get_request().body
    assert isinstance(body, FormUrlEncodedBody)
    assert [(p.key, p.value) for p in body.data] == [("user", "ada")]

    _run(store, "set_body", {"type": "form-data", "content": content})
    body = store.get_request().body
    assert isinstance(body, FormDataBody)
    assert [(f.key, f.type, f.value) for f in body.data] == [("user", "text", "ada")]


def test_set_body_none_clears(store: RequestStore) -> None:
    store.set_body(RawBody(content="x"))

    assert _run(store, "set_body", {"type": "none"}) == {"success": True, "bodyType": "none"}
    assert store.get_request().body == NoneBody()


def test_set_body_rejects_binary_type(store: RequestStore) -> None:
    data = _run(store, "set_body", {"type": "binary", "content": ""})

    assert data["success"] is False
    assert data["error"].startswith("Invalid arguments for set_body: type:")


def test_set_body_form_with_bad_content(store: RequestStore) -> None:
    data = _run(store, "set_body", {"type": "form-urlencoded", "content": "{}"})

    assert data == {"success": False, "error": "Invalid JSON for body content: expected an array"}
    assert store.get_request().body == NoneBody()


def test_mutations_notify_store_listeners() -> None:
    store = RequestStore(Request())
    seen: list[str] = []
    unsubscribe = store.subscribe(lambda request, field_name: seen.append(field_name))

    ToolDispatcher(store).execute(_call("set_method", {"method": "PUT"}))
    unsubscribe()
    ToolDispatcher(store).execute(_call("set_url", {"url": "https://x"}))

    assert seen == ["method"]
