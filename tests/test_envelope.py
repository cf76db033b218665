from __future__ import annotations

import json

import allure
import pytest

from looker_diag.toolbox.base import RemoteCallRequest
from looker_diag.toolbox.envelope import parse_response
from looker_diag.toolbox.errors import ErrorKind, RemoteToolError

pytestmark = [
    allure.epic("Toolbox Transport"),
    allure.feature("Envelope Parsing"),
]


def _result_line(*items: dict) -> str:
    return json.dumps({"jsonrpc": "2.0", "id": 1, "result": {"content": list(items)}})


def _text_item(payload: object) -> dict:
    return {"type": "text", "text": json.dumps(payload)}


def test_parse_skips_log_noise_between_protocol_lines() -> None:
    raw = "\n".join(
        [
            "2026-01-01 INFO starting server",
            _result_line(_text_item({"name": "ecommerce"})),
            "{broken json",
            "",
            _result_line(_text_item([{"name": "sales"}])),
            "[1, 2, 3]",
        ],
    )

    parsed = parse_response(raw, "get_models")

    assert parsed.skipped_lines == 3
    assert [envelope.payload for envelope in parsed.envelopes] == [
        {"name": "ecommerce"},
        [{"name": "sales"}],
    ]
    assert all(envelope.kind == "data" for envelope in parsed.envelopes)


def test_parse_wraps_non_json_text_as_raw_text() -> None:
    raw = _result_line({"type": "text", "text": "plain words"})

    parsed = parse_response(raw, "get_models")

    assert parsed.envelopes[0].payload == {"raw_text": "plain words"}
    assert parsed.skipped_lines == 0


def test_parse_keeps_non_text_items_verbatim() -> None:
    item = {"type": "image", "data": "abc"}

    parsed = parse_response(_result_line(item), "get_models")

    assert parsed.envelopes[0].payload == item


def test_parse_counts_json_without_result_as_skipped() -> None:
    raw = "\n".join(
        [
            json.dumps({"jsonrpc": "2.0", "method": "notifications/progress"}),
            json.dumps({"jsonrpc": "2.0", "id": 1, "result": {"isError": False}}),
        ],
    )

    parsed = parse_response(raw, "query")

    assert parsed.envelopes == []
    assert parsed.skipped_lines == 1


def test_parse_raises_on_error_envelope() -> None:
    raw = "\n".join(
        [
            "INFO noise",
            json.dumps({"jsonrpc": "2.0", "id": 1, "error": {"code": -32602, "message": "bad model"}}),
        ],
    )

    with pytest.raises(RemoteToolError, match="bad model") as error_info:
        parse_response(raw, "query")

    assert error_info.value.code == -32602
    assert error_info.value.kind == ErrorKind.REMOTE_ERROR
    assert error_info.value.tool_name == "query"


def test_parse_returns_nothing_for_empty_output() -> None:
    parsed = parse_response("", "query")

    assert parsed.envelopes == []
    assert parsed.skipped_lines == 0


def test_request_line_is_single_json_rpc_line() -> None:
    line = RemoteCallRequest(correlation_id=1, tool_name="get_explores", arguments={"model": "x"}).to_line()

    assert line.endswith("\n")
    assert line.count("\n") == 1
    assert json.loads(line) == {
        "jsonrpc": "2.0",
        "id": 1,
        "method": "tools/call",
        "params": {"name": "get_explores", "arguments": {"model": "x"}},
    }
