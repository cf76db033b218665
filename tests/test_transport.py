from __future__ import annotations

import json
import subprocess
import time
from pathlib import Path

import allure
import pytest

from looker_diag.toolbox import transport as transport_module
from looker_diag.toolbox.errors import (
    ErrorKind,
    RemoteToolError,
    ToolTimeoutError,
    TransportStartError,
    UnsupportedToolError,
)
from looker_diag.toolbox.transport import FIXED_CORRELATION_ID, ToolboxTransport

pytestmark = [
    allure.epic("Toolbox Transport"),
    allure.feature("Subprocess Lifecycle"),
]


@pytest.fixture()
def spawned(monkeypatch) -> list[tuple[subprocess.Popen, dict]]:
    """Record every toolbox process started by the transport."""

    captured: list[tuple[subprocess.Popen, dict]] = []
    real_popen = subprocess.Popen

    def _capture(*args, **kwargs):
        process = real_popen(*args, **kwargs)
        captured.append((process, kwargs))
        return process

    monkeypatch.setattr(transport_module.subprocess, "Popen", _capture)
    return captured


@pytest.fixture()
def toolbox(fake_toolbox_env, fake_toolbox_command) -> ToolboxTransport:
    return ToolboxTransport(
        command=fake_toolbox_command,
        credentials={"LOOKER_CLIENT_ID": "from-settings"},
        default_timeout=15,
    )


def test_invoke_returns_decoded_payload_and_skips_log_noise(toolbox, fake_toolbox_env) -> None:
    fake_toolbox_env.setenv("FAKE_TOOLBOX_RESPONSES", json.dumps({"get_models": [{"name": "ecommerce"}]}))

    result = toolbox.invoke("get_models", {})

    assert result.exit_code == 0
    assert result.payloads() == [[{"name": "ecommerce"}]]
    assert result.skipped_lines == 3
    assert result.tool_name == "get_models"


def test_invoke_writes_one_tools_call_request(toolbox, fake_toolbox_env, tmp_path: Path) -> None:
    request_log = tmp_path / "requests.log"
    fake_toolbox_env.setenv("FAKE_TOOLBOX_REQUEST_LOG", str(request_log))

    toolbox.invoke("get_explores", {"model": "ecommerce"})
    toolbox.invoke("get_explores", {"model": "sales"})

    requests = [json.loads(line) for line in request_log.read_text("utf-8").splitlines()]
    assert [request["id"] for request in requests] == [FIXED_CORRELATION_ID, FIXED_CORRELATION_ID]
    assert requests[0]["method"] == "tools/call"
    assert requests[1]["params"] == {"name": "get_explores", "arguments": {"model": "sales"}}


def test_invoke_passes_credentials_in_child_environment(toolbox, spawned) -> None:
    toolbox.invoke("get_models")

    [(_, kwargs)] = spawned
    assert kwargs["env"]["LOOKER_CLIENT_ID"] == "from-settings"
    assert kwargs["env"]["LOOKER_BASE_URL"] == "https://looker.example.com"


def test_invoke_uses_fresh_process_per_call(toolbox, spawned) -> None:
    toolbox.invoke("get_models")
    toolbox.invoke("get_models")

    pids = {process.pid for process, _ in spawned}
    assert len(pids) == 2
    assert all(process.poll() is not None for process, _ in spawned)


def test_timeout_kills_process_and_raises_within_deadline(toolbox, fake_toolbox_env, spawned) -> None:
    fake_toolbox_env.setenv("FAKE_TOOLBOX_MODE", "hang")
    fake_toolbox_env.setenv("FAKE_TOOLBOX_HANG_SECONDS", "30")

    started = time.monotonic()
    with pytest.raises(ToolTimeoutError) as error_info:
        toolbox.invoke("query", {"model": "ecommerce"}, timeout=1)
    elapsed = time.monotonic() - started

    assert elapsed < 1 + 4
    assert error_info.value.kind == ErrorKind.TIMEOUT
    assert error_info.value.transient is True
    [(process, _)] = spawned
    assert process.poll() is not None


def test_unsupported_tool_is_detected_from_stderr(toolbox, fake_toolbox_env) -> None:
    fake_toolbox_env.setenv("FAKE_TOOLBOX_UNSUPPORTED_TOOLS", "get_lookml_tests")

    with pytest.raises(UnsupportedToolError) as error_info:
        toolbox.invoke("get_lookml_tests")

    assert error_info.value.kind == ErrorKind.UNSUPPORTED_TOOL
    assert error_info.value.matched_pattern == "unknown tool"


def test_error_envelope_raises_remote_error(toolbox, fake_toolbox_env) -> None:
    fake_toolbox_env.setenv("FAKE_TOOLBOX_MODE", "error")

    with pytest.raises(RemoteToolError, match="Looker API 500") as error_info:
        toolbox.invoke("query")

    assert error_info.value.code == -32000


def test_garbage_only_output_yields_no_envelopes(toolbox, fake_toolbox_env) -> None:
    fake_toolbox_env.setenv("FAKE_TOOLBOX_MODE", "garbage")

    result = toolbox.invoke("query")

    assert result.envelopes == []
    assert result.skipped_lines == 4


def test_missing_binary_raises_start_failure() -> None:
    transport = ToolboxTransport(command=["looker-diag-no-such-toolbox-binary", "--stdio"])

    with pytest.raises(TransportStartError, match="not found") as error_info:
        transport.invoke("get_models")

    assert error_info.value.kind == ErrorKind.TRANSPORT_START_FAILURE


@pytest.mark.parametrize(
    ("tool_name", "arguments", "timeout", "message"),
    [
        ("  ", None, None, "Tool name"),
        ("query", ["not", "a", "mapping"], None, "mapping"),
        ("query", None, 0, "timeout"),
    ],
)
def test_invoke_rejects_invalid_input_before_spawning(
    tool_name, arguments, timeout, message, spawned, fake_toolbox_command
) -> None:
    transport = ToolboxTransport(command=fake_toolbox_command)

    with pytest.raises(ValueError, match=message):
        transport.invoke(tool_name, arguments, timeout=timeout)

    assert spawned == []


def test_constructor_rejects_empty_command() -> None:
    with pytest.raises(ValueError, match="must not be empty"):
        ToolboxTransport(command=[])
