"""Shared test fixtures."""

from __future__ import annotations

import os
import shlex
import sys
from pathlib import Path
from typing import Any

import pytest

from looker_diag.toolbox.base import Envelope, ToolCallResult

FAKE_TOOLBOX_COMMAND = (
    sys.executable,
    "-m",
    "looker_diag.toolbox.fake_toolbox",
    "--stdio",
    "--prebuilt",
    "looker",
)

_SRC_DIR = Path(__file__).resolve().parents[1] / "src"

_FAKE_TOOLBOX_VARIABLES = (
    "FAKE_TOOLBOX_MODE",
    "FAKE_TOOLBOX_RESPONSES",
    "FAKE_TOOLBOX_UNSUPPORTED_TOOLS",
    "FAKE_TOOLBOX_HANG_SECONDS",
    "FAKE_TOOLBOX_DELAYS",
    "FAKE_TOOLBOX_REQUEST_LOG",
)


@pytest.fixture()
def fake_toolbox_env(monkeypatch):
    """Point the CLI at the fake toolbox with dummy Looker credentials."""

    for name in _FAKE_TOOLBOX_VARIABLES:
        monkeypatch.delenv(name, raising=False)
    pythonpath = os.environ.get("PYTHONPATH")
    monkeypatch.setenv(
        "PYTHONPATH",
        os.pathsep.join(filter(None, [str(_SRC_DIR), pythonpath])),
    )
    monkeypatch.setenv("LOOKER_DIAG_TOOLBOX_COMMAND", shlex.join(FAKE_TOOLBOX_COMMAND))
    monkeypatch.setenv("LOOKER_BASE_URL", "https://looker.example.com")
    monkeypatch.setenv("LOOKER_CLIENT_ID", "client-id")
    monkeypatch.setenv("LOOKER_CLIENT_SECRET", "client-secret")
    monkeypatch.setenv("LOOKER_DIAG_TOOL_TIMEOUT_SECONDS", "15")
    monkeypatch.setenv("LOOKER_DIAG_QUERY_TIMEOUT_SECONDS", "15")
    return monkeypatch


@pytest.fixture()
def fake_toolbox_command() -> tuple[str, ...]:
    return FAKE_TOOLBOX_COMMAND


class RecordingTransport:
    """In-process transport answering tool calls from a response table."""

    def __init__(self) -> None:
        self.responses: dict[str, Any] = {}
        self.calls: list[tuple[str, dict[str, Any], float | None]] = []

    def invoke(
        self,
        tool_name: str,
        arguments: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> ToolCallResult:
        self.calls.append((tool_name, dict(arguments or {}), timeout))
        response = self.responses.get(tool_name, [])
        if callable(response):
            response = response(dict(arguments or {}))
        if isinstance(response, Exception):
            raise response
        return ToolCallResult(
            tool_name=tool_name,
            envelopes=[Envelope(kind="data", payload=response)],
            skipped_lines=0,
            exit_code=0,
            duration_ms=1,
        )

    def tools_called(self) -> list[str]:
        return [name for name, _, _ in self.calls]


@pytest.fixture()
def recording_transport() -> RecordingTransport:
    return RecordingTransport()
