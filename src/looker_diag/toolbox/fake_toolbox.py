"""Local stand-in for the toolbox binary used by transport and CLI tests.

Reads one JSON-RPC request from stdin and answers it the way the real
toolbox does: log lines interleaved with protocol lines on stdout. Behaviour
is driven by environment variables:

- ``FAKE_TOOLBOX_MODE``: ``ok`` (default), ``hang``, ``unsupported``, ``error``
  or ``garbage``.
- ``FAKE_TOOLBOX_RESPONSES``: JSON object mapping tool name to the payload
  returned for it; merged over the built-in sample catalog.
- ``FAKE_TOOLBOX_UNSUPPORTED_TOOLS``: comma-separated tools answered as unknown.
- ``FAKE_TOOLBOX_HANG_SECONDS``: sleep length for ``hang`` mode.
- ``FAKE_TOOLBOX_DELAYS``: JSON object mapping tool name to seconds slept
  before answering it.
- ``FAKE_TOOLBOX_REQUEST_LOG``: file that receives each raw request line.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
import time
from pathlib import Path
from typing import Any

SAMPLE_RESPONSES: dict[str, Any] = {
    "get_models": [
        {"name": "ecommerce", "project_name": "shop", "explores": [{"name": "orders"}]},
        {"name": "sales", "project_name": "shop", "explores": []},
        {"name": "system__activity", "project_name": None, "explores": [{"name": "history"}]},
    ],
    "get_explores": [
        {"name": "customers", "label": "Customers", "description": "Customer facts"},
        {"name": "pipeline", "label": "Pipeline", "hidden": True},
    ],
    "query": [
        {
            "query.id": "101",
            "query.model": "ecommerce",
            "query.view": "orders",
            "history.runtime": 95.5,
            "dashboard.title": "Revenue",
        },
        {"query.id": "102", "query.model": "ecommerce", "query.view": "orders", "history.runtime": 41.0},
        {"query.id": "103", "query.model": "sales", "query.view": "customers", "history.runtime": 12.5},
        {
            "query.id": "104",
            "query.model": "system__activity",
            "query.view": "history",
            "history.runtime": 300,
        },
    ],
    "get_projects": [{"id": "shop"}],
    "get_project_files": [{"path": "orders.view.lkml"}, {"path": "manifest.json"}],
    "get_project_file": {"content": "view: orders {\n  sql_table_name: public.orders ;;\n}\n"},
    "get_dashboards": [
        {"id": "1", "title": "Revenue", "description": "Daily revenue"},
        {"id": "2", "title": "Funnel", "description": ""},
    ],
}

_LOG_NOISE = (
    "2026-01-01T00:00:00Z INFO \"Initialized 1 sources.\"",
    "2026-01-01T00:00:00Z INFO \"Server ready to serve!\"",
)


def main(argv: list[str] | None = None) -> int:
    """Answer exactly one tool call from stdin."""

    parser = argparse.ArgumentParser()
    parser.add_argument("--stdio", action="store_true")
    parser.add_argument("--prebuilt", default=None)
    parser.parse_known_args(argv)

    mode = os.getenv("FAKE_TOOLBOX_MODE", "ok").strip().lower()
    if mode == "hang":
        time.sleep(float(os.getenv("FAKE_TOOLBOX_HANG_SECONDS", "30")))
        return 0

    line = sys.stdin.readline()
    _append_request("FAKE_TOOLBOX_REQUEST_LOG", line)
    request = json.loads(line)
    tool_name = request["params"]["name"]
    request_id = request.get("id")
    delay = json.loads(os.getenv("FAKE_TOOLBOX_DELAYS", "{}")).get(tool_name)
    if delay:
        time.sleep(float(delay))

    unsupported = {
        name.strip() for name in os.getenv("FAKE_TOOLBOX_UNSUPPORTED_TOOLS", "").split(",") if name.strip()
    }
    if mode == "unsupported" or tool_name in unsupported:
        print(f'unknown tool "{tool_name}"', file=sys.stderr)
        return 1

    for noise in _LOG_NOISE:
        print(noise)
    if mode == "error":
        _emit({"jsonrpc": "2.0", "id": request_id, "error": {"code": -32000, "message": "Looker API 500"}})
        return 0
    if mode == "garbage":
        print("{not json")
        print("[1, 2, 3]")
        return 0

    responses = dict(SAMPLE_RESPONSES)
    responses.update(json.loads(os.getenv("FAKE_TOOLBOX_RESPONSES", "{}")))
    payload = responses.get(tool_name, [])
    _emit(
        {
            "jsonrpc": "2.0",
            "id": request_id,
            "result": {"content": [{"type": "text", "text": json.dumps(payload)}]},
        },
    )
    print("2026-01-01T00:00:01Z INFO \"Shutting down.\"")
    return 0


def _emit(message: dict[str, Any]) -> None:
    print(json.dumps(message), flush=True)


def _append_request(env_name: str, text: str) -> None:
    target = os.getenv(env_name)
    if target:
        with Path(target).open("a", encoding="utf-8") as handle:
            handle.write(text if text.endswith("\n") else text + "\n")


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
