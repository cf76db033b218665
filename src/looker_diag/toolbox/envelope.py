"""Tolerant decoding of newline-delimited JSON-RPC toolbox output."""

from __future__ import annotations

import json
import logging
from typing import Any

from looker_diag.toolbox.base import Envelope, ParsedResponse
from looker_diag.toolbox.errors import ErrorKind, RemoteToolError

logger = logging.getLogger(__name__)


def parse_response(raw: str, tool_name: str) -> ParsedResponse:
    """Decode every protocol line in `raw`, skipping anything that is not one.

    The toolbox interleaves its own log lines with protocol lines, so a line
    that fails to decode is counted and dropped. An error envelope stops
    parsing and raises `RemoteToolError`.
    """

    envelopes: list[Envelope] = []
    skipped = 0
    for line in raw.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        message = _try_load_dict(stripped)
        if message is None:
            skipped += 1
            logger.debug("Skipping non-protocol line from %s: %.80s", tool_name, stripped)
            continue

        error = message.get("error")
        if error is not None:
            raise _remote_error(error, tool_name=tool_name)

        result = message.get("result")
        if not isinstance(result, dict):
            skipped += 1
            logger.debug("Skipping JSON line without result from %s", tool_name)
            continue

        content = result.get("content")
        if not isinstance(content, list):
            continue
        envelopes.extend(Envelope(kind="data", payload=_decode_item(item)) for item in content)

    if skipped:
        logger.debug(
            "Parsed %s response: envelopes=%d %s=%d",
            tool_name,
            len(envelopes),
            ErrorKind.PARSE_SKIP.value,
            skipped,
        )
    return ParsedResponse(envelopes=envelopes, skipped_lines=skipped)


def _decode_item(item: Any) -> Any:
    if not isinstance(item, dict) or item.get("type") != "text":
        return item
    text = item.get("text")
    if not isinstance(text, str) or not text:
        return item
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return {"raw_text": text}


def _remote_error(error: object, *, tool_name: str) -> RemoteToolError:
    if isinstance(error, dict):
        message = error.get("message")
        code = error.get("code")
        return RemoteToolError(
            str(message) if message else f"Toolbox error in {tool_name}",
            tool_name=tool_name,
            code=code if isinstance(code, int) else None,
        )
    return RemoteToolError(str(error) or f"Toolbox error in {tool_name}", tool_name=tool_name)


def _try_load_dict(raw: str) -> dict[str, Any] | None:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, dict):
        return None
    return parsed
