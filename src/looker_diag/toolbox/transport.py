"""Subprocess transport: one toolbox process per tool call."""

from __future__ import annotations

import logging
import os
import subprocess
import time
from collections.abc import Mapping, Sequence
from typing import Any

from looker_diag.toolbox.base import RemoteCallRequest, ToolCallResult
from looker_diag.toolbox.envelope import parse_response
from looker_diag.toolbox.errors import (
    ErrorKind,
    RemoteToolError,
    ToolTimeoutError,
    TransportStartError,
    UnsupportedToolError,
)
from looker_diag.toolbox.failure_classifier import classify_stderr

logger = logging.getLogger(__name__)

# One request per process.
FIXED_CORRELATION_ID = 1
DEFAULT_CALL_TIMEOUT_SECONDS = 20.0
_REAP_TIMEOUT_SECONDS = 2.0
_STDERR_PREVIEW_CHARS = 500


class ToolboxTransport:
    """Spawn the toolbox binary, send one `tools/call` request, collect output."""

    def __init__(
        self,
        *,
        command: Sequence[str],
        credentials: Mapping[str, str] | None = None,
        default_timeout: float = DEFAULT_CALL_TIMEOUT_SECONDS,
    ) -> None:
        if not command:
            raise ValueError("Toolbox command must not be empty.")
        if default_timeout <= 0:
            raise ValueError("Toolbox default timeout must be > 0.")
        self.command = list(command)
        self.credentials = dict(credentials or {})
        self.default_timeout = default_timeout

    def invoke(
        self,
        tool_name: str,
        arguments: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> ToolCallResult:
        if not tool_name.strip():
            raise ValueError("Tool name must not be empty.")
        if arguments is not None and not isinstance(arguments, Mapping):
            raise ValueError(f"Tool arguments must be a mapping, got {type(arguments).__name__}.")
        effective_timeout = self.default_timeout if timeout is None else timeout
        if effective_timeout <= 0:
            raise ValueError("Tool call timeout must be > 0.")

        request = RemoteCallRequest(
            correlation_id=FIXED_CORRELATION_ID,
            tool_name=tool_name,
            arguments=dict(arguments or {}),
        )
        env = os.environ.copy()
        env.update(self.credentials)

        logger.debug("Invoking toolbox tool %s (timeout=%ss)", tool_name, effective_timeout)
        started = time.monotonic()
        process = self._spawn(env=env, tool_name=tool_name)
        try:
            stdout, stderr = process.communicate(
                input=request.to_line(),
                timeout=effective_timeout,
            )
        except subprocess.TimeoutExpired as error:
            _kill_process(process)
            logger.warning("Toolbox tool %s timed out after %ss", tool_name, effective_timeout)
            raise ToolTimeoutError(
                tool_name=tool_name,
                timeout_seconds=effective_timeout,
            ) from error
        duration_ms = int((time.monotonic() - started) * 1000)

        classification = classify_stderr(stderr)
        if classification.kind == ErrorKind.UNSUPPORTED_TOOL:
            raise UnsupportedToolError(
                tool_name=tool_name,
                matched_pattern=classification.matched_pattern or "",
            )

        try:
            parsed = parse_response(stdout, tool_name)
        except RemoteToolError as error:
            error.transient = classification.transient
            raise

        if process.returncode != 0:
            logger.warning(
                "Toolbox tool %s exited with code %s: %s",
                tool_name,
                process.returncode,
                _preview(stderr),
            )
        logger.debug(
            "Toolbox tool %s finished in %dms: envelopes=%d skipped=%d",
            tool_name,
            duration_ms,
            len(parsed.envelopes),
            parsed.skipped_lines,
        )
        return ToolCallResult(
            tool_name=tool_name,
            envelopes=parsed.envelopes,
            skipped_lines=parsed.skipped_lines,
            exit_code=process.returncode,
            duration_ms=duration_ms,
            stderr_preview=_preview(stderr),
        )

    def _spawn(self, *, env: dict[str, str], tool_name: str) -> subprocess.Popen[str]:
        try:
            return subprocess.Popen(  # noqa: S603
                self.command,
                env=env,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except FileNotFoundError as error:
            raise TransportStartError(
                f"Toolbox command not found: {self.command[0]}",
                tool_name=tool_name,
            ) from error
        except OSError as error:
            raise TransportStartError(
                f"Toolbox failed to start: {error}",
                tool_name=tool_name,
                transient=True,
            ) from error


def _kill_process(process: subprocess.Popen[str]) -> None:
    try:
        process.kill()
    except OSError:
        return
    try:
        process.communicate(timeout=_REAP_TIMEOUT_SECONDS)
    except subprocess.TimeoutExpired:
        logger.warning("Toolbox process %s still running after SIGKILL", process.pid)


def _preview(text: str) -> str:
    compact = " ".join(text.split())
    return compact[:_STDERR_PREVIEW_CHARS]
