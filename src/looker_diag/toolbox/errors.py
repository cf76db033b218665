"""Typed failures raised by the toolbox transport and envelope parser."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Normalized failure kinds surfaced to orchestration and reports."""

    TIMEOUT = "timeout"
    UNSUPPORTED_TOOL = "unsupported_tool"
    REMOTE_ERROR = "remote_error"
    PARSE_SKIP = "parse_skip"
    TRANSPORT_START_FAILURE = "transport_start_failure"
    UNEXPECTED = "unexpected"


class ToolCallError(RuntimeError):
    """Remote tool call failure with error kind and retryability hint."""

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(self, message: str, *, tool_name: str, transient: bool = False) -> None:
        super().__init__(message)
        self.tool_name = tool_name
        self.transient = transient


class ToolTimeoutError(ToolCallError):
    """The toolbox process exceeded its deadline and was killed."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, *, tool_name: str, timeout_seconds: float) -> None:
        super().__init__(
            f"Toolbox call {tool_name!r} timed out after {timeout_seconds:g}s",
            tool_name=tool_name,
            transient=True,
        )
        self.timeout_seconds = timeout_seconds


class UnsupportedToolError(ToolCallError):
    """The toolbox rejected the tool name."""

    kind = ErrorKind.UNSUPPORTED_TOOL

    def __init__(self, *, tool_name: str, matched_pattern: str) -> None:
        super().__init__(
            f"Toolbox does not support tool {tool_name!r} (matched {matched_pattern!r})",
            tool_name=tool_name,
        )
        self.matched_pattern = matched_pattern


class RemoteToolError(ToolCallError):
    """A well-formed JSON-RPC error envelope was received."""

    kind = ErrorKind.REMOTE_ERROR

    def __init__(self, message: str, *, tool_name: str, code: int | None = None) -> None:
        super().__init__(message, tool_name=tool_name)
        self.code = code


class TransportStartError(ToolCallError):
    """The toolbox process could not be launched."""

    kind = ErrorKind.TRANSPORT_START_FAILURE
