"""Looker MCP toolbox transport: one subprocess per JSON-RPC tool call."""

from looker_diag.toolbox.base import Deadline, Envelope, RemoteCallRequest, ToolCallResult, ToolTransport
from looker_diag.toolbox.errors import (
    ErrorKind,
    RemoteToolError,
    ToolCallError,
    ToolTimeoutError,
    TransportStartError,
    UnsupportedToolError,
)
from looker_diag.toolbox.transport import ToolboxTransport

__all__ = [
    "Deadline",
    "Envelope",
    "ErrorKind",
    "RemoteCallRequest",
    "RemoteToolError",
    "ToolCallError",
    "ToolCallResult",
    "ToolTimeoutError",
    "ToolTransport",
    "ToolboxTransport",
    "TransportStartError",
    "UnsupportedToolError",
]
