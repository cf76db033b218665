"""Request/response types shared by toolbox transports."""

from __future__ import annotations

import json
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

from looker_diag.toolbox.errors import ToolTimeoutError

JSONRPC_VERSION = "2.0"
TOOLS_CALL_METHOD = "tools/call"

EnvelopeKind = Literal["data", "error"]


@dataclass(slots=True, frozen=True)
class RemoteCallRequest:
    """One `tools/call` request written to a toolbox process."""

    correlation_id: int
    tool_name: str
    arguments: dict[str, Any] = field(default_factory=dict)

    def to_line(self) -> str:
        """Serialize as a single newline-terminated JSON-RPC line."""

        payload = {
            "jsonrpc": JSONRPC_VERSION,
            "id": self.correlation_id,
            "method": TOOLS_CALL_METHOD,
            "params": {"name": self.tool_name, "arguments": self.arguments},
        }
        return json.dumps(payload, separators=(",", ":"), default=str) + "\n"


@dataclass(slots=True)
class Envelope:
    """One decoded unit of toolbox output."""

    kind: EnvelopeKind
    payload: Any


@dataclass(slots=True)
class ParsedResponse:
    """Envelopes recovered from one toolbox stdout buffer."""

    envelopes: list[Envelope]
    skipped_lines: int = 0


@dataclass(slots=True)
class ToolCallResult:
    """Outcome of one successful toolbox round trip."""

    tool_name: str
    envelopes: list[Envelope]
    skipped_lines: int
    exit_code: int
    duration_ms: int
    stderr_preview: str = ""

    def payloads(self) -> list[Any]:
        return [envelope.payload for envelope in self.envelopes if envelope.kind == "data"]


class ToolTransport(Protocol):
    """Protocol implemented by toolbox transports."""

    def invoke(
        self,
        tool_name: str,
        arguments: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> ToolCallResult:
        """Run one tool call and return decoded envelopes."""


class Deadline:
    """Cutoff shared by every toolbox call made on behalf of one fetch task.

    A deadline expires when its time runs out, when it is cancelled, or when
    its parent expires.
    """

    def __init__(self, seconds: float, *, parent: Deadline | None = None) -> None:
        self.seconds = seconds
        self.parent = parent
        self._expires_at = time.monotonic() + seconds
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    def remaining(self) -> float:
        if self._cancelled.is_set():
            return 0.0
        remaining = max(0.0, self._expires_at - time.monotonic())
        if self.parent is not None:
            remaining = min(remaining, self.parent.remaining())
        return remaining

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0

    def bound(self, timeout: float, *, tool_name: str) -> float:
        """Clamp a per-call timeout to the time left; raise once nothing is left."""

        remaining = self.remaining()
        if remaining <= 0:
            raise ToolTimeoutError(tool_name=tool_name, timeout_seconds=self.seconds)
        return min(timeout, remaining)
