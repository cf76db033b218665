"""Deterministic classification of toolbox stderr output."""

from __future__ import annotations

from dataclasses import dataclass

from looker_diag.toolbox.errors import ErrorKind

TOOLBOX_FAILURE_CLASSIFIER_VERSION = 1

_UNSUPPORTED_TOOL_PATTERNS: tuple[str, ...] = (
    "unknown tool",
    "tool not found",
    "invalid tool name",
    "unsupported tool",
    "method not found",
    "is not supported",
)
_TRANSIENT_PATTERNS: tuple[str, ...] = (
    "too many requests",
    "rate limit",
    "429",
    "temporarily unavailable",
    "connection reset",
    "connection refused",
    "could not resolve host",
    "i/o timeout",
)


@dataclass(slots=True)
class StderrClassification:
    """Normalized stderr classification result."""

    kind: ErrorKind | None
    transient: bool
    matched_rule: str
    matched_pattern: str | None


def classify_stderr(stderr: str) -> StderrClassification:
    """Classify toolbox stderr; `kind` is None when nothing fatal was found."""

    haystack = stderr.lower()

    pattern = _first_match(haystack, _UNSUPPORTED_TOOL_PATTERNS)
    if pattern is not None:
        return StderrClassification(
            kind=ErrorKind.UNSUPPORTED_TOOL,
            transient=False,
            matched_rule="unsupported_tool",
            matched_pattern=pattern,
        )

    pattern = _first_match(haystack, _TRANSIENT_PATTERNS)
    if pattern is not None:
        return StderrClassification(
            kind=None,
            transient=True,
            matched_rule="transient_hint",
            matched_pattern=pattern,
        )

    return StderrClassification(
        kind=None,
        transient=False,
        matched_rule="no_match",
        matched_pattern=None,
    )


def _first_match(haystack: str, patterns: tuple[str, ...]) -> str | None:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None
