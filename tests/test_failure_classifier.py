from __future__ import annotations

import allure

from looker_diag.toolbox.errors import ErrorKind
from looker_diag.toolbox.failure_classifier import (
    TOOLBOX_FAILURE_CLASSIFIER_VERSION,
    classify_stderr,
)

pytestmark = [
    allure.epic("Toolbox Transport"),
    allure.feature("Stderr Classification"),
]


def test_classifier_version_is_stable() -> None:
    assert TOOLBOX_FAILURE_CLASSIFIER_VERSION == 1


def test_classifier_detects_unknown_tool() -> None:
    classified = classify_stderr('2026-01-01 ERROR Unknown Tool "get_lookml_tests"')

    assert classified.kind == ErrorKind.UNSUPPORTED_TOOL
    assert classified.matched_rule == "unsupported_tool"
    assert classified.matched_pattern == "unknown tool"
    assert classified.transient is False


def test_classifier_prefers_unsupported_over_transient_hint() -> None:
    classified = classify_stderr("rate limit reached; method not found")

    assert classified.kind == ErrorKind.UNSUPPORTED_TOOL
    assert classified.matched_pattern == "method not found"


def test_classifier_marks_rate_limit_as_transient_without_kind() -> None:
    classified = classify_stderr("HTTP 429 Too Many Requests from Looker API")

    assert classified.kind is None
    assert classified.transient is True
    assert classified.matched_rule == "transient_hint"
    assert classified.matched_pattern == "too many requests"


def test_classifier_ignores_plain_log_output() -> None:
    classified = classify_stderr("INFO Initialized 1 sources.\nINFO Server ready to serve!")

    assert classified.kind is None
    assert classified.transient is False
    assert classified.matched_rule == "no_match"
    assert classified.matched_pattern is None
