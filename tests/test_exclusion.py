from __future__ import annotations

import allure
import pytest

from looker_diag.diagnostics.exclusion import ExclusionRuleSet, default_exclusion_rules

pytestmark = [
    allure.epic("Slow Query Diagnostics"),
    allure.feature("Exclusion Rules"),
]


@pytest.mark.parametrize(
    "name",
    ["system__activity", "System__Activity", "i__looker", "lookml_model_explore", "git_branch", "admin"],
)
def test_default_rules_exclude_internal_models(name: str) -> None:
    assert default_exclusion_rules().matches_name(name)


@pytest.mark.parametrize("name", ["ecommerce", "orders", "sales", "customers", "", None])
def test_default_rules_keep_user_models(name: str | None) -> None:
    assert not default_exclusion_rules().matches_name(name)


def test_excludes_checks_both_halves_of_group_key() -> None:
    rules = default_exclusion_rules()

    assert rules.excludes("ecommerce", "content_usage")
    assert rules.excludes("system__activity", "orders")
    assert not rules.excludes("ecommerce", "orders")
    assert not rules.excludes("ecommerce")


def test_extra_names_and_patterns_extend_rules_without_mutating() -> None:
    base = ExclusionRuleSet.build(names=["alpha"], patterns=["tmp_"])

    merged = base.merged(names=[" Beta "], patterns=["scratch"])

    assert merged.matches_name("BETA")
    assert merged.matches_name("my_scratch_area")
    assert merged.matches_name("tmp_orders")
    assert not base.matches_name("beta")


def test_exact_names_do_not_match_as_substrings() -> None:
    rules = ExclusionRuleSet.build(names=["table"])

    assert rules.matches_name("Table")
    assert not rules.matches_name("timetable_facts")


def test_default_rules_accept_extra_names() -> None:
    rules = default_exclusion_rules(extra_names=["sandbox"], extra_patterns=["_staging"])

    assert rules.excludes("sandbox", "orders")
    assert rules.excludes("ecommerce", "orders_staging")
