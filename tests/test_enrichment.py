from __future__ import annotations

import allure
import pytest

from looker_diag.diagnostics.enrichment import (
    categorize_runtime,
    immediate_recommendations,
    optimization_priority,
)
from looker_diag.diagnostics.models import (
    GroupSummary,
    OptimizationPriority,
    QueryRecord,
    RuntimeCategory,
)

pytestmark = [
    allure.epic("Slow Query Diagnostics"),
    allure.feature("Enrichment & Recommendations"),
]


def _record(query_id: str, runtime: float, dashboard: str | None = None) -> QueryRecord:
    return QueryRecord(
        id=query_id,
        model="ecommerce",
        explore="orders",
        runtime_seconds=runtime,
        dashboard_title=dashboard,
    )


@pytest.mark.parametrize(
    ("runtime", "category"),
    [
        (121, RuntimeCategory.CRITICAL),
        (120, RuntimeCategory.HIGH),
        (60.5, RuntimeCategory.HIGH),
        (60, RuntimeCategory.MEDIUM),
        (30, RuntimeCategory.ACCEPTABLE),
        (0, RuntimeCategory.ACCEPTABLE),
    ],
)
def test_categorize_runtime_boundaries(runtime: float, category: RuntimeCategory) -> None:
    assert categorize_runtime(runtime) == category


@pytest.mark.parametrize(
    ("runtime", "dashboard", "priority"),
    [
        (61, "Revenue", OptimizationPriority.CRITICAL),
        (45, "Revenue", OptimizationPriority.HIGH),
        (61, None, OptimizationPriority.HIGH),
        (45, None, OptimizationPriority.MEDIUM),
        (20, "Revenue", OptimizationPriority.LOW),
    ],
)
def test_optimization_priority_boosts_dashboard_queries(
    runtime: float,
    dashboard: str | None,
    priority: OptimizationPriority,
) -> None:
    assert optimization_priority(_record("1", runtime, dashboard)) == priority


def test_recommendations_flag_critical_queries_and_pdt_candidates() -> None:
    orders = GroupSummary(
        key="ecommerce.orders",
        total_cost=600,
        query_count=4,
        records=[_record("a", 200), _record("b", 180), _record("c", 150), _record("d", 70)],
    )
    customers = GroupSummary(
        key="sales.customers",
        total_cost=40,
        query_count=2,
        records=[_record("e", 130), _record("f", 10)],
    )

    recommendations = immediate_recommendations([orders, customers])

    assert [item.kind for item in recommendations] == ["immediate_action", "pdt_candidate"]
    immediate, pdt = recommendations
    assert immediate.priority == OptimizationPriority.CRITICAL
    assert immediate.query_ids == ("a", "b", "c")
    assert immediate.title.startswith("4 critical queries")
    assert pdt.priority == OptimizationPriority.HIGH
    assert pdt.title == "Create a PDT for ecommerce.orders"


def test_recommendations_empty_for_fast_groups() -> None:
    group = GroupSummary(
        key="ecommerce.orders",
        total_cost=30,
        query_count=3,
        records=[_record("a", 10), _record("b", 10), _record("c", 10)],
    )

    assert immediate_recommendations([group]) == []
