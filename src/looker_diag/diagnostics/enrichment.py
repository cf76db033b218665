"""Derived runtime categories, priorities and immediate recommendations."""

from __future__ import annotations

from looker_diag.diagnostics.models import (
    GroupSummary,
    OptimizationPriority,
    QueryRecord,
    Recommendation,
    RuntimeCategory,
)

CRITICAL_RUNTIME_SECONDS = 120.0
HIGH_RUNTIME_SECONDS = 60.0
MEDIUM_RUNTIME_SECONDS = 30.0
PDT_CANDIDATE_MIN_QUERIES = 3


def categorize_runtime(runtime_seconds: float) -> RuntimeCategory:
    if runtime_seconds > CRITICAL_RUNTIME_SECONDS:
        return RuntimeCategory.CRITICAL
    if runtime_seconds > HIGH_RUNTIME_SECONDS:
        return RuntimeCategory.HIGH
    if runtime_seconds > MEDIUM_RUNTIME_SECONDS:
        return RuntimeCategory.MEDIUM
    return RuntimeCategory.ACCEPTABLE


def optimization_priority(record: QueryRecord) -> OptimizationPriority:
    """Dashboard-backed queries are seen by more users, so they rank higher."""

    runtime = record.runtime_seconds
    on_dashboard = bool(record.dashboard_title)
    if runtime > HIGH_RUNTIME_SECONDS and on_dashboard:
        return OptimizationPriority.CRITICAL
    if runtime > MEDIUM_RUNTIME_SECONDS and on_dashboard:
        return OptimizationPriority.HIGH
    if runtime > HIGH_RUNTIME_SECONDS:
        return OptimizationPriority.HIGH
    if runtime > MEDIUM_RUNTIME_SECONDS:
        return OptimizationPriority.MEDIUM
    return OptimizationPriority.LOW


def immediate_recommendations(groups: list[GroupSummary]) -> list[Recommendation]:
    recommendations: list[Recommendation] = []

    critical = sorted(
        (
            record
            for group in groups
            for record in group.records
            if record.runtime_seconds > CRITICAL_RUNTIME_SECONDS
        ),
        key=lambda record: record.runtime_seconds,
        reverse=True,
    )
    if critical:
        recommendations.append(
            Recommendation(
                priority=OptimizationPriority.CRITICAL,
                kind="immediate_action",
                title=f"{len(critical)} critical queries need immediate attention",
                description="Queries taking more than 2 minutes require urgent optimization.",
                query_ids=tuple(record.id for record in critical[:3]),
            ),
        )

    for group in groups:
        if group.query_count < PDT_CANDIDATE_MIN_QUERIES:
            continue
        if group.avg_runtime <= MEDIUM_RUNTIME_SECONDS:
            continue
        recommendations.append(
            Recommendation(
                priority=OptimizationPriority.HIGH,
                kind="pdt_candidate",
                title=f"Create a PDT for {group.key}",
                description=(
                    f"{group.query_count} slow queries averaging {group.avg_runtime:.1f}s"
                ),
                query_ids=tuple(record.id for record in group.records),
            ),
        )
    return recommendations
