"""Plain-line and JSON rendering of diagnostic results."""

from __future__ import annotations

from typing import Any

from looker_diag.diagnostics.enrichment import optimization_priority
from looker_diag.diagnostics.models import (
    DiagnosticEntry,
    DiagnosticReport,
    ExploreRecord,
    LookmlFile,
    SlowQueryReport,
)

_TOP_GROUPS_IN_LINES = 10


def slow_query_report_to_dict(report: SlowQueryReport) -> dict[str, Any]:
    return {
        "time_range": report.time_range,
        "runtime_floor": report.runtime_floor,
        "candidates_seen": report.candidates_seen,
        "total_queries": len(report.records),
        "unique_explores": len(report.groups),
        "average_runtime": round(report.average_runtime, 3),
        "groups": [
            {
                "key": group.key,
                "total_runtime": round(group.total_cost, 3),
                "query_count": group.query_count,
                "avg_runtime": round(group.avg_runtime, 3),
                "queries": [
                    {
                        **record.to_dict(),
                        "optimization_priority": optimization_priority(record).value,
                    }
                    for record in group.records
                ],
            }
            for group in report.groups
        ],
    }


def explores_to_dicts(explores: list[ExploreRecord]) -> list[dict[str, Any]]:
    return [
        {
            "model": explore.model,
            "name": explore.name,
            "label": explore.label,
            "description": explore.description,
            "group_label": explore.group_label,
            "hidden": explore.hidden,
        }
        for explore in explores
    ]


def lookml_files_to_dicts(files: list[LookmlFile]) -> list[dict[str, Any]]:
    return [
        {
            "project": lookml_file.project,
            "path": lookml_file.path,
            "type": lookml_file.file_type,
            "size_chars": len(lookml_file.content),
        }
        for lookml_file in files
    ]


def report_to_dict(report: DiagnosticReport) -> dict[str, Any]:
    return {
        "started_at": report.started_at.isoformat(),
        "duration_ms": report.duration_ms,
        "explores": explores_to_dicts(report.explores),
        "slow_queries": slow_query_report_to_dict(report.slow_queries),
        "lookml_files": lookml_files_to_dicts(report.lookml_files),
        "recommendations": [
            {
                "priority": item.priority.value,
                "type": item.kind,
                "title": item.title,
                "description": item.description,
                "query_ids": list(item.query_ids),
            }
            for item in report.recommendations
        ],
        "degraded": [entry.to_dict() for entry in report.degraded],
    }


def render_slow_query_lines(report: SlowQueryReport) -> list[str]:
    lines = [
        "Slow queries: "
        f"total={len(report.records)} explores={len(report.groups)} "
        f"candidates={report.candidates_seen} avg_runtime={report.average_runtime:.1f}s",
    ]
    for index, group in enumerate(report.groups[:_TOP_GROUPS_IN_LINES], start=1):
        lines.append(
            f"  {index}. {group.key}: total={group.total_cost:.1f}s "
            f"queries={group.query_count} avg={group.avg_runtime:.1f}s",
        )
        for record in group.records:
            dashboard = f" dashboard={record.dashboard_title!r}" if record.dashboard_title else ""
            lines.append(
                f"     - query={record.id} runtime={record.runtime_seconds:.1f}s "
                f"priority={optimization_priority(record).value}{dashboard}",
            )
    return lines


def render_degraded_lines(entries: list[DiagnosticEntry]) -> list[str]:
    if not entries:
        return []
    lines = [f"Degraded fetches: {len(entries)}"]
    for entry in entries:
        hint = ", transient" if entry.transient else ""
        lines.append(f"  - {entry.task} [{entry.kind.value}{hint}] {entry.message}")
    return lines


def render_scan_lines(report: DiagnosticReport) -> list[str]:
    lines = [
        f"Scan finished in {report.duration_ms}ms at {report.started_at.isoformat()}",
        f"Explores: {len(report.explores)}",
        f"LookML files: {len(report.lookml_files)}",
    ]
    lines.extend(render_slow_query_lines(report.slow_queries))
    if report.recommendations:
        lines.append(f"Recommendations: {len(report.recommendations)}")
        lines.extend(
            f"  - [{item.priority.value}] {item.title}: {item.description}"
            for item in report.recommendations
        )
    lines.extend(render_degraded_lines(report.degraded))
    return lines
