"""Controllers for diagnostic CLI commands."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from looker_diag.config import Settings
from looker_diag.diagnostics.report import (
    explores_to_dicts,
    lookml_files_to_dicts,
    render_degraded_lines,
    render_scan_lines,
    render_slow_query_lines,
    report_to_dict,
    slow_query_report_to_dict,
)
from looker_diag.diagnostics.service import DiagnosticService
from looker_diag.toolbox.client import LookerToolClient
from looker_diag.toolbox.errors import ToolCallError
from looker_diag.toolbox.transport import ToolboxTransport


@dataclass(slots=True)
class ScanCommand:
    """CLI input for a full concurrent scan."""

    output_format: str = "table"


@dataclass(slots=True)
class ExploresCommand:
    """CLI input for explore catalog listing."""

    output_format: str = "table"


@dataclass(slots=True)
class SlowQueriesCommand:
    """CLI input for slow query ranking."""

    time_range: str | None
    runtime_floor: float | None
    per_group_cap: int | None
    max_groups: int | None
    output_format: str = "table"


@dataclass(slots=True)
class LookmlCommand:
    """CLI input for LookML file listing."""

    max_projects: int | None
    max_files_per_project: int | None
    output_format: str = "table"


@dataclass(slots=True)
class DashboardsCommand:
    """CLI input for paginated dashboard listing."""

    page_size: int
    max_pages: int
    output_format: str = "table"


@dataclass(slots=True)
class CheckResult:
    """Connectivity check report to render in CLI."""

    lines: list[str]
    success: bool


class DiagnosticsCliController:
    """Builds the toolbox stack from settings and renders diagnostic results."""

    def scan(self, command: ScanCommand) -> list[str]:
        report = _service(_settings()).run_scan()
        if command.output_format == "json":
            return _json_lines(report_to_dict(report))
        return render_scan_lines(report)

    def explores(self, command: ExploresCommand) -> list[str]:
        service = _service(_settings())
        explores = service.fetch_explore_catalog()
        degraded = service.log.entries()
        if command.output_format == "json":
            return _json_lines(
                {
                    "explores": explores_to_dicts(explores),
                    "degraded": [entry.to_dict() for entry in degraded],
                },
            )
        lines = [f"Explores: {len(explores)}"]
        lines.extend(
            f"  - {explore.key} ({explore.label}){' [hidden]' if explore.hidden else ''}"
            for explore in explores
        )
        lines.extend(render_degraded_lines(degraded))
        return lines

    def slow_queries(self, command: SlowQueriesCommand) -> list[str]:
        service = _service(_settings())
        report = service.fetch_top_slow_operations(
            time_range=command.time_range,
            runtime_floor=command.runtime_floor,
            per_group_cap=command.per_group_cap,
            max_groups=command.max_groups,
        )
        degraded = service.log.entries()
        if command.output_format == "json":
            return _json_lines(
                {
                    **slow_query_report_to_dict(report),
                    "degraded": [entry.to_dict() for entry in degraded],
                },
            )
        return render_slow_query_lines(report) + render_degraded_lines(degraded)

    def lookml(self, command: LookmlCommand) -> list[str]:
        service = _service(_settings())
        files = service.fetch_lookml_files(
            max_projects=command.max_projects,
            max_files_per_project=command.max_files_per_project,
        )
        degraded = service.log.entries()
        if command.output_format == "json":
            return _json_lines(
                {
                    "lookml_files": lookml_files_to_dicts(files),
                    "degraded": [entry.to_dict() for entry in degraded],
                },
            )
        lines = [f"LookML files: {len(files)}"]
        lines.extend(
            f"  - {item.project}/{item.path} type={item.file_type} chars={len(item.content)}"
            for item in files
        )
        lines.extend(render_degraded_lines(degraded))
        return lines

    def dashboards(self, command: DashboardsCommand) -> list[str]:
        client = _client(_settings())
        try:
            dashboards = list(
                client.iter_dashboards(page_size=command.page_size, max_pages=command.max_pages),
            )
        except ToolCallError as error:
            return [f"Dashboard listing failed [{error.kind.value}]: {error}"]
        if command.output_format == "json":
            return _json_lines(
                [
                    {"id": item.id, "title": item.title, "description": item.description}
                    for item in dashboards
                ],
            )
        lines = [f"Dashboards: {len(dashboards)}"]
        lines.extend(f"  - {item.id}: {item.title}" for item in dashboards)
        return lines

    def check(self) -> CheckResult:
        settings = _settings()
        service = _service(settings)
        result = service.test_connection()
        lines = [
            f"Toolbox command: {' '.join(settings.toolbox.command)}",
            result.message,
        ]
        if result.success:
            lines.append(f"Models found: {result.models_found}")
        return CheckResult(lines=lines, success=result.success)


def _settings() -> Settings:
    settings = Settings.from_env()
    settings.validate()
    settings.require_credentials()
    return settings


def _client(settings: Settings) -> LookerToolClient:
    transport = ToolboxTransport(
        command=settings.toolbox.command,
        credentials=settings.toolbox.credentials_env(),
        default_timeout=settings.toolbox.tool_timeout_seconds,
    )
    return LookerToolClient(
        transport,
        tool_timeout=settings.toolbox.tool_timeout_seconds,
        query_timeout=settings.toolbox.query_timeout_seconds,
    )


def _service(settings: Settings) -> DiagnosticService:
    return DiagnosticService(client=_client(settings), settings=settings)


def _json_lines(payload: Any) -> list[str]:
    return [json.dumps(payload, ensure_ascii=False, indent=2)]
