"""Named Looker toolbox operations on top of a single transport."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import datetime
from typing import Any

from looker_diag.diagnostics.ladder import QueryFilter
from looker_diag.diagnostics.models import (
    DashboardRecord,
    ExploreRecord,
    LookmlFile,
    ModelRecord,
    QueryRecord,
)
from looker_diag.toolbox.base import Deadline, ToolTransport

logger = logging.getLogger(__name__)

DEFAULT_TOOL_TIMEOUT_SECONDS = 20.0
DEFAULT_QUERY_TIMEOUT_SECONDS = 30.0

HISTORY_MODEL = "system__activity"
HISTORY_EXPLORE = "history"
HISTORY_FIELDS: tuple[str, ...] = (
    "query.id",
    "query.slug",
    "query.model",
    "query.view",
    "history.runtime",
    "history.created_date",
    "dashboard.title",
    "user.email",
)


class LookerToolClient:
    """Typed wrappers for the toolbox tools this diagnostic relies on."""

    def __init__(
        self,
        transport: ToolTransport,
        *,
        tool_timeout: float = DEFAULT_TOOL_TIMEOUT_SECONDS,
        query_timeout: float = DEFAULT_QUERY_TIMEOUT_SECONDS,
        deadline: Deadline | None = None,
    ) -> None:
        self.transport = transport
        self.tool_timeout = tool_timeout
        self.query_timeout = query_timeout
        self.deadline = deadline

    def with_deadline(self, deadline: Deadline) -> LookerToolClient:
        """Same transport and timeouts, with every call bounded by `deadline`."""

        return LookerToolClient(
            self.transport,
            tool_timeout=self.tool_timeout,
            query_timeout=self.query_timeout,
            deadline=deadline,
        )

    def list_models(self) -> list[ModelRecord]:
        models: list[ModelRecord] = []
        for item in self._call("get_models", {}):
            name = item.get("name")
            if not isinstance(name, str) or not name:
                continue
            models.append(
                ModelRecord(
                    name=name,
                    project=_optional_str(item.get("project_name")),
                    explore_names=tuple(_explore_names(item.get("explores"))),
                ),
            )
        return models

    def list_explores(self, model: str) -> list[ExploreRecord]:
        explores: list[ExploreRecord] = []
        for item in self._call("get_explores", {"model": model}):
            name = item.get("name")
            if not isinstance(name, str) or not name:
                continue
            explores.append(
                ExploreRecord(
                    model=model,
                    name=name,
                    label=_optional_str(item.get("label")) or name,
                    description=_optional_str(item.get("description")) or "",
                    group_label=_optional_str(item.get("group_label")),
                    hidden=bool(item.get("hidden", False)),
                ),
            )
        return explores

    def run_query(  # noqa: PLR0913
        self,
        *,
        model: str,
        explore: str,
        fields: list[str],
        filters: dict[str, str] | None = None,
        sorts: list[str] | None = None,
        limit: int = 500,
    ) -> list[dict[str, Any]]:
        """Execute a structured query and return raw rows."""

        arguments: dict[str, Any] = {
            "model": model,
            "explore": explore,
            "fields": fields,
            "filters": filters or {},
            "sorts": sorts or [],
            "limit": limit,
        }
        return self._call("query", arguments, timeout=self.query_timeout)

    def slow_queries(self, query_filter: QueryFilter) -> list[QueryRecord]:
        """Completed queries from query history slower than the filter's floor."""

        rows = self.run_query(
            model=HISTORY_MODEL,
            explore=HISTORY_EXPLORE,
            fields=list(HISTORY_FIELDS),
            filters={
                "history.runtime": f">{query_filter.runtime_floor:g}",
                "history.created_date": query_filter.time_range,
                "history.status": "complete",
            },
            sorts=["history.runtime desc"],
            limit=query_filter.limit,
        )
        records = [record for row in rows if (record := query_record_from_row(row)) is not None]
        logger.debug(
            "History lookup %s: rows=%d records=%d",
            query_filter.describe(),
            len(rows),
            len(records),
        )
        return records

    def list_dashboards(self, *, limit: int = 25, offset: int = 0) -> list[DashboardRecord]:
        dashboards: list[DashboardRecord] = []
        for item in self._call("get_dashboards", {"limit": limit, "offset": offset}):
            dashboard_id = item.get("id")
            if dashboard_id is None:
                continue
            dashboards.append(
                DashboardRecord(
                    id=str(dashboard_id),
                    title=_optional_str(item.get("title")) or "",
                    description=_optional_str(item.get("description")) or "",
                ),
            )
        return dashboards

    def iter_dashboards(self, *, page_size: int = 25, max_pages: int = 0) -> Iterator[DashboardRecord]:
        """Page through dashboards by offset until a short page; 0 pages means no limit."""

        if page_size <= 0:
            raise ValueError("page_size must be > 0.")
        page = 0
        while max_pages <= 0 or page < max_pages:
            batch = self.list_dashboards(limit=page_size, offset=page * page_size)
            yield from batch
            if len(batch) < page_size:
                return
            page += 1

    def list_looks(self, *, limit: int = 25) -> list[dict[str, Any]]:
        return self._call("get_looks", {"limit": limit})

    def list_projects(self) -> list[str]:
        projects: list[str] = []
        for item in self._call("get_projects", {}):
            project_id = item.get("id") or item.get("name")
            if isinstance(project_id, str) and project_id:
                projects.append(project_id)
        return projects

    def list_project_files(self, project_id: str) -> list[str]:
        paths: list[str] = []
        for item in self._call("get_project_files", {"project_id": project_id}):
            path = item.get("path") or item.get("id")
            if isinstance(path, str) and path:
                paths.append(path)
        return paths

    def get_project_file(self, project_id: str, file_path: str) -> LookmlFile | None:
        for item in self._call(
            "get_project_file",
            {"project_id": project_id, "file_path": file_path},
        ):
            content = item.get("content")
            if isinstance(content, str):
                return LookmlFile(project=project_id, path=file_path, content=content)
        return None

    def _call(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        *,
        timeout: float | None = None,
    ) -> list[dict[str, Any]]:
        effective_timeout = timeout if timeout is not None else self.tool_timeout
        if self.deadline is not None:
            effective_timeout = self.deadline.bound(effective_timeout, tool_name=tool_name)
        result = self.transport.invoke(tool_name, arguments, timeout=effective_timeout)
        return flatten_payloads(result.payloads())


def flatten_payloads(payloads: list[Any]) -> list[dict[str, Any]]:
    """Flatten decoded payloads into dict items, dropping raw-text fallbacks."""

    items: list[dict[str, Any]] = []
    for payload in payloads:
        candidates = payload if isinstance(payload, list) else [payload]
        for candidate in candidates:
            if not isinstance(candidate, dict) or "raw_text" in candidate:
                continue
            items.append(candidate)
    return items


def query_record_from_row(row: dict[str, Any]) -> QueryRecord | None:
    """Normalize a history row; rows missing id, model or explore are dropped."""

    query_id = _first(row, "query.id", "query_id", "id")
    model = _first(row, "query.model", "model")
    explore = _first(row, "query.view", "query.explore", "explore")
    if query_id is None or not model or not explore:
        return None
    return QueryRecord(
        id=str(query_id),
        model=str(model),
        explore=str(explore),
        runtime_seconds=_runtime(_first(row, "history.runtime", "runtime_seconds", "runtime")),
        created_at=_parse_timestamp(_first(row, "history.created_date", "created_date")),
        slug=_optional_str(_first(row, "query.slug", "slug")),
        dashboard_title=_optional_str(_first(row, "dashboard.title", "dashboard_title")),
        user_email=_optional_str(_first(row, "user.email", "user_email")),
    )


def _first(row: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = row.get(key)
        if value is not None and value != "":
            return value
    return None


def _runtime(value: Any) -> float:
    try:
        runtime = float(value)
    except (TypeError, ValueError):
        return 0.0
    if runtime != runtime or runtime < 0:  # NaN or negative
        return 0.0
    return runtime


def _parse_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.strip())
    except ValueError:
        return None


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _explore_names(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    names: list[str] = []
    for item in value:
        if isinstance(item, str) and item:
            names.append(item)
        elif isinstance(item, dict) and isinstance(item.get("name"), str) and item["name"]:
            names.append(item["name"])
    return names
