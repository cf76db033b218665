"""Caller-facing diagnostic operations; failures become diagnostic entries."""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Iterable
from datetime import UTC, datetime
from functools import partial

from looker_diag.config import Settings
from looker_diag.diagnostics.enrichment import immediate_recommendations
from looker_diag.diagnostics.exclusion import ExclusionRuleSet, default_exclusion_rules
from looker_diag.diagnostics.grouping import flatten_groups, group_and_rank
from looker_diag.diagnostics.ladder import (
    QueryFilter,
    build_runtime_ladder,
    search_with_relaxation,
)
from looker_diag.diagnostics.models import (
    ConnectionCheck,
    DiagnosticReport,
    ExploreRecord,
    LookmlFile,
    ModelRecord,
    QueryRecord,
    SlowQueryReport,
)
from looker_diag.diagnostics.orchestrator import DiagnosticLog, FetchTask, run_all
from looker_diag.toolbox.base import Deadline
from looker_diag.toolbox.client import LookerToolClient
from looker_diag.toolbox.errors import ToolCallError

logger = logging.getLogger(__name__)

LOOKML_SUFFIX = ".lkml"
_TASK_GRACE_SECONDS = 5.0


class DiagnosticService:
    """Fetches explores, slow queries and LookML files through the toolbox.

    The public fetches record failures in `self.log`. `run_scan` gives each
    scan a fresh log and bounds every toolbox call of a scan task by that
    task's deadline.
    """

    def __init__(
        self,
        *,
        client: LookerToolClient,
        settings: Settings,
        rules: ExclusionRuleSet | None = None,
    ) -> None:
        self.client = client
        self.settings = settings
        self.rules = rules or default_exclusion_rules(
            settings.exclusions.extra_names,
            settings.exclusions.extra_patterns,
        )
        self.log = DiagnosticLog()

    def fetch_explore_catalog(self) -> list[ExploreRecord]:
        """All non-internal explores; per-model failures are logged and skipped."""

        return self._explore_catalog(self.client, self.log)

    def fetch_top_slow_operations(
        self,
        time_range: str | None = None,
        runtime_floor: float | None = None,
        per_group_cap: int | None = None,
        max_groups: int | None = None,
    ) -> SlowQueryReport:
        """Slowest queries per explore, relaxing the runtime floor when results are thin."""

        return self._top_slow_operations(
            self.client,
            self.log,
            time_range=time_range,
            runtime_floor=runtime_floor,
            per_group_cap=per_group_cap,
            max_groups=max_groups,
        )

    def fetch_lookml_files(
        self,
        max_projects: int | None = None,
        max_files_per_project: int | None = None,
    ) -> list[LookmlFile]:
        return self._lookml_files(
            self.client,
            self.log,
            max_projects=max_projects,
            max_files_per_project=max_files_per_project,
        )

    def run_scan(self) -> DiagnosticReport:
        """Fetch explores, slow queries and LookML concurrently; never raises."""

        log = DiagnosticLog()
        self.log = log
        started_at = datetime.now(UTC)
        started = time.monotonic()
        scan = self.settings.scan
        config = self.settings.slow_queries

        explores_deadline = Deadline(scan.explores_timeout_seconds)
        slow_queries_deadline = Deadline(scan.slow_queries_timeout_seconds)
        lookml_deadline = Deadline(scan.lookml_timeout_seconds)
        outcomes = run_all(
            [
                FetchTask(
                    name="explores",
                    operation=partial(
                        self._explore_catalog,
                        self.client.with_deadline(explores_deadline),
                        log,
                    ),
                    timeout_seconds=scan.explores_timeout_seconds,
                    deadline=explores_deadline,
                ),
                FetchTask(
                    name="slow_queries",
                    operation=partial(
                        self._top_slow_operations,
                        self.client.with_deadline(slow_queries_deadline),
                        log,
                    ),
                    timeout_seconds=scan.slow_queries_timeout_seconds,
                    default_factory=partial(
                        SlowQueryReport.empty,
                        time_range=config.time_range,
                        runtime_floor=config.runtime_floor,
                    ),
                    deadline=slow_queries_deadline,
                ),
                FetchTask(
                    name="lookml_files",
                    operation=partial(
                        self._lookml_files,
                        self.client.with_deadline(lookml_deadline),
                        log,
                    ),
                    timeout_seconds=scan.lookml_timeout_seconds,
                    deadline=lookml_deadline,
                ),
            ],
            log,
        )

        slow_queries: SlowQueryReport = outcomes["slow_queries"].value
        report = DiagnosticReport(
            started_at=started_at,
            duration_ms=int((time.monotonic() - started) * 1000),
            explores=outcomes["explores"].value,
            slow_queries=slow_queries,
            lookml_files=outcomes["lookml_files"].value,
            recommendations=immediate_recommendations(slow_queries.groups),
            degraded=log.entries(),
        )
        if report.degraded:
            logger.info("Scan finished with %d degraded fetches", len(report.degraded))
        return report

    def test_connection(self) -> ConnectionCheck:
        try:
            models = self.client.list_models()
        except ToolCallError as error:
            _record(self.log, "connection_check", error)
            return ConnectionCheck(success=False, message=f"Toolbox connection failed: {error}")
        return ConnectionCheck(
            success=True,
            message="Toolbox connection successful",
            models_found=len(models),
        )

    def _explore_catalog(self, client: LookerToolClient, log: DiagnosticLog) -> list[ExploreRecord]:
        try:
            models = client.list_models()
        except ToolCallError as error:
            _record(log, "explore_catalog", error)
            return []

        user_models = [model for model in _unique_models(models) if not self.rules.matches_name(model.name)]
        logger.info("Found %d user models (of %d)", len(user_models), len(models))

        catalog: list[ExploreRecord] = []
        pending: list[str] = []
        for model in user_models:
            if not model.explore_names:
                pending.append(model.name)
                continue
            catalog.extend(
                ExploreRecord(model=model.name, name=name, label=name)
                for name in model.explore_names
            )

        if pending:
            max_workers = self.settings.scan.max_workers
            # Deadlines start at launch; queued models wait for earlier waves.
            waves = math.ceil(len(pending) / max_workers)
            timeout = waves * self.settings.toolbox.tool_timeout_seconds + _TASK_GRACE_SECONDS
            if client.deadline is not None:
                timeout = min(timeout, client.deadline.remaining())
            tasks = []
            for model_name in pending:
                model_deadline = Deadline(timeout, parent=client.deadline)
                tasks.append(
                    FetchTask(
                        name=f"explores:{model_name}",
                        operation=partial(client.with_deadline(model_deadline).list_explores, model_name),
                        timeout_seconds=timeout,
                        deadline=model_deadline,
                    ),
                )
            outcomes = run_all(tasks, log, max_workers=max_workers)
            for task in tasks:
                catalog.extend(outcomes[task.name].value)

        return [explore for explore in catalog if not self.rules.excludes(explore.model, explore.name)]

    def _top_slow_operations(
        self,
        client: LookerToolClient,
        log: DiagnosticLog,
        *,
        time_range: str | None = None,
        runtime_floor: float | None = None,
        per_group_cap: int | None = None,
        max_groups: int | None = None,
    ) -> SlowQueryReport:
        config = self.settings.slow_queries
        effective_range = time_range or config.time_range
        effective_floor = config.runtime_floor if runtime_floor is None else runtime_floor
        cap = config.per_group_cap if per_group_cap is None else per_group_cap
        groups_limit = config.max_groups if max_groups is None else max_groups

        base_filter = QueryFilter(
            runtime_floor=effective_floor,
            time_range=effective_range,
            limit=config.history_limit,
        )
        ladder = build_runtime_ladder(
            effective_floor,
            thresholds=config.runtime_thresholds,
            wider_time_range=config.wider_time_range,
            fill_in_floor=config.fill_in_floor,
        )
        records = search_with_relaxation(
            partial(self._fetch_history, client, log),
            base_filter,
            ladder,
            config.target_count,
            deadline=client.deadline,
        )
        groups = group_and_rank(records, self.rules, cap, groups_limit)
        report = SlowQueryReport(
            groups=groups,
            records=flatten_groups(groups),
            candidates_seen=len(records),
            time_range=effective_range,
            runtime_floor=effective_floor,
        )
        logger.info(
            "Slow queries: %d records in %d explores (from %d candidates, avg %.1fs)",
            len(report.records),
            len(groups),
            report.candidates_seen,
            report.average_runtime,
        )
        return report

    def _lookml_files(
        self,
        client: LookerToolClient,
        log: DiagnosticLog,
        *,
        max_projects: int | None = None,
        max_files_per_project: int | None = None,
    ) -> list[LookmlFile]:
        scan = self.settings.scan
        projects_limit = scan.max_projects if max_projects is None else max_projects
        files_limit = scan.max_files_per_project if max_files_per_project is None else max_files_per_project

        try:
            projects = client.list_projects()[: max(projects_limit, 0)]
        except ToolCallError as error:
            _record(log, "lookml_files", error)
            return []

        files: list[LookmlFile] = []
        for project in projects:
            if client.deadline is not None and client.deadline.expired:
                logger.info("LookML deadline reached before project %s; stopping", project)
                break
            try:
                paths = [
                    path
                    for path in client.list_project_files(project)
                    if path.lower().endswith(LOOKML_SUFFIX)
                ][: max(files_limit, 0)]
                for path in paths:
                    lookml_file = client.get_project_file(project, path)
                    if lookml_file is not None:
                        files.append(lookml_file)
            except ToolCallError as error:
                _record(log, f"lookml:{project}", error)
        logger.info("Fetched %d LookML files from %d projects", len(files), len(projects))
        return files

    def _fetch_history(
        self,
        client: LookerToolClient,
        log: DiagnosticLog,
        query_filter: QueryFilter,
    ) -> list[QueryRecord]:
        try:
            records = client.slow_queries(query_filter)
        except ToolCallError as error:
            _record(log, f"slow_queries[{query_filter.describe()}]", error)
            raise
        return [record for record in records if not self.rules.excludes(record.model, record.explore)]


def _unique_models(models: Iterable[ModelRecord]) -> list[ModelRecord]:
    seen: set[str] = set()
    unique: list[ModelRecord] = []
    for model in models:
        if model.name in seen:
            logger.debug("Model %s listed more than once; keeping the first entry", model.name)
            continue
        seen.add(model.name)
        unique.append(model)
    return unique


def _record(log: DiagnosticLog, task: str, error: ToolCallError) -> None:
    logger.warning("%s failed (%s): %s", task, error.kind.value, error)
    log.record(task, error.kind, str(error), transient=error.transient)
