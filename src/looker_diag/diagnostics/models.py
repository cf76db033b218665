"""Domain models for slow-query diagnostics and concurrent fetch results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Generic, TypeVar

from looker_diag.toolbox.errors import ErrorKind

T = TypeVar("T")


class RuntimeCategory(str, Enum):
    """Runtime buckets used to prioritise slow queries."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    ACCEPTABLE = "acceptable"


class OptimizationPriority(str, Enum):
    """How urgently a slow query deserves attention."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(slots=True)
class QueryRecord:
    """One completed query from the instance's query history."""

    id: str
    model: str
    explore: str
    runtime_seconds: float
    created_at: datetime | None = None
    slug: str | None = None
    dashboard_title: str | None = None
    user_email: str | None = None
    runtime_category: RuntimeCategory | None = None

    @property
    def group_key(self) -> str:
        return f"{self.model}.{self.explore}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "group_key": self.group_key,
            "model": self.model,
            "explore": self.explore,
            "runtime_seconds": self.runtime_seconds,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "slug": self.slug,
            "dashboard_title": self.dashboard_title,
            "user_email": self.user_email,
            "runtime_category": self.runtime_category.value if self.runtime_category else None,
        }


@dataclass(slots=True)
class GroupSummary:
    """Queries of one explore, ranked by total runtime."""

    key: str
    total_cost: float
    query_count: int
    records: list[QueryRecord] = field(default_factory=list)

    @property
    def avg_runtime(self) -> float:
        if self.query_count == 0:
            return 0.0
        return self.total_cost / self.query_count


@dataclass(slots=True)
class ModelRecord:
    """A LookML model as listed by the toolbox."""

    name: str
    project: str | None = None
    explore_names: tuple[str, ...] = ()


@dataclass(slots=True)
class ExploreRecord:
    """One explore of a LookML model."""

    model: str
    name: str
    label: str
    description: str = ""
    group_label: str | None = None
    hidden: bool = False

    @property
    def key(self) -> str:
        return f"{self.model}.{self.name}"


@dataclass(slots=True)
class LookmlFile:
    """One LookML project file with its raw content."""

    project: str
    path: str
    content: str

    @property
    def file_type(self) -> str:
        name = self.path.lower()
        for marker in ("view", "model", "explore", "dashboard"):
            if f".{marker}." in name:
                return marker
        return "lookml"


@dataclass(slots=True)
class DashboardRecord:
    """Dashboard summary returned by `get_dashboards`."""

    id: str
    title: str
    description: str = ""


@dataclass(slots=True, frozen=True)
class ErrorInfo:
    """Captured failure of one fetch."""

    kind: ErrorKind
    message: str
    transient: bool = False


@dataclass(slots=True)
class FetchOutcome(Generic[T]):
    """Value or captured failure of one concurrent fetch task."""

    value: T
    error: ErrorInfo | None = None
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True, frozen=True)
class DiagnosticEntry:
    """One degraded or failed sub-fetch recorded for the final report."""

    task: str
    kind: ErrorKind
    message: str
    transient: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "task": self.task,
            "kind": self.kind.value,
            "message": self.message,
            "transient": self.transient,
        }


@dataclass(slots=True)
class SlowQueryReport:
    """Top slow queries grouped by explore."""

    groups: list[GroupSummary]
    records: list[QueryRecord]
    candidates_seen: int
    time_range: str
    runtime_floor: float

    @property
    def average_runtime(self) -> float:
        if not self.records:
            return 0.0
        return sum(record.runtime_seconds for record in self.records) / len(self.records)

    @classmethod
    def empty(cls, *, time_range: str, runtime_floor: float) -> SlowQueryReport:
        return cls(
            groups=[],
            records=[],
            candidates_seen=0,
            time_range=time_range,
            runtime_floor=runtime_floor,
        )


@dataclass(slots=True)
class Recommendation:
    """Immediate action derived from slow-query groups."""

    priority: OptimizationPriority
    kind: str
    title: str
    description: str
    query_ids: tuple[str, ...] = ()


@dataclass(slots=True)
class ConnectionCheck:
    """Result of a toolbox connectivity probe."""

    success: bool
    message: str
    models_found: int = 0


@dataclass(slots=True)
class DiagnosticReport:
    """Aggregated output of one diagnostic scan."""

    started_at: datetime
    duration_ms: int
    explores: list[ExploreRecord]
    slow_queries: SlowQueryReport
    lookml_files: list[LookmlFile]
    recommendations: list[Recommendation]
    degraded: list[DiagnosticEntry]

    @property
    def fully_succeeded(self) -> bool:
        return not self.degraded
