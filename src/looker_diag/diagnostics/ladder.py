"""Adaptive threshold search: relax query filters until enough results arrive."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, replace

from looker_diag.diagnostics.enrichment import categorize_runtime
from looker_diag.diagnostics.models import QueryRecord
from looker_diag.toolbox.base import Deadline
from looker_diag.toolbox.errors import ToolCallError

logger = logging.getLogger(__name__)

DEFAULT_TIME_RANGE = "30 days ago for 30 days"
DEFAULT_RUNTIME_THRESHOLDS: tuple[float, ...] = (10.0, 5.0, 3.0, 2.0)
DEFAULT_FILL_IN_FLOOR = 1.0


@dataclass(slots=True, frozen=True)
class QueryFilter:
    """Filter for the query-history lookup."""

    runtime_floor: float
    time_range: str = DEFAULT_TIME_RANGE
    limit: int = 500

    def describe(self) -> str:
        return f"runtime>{self.runtime_floor:g}s range={self.time_range!r} limit={self.limit}"


@dataclass(slots=True, frozen=True)
class LadderStep:
    """One relaxation applied to the previous attempt's filter."""

    name: str
    transform: Callable[[QueryFilter], QueryFilter]


QueryFetcher = Callable[[QueryFilter], Sequence[QueryRecord]]


def lower_runtime_floor(runtime_floor: float) -> LadderStep:
    return LadderStep(
        name=f"runtime>{runtime_floor:g}s",
        transform=lambda query_filter: replace(query_filter, runtime_floor=runtime_floor),
    )


def widen_time_range(time_range: str) -> LadderStep:
    return LadderStep(
        name=f"range={time_range}",
        transform=lambda query_filter: replace(query_filter, time_range=time_range),
    )


def build_runtime_ladder(
    base_floor: float,
    *,
    thresholds: Sequence[float] = DEFAULT_RUNTIME_THRESHOLDS,
    wider_time_range: str | None = None,
    fill_in_floor: float | None = DEFAULT_FILL_IN_FLOOR,
) -> list[LadderStep]:
    """Build steps in decreasing selectivity below `base_floor`.

    Runtime floors come first, then the optional wider time window, then the
    fill-in floor as the final, least selective step.
    """

    steps: list[LadderStep] = []
    floor = base_floor
    for threshold in sorted(set(thresholds), reverse=True):
        if threshold < floor:
            steps.append(lower_runtime_floor(threshold))
            floor = threshold
    if wider_time_range:
        steps.append(widen_time_range(wider_time_range))
    if fill_in_floor is not None and fill_in_floor < floor:
        steps.append(lower_runtime_floor(fill_in_floor))
    return steps


def search_with_relaxation(
    fetch: QueryFetcher,
    base_filter: QueryFilter,
    ladder: Sequence[LadderStep],
    target_count: int,
    *,
    deadline: Deadline | None = None,
) -> list[QueryRecord]:
    """Run `base_filter`, then each ladder step, merging unique records by id.

    Stops when `target_count` unique records are collected, when the ladder is
    exhausted, or when a step adds nothing new to an already non-empty result.
    A failing step contributes no records and the search moves on.
    An expired `deadline` ends the search before the next fetch.
    """

    if target_count <= 0:
        return []

    collected: dict[str, QueryRecord] = {}
    for name, query_filter in _attempts(base_filter, ladder):
        if deadline is not None and deadline.expired:
            logger.info("Search deadline reached before step %s; stopping", name)
            break
        try:
            rows = fetch(query_filter)
        except ToolCallError as error:
            logger.warning("Search step %s failed (%s): %s", name, error.kind.value, error)
            continue

        added = 0
        for record in rows:
            if record.id in collected:
                continue
            record.runtime_category = categorize_runtime(record.runtime_seconds)
            collected[record.id] = record
            added += 1
        logger.info(
            "Search step %s (%s): %d rows, %d new, %d total",
            name,
            query_filter.describe(),
            len(rows),
            added,
            len(collected),
        )

        if len(collected) >= target_count:
            break
        if added == 0 and collected:
            logger.info("Search step %s made no progress; stopping relaxation", name)
            break
    return list(collected.values())


def _attempts(
    base_filter: QueryFilter,
    ladder: Sequence[LadderStep],
) -> Iterator[tuple[str, QueryFilter]]:
    current = base_filter
    yield "base", current
    for step in ladder:
        current = step.transform(current)
        yield step.name, current
