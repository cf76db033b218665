"""Group slow queries by explore, drop internal entities, rank by total runtime."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable

from looker_diag.diagnostics.exclusion import ExclusionRuleSet
from looker_diag.diagnostics.models import GroupSummary, QueryRecord

logger = logging.getLogger(__name__)


def group_and_rank(
    records: Iterable[QueryRecord],
    rules: ExclusionRuleSet,
    per_group_cap: int,
    max_groups: int,
) -> list[GroupSummary]:
    """Return at most `max_groups` groups holding at most `per_group_cap` records each.

    Exclusion runs before grouping so internal explores never affect ranking.
    Groups are ordered by total runtime (descending, ties broken by key) and
    records inside a group by runtime (descending).
    """

    if per_group_cap <= 0 or max_groups <= 0:
        return []

    buckets: dict[str, list[QueryRecord]] = defaultdict(list)
    excluded = 0
    for record in records:
        if rules.excludes(record.model, record.explore):
            excluded += 1
            continue
        buckets[record.group_key].append(record)
    if excluded:
        logger.debug("Excluded %d queries on internal explores", excluded)

    totals = {key: sum(item.runtime_seconds for item in items) for key, items in buckets.items()}
    ranked_keys = sorted(buckets, key=lambda key: (-totals[key], key))[:max_groups]

    groups: list[GroupSummary] = []
    for key in ranked_keys:
        members = sorted(buckets[key], key=lambda item: item.runtime_seconds, reverse=True)
        groups.append(
            GroupSummary(
                key=key,
                total_cost=totals[key],
                query_count=len(members),
                records=members[:per_group_cap],
            ),
        )
    return groups


def flatten_groups(groups: Iterable[GroupSummary]) -> list[QueryRecord]:
    """All retained records, slowest first."""

    flattened = [record for group in groups for record in group.records]
    flattened.sort(key=lambda record: record.runtime_seconds, reverse=True)
    return flattened
