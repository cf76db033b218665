"""Exclusion rules for internal and system models/explores."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

DEFAULT_EXCLUDED_NAMES: tuple[str, ...] = (
    "api_explorer",
    "system__activity",
    "i__looker",
    "content_usage",
    "version_set",
    "project_configuration",
    "marketplace_installation",
    "oauth_client",
    "oauth_authorization",
    "ldap_config",
    "saml_config",
    "oidc_config",
    "permission_set",
    "model_set",
    "git_branch",
    "git_status",
    "project_file",
    "lookml_model",
    "lookml_model_explore",
    "lookml_dashboard",
    "datagroup",
    "connection",
    "dialect_info",
    "database",
    "schema",
    "table",
    "column",
    "marketplace",
    "tools",
    "admin",
    "system",
    "internal",
)

DEFAULT_EXCLUDED_PATTERNS: tuple[str, ...] = (
    "api_explorer",
    "system__",
    "i__looker",
    "__internal",
    "marketplace_",
    "admin_",
    "tools_",
    "git_",
    "ldap_",
    "saml_",
    "oauth_",
    "permission_",
    "model_set",
    "content_",
    "project_",
    "lookml_",
    "datagroup",
    "connection_",
    "database_",
    "schema_",
    "table_",
    "column_",
    "block",
    "extension",
)


@dataclass(slots=True, frozen=True)
class ExclusionRuleSet:
    """Immutable exact-name and substring rules, matched case-insensitively."""

    names: frozenset[str] = frozenset()
    patterns: frozenset[str] = frozenset()

    @classmethod
    def build(cls, names: Iterable[str] = (), patterns: Iterable[str] = ()) -> ExclusionRuleSet:
        return cls(
            names=frozenset(_normalize(names)),
            patterns=frozenset(_normalize(patterns)),
        )

    def merged(self, names: Iterable[str] = (), patterns: Iterable[str] = ()) -> ExclusionRuleSet:
        """Return a new rule set with extra names and patterns."""

        return ExclusionRuleSet(
            names=self.names | frozenset(_normalize(names)),
            patterns=self.patterns | frozenset(_normalize(patterns)),
        )

    def matches_name(self, value: str | None) -> bool:
        if not value:
            return False
        lowered = value.lower()
        if lowered in self.names:
            return True
        return any(pattern in lowered for pattern in self.patterns)

    def excludes(self, model: str | None, explore: str | None = None) -> bool:
        """True when either half of a `model.explore` key is an internal entity."""

        return self.matches_name(model) or self.matches_name(explore)


def default_exclusion_rules(
    extra_names: Iterable[str] = (),
    extra_patterns: Iterable[str] = (),
) -> ExclusionRuleSet:
    return ExclusionRuleSet.build(DEFAULT_EXCLUDED_NAMES, DEFAULT_EXCLUDED_PATTERNS).merged(
        extra_names,
        extra_patterns,
    )


def _normalize(values: Iterable[str]) -> list[str]:
    return [value.strip().lower() for value in values if value and value.strip()]
