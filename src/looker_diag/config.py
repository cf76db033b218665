"""Runtime configuration for toolbox access and diagnostic scans."""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field
from urllib.parse import urlparse

from looker_diag.diagnostics.ladder import (
    DEFAULT_FILL_IN_FLOOR,
    DEFAULT_RUNTIME_THRESHOLDS,
    DEFAULT_TIME_RANGE,
)

DEFAULT_TOOLBOX_COMMAND = "toolbox --stdio --prebuilt looker"


@dataclass(slots=True)
class ToolboxSettings:
    """How to launch the toolbox and which credentials to hand it."""

    command: tuple[str, ...] = tuple(shlex.split(DEFAULT_TOOLBOX_COMMAND))
    looker_url: str = ""
    client_id: str = ""
    client_secret: str = ""
    verify_ssl: bool = True
    tool_timeout_seconds: float = 20.0
    query_timeout_seconds: float = 30.0

    def credentials_env(self) -> dict[str, str]:
        """Environment variables the toolbox reads its Looker credentials from."""

        return {
            "LOOKER_BASE_URL": self.looker_url,
            "LOOKER_CLIENT_ID": self.client_id,
            "LOOKER_CLIENT_SECRET": self.client_secret,
            "LOOKER_VERIFY_SSL": "true" if self.verify_ssl else "false",
        }


@dataclass(slots=True)
class SlowQuerySettings:
    """Slow-query search and ranking settings."""

    time_range: str = DEFAULT_TIME_RANGE
    wider_time_range: str | None = None
    runtime_floor: float = 5.0
    runtime_thresholds: tuple[float, ...] = DEFAULT_RUNTIME_THRESHOLDS
    fill_in_floor: float | None = DEFAULT_FILL_IN_FLOOR
    target_count: int = 50
    per_group_cap: int = 5
    max_groups: int = 20
    history_limit: int = 500


@dataclass(slots=True)
class ScanSettings:
    """Per-task deadlines and LookML fetch limits for a full scan."""

    explores_timeout_seconds: float = 60.0
    slow_queries_timeout_seconds: float = 45.0
    lookml_timeout_seconds: float = 90.0
    max_projects: int = 3
    max_files_per_project: int = 5
    max_workers: int = 4


@dataclass(slots=True)
class ExclusionSettings:
    """Extra internal model/explore names on top of the built-in rules."""

    extra_names: tuple[str, ...] = ()
    extra_patterns: tuple[str, ...] = ()


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    toolbox: ToolboxSettings = field(default_factory=ToolboxSettings)
    slow_queries: SlowQuerySettings = field(default_factory=SlowQuerySettings)
    scan: ScanSettings = field(default_factory=ScanSettings)
    exclusions: ExclusionSettings = field(default_factory=ExclusionSettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with defaults for local use."""

        fill_in_raw = os.getenv("LOOKER_DIAG_FILL_IN_FLOOR", str(DEFAULT_FILL_IN_FLOOR)).strip()
        return cls(
            toolbox=ToolboxSettings(
                command=tuple(
                    shlex.split(os.getenv("LOOKER_DIAG_TOOLBOX_COMMAND", DEFAULT_TOOLBOX_COMMAND)),
                ),
                looker_url=os.getenv("LOOKER_BASE_URL", "").strip(),
                client_id=os.getenv("LOOKER_CLIENT_ID", "").strip(),
                client_secret=os.getenv("LOOKER_CLIENT_SECRET", "").strip(),
                verify_ssl=_env_bool("LOOKER_VERIFY_SSL", default=True),
                tool_timeout_seconds=float(os.getenv("LOOKER_DIAG_TOOL_TIMEOUT_SECONDS", "20")),
                query_timeout_seconds=float(os.getenv("LOOKER_DIAG_QUERY_TIMEOUT_SECONDS", "30")),
            ),
            slow_queries=SlowQuerySettings(
                time_range=os.getenv("LOOKER_DIAG_TIME_RANGE", DEFAULT_TIME_RANGE),
                wider_time_range=os.getenv("LOOKER_DIAG_WIDER_TIME_RANGE", "").strip() or None,
                runtime_floor=float(os.getenv("LOOKER_DIAG_RUNTIME_FLOOR", "5")),
                runtime_thresholds=_env_floats(
                    "LOOKER_DIAG_RUNTIME_THRESHOLDS",
                    default=DEFAULT_RUNTIME_THRESHOLDS,
                ),
                fill_in_floor=None if fill_in_raw.lower() in {"", "off", "none"} else float(fill_in_raw),
                target_count=int(os.getenv("LOOKER_DIAG_TARGET_COUNT", "50")),
                per_group_cap=int(os.getenv("LOOKER_DIAG_PER_GROUP_CAP", "5")),
                max_groups=int(os.getenv("LOOKER_DIAG_MAX_GROUPS", "20")),
                history_limit=int(os.getenv("LOOKER_DIAG_HISTORY_LIMIT", "500")),
            ),
            scan=ScanSettings(
                explores_timeout_seconds=float(
                    os.getenv("LOOKER_DIAG_EXPLORES_TIMEOUT_SECONDS", "60"),
                ),
                slow_queries_timeout_seconds=float(
                    os.getenv("LOOKER_DIAG_SLOW_QUERIES_TIMEOUT_SECONDS", "45"),
                ),
                lookml_timeout_seconds=float(
                    os.getenv("LOOKER_DIAG_LOOKML_TIMEOUT_SECONDS", "90"),
                ),
                max_projects=int(os.getenv("LOOKER_DIAG_MAX_PROJECTS", "3")),
                max_files_per_project=int(os.getenv("LOOKER_DIAG_MAX_FILES_PER_PROJECT", "5")),
                max_workers=int(os.getenv("LOOKER_DIAG_MAX_WORKERS", "4")),
            ),
            exclusions=ExclusionSettings(
                extra_names=_env_csv("LOOKER_DIAG_EXCLUDED_NAMES"),
                extra_patterns=_env_csv("LOOKER_DIAG_EXCLUDED_PATTERNS"),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error for unusable values."""

        if not self.toolbox.command:
            raise ValueError("LOOKER_DIAG_TOOLBOX_COMMAND must not be empty.")
        if self.toolbox.looker_url:
            parsed = urlparse(self.toolbox.looker_url)
            if parsed.scheme not in {"http", "https"} or not parsed.netloc:
                raise ValueError(
                    "Invalid LOOKER_BASE_URL: "
                    f"{self.toolbox.looker_url!r}. Expected an absolute http(s) URL.",
                )
        if self.toolbox.tool_timeout_seconds <= 0:
            raise ValueError("LOOKER_DIAG_TOOL_TIMEOUT_SECONDS must be > 0.")
        if self.toolbox.query_timeout_seconds <= 0:
            raise ValueError("LOOKER_DIAG_QUERY_TIMEOUT_SECONDS must be > 0.")
        if self.slow_queries.runtime_floor < 0:
            raise ValueError("LOOKER_DIAG_RUNTIME_FLOOR must be >= 0.")
        if self.slow_queries.target_count <= 0:
            raise ValueError("LOOKER_DIAG_TARGET_COUNT must be > 0.")
        if self.slow_queries.per_group_cap <= 0:
            raise ValueError("LOOKER_DIAG_PER_GROUP_CAP must be > 0.")
        if self.slow_queries.max_groups <= 0:
            raise ValueError("LOOKER_DIAG_MAX_GROUPS must be > 0.")
        if self.slow_queries.history_limit <= 0:
            raise ValueError("LOOKER_DIAG_HISTORY_LIMIT must be > 0.")
        for name, value in (
            ("LOOKER_DIAG_EXPLORES_TIMEOUT_SECONDS", self.scan.explores_timeout_seconds),
            ("LOOKER_DIAG_SLOW_QUERIES_TIMEOUT_SECONDS", self.scan.slow_queries_timeout_seconds),
            ("LOOKER_DIAG_LOOKML_TIMEOUT_SECONDS", self.scan.lookml_timeout_seconds),
        ):
            if value <= 0:
                raise ValueError(f"{name} must be > 0.")
        if self.scan.max_workers <= 0:
            raise ValueError("LOOKER_DIAG_MAX_WORKERS must be > 0.")

    def require_credentials(self) -> None:
        """Raise configuration error when toolbox credentials are missing."""

        missing = [
            name
            for name, value in (
                ("LOOKER_BASE_URL", self.toolbox.looker_url),
                ("LOOKER_CLIENT_ID", self.toolbox.client_id),
                ("LOOKER_CLIENT_SECRET", self.toolbox.client_secret),
            )
            if not value
        ]
        if missing:
            raise ValueError(f"Missing Looker credentials: {', '.join(missing)}.")


def _env_csv(name: str) -> tuple[str, ...]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return ()
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _env_floats(name: str, default: tuple[float, ...]) -> tuple[float, ...]:
    values = _env_csv(name)
    if not values:
        return default
    try:
        return tuple(float(value) for value in values)
    except ValueError as error:
        raise ValueError(f"Invalid number list for {name}: {os.getenv(name)!r}") from error


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
