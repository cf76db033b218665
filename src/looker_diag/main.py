"""CLI entrypoint for looker-diag."""

import logging
from collections.abc import Callable
from typing import Any, TypeVar

import rich_click as click

from looker_diag import __version__
from looker_diag.diagnostics.controllers import (
    DashboardsCommand,
    DiagnosticsCliController,
    ExploresCommand,
    LookmlCommand,
    ScanCommand,
    SlowQueriesCommand,
)

click.rich_click.USE_MARKDOWN = True
T = TypeVar("T")
DIAGNOSTICS_CONTROLLER = DiagnosticsCliController()

_FORMAT_OPTION = click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    show_default=True,
    help="Output format.",
)


@click.group()
@click.version_option(version=__version__, prog_name="looker-diag")
@click.option("--verbose", "-v", count=True, help="Increase log verbosity (-v info, -vv debug).")
def looker_diag(verbose: int) -> None:
    """Looker query performance diagnostics over the MCP toolbox."""

    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@looker_diag.command("scan")
@_FORMAT_OPTION
def scan(output_format: str) -> None:
    """Fetch explores, slow queries and LookML files concurrently and report."""

    _emit_lines(_guarded(DIAGNOSTICS_CONTROLLER.scan, ScanCommand(output_format=output_format)))


@looker_diag.command("explores")
@_FORMAT_OPTION
def explores(output_format: str) -> None:
    """List non-internal explores of every model."""

    _emit_lines(
        _guarded(DIAGNOSTICS_CONTROLLER.explores, ExploresCommand(output_format=output_format)),
    )


@looker_diag.command("slow-queries")
@click.option(
    "--time-range",
    default=None,
    help="Looker date filter expression. Defaults to LOOKER_DIAG_TIME_RANGE.",
)
@click.option(
    "--runtime-floor",
    type=click.FloatRange(min=0),
    default=None,
    help="Initial minimum runtime in seconds. Defaults to LOOKER_DIAG_RUNTIME_FLOOR.",
)
@click.option(
    "--per-explore",
    "per_group_cap",
    type=click.IntRange(min=1, max=100),
    default=None,
    help="Max queries kept per explore. Defaults to LOOKER_DIAG_PER_GROUP_CAP.",
)
@click.option(
    "--max-explores",
    "max_groups",
    type=click.IntRange(min=1, max=500),
    default=None,
    help="Max explores kept, ranked by total runtime. Defaults to LOOKER_DIAG_MAX_GROUPS.",
)
@_FORMAT_OPTION
def slow_queries(
    time_range: str | None,
    runtime_floor: float | None,
    per_group_cap: int | None,
    max_groups: int | None,
    output_format: str,
) -> None:
    """Show the slowest queries grouped by explore."""

    _emit_lines(
        _guarded(
            DIAGNOSTICS_CONTROLLER.slow_queries,
            SlowQueriesCommand(
                time_range=time_range,
                runtime_floor=runtime_floor,
                per_group_cap=per_group_cap,
                max_groups=max_groups,
                output_format=output_format,
            ),
        ),
    )


@looker_diag.command("lookml")
@click.option("--max-projects", type=click.IntRange(min=1), default=None, help="Projects to read.")
@click.option(
    "--max-files",
    "max_files_per_project",
    type=click.IntRange(min=1),
    default=None,
    help="LookML files to read per project.",
)
@_FORMAT_OPTION
def lookml(
    max_projects: int | None,
    max_files_per_project: int | None,
    output_format: str,
) -> None:
    """Fetch LookML project files."""

    _emit_lines(
        _guarded(
            DIAGNOSTICS_CONTROLLER.lookml,
            LookmlCommand(
                max_projects=max_projects,
                max_files_per_project=max_files_per_project,
                output_format=output_format,
            ),
        ),
    )


@looker_diag.command("dashboards")
@click.option(
    "--page-size",
    type=click.IntRange(min=1, max=500),
    default=25,
    show_default=True,
    help="Dashboards requested per toolbox call.",
)
@click.option(
    "--max-pages",
    type=click.IntRange(min=0),
    default=0,
    show_default=True,
    help="Stop after this many pages; 0 reads until a short page.",
)
@_FORMAT_OPTION
def dashboards(page_size: int, max_pages: int, output_format: str) -> None:
    """List dashboards page by page."""

    _emit_lines(
        _guarded(
            DIAGNOSTICS_CONTROLLER.dashboards,
            DashboardsCommand(page_size=page_size, max_pages=max_pages, output_format=output_format),
        ),
    )


@looker_diag.command("check")
def check() -> None:
    """Verify the toolbox starts and can list models."""

    result = _guarded(DIAGNOSTICS_CONTROLLER.check)
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Toolbox connection check failed.")


def _guarded(call: Callable[..., T], *args: Any) -> T:
    try:
        return call(*args)
    except ValueError as error:
        raise click.ClickException(str(error)) from error


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    looker_diag()
