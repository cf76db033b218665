"""Concurrent fan-out of independent fetches with per-task deadlines."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from looker_diag.diagnostics.models import DiagnosticEntry, ErrorInfo, FetchOutcome
from looker_diag.toolbox.base import Deadline
from looker_diag.toolbox.errors import ErrorKind, ToolCallError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class FetchTask(Generic[T]):
    """One named operation to run concurrently with its own deadline."""

    name: str
    operation: Callable[[], T]
    timeout_seconds: float
    default_factory: Callable[[], T] = list  # type: ignore[assignment]
    deadline: Deadline | None = None


class DiagnosticLog:
    """Append-only, thread-safe record of degraded sub-fetches."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: list[DiagnosticEntry] = []

    def record(self, task: str, kind: ErrorKind, message: str, *, transient: bool = False) -> None:
        entry = DiagnosticEntry(task=task, kind=kind, message=message, transient=transient)
        with self._lock:
            self._entries.append(entry)

    def entries(self) -> list[DiagnosticEntry]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def run_all(
    tasks: Sequence[FetchTask[Any]],
    log: DiagnosticLog | None = None,
    *,
    max_workers: int | None = None,
) -> dict[str, FetchOutcome[Any]]:
    """Run every task concurrently and return one outcome per task name.

    Deadlines are measured from launch. A task that fails or overruns gets its
    default value plus a captured error; siblings are unaffected. Timed-out
    workers are not joined; a task's `deadline`, when set, is cancelled so the
    worker starts no further toolbox calls.
    """

    names = [task.name for task in tasks]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise ValueError(f"Duplicate fetch task names: {', '.join(duplicates)}")
    if not tasks:
        return {}

    log = log if log is not None else DiagnosticLog()
    executor = ThreadPoolExecutor(
        max_workers=max_workers or len(tasks),
        thread_name_prefix="looker-diag-fetch",
    )
    outcomes: dict[str, FetchOutcome[Any]] = {}
    try:
        started = time.monotonic()
        futures = {task.name: executor.submit(task.operation) for task in tasks}
        for task in tasks:
            future = futures[task.name]
            remaining = max(0.0, task.timeout_seconds - (time.monotonic() - started))
            done, _ = wait([future], timeout=remaining)
            if not done:
                future.cancel()
                if task.deadline is not None:
                    task.deadline.cancel()
                outcome = _failed(
                    task,
                    ErrorInfo(
                        kind=ErrorKind.TIMEOUT,
                        message=f"{task.name} timed out after {task.timeout_seconds:g}s",
                        transient=True,
                    ),
                    timed_out=True,
                )
            elif (error := future.exception()) is not None:
                outcome = _failed(task, _error_info(task.name, error))
            else:
                outcome = FetchOutcome(value=future.result())

            if outcome.error is not None:
                log.record(
                    task.name,
                    outcome.error.kind,
                    outcome.error.message,
                    transient=outcome.error.transient,
                )
            outcomes[task.name] = outcome
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    failed = sum(1 for outcome in outcomes.values() if not outcome.ok)
    logger.info("Fetch fan-out finished: tasks=%d failed=%d", len(outcomes), failed)
    return outcomes


def _failed(task: FetchTask[Any], error: ErrorInfo, *, timed_out: bool = False) -> FetchOutcome[Any]:
    logger.warning("Fetch task %s degraded (%s): %s", task.name, error.kind.value, error.message)
    return FetchOutcome(value=task.default_factory(), error=error, timed_out=timed_out)


def _error_info(task_name: str, error: BaseException) -> ErrorInfo:
    if isinstance(error, ToolCallError):
        return ErrorInfo(kind=error.kind, message=str(error), transient=error.transient)
    logger.error("Fetch task %s raised unexpectedly", task_name, exc_info=error)
    return ErrorInfo(kind=ErrorKind.UNEXPECTED, message=f"{type(error).__name__}: {error}")
