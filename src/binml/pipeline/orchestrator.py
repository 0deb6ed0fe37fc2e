"""Fan (unit, function) work items out over a bounded thread pool.

Units are loaded and prepared in the calling thread, one at a time, as the
submission loop needs more work; at most ``workers * max_pending_per_worker``
futures are outstanding. Results land in a lock-guarded sink and are emitted
sorted by (unit path, function name), whatever order the workers finish in.
"""

from __future__ import annotations

import os
import threading
from collections import Counter
from concurrent.futures import ALL_COMPLETED, FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterator, Mapping, Protocol, Sequence

import structlog

from binml.config.defaults import DEFAULT_MAX_PENDING_PER_WORKER
from binml.errors import (
    EmptyInput,
    FunctionSkipped,
    MalformedRecord,
    RunCancelled,
    UnsupportedArchitecture,
)
from binml.records.model import ExtractionUnit
from binml.utils.logging import get_logger

log = get_logger(__name__)

MALFORMED = "malformed_record"
# Skip reasons that count as failures for the exit status.
FAILURE_REASONS = frozenset({MALFORMED})


@dataclass(frozen=True)
class WorkItem:
    unit: ExtractionUnit
    function: str
    record: Mapping[str, Any] | None
    context: Any = None

    @property
    def key(self) -> tuple[str, str]:
        return (str(self.unit.path), self.function)


@dataclass(frozen=True)
class ItemResult:
    unit: str
    function: str
    artifact: Any = None
    skip_reason: str | None = None
    diagnostic: str | None = None

    @property
    def ok(self) -> bool:
        return self.skip_reason is None

    @property
    def failed(self) -> bool:
        return self.skip_reason in FAILURE_REASONS

    @property
    def key(self) -> tuple[str, str]:
        return (self.unit, self.function)


class Job(Protocol):
    name: str

    def prepare(self, unit: ExtractionUnit) -> Any: ...

    def work_items(
        self, unit: ExtractionUnit, context: Any
    ) -> Sequence[tuple[str, Mapping[str, Any] | None]]: ...

    def process(self, item: WorkItem) -> Any: ...


class CancelToken:
    """Whole-run cancellation flag, safe to set from any thread."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class ResultSink:
    """The only state shared between workers and the collecting thread."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._results: dict[tuple[str, str], ItemResult] = {}

    def add(self, result: ItemResult) -> None:
        """Store one result; a second result for the same key is an error."""
        with self._lock:
            if result.key in self._results:
                unit, function = result.key
                raise ValueError(f"duplicate result for {function!r} in {unit}")
            self._results[result.key] = result

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)

    def clear(self) -> None:
        with self._lock:
            self._results.clear()

    def finalize(self) -> list[ItemResult]:
        with self._lock:
            return [self._results[k] for k in sorted(self._results)]


@dataclass
class RunReport:
    job: str
    results: list[ItemResult] = field(default_factory=list)
    failed_units: dict[str, str] = field(default_factory=dict)
    empty_units: list[str] = field(default_factory=list)
    units_total: int = 0

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if not r.ok)

    def skip_reasons(self) -> dict[str, int]:
        return dict(Counter(r.skip_reason for r in self.results if r.skip_reason))

    def artifacts(self) -> Iterator[ItemResult]:
        return (r for r in self.results if r.ok)

    @property
    def all_failed(self) -> bool:
        return bool(self.results) and all(r.failed for r in self.results)

    @property
    def all_units_failed(self) -> bool:
        return self.units_total > 0 and len(self.failed_units) == self.units_total

    @property
    def exit_code(self) -> int:
        return 1 if self.all_failed or self.all_units_failed else 0


class Orchestrator:
    def __init__(
        self,
        workers: int | None = None,
        max_pending_per_worker: int = DEFAULT_MAX_PENDING_PER_WORKER,
        cancel_token: CancelToken | None = None,
        on_result: Callable[[ItemResult], None] | None = None,
        loader: Callable[[Path], ExtractionUnit] | None = None,
    ) -> None:
        self.workers = workers or os.cpu_count() or 1
        self.max_pending = self.workers * max_pending_per_worker
        self.cancel_token = cancel_token or CancelToken()
        self.on_result = on_result
        self.loader = loader

    def run(self, units: Sequence[ExtractionUnit | Path | str], job: Job) -> RunReport:
        """Apply ``job`` to every function of every unit.

        Raises RunCancelled if the token is set before the run completes; no
        partial results are returned in that case.
        """
        report = RunReport(job=job.name, units_total=len(units))
        sink = ResultSink()
        pending: dict[Future[ItemResult], tuple[str, str]] = {}

        log.info("run_started", job=job.name, units=len(units), workers=self.workers)
        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="binml") as pool:
            for item in self._iter_items(units, job, report):
                if self.cancel_token.cancelled:
                    break
                while len(pending) >= self.max_pending:
                    self._collect(pending, sink, FIRST_COMPLETED)
                pending[pool.submit(self._execute, job, item)] = item.key
            # In-flight items always run to completion.
            self._collect(pending, sink, ALL_COMPLETED)

        if self.cancel_token.cancelled:
            discarded = len(sink)
            sink.clear()
            log.warning("run_cancelled", job=job.name, discarded=discarded)
            raise RunCancelled(f"{job.name} run cancelled; {discarded} result(s) discarded")

        report.results = sink.finalize()
        log.info(
            "run_finished",
            job=job.name,
            succeeded=report.succeeded,
            skipped=report.skipped,
            failed_units=len(report.failed_units),
        )
        return report

    def _iter_items(
        self, units: Sequence[ExtractionUnit | Path | str], job: Job, report: RunReport
    ) -> Iterator[WorkItem]:
        for source in sorted(units, key=_source_key):
            if self.cancel_token.cancelled:
                return
            unit = self._load(source, report)
            if unit is None:
                continue
            try:
                if unit.is_empty:
                    raise EmptyInput(str(unit.path))
                context = job.prepare(unit)
            except EmptyInput as exc:
                log.info("unit_empty", path=str(unit.path))
                report.empty_units.append(exc.unit)
                continue
            except UnsupportedArchitecture as exc:
                log.error("unit_unsupported", path=str(unit.path), error=str(exc))
                report.failed_units[str(unit.path)] = str(exc)
                continue

            for name, record in job.work_items(unit, context):
                yield WorkItem(unit=unit, function=name, record=record, context=context)

    def _load(self, source: ExtractionUnit | Path | str, report: RunReport) -> ExtractionUnit | None:
        if isinstance(source, ExtractionUnit):
            return source
        from binml.records.parser import load_unit

        loader = self.loader or load_unit
        try:
            return loader(Path(source))
        except (MalformedRecord, OSError) as exc:
            log.error("unit_load_failed", path=str(source), error=str(exc))
            report.failed_units[str(source)] = str(exc)
            return None

    @staticmethod
    def _execute(job: Job, item: WorkItem) -> ItemResult:
        unit, function = item.key
        with structlog.contextvars.bound_contextvars(unit=unit, function=function):
            try:
                artifact = job.process(item)
            except MalformedRecord as exc:
                log.warning("function_malformed", reason=exc.reason)
                return ItemResult(unit, function, skip_reason=MALFORMED, diagnostic=exc.reason)
            except FunctionSkipped as exc:
                log.debug("function_skipped", reason=exc.reason)
                return ItemResult(unit, function, skip_reason=exc.reason, diagnostic=str(exc))
        return ItemResult(unit, function, artifact=artifact)

    def _collect(
        self,
        pending: dict[Future[ItemResult], tuple[str, str]],
        sink: ResultSink,
        return_when: str,
    ) -> None:
        if not pending:
            return
        done, _ = wait(pending, return_when=return_when)
        for fut in done:
            pending.pop(fut)
            result = fut.result()
            sink.add(result)
            if self.on_result is not None:
                self.on_result(result)


def _source_key(source: ExtractionUnit | Path | str) -> str:
    return str(source.path if isinstance(source, ExtractionUnit) else source)
