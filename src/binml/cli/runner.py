"""Shared plumbing for commands that drive the orchestrator."""

from __future__ import annotations

import signal
from contextlib import contextmanager
from functools import partial
from pathlib import Path
from typing import Any, Generator

import typer

from binml.pipeline.orchestrator import CancelToken, RunReport


def collect_inputs(path: Path, recursive: bool = True) -> list[Path]:
    """Return the JSON files under ``path`` (or ``path`` itself), sorted."""
    if path.is_file():
        return [path]
    pattern = "**/*.json" if recursive else "*.json"
    return sorted(p for p in path.glob(pattern) if p.is_file())


@contextmanager
def cancel_on_interrupt(token: CancelToken) -> Generator[None, None, None]:
    """Turn Ctrl-C into a whole-run cancellation while the block runs."""
    previous = signal.signal(signal.SIGINT, lambda *_: token.cancel())
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def run_job(
    job: Any,
    input_path: Path,
    output_dir: Path,
    recursive: bool | None = None,
    workers: int | None = None,
    architecture: str | None = None,
) -> RunReport:
    """Run ``job`` over every input file and write its artifacts.

    Exits with status 1 when every function failed or every unit was rejected.
    """
    from binml.cli.app import get_context
    from binml.errors import RunCancelled
    from binml.pipeline.orchestrator import Orchestrator
    from binml.pipeline.writer import ArtifactWriter
    from binml.records.parser import load_unit
    from binml.utils.formatters import (
        print_error,
        print_run_report,
        print_success,
        print_warning,
    )
    from binml.utils.progress import work_item_progress

    ctx = get_context()
    cfg = ctx.ensure_config()

    if not input_path.exists():
        print_error(f"Path not found: {input_path}")
        raise typer.Exit(1)

    paths = collect_inputs(
        input_path, cfg.pipeline.recursive if recursive is None else recursive
    )
    if not paths:
        print_error(f"No JSON inputs found under {input_path}")
        raise typer.Exit(1)

    token = CancelToken()
    ctx.cancel_token = token
    loader = partial(load_unit, architecture=architecture) if architecture else None

    with work_item_progress(f"{job.name}: {len(paths)} file(s)") as advance:
        orchestrator = Orchestrator(
            workers=workers or cfg.pipeline.workers,
            max_pending_per_worker=cfg.pipeline.max_pending_per_worker,
            cancel_token=token,
            on_result=lambda _result: advance(),
            loader=loader,
        )
        try:
            with cancel_on_interrupt(token):
                report = orchestrator.run(paths, job)
        except RunCancelled as exc:
            print_error(str(exc))
            raise typer.Exit(130)

    written = ArtifactWriter(output_dir).write(report, job)
    print_run_report(report, title=job.name)
    for unit in report.empty_units:
        print_warning(f"No functions in {unit}")
    print_success(f"Wrote {len(written)} file(s) to {output_dir}")

    if report.exit_code:
        if report.all_units_failed:
            print_error("Every input unit was rejected.")
        else:
            print_error("Every function failed.")
        raise typer.Exit(report.exit_code)
    return report
