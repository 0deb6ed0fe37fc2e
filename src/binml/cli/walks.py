"""binml walks — random walks over CFGs."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer


def walks_cmd(
    input_path: Path = typer.Argument(..., help="Extraction unit JSON file or directory"),
    output_dir: Path = typer.Option(..., "--output", "-o", help="Output directory"),
    length: Optional[int] = typer.Option(None, "--length", "-l", help="Maximum nodes per walk"),
    count: Optional[int] = typer.Option(None, "--count", "-n", help="Walks per function"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Base random seed"),
    pad: Optional[bool] = typer.Option(None, "--pad/--no-pad", help="Pad short walks to --length"),
    render: Optional[str] = typer.Option(None, "--render", help="Also write walk text in this representation"),
    min_blocks: Optional[int] = typer.Option(None, "--min-blocks", help="Skip functions with fewer blocks"),
    arch: Optional[str] = typer.Option(None, "--arch", help="Override the units' architecture tag"),
    workers: Optional[int] = typer.Option(None, "--workers", "-j", help="Worker threads"),
    recursive: Optional[bool] = typer.Option(None, "--recursive/--no-recursive", help="Scan directories recursively"),
) -> None:
    """Generate seeded random walks for every function."""
    from binml.cli.app import get_context
    from binml.cli.runner import run_job
    from binml.pipeline.jobs import WalkJob
    from binml.utils.formatters import print_error

    cfg = get_context().ensure_config()
    try:
        job = WalkJob(
            walk_length=cfg.walks.length if length is None else length,
            walk_count=cfg.walks.count if count is None else count,
            seed=cfg.walks.seed if seed is None else seed,
            pad=cfg.walks.pad if pad is None else pad,
            pad_value=cfg.walks.pad_value,
            representation=render,
            min_blocks=cfg.pipeline.min_blocks if min_blocks is None else min_blocks,
        )
    except ValueError as exc:
        print_error(str(exc))
        raise typer.Exit(1)
    if job.walk_length < 1:
        print_error("--length must be at least 1")
        raise typer.Exit(1)

    run_job(job, input_path, output_dir, recursive=recursive, workers=workers, architecture=arch)
