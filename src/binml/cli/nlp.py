"""binml nlp — flattened instruction corpora."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer


def nlp_cmd(
    input_path: Path = typer.Argument(..., help="Extraction unit JSON file or directory"),
    output_dir: Path = typer.Option(..., "--output", "-o", help="Output directory"),
    representation: Optional[str] = typer.Option(None, "--repr", "-r", help="disasm|ir|esil"),
    granularity: Optional[str] = typer.Option(
        None, "--granularity", "-g", help="instruction (one line each) | function (one line per function)"
    ),
    normalise: Optional[bool] = typer.Option(None, "--normalise/--no-normalise", help="Mask immediates, addresses and symbols"),
    reg_norm: Optional[bool] = typer.Option(None, "--reg-norm/--no-reg-norm", help="Mask general-purpose registers"),
    min_blocks: Optional[int] = typer.Option(None, "--min-blocks", help="Skip functions with fewer blocks"),
    arch: Optional[str] = typer.Option(None, "--arch", help="Override the units' architecture tag"),
    workers: Optional[int] = typer.Option(None, "--workers", "-j", help="Worker threads"),
    recursive: Optional[bool] = typer.Option(None, "--recursive/--no-recursive", help="Scan directories recursively"),
) -> None:
    """Write per-unit instruction corpora."""
    from binml.cli.app import get_context
    from binml.cli.runner import run_job
    from binml.pipeline.jobs import CorpusJob
    from binml.utils.formatters import print_error

    cfg = get_context().ensure_config()
    try:
        job = CorpusJob(
            representation=representation or cfg.corpus.representation,
            granularity=granularity or cfg.corpus.granularity,
            normalise=cfg.corpus.normalise if normalise is None else normalise,
            reg_norm=cfg.corpus.reg_norm if reg_norm is None else reg_norm,
            min_blocks=cfg.pipeline.min_blocks if min_blocks is None else min_blocks,
        )
    except ValueError as exc:
        print_error(str(exc))
        raise typer.Exit(1)

    run_job(job, input_path, output_dir, recursive=recursive, workers=workers, architecture=arch)
