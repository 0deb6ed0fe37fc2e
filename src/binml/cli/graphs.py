"""binml graphs — attributed CFGs and call graphs."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer


def graphs_cmd(
    input_path: Path = typer.Argument(..., help="Extraction unit JSON file or directory"),
    output_dir: Path = typer.Option(..., "--output", "-o", help="Output directory"),
    mode: str = typer.Option(
        "cfg", "--mode", "-m", help="cfg|cg|onehopcg|cg-callers|onehopcg-callers|globalcg"
    ),
    scheme: Optional[str] = typer.Option(None, "--scheme", "-s", help="Feature scheme: gemini|discovre|dgis|tiknib"),
    min_blocks: Optional[int] = typer.Option(None, "--min-blocks", help="Skip functions with fewer blocks"),
    with_metadata: Optional[bool] = typer.Option(
        None, "--with-metadata/--no-metadata", help="Attach function stats to call-graph nodes"
    ),
    include_unk: Optional[bool] = typer.Option(
        None, "--include-unk/--no-include-unk", help="Keep unk.* callees in call graphs"
    ),
    arch: Optional[str] = typer.Option(None, "--arch", help="Override the units' architecture tag"),
    workers: Optional[int] = typer.Option(None, "--workers", "-j", help="Worker threads"),
    recursive: Optional[bool] = typer.Option(None, "--recursive/--no-recursive", help="Scan directories recursively"),
) -> None:
    """Build per-function CFGs or call graphs as networkx JSON documents."""
    from binml.cli.app import get_context
    from binml.cli.runner import run_job
    from binml.pipeline.jobs import CallGraphJob, CallGraphMode, CfgJob
    from binml.utils.formatters import print_error

    cfg = get_context().ensure_config()
    blocks = cfg.pipeline.min_blocks if min_blocks is None else min_blocks

    try:
        if mode == "cfg":
            job = CfgJob(scheme=scheme or cfg.features.scheme, min_blocks=blocks)
        else:
            job = CallGraphJob(
                mode=CallGraphMode(mode),
                with_metadata=cfg.callgraph.with_metadata if with_metadata is None else with_metadata,
                include_unknown=cfg.callgraph.include_unknown if include_unk is None else include_unk,
                min_blocks=blocks,
            )
    except ValueError as exc:
        print_error(str(exc))
        raise typer.Exit(1)

    run_job(job, input_path, output_dir, recursive=recursive, workers=workers, architecture=arch)
