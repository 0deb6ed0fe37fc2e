"""binml metadata — function-info subsets and tiknib summaries."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

metadata_app = typer.Typer(no_args_is_help=True)


@metadata_app.command()
def finfo(
    input_path: Path = typer.Argument(..., help="radare2 afij JSON file or directory"),
    output_dir: Path = typer.Option(..., "--output", "-o", help="Output directory"),
    extended: bool = typer.Option(False, "--extended", help="Add block count and instructions per block"),
) -> None:
    """Reduce afij function-info records to their feature subset."""
    from binml.analysis.metadata import load_function_info, subset
    from binml.cli.runner import collect_inputs
    from binml.errors import MalformedRecord
    from binml.pipeline.writer import dumps
    from binml.utils.formatters import print_error, print_success, print_warning

    if not input_path.exists():
        print_error(f"Path not found: {input_path}")
        raise typer.Exit(1)
    paths = collect_inputs(input_path)
    if not paths:
        print_error(f"No JSON inputs found under {input_path}")
        raise typer.Exit(1)

    output_dir.mkdir(parents=True, exist_ok=True)
    written = 0
    for path in paths:
        try:
            infos, rejected = load_function_info(path)
        except MalformedRecord as exc:
            print_warning(f"Skipping {path}: {exc.reason}")
            continue
        if rejected:
            print_warning(f"{path.name}: {len(rejected)} record(s) failed validation")
        target = output_dir / f"{path.stem}-finfo-subset.json"
        target.write_text(dumps([subset(info, extended=extended) for info in infos]))
        written += 1

    if not written:
        print_error("No function-info file could be read.")
        raise typer.Exit(1)
    print_success(f"Wrote {written} file(s) to {output_dir}")


@metadata_app.command()
def tiknib(
    input_path: Path = typer.Argument(..., help="Extraction unit JSON file or directory"),
    output_dir: Path = typer.Option(..., "--output", "-o", help="Output directory"),
    min_blocks: Optional[int] = typer.Option(None, "--min-blocks", help="Skip functions with fewer blocks"),
    arch: Optional[str] = typer.Option(None, "--arch", help="Override the units' architecture tag"),
    workers: Optional[int] = typer.Option(None, "--workers", "-j", help="Worker threads"),
    recursive: Optional[bool] = typer.Option(None, "--recursive/--no-recursive", help="Scan directories recursively"),
) -> None:
    """Average and sum tiknib block features per function."""
    from binml.cli.app import get_context
    from binml.cli.runner import run_job
    from binml.pipeline.jobs import TiknibJob

    cfg = get_context().ensure_config()
    job = TiknibJob(min_blocks=cfg.pipeline.min_blocks if min_blocks is None else min_blocks)
    run_job(job, input_path, output_dir, recursive=recursive, workers=workers, architecture=arch)


@metadata_app.command()
def combine(
    finfo_path: Path = typer.Argument(..., help="radare2 afij JSON file"),
    tiknib_path: Path = typer.Argument(..., help="-tiknib.json file for the same binary"),
    output_dir: Path = typer.Option(..., "--output", "-o", help="Output directory"),
) -> None:
    """Join function info and tiknib summaries by function name."""
    from binml.analysis.metadata import combine as combine_rows
    from binml.analysis.metadata import load_function_info, load_tiknib
    from binml.errors import MalformedRecord
    from binml.pipeline.writer import dumps
    from binml.utils.formatters import print_error, print_success

    for path in (finfo_path, tiknib_path):
        if not path.is_file():
            print_error(f"File not found: {path}")
            raise typer.Exit(1)

    try:
        infos, _ = load_function_info(finfo_path)
        summaries = load_tiknib(tiknib_path)
    except MalformedRecord as exc:
        print_error(str(exc))
        raise typer.Exit(1)

    rows = combine_rows(infos, summaries)
    output_dir.mkdir(parents=True, exist_ok=True)
    target = output_dir / f"{finfo_path.stem}-finfo-tiknib.json"
    target.write_text(dumps(rows))
    print_success(f"Combined {len(rows)} of {len(infos)} function(s) into {target}")
