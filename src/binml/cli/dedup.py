"""binml dedup — drop repeated function strings across a corpus."""

from __future__ import annotations

from pathlib import Path

import typer


def dedup_cmd(
    input_path: Path = typer.Argument(..., help="Function-string JSON file or directory"),
    output_dir: Path = typer.Option(..., "--output", "-o", help="Output directory"),
) -> None:
    """Keep the first occurrence of each distinct function string."""
    from binml.cli.runner import collect_inputs
    from binml.corpus.dedup import dedup_files
    from binml.utils.formatters import print_error, print_success

    if not input_path.exists():
        print_error(f"Path not found: {input_path}")
        raise typer.Exit(1)

    paths = collect_inputs(input_path)
    if not paths:
        print_error(f"No JSON inputs found under {input_path}")
        raise typer.Exit(1)

    try:
        result = dedup_files(paths, output_dir)
    except ValueError as exc:
        print_error(str(exc))
        raise typer.Exit(1)

    print_success(
        f"Kept {result.unique} of {result.total} function strings "
        f"({result.duplicates} duplicate(s)) across {len(paths)} file(s)"
    )
