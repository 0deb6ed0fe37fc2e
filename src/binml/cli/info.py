"""binml info — summarize extraction units without processing them."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer


def info_cmd(
    input_path: Path = typer.Argument(..., help="Extraction unit JSON file or directory"),
    arch: Optional[str] = typer.Option(None, "--arch", help="Override the units' architecture tag"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
) -> None:
    """Show architecture and function counts per unit."""
    from binml.cli.runner import collect_inputs
    from binml.errors import MalformedRecord
    from binml.records.parser import load_unit
    from binml.utils.formatters import print_error, print_json, print_table

    if not input_path.exists():
        print_error(f"Path not found: {input_path}")
        raise typer.Exit(1)

    rows = []
    for path in collect_inputs(input_path):
        try:
            unit = load_unit(path, architecture=arch)
        except MalformedRecord as exc:
            rows.append({"unit": path.name, "architecture": "-", "functions": "-", "error": exc.reason})
            continue
        rows.append(
            {
                "unit": path.name,
                "architecture": unit.architecture,
                "functions": len(unit.records) + len(unit.rejected),
                "rejected": len(unit.rejected),
                "imports": len(unit.imports),
                "error": "",
            }
        )

    if as_json:
        print_json(rows)
        return
    print_table(rows, title=f"Extraction units — {input_path}", columns=["unit", "architecture", "functions", "rejected", "imports", "error"])
