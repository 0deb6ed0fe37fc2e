"""Root Typer application with subcommand registration."""

from __future__ import annotations

from typing import Optional

import typer

from binml import BinmlContext, __version__

app = typer.Typer(
    name="binml",
    help="binml — turn disassembler records into ML-ready graphs and corpora",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Shared state across commands
_ctx = BinmlContext()


def get_context() -> BinmlContext:
    return _ctx


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"binml {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    config: Optional[str] = typer.Option(None, "--config", "-C", help="Path to binml.yaml"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    version: Optional[bool] = typer.Option(
        None, "--version", "-V", callback=_version_callback, is_eager=True
    ),
) -> None:
    """binml — turn disassembler records into ML-ready graphs and corpora."""
    from binml.config.loader import load_config
    from binml.errors import ConfigError
    from binml.utils.formatters import print_error
    from binml.utils.logging import setup_logging

    try:
        _ctx.config = load_config(config)
    except ConfigError as exc:
        print_error(f"Invalid config {exc}")
        raise typer.Exit(1)
    level = "DEBUG" if verbose else _ctx.config.logging.level
    setup_logging(level=level, json_output=_ctx.config.logging.json_output)


# -- Subcommand registration --
from binml.cli.graphs import graphs_cmd  # noqa: E402
from binml.cli.nlp import nlp_cmd  # noqa: E402
from binml.cli.walks import walks_cmd  # noqa: E402
from binml.cli.dedup import dedup_cmd  # noqa: E402
from binml.cli.info import info_cmd  # noqa: E402
from binml.cli.metadata import metadata_app  # noqa: E402

app.command(name="graphs")(graphs_cmd)
app.command(name="nlp")(nlp_cmd)
app.command(name="walks")(walks_cmd)
app.command(name="dedup")(dedup_cmd)
app.command(name="info")(info_cmd)
app.add_typer(metadata_app, name="metadata", help="Function metadata (finfo subsets, tiknib summaries)")
