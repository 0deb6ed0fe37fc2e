"""binml — extraction records to machine-learning artifacts for binaries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from binml.version import __version__

if TYPE_CHECKING:
    from binml.config.models import BinmlConfig
    from binml.pipeline.orchestrator import CancelToken


@dataclass
class BinmlContext:
    """State shared across CLI commands."""

    config: BinmlConfig | None = None
    cancel_token: CancelToken | None = None  # set per run by the CLI

    def ensure_config(self) -> BinmlConfig:
        if self.config is None:
            from binml.config.loader import load_config

            self.config = load_config()
        return self.config


__all__ = ["BinmlContext", "__version__"]
