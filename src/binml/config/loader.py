"""Locate, interpolate and validate the binml YAML config.

Lookup order: an explicit path, then ``$BINML_CONFIG``, then the nearest
config file in the working directory or any of its parents, then
``~/.config/binml``. ``${VAR}`` and ``${VAR:default}`` inside string values
are expanded from the environment before validation.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Iterator

import yaml
from pydantic import ValidationError

from binml.config.defaults import CONFIG_ENV_VAR, CONFIG_FILE_NAMES, USER_CONFIG_DIR
from binml.config.models import BinmlConfig
from binml.errors import ConfigError
from binml.utils.logging import get_logger

log = get_logger(__name__)

_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)(?::([^}]*))?\}")


def _interpolate_env(value: str) -> str:
    """Replace ${VAR} or ${VAR:default}; an unset VAR without default becomes ""."""
    return _ENV_VAR_PATTERN.sub(
        lambda m: os.environ.get(m.group(1), m.group(2) if m.group(2) is not None else ""),
        value,
    )


def _interpolate(node: Any) -> Any:
    if isinstance(node, str):
        return _interpolate_env(node)
    if isinstance(node, dict):
        return {key: _interpolate(value) for key, value in node.items()}
    if isinstance(node, list):
        return [_interpolate(value) for value in node]
    return node


def search_dirs(start: Path | None = None) -> Iterator[Path]:
    """The working directory, its parents, then the per-user config dir."""
    here = (start or Path.cwd()).resolve()
    yield here
    yield from here.parents
    yield USER_CONFIG_DIR.expanduser()


def find_config_file(explicit_path: str | Path | None = None) -> Path | None:
    """Return the config file to use, or None when there is none."""
    if explicit_path is not None:
        p = Path(explicit_path)
        return p if p.is_file() else None

    from_env = os.environ.get(CONFIG_ENV_VAR)
    if from_env:
        p = Path(from_env).expanduser()
        if p.is_file():
            return p
        log.warning("config_env_not_found", var=CONFIG_ENV_VAR, path=from_env)

    for directory in search_dirs():
        for name in CONFIG_FILE_NAMES:
            candidate = directory / name
            if candidate.is_file():
                return candidate
    return None


def load_config(path: str | Path | None = None) -> BinmlConfig:
    """Load the config, or defaults when no file is found.

    A file that is not valid YAML, is not a mapping, or fails validation
    raises ConfigError.
    """
    config_path = find_config_file(path)
    if config_path is None:
        if path is not None:
            log.warning("config_not_found", path=str(path))
        return BinmlConfig()

    try:
        raw = yaml.safe_load(config_path.read_text()) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(str(config_path), f"invalid YAML: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(str(config_path), "top level must be a mapping")

    try:
        config = BinmlConfig.model_validate(_interpolate(raw))
    except ValidationError as exc:
        raise ConfigError(
            str(config_path), f"{exc.error_count()} invalid setting(s): {exc.errors()[0]['msg']}"
        ) from exc
    log.debug("config_loaded", path=str(config_path))
    return config
