"""Default configuration values and paths."""

from __future__ import annotations

from pathlib import Path

CONFIG_FILE_NAMES = [
    "binml.yaml",
    "binml.yml",
    ".binml.yaml",
    ".binml.yml",
]

CONFIG_ENV_VAR = "BINML_CONFIG"
USER_CONFIG_DIR = Path("~") / ".config" / "binml"

DEFAULT_SCHEME = "gemini"
DEFAULT_MIN_BLOCKS = 0
DEFAULT_MAX_PENDING_PER_WORKER = 4
DEFAULT_WALK_LENGTH = 10
DEFAULT_WALK_COUNT = 5
DEFAULT_WALK_SEED = 0
MAX_FUNCTION_NAME_CHARS = 100
TRUNCATED_FUNCTION_NAME_CHARS = 75
