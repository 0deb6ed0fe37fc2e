"""Exception taxonomy for record parsing, classification and pipeline runs."""

from __future__ import annotations


class BinmlError(Exception):
    """Base class for all binml errors."""


class MalformedRecord(BinmlError):
    """A function record references a block offset that does not exist, or is
    otherwise structurally invalid. The function is skipped, the run continues.
    """

    def __init__(self, function: str, reason: str) -> None:
        super().__init__(f"{function}: {reason}")
        self.function = function
        self.reason = reason


class UnsupportedArchitecture(BinmlError):
    """No classification table exists for the declared architecture."""

    def __init__(self, architecture: str) -> None:
        super().__init__(f"unsupported architecture: {architecture!r}")
        self.architecture = architecture


class EmptyInput(BinmlError):
    """An extraction unit holds zero functions."""

    def __init__(self, unit: str) -> None:
        super().__init__(f"no functions in {unit}")
        self.unit = unit


class RunCancelled(BinmlError):
    """The whole run was cancelled; partial results were discarded."""


class FunctionSkipped(BinmlError):
    """A function was deliberately not processed (e.g. too few blocks)."""

    def __init__(self, function: str, reason: str) -> None:
        super().__init__(f"{function}: skipped ({reason})")
        self.function = function
        self.reason = reason


class ConfigError(BinmlError):
    """A config file exists but cannot be parsed or validated."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason
