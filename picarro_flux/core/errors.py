# picarro_flux/core/errors.py
from __future__ import annotations


class ConfigError(ValueError):
    """Missing or invalid configuration; aborts the run before processing."""


class JoinError(KeyError):
    """An expected join key is absent from one of the tables."""

    def __str__(self) -> str:
        # KeyError repr()s its message; keep log lines readable
        return str(self.args[0]) if self.args else ""


class RegressionUndefined(ValueError):
    """Fewer than two distinct time points in a measurement group."""


class DataQualityWarning(UserWarning):
    """Input is usable but looks suspicious (missing id field, duplicate keys...)."""
