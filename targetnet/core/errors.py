"""Exception hierarchy for targetnet."""

from __future__ import annotations

from typing import Sequence


class TargetNetError(Exception):
    """Base class for every error raised by targetnet."""


class ConfigurationError(TargetNetError, ValueError):
    """Raised when a topology or pipeline configuration cannot be honoured."""


class ShapeMismatchError(TargetNetError, ValueError):
    """Raised when a vector does not match the width of the layer it feeds."""

    def __init__(self, what: str, expected: int, actual: int) -> None:
        super().__init__(f"{what} has length {actual}, expected {expected}")
        self.expected = expected
        self.actual = actual


class PersistenceLoadError(TargetNetError):
    """A parameter file is missing, unreadable, or sized for another topology."""


class PersistenceSaveError(TargetNetError):
    """Writing a parameter file failed."""


class MaxEpochsExceeded(TargetNetError):
    """Training stopped before every sample was within tolerance."""

    def __init__(self, result) -> None:
        super().__init__(
            f"training did not converge after {result.epochs} epochs ({result.reason})"
        )
        self.result = result


def check_length(what: str, values: Sequence[float], expected: int) -> None:
    actual = len(values)
    if actual != expected:
        raise ShapeMismatchError(what, expected, actual)


__all__ = [
    "TargetNetError",
    "ConfigurationError",
    "ShapeMismatchError",
    "PersistenceLoadError",
    "PersistenceSaveError",
    "MaxEpochsExceeded",
    "check_length",
]
