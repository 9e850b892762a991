"""When to stop training."""

from __future__ import annotations

from dataclasses import dataclass

from ..core.errors import ConfigurationError
from ..core.types import TrainingSample


@dataclass(frozen=True)
class TolerancePolicy:
    """Maximum prediction error allowed per sample, in target pixels.

    A fixed pixel error matters more on a small target, so samples whose size
    class is below ``size_threshold`` get the ``tight`` tolerance.
    """

    size_threshold: int = 40
    tight: float = 2.0
    loose: float = 5.0

    def for_sample(self, sample: TrainingSample) -> float:
        return self.tight if sample.size_class < self.size_threshold else self.loose

    def accepts(self, sample: TrainingSample, predicted: float) -> bool:
        return abs(predicted - sample.target) <= self.for_sample(sample)


@dataclass(frozen=True)
class ConvergencePolicy:
    """Tolerance rule plus an optional epoch cap.

    ``max_epochs=None`` trains until every sample is within tolerance, however
    long that takes.
    """

    max_epochs: int | None = None
    tolerance: TolerancePolicy = TolerancePolicy()

    def __post_init__(self) -> None:
        if self.max_epochs is not None and self.max_epochs < 0:
            raise ConfigurationError(f"max_epochs must be >= 0, got {self.max_epochs}")

    def exhausted(self, epochs_run: int) -> bool:
        return self.max_epochs is not None and epochs_run >= self.max_epochs


class CancellationToken:
    """Flag a host can set to stop training after the current epoch."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


__all__ = ["CancellationToken", "ConvergencePolicy", "TolerancePolicy"]
