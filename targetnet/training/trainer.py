"""Convergence-gated epoch loop for the offset network."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

import numpy as np

from ..core.errors import ConfigurationError
from ..core.network import NeuralNetwork
from ..core.types import Array, Converged, Exhausted, TrainingResult, TrainingSample
from ..reporting.telemetry import TelemetrySink, emit
from .convergence import CancellationToken, ConvergencePolicy


@dataclass(frozen=True)
class TargetScale:
    """Maps raw pixel columns to the network's output range and back."""

    scale: float

    def __post_init__(self) -> None:
        if not self.scale > 0:
            raise ConfigurationError(f"scale must be positive, got {self.scale}")

    def normalize(self, target: float) -> float:
        return float(target) / self.scale

    def denormalize(self, output: float) -> int:
        return int(round(float(output) * self.scale))


def predict_offset(network: NeuralNetwork, scale: TargetScale, features: Array) -> int:
    """Predicted target column for one feature vector."""

    return scale.denormalize(network.feed_forward(features)[0])


class Trainer:
    """Train a network one sample at a time until every sample is in tolerance."""

    def __init__(
        self,
        network: NeuralNetwork,
        scale: TargetScale,
        policy: ConvergencePolicy | None = None,
        callbacks: Sequence[object] | None = None,
        telemetry: Optional[TelemetrySink] = None,
        cancel: CancellationToken | None = None,
    ) -> None:
        if network.output_width != 1:
            raise ConfigurationError(
                f"offset network must have a single output, got {network.output_width}"
            )
        self.network = network
        self.scale = scale
        self.policy = policy or ConvergencePolicy()
        self.callbacks = list(callbacks or [])
        self.telemetry = telemetry
        self.cancel = cancel

    def run(self, samples: Sequence[TrainingSample]) -> TrainingResult:
        if not samples:
            raise ConfigurationError("cannot train without samples")

        emit(self.telemetry, ">> TRAINING AI MODEL")
        history: list[float] = []
        best_loss = math.inf
        best_epoch = 0
        best_state: Mapping[str, Array] | None = None
        epoch = 0

        while True:
            if self.cancel is not None and self.cancel.cancelled:
                return self._stop(epoch, "cancelled", best_epoch, best_state, history)
            if self.policy.exhausted(epoch):
                return self._stop(epoch, "max_epochs", best_epoch, best_state, history)

            epoch += 1
            train_loss = self.train_epoch(samples)
            loss, passed = self.evaluate(samples)
            history.append(loss)
            converged = passed == len(samples)

            if converged or loss < best_loss:
                best_loss = loss
                best_epoch = epoch
                best_state = self.network.state_dict()

            self._emit_epoch(
                epoch,
                {
                    "loss": loss,
                    "train_loss": train_loss,
                    "within_tolerance": passed,
                    "converged": float(converged),
                },
            )
            emit(self.telemetry, f">> EPOCH {epoch}")

            if converged:
                emit(self.telemetry, f">> TRAINING COMPLETE. EPOCH {epoch}")
                return Converged(network=self.network, epochs=epoch, history=history)

    def train_epoch(self, samples: Sequence[TrainingSample]) -> float:
        """Back-propagate every sample once, in order.

        Returns the mean of the squared errors seen before each update.
        """

        errors = [
            self.network.back_propagate(sample.features, [self.scale.normalize(sample.target)])
            for sample in samples
        ]
        return float(np.mean(errors))

    def evaluate(self, samples: Sequence[TrainingSample]) -> tuple[float, int]:
        """Score the current parameters without changing them.

        Returns the mean squared error over every sample and the number of
        leading samples within tolerance, counted up to the first miss.
        """

        tolerance = self.policy.tolerance
        errors = []
        passed = None
        for idx, sample in enumerate(samples):
            output = self.network.feed_forward(sample.features)[0]
            errors.append((output - self.scale.normalize(sample.target)) ** 2)
            if passed is None and not tolerance.accepts(sample, self.scale.denormalize(output)):
                passed = idx
        return float(np.mean(errors)), len(samples) if passed is None else passed

    def leading_within_tolerance(self, samples: Sequence[TrainingSample]) -> int:
        """Count samples in tolerance, stopping at the first one that is not."""

        tolerance = self.policy.tolerance
        for idx, sample in enumerate(samples):
            predicted = predict_offset(self.network, self.scale, sample.features)
            if not tolerance.accepts(sample, predicted):
                return idx
        return len(samples)

    def _stop(
        self,
        epoch: int,
        reason: str,
        best_epoch: int,
        best_state: Mapping[str, Array] | None,
        history: list[float],
    ) -> Exhausted:
        if best_state is not None:
            self.network.load_state_dict(best_state)
        emit(self.telemetry, f">> TRAINING STOPPED ({reason}) AFTER EPOCH {epoch}")
        return Exhausted(
            network=self.network,
            epochs=epoch,
            reason=reason,
            best_epoch=best_epoch,
            history=history,
        )

    def _emit_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        for callback in self.callbacks:
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(epoch, metrics)


__all__ = ["TargetScale", "Trainer", "predict_offset"]
