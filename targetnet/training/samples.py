"""Synthetic training data: every target size at every horizontal position."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

import numpy as np

from ..core.types import Array, TrainingSample
from ..reporting.telemetry import TelemetrySink, emit


class SampleRenderer(Protocol):
    """Collaborator that draws a target and returns the network's input vector."""

    def synthesize(self, size: float, position: float) -> Array:
        """Render a target ``size`` pixels wide centred on column ``position``."""


def value_grid(start: float, stop: float, step: float) -> List[float]:
    """Half-open range ``[start, stop)`` in ``step`` increments."""

    if step <= 0:
        raise ValueError(f"step must be positive, got {step}")
    return [float(v) for v in np.arange(start, stop, step)]


def default_sizes() -> List[float]:
    return value_grid(25, 175, 5)


def default_positions(width: int) -> List[float]:
    return value_grid(0, width, 1)


def synthesize_samples(
    renderer: SampleRenderer,
    sizes: Iterable[float],
    positions: Sequence[float],
    telemetry: Optional[TelemetrySink] = None,
) -> List[TrainingSample]:
    """Render the full size x position grid, size-major, into training samples."""

    emit(telemetry, ">> CREATING TRAINING DATA")
    samples: List[TrainingSample] = []
    for size in sizes:
        for position in positions:
            features = renderer.synthesize(size, position)
            samples.append(
                TrainingSample(features=features, target=position, size_class=int(size))
            )
    emit(telemetry, f">> CREATED {len(samples)} TRAINING SAMPLES")
    return samples


class SampleIndex:
    """Look samples up again by where they were drawn."""

    def __init__(self, samples: Iterable[TrainingSample]) -> None:
        self._by_key: Dict[Tuple[float, int], TrainingSample] = {
            (sample.target, sample.size_class): sample for sample in samples
        }

    def __len__(self) -> int:
        return len(self._by_key)

    def get(self, position: float, size: int) -> TrainingSample | None:
        return self._by_key.get((float(position), int(size)))


__all__ = [
    "SampleIndex",
    "SampleRenderer",
    "default_positions",
    "default_sizes",
    "synthesize_samples",
    "value_grid",
]
