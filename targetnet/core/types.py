"""Core typing contracts for targetnet."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Union

import numpy as np

if TYPE_CHECKING:  # pragma: no cover
    from .network import NeuralNetwork

Array = np.ndarray


@dataclass(frozen=True)
class TrainingSample:
    """A rendered frame paired with where the target really is.

    Attributes
    ----------
    features:
        Flattened binary feature vector, one entry per camera pixel.
    target:
        Horizontal position of the target in raw pixel columns.
    size_class:
        Rendered size of the target. Only used to pick a convergence tolerance
        and to look samples up again while debugging; never fed to the network.
    """

    features: Array
    target: float
    size_class: int

    def __post_init__(self) -> None:
        features = np.array(self.features, dtype=np.float64).reshape(-1)
        features.setflags(write=False)
        object.__setattr__(self, "features", features)
        object.__setattr__(self, "target", float(self.target))
        object.__setattr__(self, "size_class", int(self.size_class))


@dataclass(frozen=True)
class ModelDescription:
    """Description of the feed-forward network architecture."""

    layer_dims: List[int]

    @property
    def bias_count(self) -> int:
        return int(sum(self.layer_dims[1:]))

    @property
    def weight_count(self) -> int:
        dims = self.layer_dims
        return int(sum(dims[i] * dims[i - 1] for i in range(1, len(dims))))


@dataclass(frozen=True)
class Converged:
    """Every sample was predicted within tolerance after ``epochs`` epochs."""

    network: "NeuralNetwork"
    epochs: int
    history: List[float] = field(default_factory=list, repr=False)

    converged = True


@dataclass(frozen=True)
class Exhausted:
    """Training stopped early; ``network`` holds the lowest-loss parameters seen."""

    network: "NeuralNetwork"
    epochs: int
    reason: str = "max_epochs"
    best_epoch: int = 0
    history: List[float] = field(default_factory=list, repr=False)

    converged = False


TrainingResult = Union[Converged, Exhausted]


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :func:`targetnet.training.pipelines.run_pipeline`."""

    epochs: int
    converged: bool
    loaded: bool
    model_path: str
    metrics_path: str = ""
    manifest_path: str = ""


__all__ = [
    "Array",
    "TrainingSample",
    "ModelDescription",
    "Converged",
    "Exhausted",
    "TrainingResult",
    "RunResult",
]
