"""targetnet public API."""

from .core import activations  # noqa: F401
from .core import types  # noqa: F401
from .core.errors import (
    ConfigurationError,
    MaxEpochsExceeded,
    PersistenceLoadError,
    PersistenceSaveError,
    ShapeMismatchError,
    TargetNetError,
)
from .core.network import NeuralNetwork
from .core.types import Converged, Exhausted, TrainingSample
from .steering import HeadingLock
from .training.convergence import CancellationToken, ConvergencePolicy, TolerancePolicy
from .training.pipelines import TargetBrain, build_brain, load_preset, presets, run_pipeline
from .training.trainer import Trainer
from .vision import FrameGeometry, RasterContext, SilhouetteRenderer

__all__ = [
    "NeuralNetwork",
    "TrainingSample",
    "Converged",
    "Exhausted",
    "Trainer",
    "TargetBrain",
    "ConvergencePolicy",
    "TolerancePolicy",
    "CancellationToken",
    "FrameGeometry",
    "RasterContext",
    "SilhouetteRenderer",
    "HeadingLock",
    "TargetNetError",
    "ConfigurationError",
    "ShapeMismatchError",
    "PersistenceLoadError",
    "PersistenceSaveError",
    "MaxEpochsExceeded",
    "activations",
    "types",
    "load_preset",
    "presets",
    "run_pipeline",
    "build_brain",
]
