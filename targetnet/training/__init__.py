"""Training loop and pipeline assembly."""

from .convergence import CancellationToken, ConvergencePolicy, TolerancePolicy
from .pipelines import TargetBrain, build_brain, load_preset, presets, run_pipeline
from .samples import synthesize_samples
from .trainer import TargetScale, Trainer

__all__ = [
    "CancellationToken",
    "ConvergencePolicy",
    "TolerancePolicy",
    "TargetBrain",
    "TargetScale",
    "Trainer",
    "build_brain",
    "load_preset",
    "presets",
    "run_pipeline",
    "synthesize_samples",
]
