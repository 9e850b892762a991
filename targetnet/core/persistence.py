"""Flat-text parameter files.

A model file holds one real number per line and nothing else: every bias
(layer by layer, neuron by neuron) followed by every weight (layer by layer,
destination neuron by destination neuron, source neuron by source neuron).
The reader has to know the topology the file was written with.
"""

from __future__ import annotations

import warnings
from pathlib import Path
from typing import TYPE_CHECKING, List

import numpy as np

from .errors import PersistenceLoadError, PersistenceSaveError
from .types import Array

if TYPE_CHECKING:  # pragma: no cover
    from .network import NeuralNetwork

_FORMAT = "%.17g"


def flatten_parameters(network: "NeuralNetwork") -> Array:
    parts = [b.ravel() for b in network.biases]
    parts.extend(W.ravel() for W in network.weights)
    return np.concatenate(parts)


def write_parameters(network: "NeuralNetwork", path: str | Path) -> str:
    path = Path(path)
    values = flatten_parameters(network)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as handle:
            np.savetxt(handle, values, fmt=_FORMAT)
    except OSError as exc:
        raise PersistenceSaveError(f"Unable to save model to {path}: {exc}") from exc
    return str(path)


def read_parameters(network: "NeuralNetwork", path: str | Path) -> None:
    """Load ``path`` into ``network`` or raise :class:`PersistenceLoadError`.

    Nothing is assigned until the whole file has been parsed and counted.
    """

    path = Path(path)
    if not path.is_file():
        raise PersistenceLoadError(f"No model file at {path}")

    try:
        lines = [line.strip() for line in path.read_text(encoding="utf-8").splitlines()]
        values = np.array([float(line) for line in lines if line], dtype=np.float64)
    except (OSError, UnicodeDecodeError, ValueError) as exc:
        raise PersistenceLoadError(f"Unable to parse model file {path}: {exc}") from exc
    if not np.all(np.isfinite(values)):
        raise PersistenceLoadError(f"Model file {path} holds non-finite parameters")

    expected = network.parameter_count()
    if values.size != expected:
        raise PersistenceLoadError(
            f"{path} holds {values.size} values but topology "
            f"{list(network.layer_dims)} needs {expected}; "
            "the number of neurons most likely does not match the saved model"
        )

    biases: List[Array] = []
    weights: List[Array] = []
    offset = 0
    for b in network.biases:
        biases.append(values[offset : offset + b.size].reshape(b.shape).copy())
        offset += b.size
    for W in network.weights:
        weights.append(values[offset : offset + W.size].reshape(W.shape).copy())
        offset += W.size

    network.biases = biases
    network.weights = weights


def try_read_parameters(network: "NeuralNetwork", path: str | Path) -> bool:
    try:
        read_parameters(network, path)
    except PersistenceLoadError as exc:
        if Path(path).exists():
            warnings.warn(str(exc), RuntimeWarning, stacklevel=3)
        return False
    return True


__all__ = [
    "flatten_parameters",
    "write_parameters",
    "read_parameters",
    "try_read_parameters",
]
