"""Fully-connected tanh network trained one sample at a time."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Sequence, Tuple

import numpy as np

from . import persistence
from .activations import tanh, tanh_deriv_from_output
from .errors import ConfigurationError, check_length
from .types import Array, ModelDescription

DEFAULT_LEARNING_RATE = 0.01


@dataclass
class NeuralNetwork:
    """Feed-forward network with one bias per neuron and dense weights.

    ``weights[i]`` has shape ``(layer_dims[i + 1], layer_dims[i])`` so each row
    holds the incoming weights of one destination neuron. ``biases[i]`` belongs
    to layer ``i + 1``.
    """

    layer_dims: Sequence[int]
    learning_rate: float = DEFAULT_LEARNING_RATE
    seed: int | None = None
    weights: List[Array] = field(init=False, repr=False)
    biases: List[Array] = field(init=False, repr=False)
    _activations: List[Array] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        dims = tuple(int(d) for d in self.layer_dims)
        if len(dims) < 2:
            raise ConfigurationError(
                f"topology needs an input and an output layer, got {list(dims)}"
            )
        if any(d <= 0 for d in dims):
            raise ConfigurationError(f"layer widths must be positive, got {list(dims)}")
        self.layer_dims = dims
        self.reset(self.seed)

    def describe(self) -> ModelDescription:
        return ModelDescription(layer_dims=list(self.layer_dims))

    def reset(self, seed: int | None) -> None:
        """Draw fresh parameters; biases in [-0.5, 0.5), weights 100x smaller."""

        rng = np.random.default_rng(seed)
        dims = self.layer_dims
        self._activations = [np.zeros(d, dtype=np.float64) for d in dims]
        self.biases = [rng.uniform(-0.5, 0.5, size=d) for d in dims[1:]]
        # small weights keep the initial sums inside tanh's linear region
        self.weights = [
            rng.uniform(-0.5, 0.5, size=(out_dim, in_dim)) / 100.0
            for in_dim, out_dim in zip(dims[:-1], dims[1:])
        ]

    @property
    def input_width(self) -> int:
        return self.layer_dims[0]

    @property
    def output_width(self) -> int:
        return self.layer_dims[-1]

    @property
    def activations(self) -> Tuple[Array, ...]:
        """Read-only views of the activations left by the last forward pass.

        The views alias internal buffers and are overwritten by the next call
        to :meth:`feed_forward` or :meth:`back_propagate`.
        """

        views = []
        for layer in self._activations:
            view = layer.view()
            view.setflags(write=False)
            views.append(view)
        return tuple(views)

    def feed_forward(self, inputs: Sequence[float]) -> Array:
        """Run ``inputs`` through the network and return a copy of the output layer."""

        check_length("input", inputs, self.input_width)
        acts = self._activations
        np.copyto(acts[0], np.asarray(inputs, dtype=np.float64).reshape(-1))
        for idx, (W, b) in enumerate(zip(self.weights, self.biases)):
            acts[idx + 1][...] = tanh(b + W @ acts[idx])
        return acts[-1].copy()

    def back_propagate(self, inputs: Sequence[float], expected: Sequence[float]) -> float:
        """Apply one gradient-descent step for a single sample.

        Returns the squared error of the sample before the update.
        """

        check_length("expected output", expected, self.output_width)
        target = np.asarray(expected, dtype=np.float64).reshape(-1)
        output = self.feed_forward(inputs)
        acts = self._activations
        error = output - target
        lr = self.learning_rate

        gamma = error * tanh_deriv_from_output(output)
        last = len(self.weights) - 1
        for idx in range(last, -1, -1):
            if idx < last:
                # uses the weights of the layer above, already updated this step
                gamma = (self.weights[idx + 1].T @ gamma) * tanh_deriv_from_output(
                    acts[idx + 1]
                )
            self.biases[idx] -= lr * gamma
            self.weights[idx] -= lr * np.outer(gamma, acts[idx])
        return float(error @ error)

    def state_dict(self) -> Mapping[str, Array]:
        state = {f"b{idx}": b.copy() for idx, b in enumerate(self.biases)}
        state.update({f"W{idx}": W.copy() for idx, W in enumerate(self.weights)})
        return state

    def load_state_dict(self, state: Mapping[str, Array]) -> None:
        for idx in range(len(self.weights)):
            for key, current in ((f"b{idx}", self.biases), (f"W{idx}", self.weights)):
                if key not in state:
                    raise KeyError(f"Missing parameter {key} in state dict")
                value = np.asarray(state[key], dtype=np.float64)
                if value.shape != current[idx].shape:
                    raise ConfigurationError(
                        f"{key} has shape {value.shape}, expected {current[idx].shape}"
                    )
                current[idx] = value.copy()

    @property
    def bias_count(self) -> int:
        return int(sum(b.size for b in self.biases))

    @property
    def weight_count(self) -> int:
        return int(sum(W.size for W in self.weights))

    def parameter_count(self) -> int:
        return self.bias_count + self.weight_count

    def save(self, path: str | Path) -> None:
        """Write every bias then every weight, one value per line."""

        persistence.write_parameters(self, path)

    def load(self, path: str | Path) -> bool:
        """Replace the parameters with those stored at ``path``.

        Returns ``False`` and leaves the network untouched when the file is
        missing or does not fit this topology.
        """

        return persistence.try_read_parameters(self, path)


__all__ = ["DEFAULT_LEARNING_RATE", "NeuralNetwork"]
