"""Activation utilities for targetnet."""

from __future__ import annotations

import numpy as np

from .types import Array


def tanh(x: Array) -> Array:
    """Return the hyperbolic tangent, squashing ``x`` into ``[-1, 1]``."""

    return np.tanh(x)


def tanh_deriv_from_output(y: Array) -> Array:
    """Derivative of tanh expressed through its output ``y = tanh(x)``.

    ``d/dx tanh(x) = 1 - tanh(x)**2`` so the post-activation value is enough and
    the pre-activation sum never has to be stored.
    """

    return 1.0 - y * y
