"""Core numerical primitives for targetnet."""

from . import activations, errors, network, persistence, types

__all__ = ["activations", "errors", "network", "persistence", "types"]
