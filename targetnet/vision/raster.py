"""Stateless frame preprocessing: grayscale, Roberts-cross edges, threshold."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ..core.errors import ConfigurationError, ShapeMismatchError
from ..core.types import Array

_LUMA = np.array([0.21, 0.72, 0.07], dtype=np.float64)


@dataclass(frozen=True)
class FrameGeometry:
    """Pixel dimensions of a camera frame."""

    width: int = 200
    height: int = 80

    def __post_init__(self) -> None:
        if int(self.width) <= 0 or int(self.height) <= 0:
            raise ConfigurationError(
                f"frame must be at least 1x1, got {self.width}x{self.height}"
            )

    @property
    def pixels(self) -> int:
        return int(self.width) * int(self.height)

    @property
    def shape(self) -> tuple[int, int]:
        return int(self.height), int(self.width)

    def blank(self) -> Array:
        return np.zeros(self.shape, dtype=np.float64)


def to_grayscale(frame: Array) -> Array:
    """Collapse an ``(h, w, c)`` frame to luminance; 2-D frames pass through."""

    frame = np.asarray(frame, dtype=np.float64)
    if frame.ndim == 2:
        return frame.copy()
    if frame.ndim != 3:
        raise ValueError(f"Expected a 2-D or 3-D frame, got {frame.ndim} dimensions")
    if frame.shape[2] < 3:
        return frame[:, :, 0].copy()
    return frame[:, :, :3] @ _LUMA


def roberts_edges(channel: Array) -> Array:
    """Roberts-cross edge magnitude, clamped to ``[0, 255]``.

    Both kernels compare a pixel with one diagonal neighbour below it. The one
    pixel border has no full neighbourhood and keeps its original value.
    """

    channel = np.asarray(channel, dtype=np.float64)
    out = channel.copy()
    if channel.shape[0] < 3 or channel.shape[1] < 3:
        return out
    centre = channel[1:-1, 1:-1]
    down_right = centre - channel[2:, 2:]
    down_left = centre - channel[2:, :-2]
    out[1:-1, 1:-1] = np.clip(np.hypot(down_right, down_left), 0.0, 255.0)
    return out


def threshold(channel: Array) -> Array:
    """Row-major feature vector: ``1.0`` where a pixel is lit, ``0.0`` elsewhere."""

    return (np.asarray(channel) > 0).astype(np.float64).reshape(-1)


def featurize(frame: Array, geometry: FrameGeometry | None = None) -> Array:
    """Threshold the first channel of ``frame`` into a binary feature vector."""

    frame = np.asarray(frame)
    channel = frame[:, :, 0] if frame.ndim == 3 else frame
    if channel.ndim != 2:
        raise ValueError(f"Expected a 2-D or 3-D frame, got {frame.ndim} dimensions")
    if geometry is not None and channel.shape != geometry.shape:
        raise ShapeMismatchError(
            f"frame {channel.shape[1]}x{channel.shape[0]}",
            geometry.pixels,
            int(channel.size),
        )
    return threshold(channel)


@dataclass(frozen=True)
class RasterContext:
    """Everything one featurization call needs, passed explicitly.

    A context carries no buffers between calls, so the same instance can be
    shared freely.
    """

    geometry: FrameGeometry = FrameGeometry()
    grayscale: bool = True
    edge_filter: bool = True

    def prepare(self, frame: Array) -> Array:
        channel = to_grayscale(frame) if self.grayscale else np.asarray(frame, dtype=np.float64)
        if channel.ndim == 3:
            channel = channel[:, :, 0]
        if self.edge_filter:
            channel = roberts_edges(channel)
        return channel

    def featurize(self, frame: Array) -> Array:
        return featurize(self.prepare(frame), self.geometry)


__all__ = [
    "FrameGeometry",
    "RasterContext",
    "featurize",
    "roberts_edges",
    "threshold",
    "to_grayscale",
]
