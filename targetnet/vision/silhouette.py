"""Synthetic ship silhouettes for generating training frames."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence, Tuple

import numpy as np
from matplotlib.path import Path as PolygonPath

from ..core.types import Array
from .raster import FrameGeometry, RasterContext

# Outline of the corvette, in a 97x21 design box with the waterline at y=21.
SHIP_OUTLINE: Tuple[Tuple[float, float], ...] = (
    (4, 21),
    (1, 15),
    (24, 15),
    (38, 0),
    (42, 6),
    (45, 5),
    (47, 6),
    (47, 10),
    (56, 7),
    (59, 10),
    (64, 6),
    (66, 10),
    (67, 8),
    (69, 9),
    (73, 14),
    (76, 14),
    (97, 16),
    (97, 19),
    (96, 21),
)
_OUTLINE_CENTRE_X = 95.0 / 2.0
_OUTLINE_WATERLINE = 21.0
_DESIGN_WIDTH = 100.0


def outline_points(
    position: float,
    size: float,
    geometry: FrameGeometry,
    outline: Sequence[Tuple[float, float]] = SHIP_OUTLINE,
) -> Array:
    """Scale the outline to ``size`` pixels wide, centred on ``position``.

    The waterline sits half a pixel below the centres of the bottom row, so
    that row is always inside the hull.
    """

    scale = float(size) / _DESIGN_WIDTH
    centre = float(round(position))
    bottom = float(geometry.height) - 0.5
    pts = np.asarray(outline, dtype=np.float64)
    xs = centre + (pts[:, 0] - _OUTLINE_CENTRE_X) * scale
    ys = bottom - (_OUTLINE_WATERLINE - pts[:, 1]) * scale
    return np.column_stack([xs, ys])


@dataclass(frozen=True)
class SilhouetteRenderer:
    """Draws a filled silhouette and turns it into the network's input vector."""

    geometry: FrameGeometry = FrameGeometry()
    context: RasterContext | None = None
    intensity: float = 255.0
    _pixel_centres: Array = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.context is None:
            object.__setattr__(self, "context", RasterContext(self.geometry))
        ys, xs = np.mgrid[0 : self.geometry.height, 0 : self.geometry.width]
        centres = np.column_stack([xs.ravel(), ys.ravel()]).astype(np.float64)
        object.__setattr__(self, "_pixel_centres", centres)

    def render(self, size: float, position: float) -> Array:
        """Return a ``(height, width)`` frame with the silhouette drawn on black."""

        frame = self.geometry.blank()
        if size <= 0:
            return frame
        polygon = PolygonPath(outline_points(position, size, self.geometry), closed=False)
        inside = polygon.contains_points(self._pixel_centres)
        frame.reshape(-1)[inside] = self.intensity
        return frame

    def synthesize(self, size: float, position: float) -> Array:
        """Render a silhouette and featurize it the way live frames are."""

        return self.context.featurize(self.render(size, position))

    def featurize(self, frame: Array) -> Array:
        return self.context.featurize(frame)


__all__ = ["SHIP_OUTLINE", "SilhouetteRenderer", "outline_points"]
