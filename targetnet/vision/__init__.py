"""Frame rendering and featurization collaborators."""

from .raster import FrameGeometry, RasterContext, featurize
from .silhouette import SilhouetteRenderer

__all__ = ["FrameGeometry", "RasterContext", "SilhouetteRenderer", "featurize"]
