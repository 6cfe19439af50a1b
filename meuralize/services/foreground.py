from __future__ import annotations

import logging

import numpy as np

from meuralize.models.frame import CanvasPlan, Layer
from meuralize.services.geometry import fit_dimensions
from meuralize.services.raster import RasterEngine, get_raster_engine


logger = logging.getLogger(__name__)


def fit_foreground(
    source: np.ndarray,
    plan: CanvasPlan,
    engine: RasterEngine | None = None,
) -> Layer:
    """
    Scale the source to fit entirely inside the canvas, keeping its aspect
    ratio, and place it centred. No cropping happens here.
    """
    engine = engine or get_raster_engine()
    size = fit_dimensions(engine.dimensions(source), plan.target)
    fitted = engine.resize(source, size)
    offset = plan.offset_for(size)
    logger.debug("Fitted foreground %s -> %s at +%d+%d", plan.source, size, *offset)
    return Layer(image=fitted, dimensions=size, offset=offset)
