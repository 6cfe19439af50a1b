from __future__ import annotations

import logging

from meuralize.errors import CompositionError
from meuralize.models.frame import CanvasPlan, CompositeResult, Layer
from meuralize.services.raster import RasterEngine, get_raster_engine


logger = logging.getLogger(__name__)


def compose(
    background: Layer,
    foreground: Layer,
    plan: CanvasPlan,
    engine: RasterEngine | None = None,
) -> CompositeResult:
    """
    Alpha-blend the foreground over the background at the centred offset.

    The background must already match the canvas; the foreground must fit
    inside it. The result is opaque and exactly ``plan.target`` in size.
    """
    engine = engine or get_raster_engine()
    target = plan.target

    if background.dimensions != target:
        raise CompositionError(f"Background is {background.dimensions}, expected {target}")
    if not foreground.dimensions.fits_within(target):
        raise CompositionError(f"Foreground {foreground.dimensions} does not fit inside {target}")

    offset = plan.offset_for(foreground.dimensions)
    merged = engine.composite(background.image, foreground.image, offset)

    result_size = engine.dimensions(merged)
    if result_size != target:
        raise CompositionError(f"Composite came out {result_size}, expected {target}")

    logger.debug("Composited %s foreground onto %s at +%d+%d", foreground.dimensions, target, *offset)
    return CompositeResult(image=merged, plan=plan)
