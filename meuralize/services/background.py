"""
Background Synthesizer

Builds the backdrop layer: the source cover-fitted to the canvas, blurred
beyond recognition, given a gentle wave texture and pushed back by lowering
brightness and saturation.
"""

from __future__ import annotations

import logging

import numpy as np

from meuralize.models.frame import CanvasPlan, Layer
from meuralize.schemas import BackgroundStyle
from meuralize.services.raster import RasterEngine, get_raster_engine


logger = logging.getLogger(__name__)


def synthesize_background(
    source: np.ndarray,
    plan: CanvasPlan,
    style: BackgroundStyle | None = None,
    engine: RasterEngine | None = None,
) -> Layer:
    """
    Produce a backdrop exactly the size of ``plan.target``.

    Steps run in order, each on the previous result:
    - fill-resize and centre-crop to the canvas
    - gaussian blur
    - wave distortion
    - the same gaussian blur again, to soften edges the wave introduced
    - brightness / saturation / hue modulation

    ``source`` is never modified; the returned layer owns its own array.
    """
    style = style or BackgroundStyle()
    engine = engine or get_raster_engine()
    target = plan.target

    backdrop = engine.fill(engine.flatten(source), target)
    backdrop = engine.gaussian_blur(backdrop, style.blur_sigma, style.blur_radius)
    backdrop = engine.wave(backdrop, style.wave_amplitude, style.wave_length)
    backdrop = engine.gaussian_blur(backdrop, style.blur_sigma, style.blur_radius)
    backdrop = engine.modulate(backdrop, style.brightness, style.saturation, style.hue)

    logger.debug(
        "Synthesized %s background (sigma=%.1f, wave=%.1fx%.1f)",
        target,
        style.blur_sigma,
        style.wave_amplitude,
        style.wave_length,
    )
    return Layer(image=backdrop, dimensions=engine.dimensions(backdrop), offset=(0, 0))
