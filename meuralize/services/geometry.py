"""
Geometry Planner

Pure functions that size the 16:9 canvas and the layers placed on it. Nothing
here touches pixels; every function is a function of integer dimensions.
"""

from __future__ import annotations

import math
from typing import Tuple

from meuralize.models.frame import CanvasPlan, Dimensions


TARGET_RATIO = 16.0 / 9.0
RATIO_TOLERANCE = 0.01
MIN_CANVAS = Dimensions(1920, 1080)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(math.floor(value + 0.5)) if value >= 0 else -int(math.floor(-value + 0.5))


def is_already_target(
    ratio: float,
    target_ratio: float = TARGET_RATIO,
    tolerance: float = RATIO_TOLERANCE,
) -> bool:
    """True when ``ratio`` is close enough to the canvas ratio to skip the image."""
    return abs(ratio - target_ratio) < tolerance


def plan_canvas(
    source: Dimensions,
    target_ratio: float = TARGET_RATIO,
    min_canvas: Dimensions = MIN_CANVAS,
) -> CanvasPlan:
    """
    Compute the canvas for ``source``.

    Landscape sources keep their width (at least ``min_canvas.width``) and get
    a height derived from the ratio; portrait and square sources keep their
    height (at least ``min_canvas.height``) and get a derived width.
    """
    if source.is_landscape:
        width = max(source.width, min_canvas.width)
        height = round_half_up(width / target_ratio)
    else:
        height = max(source.height, min_canvas.height)
        width = round_half_up(height * target_ratio)
    return CanvasPlan(source=source, target=Dimensions(width, height))


def fit_dimensions(source: Dimensions, target: Dimensions) -> Dimensions:
    """Largest size with the source's aspect ratio that fits inside ``target``."""
    scale = min(target.width / source.width, target.height / source.height)
    return Dimensions(
        min(target.width, max(1, round_half_up(source.width * scale))),
        min(target.height, max(1, round_half_up(source.height * scale))),
    )


def cover_crop(source: Dimensions, target: Dimensions) -> Tuple[Tuple[int, int], Dimensions]:
    """
    Centred region of ``source`` that a cover-scale to ``target`` would keep.

    Returns the region's top-left corner and size. The scale is the larger of
    the two axis ratios; resizing just this region to ``target`` gives the
    same picture as scaling the whole source up and cropping afterwards.
    """
    scale = max(target.width / source.width, target.height / source.height)
    region = Dimensions(
        min(source.width, max(1, round_half_up(target.width / scale))),
        min(source.height, max(1, round_half_up(target.height / scale))),
    )
    offset = ((source.width - region.width) // 2, (source.height - region.height) // 2)
    return offset, region


def downscale_dimensions(current: Dimensions, floor: Dimensions) -> Dimensions | None:
    """
    Size for the governor's first stage, or None when it should not run.

    The scale is the larger of the two floor ratios so neither side drops
    below the floor; anything that would not shrink the image returns None.
    """
    if current.width <= floor.width and current.height <= floor.height:
        return None
    scale = max(floor.width / current.width, floor.height / current.height)
    if scale >= 1.0:
        return None
    return Dimensions(
        max(1, round_half_up(current.width * scale)),
        max(1, round_half_up(current.height * scale)),
    )


def shrink_dimensions(current: Dimensions, factor: float) -> Dimensions:
    return Dimensions(
        max(1, round_half_up(current.width * factor)),
        max(1, round_half_up(current.height * factor)),
    )
