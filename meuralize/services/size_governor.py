"""
Size Governor

Brings an already-written output file under a byte ceiling by re-encoding it
with progressively more aggressive settings. The search walks a fixed, forward
only sequence of stages and stops at the first write that fits:

1. downscale   - shrink towards the minimum canvas (never below, never up)
2. quality     - JPEG only: re-encode at each ladder quality (85, 70, 60)
3. shrink loop - scale by a fixed factor, compounding, a bounded number of times

Every attempt overwrites the same path and is measured on disk. If nothing
fits, the last write stays in place and the result is marked exhausted; this
is a warning, not a failure.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterator, List, Sequence, Tuple

import numpy as np

from meuralize.models.frame import (
    GovernorAttempt,
    GovernorOutcome,
    GovernorResult,
    GovernorStage,
)
from meuralize.schemas import SizeBudget
from meuralize.services.geometry import downscale_dimensions, shrink_dimensions
from meuralize.services.raster import RasterEngine, get_raster_engine, is_jpeg_path


logger = logging.getLogger(__name__)

# (image, quality) pairs proposed by a stage, written and measured one by one.
Candidate = Tuple[np.ndarray, int | None]
StageFactory = Callable[[np.ndarray, int | None, Path], Iterator[Candidate]]


class SizeGovernor:
    """
    Enforces a `SizeBudget` on files written by the orchestrator.

    The engine only needs ``dimensions``, ``resize`` and ``encode``, which
    keeps the stage order testable with a recording fake.
    """

    def __init__(
        self,
        budget: SizeBudget,
        engine: RasterEngine | None = None,
        quality_ladder: Sequence[int] = (85, 70, 60),
        shrink_factor: float = 0.9,
        max_shrink_attempts: int = 10,
    ) -> None:
        if not 0.0 < shrink_factor < 1.0:
            raise ValueError(f"shrink_factor must lie strictly between 0 and 1, got {shrink_factor}")
        self.budget = budget
        self.engine = engine or get_raster_engine()
        self.quality_ladder = tuple(quality_ladder)
        self.shrink_factor = shrink_factor
        self.max_shrink_attempts = max_shrink_attempts

    def enforce(self, image: np.ndarray, path: str | Path, quality: int | None = None) -> GovernorResult:
        """
        Reduce the file at ``path`` (already holding ``image``) until it fits.

        ``quality`` is the JPEG quality of the existing write, if known; it is
        carried into later stages until the quality ladder replaces it.
        """
        path = Path(path)
        initial = self._measure(path)
        result = GovernorResult(
            path=path,
            max_bytes=self.budget.max_bytes,
            initial_bytes=initial,
            final_bytes=initial,
            dimensions=self.engine.dimensions(image),
            quality=quality,
        )
        if initial <= self.budget.max_bytes:
            return result

        logger.info(
            "%s is %d bytes, over the %d byte budget; optimizing",
            path.name,
            initial,
            self.budget.max_bytes,
        )

        current_image, current_quality = image, quality
        for stage, factory in self._stages():
            for candidate_image, candidate_quality in factory(current_image, current_quality, path):
                size = self._write(candidate_image, path, candidate_quality)
                current_image, current_quality = candidate_image, candidate_quality
                attempt = GovernorAttempt(
                    stage=stage,
                    dimensions=self.engine.dimensions(candidate_image),
                    quality=candidate_quality,
                    size_bytes=size,
                )
                self._record(result, attempt)
                logger.debug(
                    "%s: %s at quality %s -> %d bytes",
                    stage.value,
                    attempt.dimensions,
                    candidate_quality,
                    size,
                )
                if size <= self.budget.max_bytes:
                    result.outcome = GovernorOutcome.REDUCED
                    result.accepted_stage = stage
                    logger.info("%s reduced to %d bytes by %s", path.name, size, stage.value)
                    return result

        result.outcome = GovernorOutcome.EXHAUSTED
        result.accepted_stage = None
        logger.info(
            "%s still %d bytes after all reduction stages (budget %d)",
            path.name,
            result.final_bytes,
            self.budget.max_bytes,
        )
        return result

    # ---------- Stages ----------
    def _stages(self) -> List[Tuple[GovernorStage, StageFactory]]:
        return [
            (GovernorStage.DOWNSCALE, self._downscale),
            (GovernorStage.QUALITY_LADDER, self._quality_ladder),
            (GovernorStage.ITERATIVE_SHRINK, self._shrink_loop),
        ]

    def _downscale(self, image: np.ndarray, quality: int | None, path: Path) -> Iterator[Candidate]:
        size = downscale_dimensions(self.engine.dimensions(image), self.budget.min_dimensions)
        if size is None:
            return
        yield self.engine.resize(image, size), quality

    def _quality_ladder(self, image: np.ndarray, quality: int | None, path: Path) -> Iterator[Candidate]:
        if not is_jpeg_path(path):
            return
        for step in self.quality_ladder:
            yield image, step

    def _shrink_loop(self, image: np.ndarray, quality: int | None, path: Path) -> Iterator[Candidate]:
        # Each iteration shrinks the previous iteration's output.
        for _ in range(self.max_shrink_attempts):
            image = self.engine.resize(image, shrink_dimensions(self.engine.dimensions(image), self.shrink_factor))
            yield image, quality

    # ---------- I/O ----------
    def _write(self, image: np.ndarray, path: Path, quality: int | None) -> int:
        self.engine.encode(image, path, quality=quality)
        return self._measure(path)

    @staticmethod
    def _measure(path: Path) -> int:
        return path.stat().st_size

    @staticmethod
    def _record(result: GovernorResult, attempt: GovernorAttempt) -> None:
        result.attempts.append(attempt)
        result.final_bytes = attempt.size_bytes
        result.dimensions = attempt.dimensions
        result.quality = attempt.quality
