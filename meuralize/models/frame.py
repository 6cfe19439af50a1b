from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Tuple

import numpy as np

from meuralize.errors import ErrorKind, InvalidDimensionsError


@dataclass(frozen=True, slots=True)
class Dimensions:
    """
    Width/height pair of a raster, in pixels.

    Both values must be positive integers; anything else raises
    `InvalidDimensionsError` so that bad decodes are caught before planning.
    """

    width: int
    height: int

    def __post_init__(self) -> None:
        for name in ("width", "height"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value <= 0:
                raise InvalidDimensionsError(f"Invalid image dimensions: {name}={value!r}")
            object.__setattr__(self, name, int(value))

    @property
    def ratio(self) -> float:
        return self.width / self.height

    @property
    def is_landscape(self) -> bool:
        """True for landscape sources; squares are planned as portrait."""
        return self.width > self.height

    def fits_within(self, other: Dimensions) -> bool:
        return self.width <= other.width and self.height <= other.height

    def as_tuple(self) -> Tuple[int, int]:
        return self.width, self.height

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


@dataclass(frozen=True, slots=True)
class CanvasPlan:
    """Target canvas computed once per source image."""

    source: Dimensions
    target: Dimensions

    def offset_for(self, layer: Dimensions) -> Tuple[int, int]:
        """
        Centered placement of a layer on the canvas.

        Floor division: an odd remainder leaves the extra pixel on the
        bottom/right edge.
        """
        return (
            (self.target.width - layer.width) // 2,
            (self.target.height - layer.height) // 2,
        )


@dataclass(slots=True)
class Layer:
    """A raster together with its placement on the target canvas."""

    image: np.ndarray
    dimensions: Dimensions
    offset: Tuple[int, int] = (0, 0)


@dataclass(slots=True)
class CompositeResult:
    """Full-resolution merged image, exactly the size of the plan's target."""

    image: np.ndarray
    plan: CanvasPlan

    @property
    def dimensions(self) -> Dimensions:
        return self.plan.target


class GovernorStage(str, Enum):
    """Forward-only stages of the file-size reduction search."""

    DOWNSCALE = "downscale"
    QUALITY_LADDER = "quality-ladder"
    ITERATIVE_SHRINK = "iterative-shrink"


class GovernorOutcome(str, Enum):
    WITHIN_BUDGET = "within-budget"
    REDUCED = "reduced"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True, slots=True)
class GovernorAttempt:
    """One write + measurement performed by the size governor."""

    stage: GovernorStage
    dimensions: Dimensions
    quality: int | None
    size_bytes: int


@dataclass(slots=True)
class GovernorResult:
    """
    Final state of a size-governor run for one output file.

    `final_bytes` is always the size of the file left on disk, whether or not
    the budget was met.
    """

    path: Path
    max_bytes: int
    initial_bytes: int
    final_bytes: int
    dimensions: Dimensions
    quality: int | None = None
    outcome: GovernorOutcome = GovernorOutcome.WITHIN_BUDGET
    accepted_stage: GovernorStage | None = None
    attempts: List[GovernorAttempt] = field(default_factory=list)

    @property
    def over_budget(self) -> bool:
        return self.final_bytes > self.max_bytes


class OutcomeStatus(str, Enum):
    CREATED = "created"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(slots=True)
class FileOutcome:
    """Result of processing a single source file; never raised, only returned."""

    source: Path
    status: OutcomeStatus
    aspect_ratio: float | None = None
    output_path: Path | None = None
    final_bytes: int | None = None
    governor: GovernorResult | None = None
    error_kind: ErrorKind | None = None
    message: str | None = None
    # First frame of the failure origin, only filled in debug mode.
    debug_origin: str | None = None

    @property
    def over_budget(self) -> bool:
        return self.governor is not None and self.governor.over_budget


@dataclass(slots=True)
class BatchReport:
    """Aggregated outcomes for one folder run."""

    folder: Path
    outcomes: List[FileOutcome] = field(default_factory=list)

    def _count(self, status: OutcomeStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status is status)

    @property
    def created(self) -> int:
        return self._count(OutcomeStatus.CREATED)

    @property
    def skipped(self) -> int:
        return self._count(OutcomeStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(OutcomeStatus.FAILED)

    @property
    def over_budget(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.over_budget)
