from __future__ import annotations

from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field, PositiveFloat, PositiveInt, field_validator

from meuralize.models.frame import Dimensions


MEGABYTE = 1024 * 1024


class SizeBudget(BaseModel):
    """Byte ceiling and dimension floor enforced on every written output."""

    model_config = ConfigDict(frozen=True)

    max_bytes: PositiveInt = Field(..., description="Maximum size of the output file in bytes.")
    min_width: PositiveInt = Field(default=1920, description="Width the downscale stage stops at.")
    min_height: PositiveInt = Field(default=1080, description="Height the downscale stage stops at.")

    @property
    def min_dimensions(self) -> Dimensions:
        return Dimensions(self.min_width, self.min_height)

    @property
    def max_megabytes(self) -> float:
        return self.max_bytes / MEGABYTE


class BackgroundStyle(BaseModel):
    """Filter parameters for the blurred backdrop layer."""

    model_config = ConfigDict(frozen=True)

    blur_sigma: PositiveFloat = Field(default=95.0, description="Gaussian sigma, applied before and after the wave.")
    blur_radius: int = Field(default=0, ge=0, description="Kernel radius; 0 derives it from sigma.")
    wave_amplitude: float = Field(default=4.0, ge=0.0, description="Wave displacement in pixels.")
    wave_length: PositiveFloat = Field(default=40.0, description="Wave period in pixels.")
    brightness: float = Field(default=80.0, ge=0.0, description="Brightness percentage, 100 = unchanged.")
    saturation: float = Field(default=90.0, ge=0.0, description="Saturation percentage, 100 = unchanged.")
    hue: float = Field(default=100.0, ge=0.0, le=200.0, description="Hue percentage, 100 = unchanged.")


class MeuralizeSettings(BaseModel):
    """
    Immutable run configuration.

    Built once by `meuralize.config.load_settings()` and handed to every
    component explicitly.
    """

    model_config = ConfigDict(frozen=True)

    target_ratio: PositiveFloat = Field(default=16.0 / 9.0, description="Canvas aspect ratio.")
    ratio_tolerance: PositiveFloat = Field(
        default=0.01,
        description="Ratios closer than this to the target are left untouched.",
    )
    min_canvas_width: PositiveInt = Field(default=1920)
    min_canvas_height: PositiveInt = Field(default=1080)
    supported_extensions: Tuple[str, ...] = Field(
        default=(".jpg", ".jpeg", ".png", ".bmp", ".tiff", ".tif"),
        description="Lower-case file extensions picked up from the input folder.",
    )
    output_suffix: str = Field(default="-meural", min_length=1)
    max_file_size_mb: PositiveFloat = Field(default=20.0)
    jpeg_quality: int = Field(default=92, ge=1, le=100, description="Quality of the first JPEG write.")
    quality_ladder: Tuple[int, ...] = Field(default=(85, 70, 60))
    shrink_factor: float = Field(default=0.9, gt=0.0, lt=1.0)
    max_shrink_attempts: int = Field(default=10, ge=0)
    background: BackgroundStyle = Field(default_factory=BackgroundStyle)
    debug: bool = False
    log_level: str = "WARNING"

    @field_validator("supported_extensions")
    @classmethod
    def _normalize_extensions(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        normalized = []
        for ext in value:
            ext = ext.strip().lower()
            if not ext:
                continue
            normalized.append(ext if ext.startswith(".") else f".{ext}")
        return tuple(normalized)

    @field_validator("quality_ladder")
    @classmethod
    def _check_ladder(cls, value: Tuple[int, ...]) -> Tuple[int, ...]:
        if any(q < 1 or q > 100 for q in value):
            raise ValueError("quality ladder values must lie within 1..100")
        if any(a <= b for a, b in zip(value, value[1:])):
            raise ValueError("quality ladder must be strictly descending")
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.strip().upper() or "WARNING"

    @property
    def min_canvas(self) -> Dimensions:
        return Dimensions(self.min_canvas_width, self.min_canvas_height)

    def size_budget(self) -> SizeBudget:
        return SizeBudget(
            max_bytes=int(self.max_file_size_mb * MEGABYTE),
            min_width=self.min_canvas_width,
            min_height=self.min_canvas_height,
        )
