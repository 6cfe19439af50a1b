"""
Raster Engine

Thin adapter over OpenCV, numpy and Pillow providing the image primitives the
reframing pipeline needs: decode, encode, resize, fill-crop, gaussian blur,
wave distortion, colour modulation and alpha compositing.

Rasters are ``uint8`` numpy arrays in OpenCV channel order (BGR or BGRA).
Every primitive returns a new array; inputs are never modified in place.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Tuple

import cv2
import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from meuralize.errors import ImageDecodeError, RasterEngineError
from meuralize.models.frame import Dimensions
from meuralize.services.geometry import cover_crop


logger = logging.getLogger(__name__)

# Pillow format names keyed by lower-case extension.
_FORMATS = {
    ".jpg": "JPEG",
    ".jpeg": "JPEG",
    ".png": "PNG",
    ".bmp": "BMP",
    ".tif": "TIFF",
    ".tiff": "TIFF",
}

JPEG_EXTENSIONS = frozenset({".jpg", ".jpeg"})


def is_jpeg_path(path: str | Path) -> bool:
    return Path(path).suffix.lower() in JPEG_EXTENSIONS


def _to_8bit_luminance(pil_image: Image.Image) -> Image.Image:
    """Map 16/32-bit integer greyscale onto 0..255."""
    values = np.asarray(pil_image, dtype=np.float64)
    if values.size and values.max() > 255:
        values = values / 257.0
    return Image.fromarray(np.clip(np.rint(values), 0, 255).astype(np.uint8))


class RasterEngine:
    """
    Image primitives used by the background, foreground, compositor and
    size-governor stages.

    All OpenCV failures surface as `RasterEngineError`, decode failures as
    `ImageDecodeError`.
    """

    def __init__(self, default_jpeg_quality: int = 92) -> None:
        self.default_jpeg_quality = default_jpeg_quality

    # ---------- I/O ----------
    def decode(self, path: str | Path) -> np.ndarray:
        """
        Load an image from disk as a BGR or BGRA array.

        EXIF orientation is applied; palette, greyscale, CMYK and 16-bit
        sources are converted to 8-bit colour. Alpha is kept only when the
        source carries transparency.
        """
        path = Path(path)
        try:
            with Image.open(path) as pil_image:
                pil_image = ImageOps.exif_transpose(pil_image)
                has_alpha = pil_image.mode in ("RGBA", "LA", "PA") or (
                    pil_image.mode == "P" and "transparency" in pil_image.info
                )
                if pil_image.mode.startswith("I"):
                    pil_image = _to_8bit_luminance(pil_image)
                rgb = pil_image.convert("RGBA" if has_alpha else "RGB")
                array = np.asarray(rgb, dtype=np.uint8)
        except UnidentifiedImageError as exc:
            raise ImageDecodeError(f"File is not a recognised image: {path.name}") from exc
        except (OSError, ValueError) as exc:
            raise ImageDecodeError(f"Could not read {path.name}: {exc}") from exc

        code = cv2.COLOR_RGBA2BGRA if has_alpha else cv2.COLOR_RGB2BGR
        image = cv2.cvtColor(array, code)
        logger.debug("Decoded %s (%dx%d, %d channels)", path, image.shape[1], image.shape[0], self._channels(image))
        return image

    def encode(self, image: np.ndarray, path: str | Path, quality: int | None = None) -> None:
        """
        Write ``image`` to ``path`` in the format implied by its extension.

        ``quality`` only applies to JPEG; when omitted the engine default is
        used. JPEG output is always flattened to RGB.
        """
        path = Path(path)
        fmt = _FORMATS.get(path.suffix.lower())
        if fmt is None:
            raise RasterEngineError(f"Unsupported output format: {path.suffix or '<none>'}")

        if self._channels(image) == 4:
            code = cv2.COLOR_BGRA2RGB if fmt == "JPEG" else cv2.COLOR_BGRA2RGBA
        elif self._channels(image) == 3:
            code = cv2.COLOR_BGR2RGB
        else:
            code = cv2.COLOR_GRAY2RGB
        try:
            pil_image = Image.fromarray(cv2.cvtColor(image, code))
        except cv2.error as exc:
            raise RasterEngineError(f"Could not prepare image for writing: {exc}") from exc

        save_kwargs: dict = {}
        if fmt == "JPEG":
            save_kwargs["quality"] = int(quality if quality is not None else self.default_jpeg_quality)
        elif fmt == "PNG":
            save_kwargs["optimize"] = True

        try:
            pil_image.save(str(path), format=fmt, **save_kwargs)
        except (OSError, ValueError) as exc:
            raise RasterEngineError(f"Failed to write {path.name}: {exc}") from exc
        logger.debug("Wrote %s (%s, %s, quality=%s)", path, fmt, self.dimensions(image), save_kwargs.get("quality"))

    # ---------- Geometry ----------
    def dimensions(self, image: np.ndarray) -> Dimensions:
        height, width = image.shape[:2]
        return Dimensions(width, height)

    def resize(self, image: np.ndarray, size: Dimensions) -> np.ndarray:
        """Resize to exactly ``size`` (no aspect-ratio correction)."""
        current = self.dimensions(image)
        if current == size:
            return image.copy()
        shrinking = size.width * size.height < current.width * current.height
        interpolation = cv2.INTER_AREA if shrinking else cv2.INTER_LANCZOS4
        try:
            return cv2.resize(image, size.as_tuple(), interpolation=interpolation)
        except cv2.error as exc:
            raise RasterEngineError(f"Resize to {size} failed: {exc}") from exc

    def fill(self, image: np.ndarray, size: Dimensions) -> np.ndarray:
        """
        Cover ``size`` with ``image``, dropping the overflow evenly from both
        ends of the longer axis.

        The centred region is cut from the source first and only that region
        is resized, so the working raster never exceeds ``size``.
        """
        (x0, y0), region = cover_crop(self.dimensions(image), size)
        cropped = image[y0 : y0 + region.height, x0 : x0 + region.width]
        return self.resize(cropped, size)

    # ---------- Filters ----------
    def gaussian_blur(self, image: np.ndarray, sigma: float, radius: int = 0) -> np.ndarray:
        """Gaussian blur; ``radius`` 0 lets OpenCV size the kernel from ``sigma``."""
        ksize = (2 * radius + 1, 2 * radius + 1) if radius > 0 else (0, 0)
        try:
            return cv2.GaussianBlur(image, ksize, sigmaX=sigma, sigmaY=sigma, borderType=cv2.BORDER_REFLECT_101)
        except cv2.error as exc:
            raise RasterEngineError(f"Gaussian blur (sigma={sigma}) failed: {exc}") from exc

    def wave(self, image: np.ndarray, amplitude: float, wavelength: float) -> np.ndarray:
        """
        Shift every column vertically by ``amplitude * sin(2*pi*x / wavelength)``.

        Pixels pulled from outside the frame are mirrored back in, so the
        output keeps the input size.
        """
        if amplitude == 0:
            return image.copy()
        height, width = image.shape[:2]
        xs = np.arange(width, dtype=np.float32)
        ys = np.arange(height, dtype=np.float32)
        shift = (amplitude * np.sin(2.0 * np.pi * xs / wavelength)).astype(np.float32)
        map_x = np.broadcast_to(xs, (height, width)).copy()
        map_y = ys[:, None] + shift[None, :]
        try:
            return cv2.remap(
                image,
                map_x,
                map_y.astype(np.float32),
                interpolation=cv2.INTER_LINEAR,
                borderMode=cv2.BORDER_REFLECT_101,
            )
        except cv2.error as exc:
            raise RasterEngineError(f"Wave distortion failed: {exc}") from exc

    def modulate(self, image: np.ndarray, brightness: float, saturation: float, hue: float = 100.0) -> np.ndarray:
        """
        Scale lightness and saturation and rotate hue, all as percentages
        where 100 leaves the channel unchanged.

        Hue percentages 0..200 map to -180..+180 degrees.
        """
        alpha = image[:, :, 3:] if self._channels(image) == 4 else None
        bgr = image[:, :, :3] if alpha is not None else image
        try:
            hls = cv2.cvtColor(np.ascontiguousarray(bgr), cv2.COLOR_BGR2HLS).astype(np.float32)
        except cv2.error as exc:
            raise RasterEngineError(f"Colour modulation failed: {exc}") from exc

        # OpenCV stores 8-bit hue as degrees / 2.
        hls[:, :, 0] = np.mod(hls[:, :, 0] + (hue - 100.0) * 0.9, 180.0)
        hls[:, :, 1] *= brightness / 100.0
        hls[:, :, 2] *= saturation / 100.0
        hls = np.clip(hls, 0, 255).astype(np.uint8)
        result = cv2.cvtColor(hls, cv2.COLOR_HLS2BGR)
        if alpha is not None:
            result = np.dstack([result, alpha])
        return result

    def flatten(self, image: np.ndarray) -> np.ndarray:
        """Drop the alpha channel, if any, returning an opaque BGR copy."""
        if self._channels(image) == 4:
            return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
        if self._channels(image) == 1:
            return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
        return image.copy()

    def composite(self, background: np.ndarray, foreground: np.ndarray, offset: Tuple[int, int]) -> np.ndarray:
        """
        Alpha "over" blend ``foreground`` onto ``background`` at ``offset``.

        The result is an opaque BGR image the size of ``background``; a
        foreground without alpha simply replaces the covered region.
        """
        x, y = offset
        base = self.flatten(background)
        fg_h, fg_w = foreground.shape[:2]
        bg_h, bg_w = base.shape[:2]
        if x < 0 or y < 0 or x + fg_w > bg_w or y + fg_h > bg_h:
            raise RasterEngineError(
                f"Foreground {fg_w}x{fg_h} at +{x}+{y} does not fit on {bg_w}x{bg_h} background"
            )

        region = base[y : y + fg_h, x : x + fg_w]
        if self._channels(foreground) == 4:
            alpha = foreground[:, :, 3:].astype(np.float32) / 255.0
            blended = foreground[:, :, :3].astype(np.float32) * alpha + region.astype(np.float32) * (1.0 - alpha)
            region[:] = np.clip(np.rint(blended), 0, 255).astype(np.uint8)
        else:
            region[:] = self.flatten(foreground)
        return base

    @staticmethod
    def _channels(image: np.ndarray) -> int:
        return 1 if image.ndim == 2 else image.shape[2]


_default_engine = RasterEngine()


def get_raster_engine() -> RasterEngine:
    """
    Return the process-wide raster engine.

    Components accept an explicit engine so tests can inject a fake one.
    """
    return _default_engine
