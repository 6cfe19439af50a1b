from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Categories of per-file failures reported by the orchestrator."""

    INVALID_PATH = "invalid-path"
    DECODE = "decode"
    INVALID_DIMENSIONS = "invalid-dimensions"
    PIPELINE = "pipeline"
    OUTPUT_PATH = "output-path"


class MeuralizeError(RuntimeError):
    """Base class for all errors raised by the reframing pipeline."""

    kind: ErrorKind = ErrorKind.PIPELINE


class FolderValidationError(MeuralizeError):
    """Raised at start-up when the input folder is missing or not a directory."""


class ImageDecodeError(MeuralizeError):
    """Raised when a file cannot be read as an image."""

    kind = ErrorKind.DECODE


class InvalidDimensionsError(MeuralizeError, ValueError):
    """Raised when a width or height is not a positive integer."""

    kind = ErrorKind.INVALID_DIMENSIONS


class RasterEngineError(MeuralizeError):
    """Raised when a resize, filter, composite or encode operation fails."""


class CompositionError(MeuralizeError):
    """Raised when layers cannot be merged onto the target canvas."""


class OutputPathError(MeuralizeError):
    """Raised when the sibling output path cannot be derived."""

    kind = ErrorKind.OUTPUT_PATH
