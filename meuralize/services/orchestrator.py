"""
Orchestrator

Drives each image in a folder through the reframing pipeline:

decode -> classify ratio -> plan canvas -> background + foreground ->
composite -> write sibling ``<name>-meural<ext>`` -> enforce size budget.

Files are processed strictly one after another. Any failure while handling a
file is turned into a `FileOutcome` and the batch carries on with the next
file; only folder validation errors escape to the caller.
"""

from __future__ import annotations

import logging
import traceback
from pathlib import Path
from typing import List

import numpy as np

from meuralize.errors import (
    ErrorKind,
    FolderValidationError,
    MeuralizeError,
    OutputPathError,
)
from meuralize.models.frame import BatchReport, FileOutcome, OutcomeStatus
from meuralize.schemas import MeuralizeSettings
from meuralize.services.background import synthesize_background
from meuralize.services.compositor import compose
from meuralize.services.foreground import fit_foreground
from meuralize.services.geometry import is_already_target, plan_canvas
from meuralize.services.raster import RasterEngine, is_jpeg_path
from meuralize.services.reporting import ConsoleReporter
from meuralize.services.size_governor import SizeGovernor


logger = logging.getLogger(__name__)


def output_path_for(source: Path, suffix: str = "-meural") -> Path:
    """Sibling path ``<stem><suffix><ext>`` next to ``source``."""
    source = Path(source)
    if source.name in ("", ".", ".."):
        raise OutputPathError(f"Could not generate output path for {source}")
    return source.with_name(f"{source.stem}{suffix}{source.suffix}")


def validate_folder(folder: Path) -> Path:
    folder = Path(folder)
    if not folder.exists():
        raise FolderValidationError(f"Folder does not exist: {folder}")
    if not folder.is_dir():
        raise FolderValidationError(f"Path is not a directory: {folder}")
    return folder


def _failure_origin(exc: BaseException) -> str | None:
    frames = traceback.extract_tb(exc.__traceback__)
    if not frames:
        return None
    origin = frames[-1]
    return f"{origin.filename}:{origin.lineno}:in `{origin.name}`"


class Meuralizer:
    """
    Reframes every supported image in one folder onto a 16:9 canvas.

    The folder is validated on construction; `FolderValidationError` is the
    only exception callers need to handle.
    """

    def __init__(
        self,
        folder: str | Path,
        settings: MeuralizeSettings | None = None,
        engine: RasterEngine | None = None,
        reporter: ConsoleReporter | None = None,
    ) -> None:
        self.folder = validate_folder(Path(folder))
        self.settings = settings or MeuralizeSettings()
        self.engine = engine or RasterEngine(default_jpeg_quality=self.settings.jpeg_quality)
        self.reporter = reporter or ConsoleReporter()
        self.governor = SizeGovernor(
            budget=self.settings.size_budget(),
            engine=self.engine,
            quality_ladder=self.settings.quality_ladder,
            shrink_factor=self.settings.shrink_factor,
            max_shrink_attempts=self.settings.max_shrink_attempts,
        )

    def find_image_files(self) -> List[Path]:
        """Regular files directly inside the folder with a supported extension."""
        extensions = set(self.settings.supported_extensions)
        return sorted(
            path
            for path in self.folder.iterdir()
            if path.is_file() and path.suffix.lower() in extensions
        )

    def process_images(self) -> BatchReport:
        report = BatchReport(folder=self.folder)
        image_files = self.find_image_files()
        if not image_files:
            self.reporter.no_images(self.folder)
            return report

        total = len(image_files)
        self.reporter.batch_started(total)
        for index, path in enumerate(image_files, start=1):
            self.reporter.file_started(index, total, path)
            outcome = self.process_file(path)
            report.outcomes.append(outcome)
            self.reporter.file_finished(outcome)

        self.reporter.batch_finished(report)
        logger.info(
            "Processed %d file(s) in %s: %d created, %d skipped, %d failed",
            total,
            self.folder,
            report.created,
            report.skipped,
            report.failed,
        )
        return report

    def process_file(self, path: str | Path) -> FileOutcome:
        """Run one file end to end. Never raises for per-file problems."""
        path = Path(path)
        try:
            return self._process(path)
        except Exception as exc:  # noqa: BLE001
            kind = exc.kind if isinstance(exc, MeuralizeError) else ErrorKind.PIPELINE
            logger.info("Failed to process %s (%s): %s", path, kind.value, exc)
            return FileOutcome(
                source=path,
                status=OutcomeStatus.FAILED,
                error_kind=kind,
                message=str(exc) or exc.__class__.__name__,
                debug_origin=_failure_origin(exc) if self.settings.debug else None,
            )

    def _process(self, path: Path) -> FileOutcome:
        if not path.exists() or not path.is_file():
            return FileOutcome(
                source=path,
                status=OutcomeStatus.FAILED,
                error_kind=ErrorKind.INVALID_PATH,
                message=f"Invalid file path: {path}",
            )

        source = self.engine.decode(path)
        source_size = self.engine.dimensions(source)
        ratio = source_size.ratio

        if is_already_target(ratio, self.settings.target_ratio, self.settings.ratio_tolerance):
            logger.debug("%s is already %.4f, skipping", path.name, ratio)
            return FileOutcome(source=path, status=OutcomeStatus.SKIPPED, aspect_ratio=ratio)

        self.reporter.creating(ratio)
        return self._create_meural_version(path, source, ratio)

    def _create_meural_version(self, path: Path, source: np.ndarray, ratio: float) -> FileOutcome:
        plan = plan_canvas(self.engine.dimensions(source), self.settings.target_ratio, self.settings.min_canvas)
        background = synthesize_background(source, plan, self.settings.background, self.engine)
        foreground = fit_foreground(source, plan, self.engine)
        composite = compose(background, foreground, plan, self.engine)

        output_path = output_path_for(path, self.settings.output_suffix)
        quality = self.settings.jpeg_quality if is_jpeg_path(output_path) else None
        self.engine.encode(composite.image, output_path, quality=quality)

        governor = self.governor.enforce(composite.image, output_path, quality=quality)
        final_bytes = output_path.stat().st_size
        logger.info("Saved %s (%s, %d bytes)", output_path, governor.dimensions, final_bytes)
        return FileOutcome(
            source=path,
            status=OutcomeStatus.CREATED,
            aspect_ratio=ratio,
            output_path=output_path,
            final_bytes=final_bytes,
            governor=governor,
        )
