from __future__ import annotations

from pathlib import Path
from typing import Callable

from meuralize.models.frame import (
    BatchReport,
    FileOutcome,
    GovernorOutcome,
    GovernorResult,
    GovernorStage,
    OutcomeStatus,
)
from meuralize.schemas import MEGABYTE


def format_megabytes(size_bytes: int) -> str:
    return f"{size_bytes / MEGABYTE:.1f}MB"


class ConsoleReporter:
    """
    Human-readable progress lines for a batch run.

    Writes through ``emit`` (``print`` by default) so tests can capture the
    lines without touching stdout.
    """

    def __init__(self, emit: Callable[[str], None] = print) -> None:
        self._emit = emit

    def no_images(self, folder: Path) -> None:
        self._emit(f"No supported image files found in {folder}")

    def batch_started(self, total: int) -> None:
        self._emit(f"Found {total} image(s) to process...")

    def file_started(self, index: int, total: int, path: Path) -> None:
        self._emit(f"\nProcessing {index}/{total}: {path.name}")

    def creating(self, ratio: float) -> None:
        self._emit(f"  → Creating Meural version (aspect ratio: {ratio:.2f})")

    def file_finished(self, outcome: FileOutcome) -> None:
        if outcome.status is OutcomeStatus.SKIPPED:
            self._emit("  ✓ Already 16:9 aspect ratio, skipping")
        elif outcome.status is OutcomeStatus.CREATED:
            if outcome.governor is not None:
                self._governor_lines(outcome.governor)
            name = outcome.output_path.name if outcome.output_path else "output"
            self._emit(f"  ✓ Saved: {name} ({format_megabytes(outcome.final_bytes or 0)})")
        else:
            self._emit(f"  ✗ Error processing {outcome.source.name}: {outcome.message}")
            if outcome.debug_origin:
                self._emit(f"    Debug: {outcome.debug_origin}")

    def batch_finished(self, report: BatchReport) -> None:
        self._emit("\n" + "=" * 60)
        self._emit("📊 MEURALIZE SUMMARY")
        self._emit("=" * 60)
        self._emit(f"Folder: {report.folder}")
        self._emit(f"  • Created: {report.created}")
        self._emit(f"  • Skipped: {report.skipped}")
        self._emit(f"  • Failed: {report.failed}")
        if report.over_budget:
            self._emit(f"  • Over size limit: {report.over_budget}")
        self._emit("=" * 60)
        self._emit("\nProcessing complete!")

    def _governor_lines(self, result: GovernorResult) -> None:
        if result.outcome is GovernorOutcome.WITHIN_BUDGET:
            return
        self._emit(f"    → File size {format_megabytes(result.initial_bytes)} exceeds limit, optimizing...")
        if any(a.stage is GovernorStage.ITERATIVE_SHRINK for a in result.attempts):
            self._emit("    → As last resort, resizing below minimum dimensions...")

        reduced_to = format_megabytes(result.final_bytes)
        if result.outcome is GovernorOutcome.EXHAUSTED:
            limit = f"{result.max_bytes / MEGABYTE:g}MB"
            self._emit(f"    → Warning: Could not reduce below {limit} limit (final: {reduced_to})")
        elif result.accepted_stage is GovernorStage.QUALITY_LADDER:
            self._emit(f"    → Reduced to {reduced_to} by adjusting quality to {result.quality}%")
        else:
            self._emit(f"    → Reduced to {reduced_to} by resizing to {result.dimensions}")


class SilentReporter(ConsoleReporter):
    """Reporter that drops every line; used when outcomes are consumed programmatically."""

    def __init__(self) -> None:
        super().__init__(emit=lambda line: None)
