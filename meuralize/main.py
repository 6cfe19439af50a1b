from __future__ import annotations

import argparse
import logging
import math
from typing import Sequence

from meuralize.config import VERSION_BANNER, configure_logging, load_settings
from meuralize.errors import FolderValidationError
from meuralize.schemas import MEGABYTE
from meuralize.services.orchestrator import Meuralizer


logger = logging.getLogger(__name__)

USAGE_HINT = (
    "Usage: meuralize FOLDER_PATH\n"
    "       meuralize --help for more information"
)


def create_parser() -> argparse.ArgumentParser:
    """
    Command-line parser for the reframing tool.

    The folder is optional at the parser level so a missing path can be
    reported with exit code 1 instead of argparse's usage error.
    """
    parser = argparse.ArgumentParser(
        prog="meuralize",
        description=(
            "Reframe every image in FOLDER_PATH onto a 16:9 canvas with a blurred "
            "backdrop, writing <name>-meural<ext> next to each source."
        ),
    )
    parser.add_argument("folder", nargs="?", metavar="FOLDER_PATH", help="Folder containing the images.")
    parser.add_argument("-v", "--version", action="version", version=VERSION_BANNER, help="Show version")
    parser.add_argument(
        "--max-size-mb",
        type=float,
        default=None,
        metavar="MB",
        help="Maximum size of each output file in megabytes (default: 20).",
    )
    return parser


def _valid_size_limit(megabytes: float) -> bool:
    return math.isfinite(megabytes) and int(megabytes * MEGABYTE) >= 1


def main(argv: Sequence[str] | None = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.folder:
        print("Error: Please provide a folder path")
        print(USAGE_HINT)
        return 1

    if args.max_size_mb is not None and not _valid_size_limit(args.max_size_mb):
        print("Error: --max-size-mb must be a finite size of at least one byte")
        return 1

    settings = load_settings(max_file_size_mb=args.max_size_mb)
    configure_logging(settings)
    logger.debug("Starting run in %s with %s", args.folder, settings)

    try:
        meuralizer = Meuralizer(args.folder, settings=settings)
    except FolderValidationError as exc:
        print(f"Error: {exc}")
        return 1

    meuralizer.process_images()
    return 0
