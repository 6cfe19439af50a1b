"""Run configuration assembled from defaults, an optional ``.env`` file and the environment."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from meuralize.schemas import MeuralizeSettings


logger = logging.getLogger(__name__)

VERSION = "2.0.0"
VERSION_BANNER = f"Meuralize v{VERSION} - Professional Gallery Edition"

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in _TRUTHY


def load_settings(env_file: Path | None = None, **overrides: Any) -> MeuralizeSettings:
    """
    Build the immutable settings for one run.

    Values from ``env_file`` (default ``./.env``) never override variables that
    are already set in the process environment. Keyword ``overrides`` with a
    ``None`` value are ignored so CLI options can be passed through as-is.
    """
    env_path = env_file if env_file is not None else Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path, override=False)

    debug = _env_flag("DEBUG")
    values: dict[str, Any] = {
        "debug": debug,
        "log_level": os.environ.get("MEURALIZE_LOG_LEVEL") or ("DEBUG" if debug else "WARNING"),
    }
    values.update({key: value for key, value in overrides.items() if value is not None})
    return MeuralizeSettings(**values)


def configure_logging(settings: MeuralizeSettings) -> None:
    """Send library log records to stderr so stdout only carries progress lines."""
    level = logging.getLevelName(settings.log_level)
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.debug("Logging configured at %s", logging.getLevelName(level))
