"""Startup helpers: logging setup and opening the configured database."""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

from modelsync.database import open_database

if TYPE_CHECKING:
    from modelsync.config import Settings
    from modelsync.database import Database

logger = logging.getLogger(__name__)


def configure_logging(debug: bool) -> None:
    """Configure logging for applications embedding modelsync."""
    level = logging.DEBUG if debug else logging.INFO
    fmt = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        stream=sys.stdout,
        force=True,
    )
    # Quiet noisy libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if debug else logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def open_from_settings(settings: Settings, environment: str | None = None) -> Database:
    """Open the database configured for ``environment`` (default: the active one)."""
    target = settings.resolve_target(environment)
    logger.debug("Resolved environment %s to %s", environment or settings.environment, target)
    return open_database(target, echo=settings.debug)
