"""Logging helpers for the reportflow_io package."""

# Module responsibilities:
# - Reuse the core ReportFlow logging configuration (rotating file + console).
# - Provide get_logger() returning loggers scoped under ``reportflow.io``.

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from reportflow.core.logger import get_logger as core_get_logger


def get_logger(name: str, log_dir: Optional[Path] = None) -> logging.Logger:
    """Return a package-scoped logger.

    Args:
        name: Logger name suffix appended to the ``reportflow.io`` namespace.
        log_dir: Optional override for the logging directory.

    Returns:
        Child logger of the configured application logger.
    """

    return core_get_logger(log_dir).getChild(f"io.{name}")
