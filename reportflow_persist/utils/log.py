"""
RESPONSIBILITIES
- Provide a persistence-local logger helper reusing the core logging setup.
PROCESS OVERVIEW
1. Callers request get_logger(name, root).
2. ensure_structure() creates <root>/logs if necessary.
3. The core reportflow logger is reused and a ``persist.<name>`` child is returned.
"""

from __future__ import annotations

import logging
from pathlib import Path

from reportflow.core.logger import get_logger as core_get_logger

from .paths import ensure_structure


def get_logger(name: str, root: Path | None = None) -> logging.Logger:
    """Return a namespaced logger for persistence modules."""

    directories = ensure_structure(root, subdirs=("logs",))
    base_logger = core_get_logger(directories["logs"])
    return base_logger.getChild(f"persist.{name}")
