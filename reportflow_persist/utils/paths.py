"""
RESPONSIBILITIES
- Resolve and create the ~/ReportFlow directory scaffold used for persistence.
- Provide helpers for locating store workbooks and blob buckets.
PROCESS OVERVIEW
1. resolve_root() expands user input or falls back to the configured root.
2. ensure_structure() materializes store/blobs/out/logs directories.
3. store_file_path() and bucket_path() return canonical locations under the root.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable

from reportflow.core.settings import default_root

_DEFAULT_SUBDIRS: tuple[str, ...] = ("store", "blobs", "out", "logs")


def resolve_root(root: str | os.PathLike[str] | None = None) -> Path:
    """Return the persistence root, defaulting to ``REPORTFLOW_ROOT`` or ~/ReportFlow."""

    base = default_root() if root is None else Path(root)
    return base.expanduser().resolve()


def ensure_structure(root: str | os.PathLike[str] | None = None, *, subdirs: Iterable[str] | None = None) -> dict[str, Path]:
    """Ensure persistence directories exist and return a mapping."""

    base = resolve_root(root)
    resolved: dict[str, Path] = {}
    requested = tuple(subdirs) if subdirs is not None else _DEFAULT_SUBDIRS
    base.mkdir(parents=True, exist_ok=True)
    for name in requested:
        target = base / name
        target.mkdir(parents=True, exist_ok=True)
        resolved[name] = target
    return resolved


def store_file_path(filename: str, root: str | os.PathLike[str] | None = None) -> Path:
    """Return the absolute path for a store workbook under "store"."""

    directories = ensure_structure(root)
    return directories["store"] / filename


def bucket_path(bucket: str, root: str | os.PathLike[str] | None = None) -> Path:
    """Return the directory backing ``bucket`` under "blobs"."""

    directories = ensure_structure(root)
    return directories["blobs"] / bucket
