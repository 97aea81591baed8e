"""
RESPONSIBILITIES
- Define the exceptions shared by the blob store and the XLSX template registry.
- Define the health report and the abstract workflow concrete stores follow.
- Describe the blob-store surface consumed by the fill engine and cleanup jobs.
PROCESS OVERVIEW
1. init_store -> resolve target path, ensure directories and workbook skeleton exist.
2. upsert -> merge a single record by primary key, keeping created/updated timestamps.
3. query -> filter the frame built from the sheet read helper.
4. healthcheck -> verify directory write access and lock availability.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol


class StoreError(RuntimeError):
    """Base exception type for persistence-layer failures."""


class StoreInitializationError(StoreError):
    """Raised when a store cannot be initialized due to missing prerequisites."""


class StoreValidationError(StoreError):
    """Raised when input data fails validation rules."""


class StoreLockedError(StoreError):
    """Raised when a target file is locked by another writer."""


class BlobNotFoundError(StoreError, FileNotFoundError):
    """Raised when no object exists at the requested bucket/path."""


@dataclass(slots=True)
class PersistHealth:
    """Structured report produced by health checks."""

    writable_paths: dict[str, bool]
    locked_paths: list[str]
    issues: list[str] = field(default_factory=list)

    def is_healthy(self) -> bool:
        return not self.issues and all(self.writable_paths.values())


@dataclass(frozen=True, slots=True)
class BlobInfo:
    """Listing entry for one stored object."""

    path: str
    size: int
    created_at: datetime


class BlobStore(Protocol):
    """Object storage addressed by ``(bucket, path)``."""

    def upload(self, bucket: str, path: str, data: bytes, *, overwrite: bool = True) -> str: ...

    def download(self, bucket: str, path: str) -> bytes: ...

    def remove(self, bucket: str, paths: list[str]) -> int: ...

    def exists(self, bucket: str, path: str) -> bool: ...

    def list(self, bucket: str, prefix: str = "") -> list[BlobInfo]: ...


class BaseStore(ABC):
    """Abstract class shared by concrete XLSX-backed stores."""

    sheet_name: str
    columns: tuple[str, ...]

    def __init__(self, *, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def init_store(self) -> Path:
        """Ensure backing workbook exists, returning absolute path."""

    @abstractmethod
    def upsert(self, record: Any) -> Any:
        """Merge a single record into the store, updating timestamps as needed."""

    @abstractmethod
    def query(self, params: Any) -> Any:
        """Run a query and return results (usually a pandas.DataFrame)."""

    @abstractmethod
    def healthcheck(self) -> PersistHealth:
        """Run diagnostics for the store and return a structured report."""
