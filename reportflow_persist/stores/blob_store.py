"""
RESPONSIBILITIES
- Store template workbooks as files under <root>/blobs/<bucket>/<path>.
- Confine every object path to its bucket directory.
PROCESS OVERVIEW
1. upload() writes bytes atomically, refusing to overwrite when asked.
2. download() returns bytes or raises BlobNotFoundError.
3. list() walks a bucket (optionally under a prefix) and reports size and mtime.
4. remove() deletes a batch of objects and prunes empty directories.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath

from reportflow_persist.stores.base_store import BlobInfo, BlobNotFoundError, StoreValidationError
from reportflow_persist.utils.excel_io import atomic_write_bytes, workbook_lock
from reportflow_persist.utils.log import get_logger
from reportflow_persist.utils.paths import bucket_path


class LocalBlobStore:
    """Filesystem-backed blob store."""

    def __init__(self, root: Path | str | None = None, *, logger: logging.Logger | None = None) -> None:
        self._root = Path(root).expanduser().resolve() if root else None
        self.logger = logger or get_logger("blob_store", self._root)

    # Paths ------------------------------------------------------------------------

    def bucket_dir(self, bucket: str) -> Path:
        if not bucket or "/" in bucket or "\\" in bucket or bucket in {".", ".."}:
            raise StoreValidationError(f"Invalid bucket name: {bucket!r}")
        return bucket_path(bucket, self._root)

    def _object_path(self, bucket: str, path: str) -> Path:
        relative = PurePosixPath(path.replace("\\", "/").lstrip("/"))
        if not relative.parts or ".." in relative.parts:
            raise StoreValidationError(f"Invalid object path: {path!r}")
        base = self.bucket_dir(bucket).resolve()
        target = (base / Path(*relative.parts)).resolve()
        if not target.is_relative_to(base):
            raise StoreValidationError(f"Object path escapes bucket: {path!r}")
        return target

    # Objects ----------------------------------------------------------------------

    def upload(self, bucket: str, path: str, data: bytes, *, overwrite: bool = True) -> str:
        target = self._object_path(bucket, path)
        target.parent.mkdir(parents=True, exist_ok=True)
        with workbook_lock(target):
            if target.exists() and not overwrite:
                raise StoreValidationError(f"Object already exists: {bucket}/{path}")
            atomic_write_bytes(target, data)
        self.logger.info("Stored %s bytes at %s/%s", len(data), bucket, path)
        return path

    def download(self, bucket: str, path: str) -> bytes:
        target = self._object_path(bucket, path)
        if not target.is_file():
            raise BlobNotFoundError(f"Object not found: {bucket}/{path}")
        return target.read_bytes()

    def exists(self, bucket: str, path: str) -> bool:
        return self._object_path(bucket, path).is_file()

    def remove(self, bucket: str, paths: list[str]) -> int:
        """Delete ``paths`` from ``bucket``; missing objects are ignored. Returns the count removed."""

        base = self.bucket_dir(bucket).resolve()
        removed = 0
        for path in paths:
            target = self._object_path(bucket, path)
            if not target.is_file():
                continue
            target.unlink()
            removed += 1
            parent = target.parent
            while parent != base and not any(parent.iterdir()):
                parent.rmdir()
                parent = parent.parent
        if removed:
            self.logger.info("Removed %s object(s) from %s", removed, bucket)
        return removed

    def list(self, bucket: str, prefix: str = "") -> list[BlobInfo]:
        base = self.bucket_dir(bucket).resolve()
        if not base.exists():
            return []
        entries: list[BlobInfo] = []
        for file in sorted(base.rglob("*")):
            if not file.is_file() or file.name.endswith((".tmp", ".lock")):
                continue
            relative = file.relative_to(base).as_posix()
            if prefix and not relative.startswith(prefix):
                continue
            stat = file.stat()
            entries.append(
                BlobInfo(
                    path=relative,
                    size=stat.st_size,
                    created_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                )
            )
        return entries
