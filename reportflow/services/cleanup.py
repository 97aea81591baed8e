"""Housekeeping for stored template files and retired registry rows."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from reportflow_persist.schemas.template import TemplateQuery
from reportflow_persist.stores.base_store import BlobStore, StoreError
from reportflow_persist.stores.template_store import TemplateStore

LOGGER = logging.getLogger(__name__)

DEFAULT_ORPHAN_MIN_AGE = timedelta(hours=24)
DEFAULT_RETENTION_DAYS = 90


@dataclass(slots=True)
class CleanupResult:
    orphaned_files: List[str] = field(default_factory=list)
    deleted_files: int = 0
    deleted_records: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


@dataclass(slots=True)
class FullCleanupResult:
    orphaned: CleanupResult
    inactive: CleanupResult

    @property
    def deleted_files(self) -> int:
        return self.orphaned.deleted_files + self.inactive.deleted_files

    @property
    def errors(self) -> List[str]:
        return self.orphaned.errors + self.inactive.errors


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


def cleanup_orphaned_templates(
    blob_store: BlobStore,
    template_store: TemplateStore,
    bucket: str,
    min_age: timedelta = DEFAULT_ORPHAN_MIN_AGE,
    *,
    dry_run: bool = False,
    now: Optional[datetime] = None,
) -> CleanupResult:
    """Remove blobs older than ``min_age`` that no registry row points at."""

    result = CleanupResult()
    try:
        blobs = blob_store.list(bucket)
        registered = {record.storage_path for record in template_store.records() if record.storage_bucket == bucket}
    except (StoreError, OSError) as exc:
        result.errors.append(f"Could not list templates: {exc}")
        return result

    cutoff = _now(now) - min_age
    for blob in blobs:
        if blob.path in registered or blob.created_at >= cutoff:
            continue
        result.orphaned_files.append(blob.path)
        if dry_run:
            continue
        try:
            result.deleted_files += blob_store.remove(bucket, [blob.path])
        except (StoreError, OSError) as exc:
            result.errors.append(f"Could not delete {blob.path}: {exc}")
            continue
        LOGGER.info("Orphaned template file deleted: %s", blob.path)

    LOGGER.info(
        "Orphan cleanup finished: %s file(s) deleted, %s error(s)",
        result.deleted_files,
        len(result.errors),
    )
    return result


def cleanup_inactive_templates(
    blob_store: BlobStore,
    template_store: TemplateStore,
    retention_days: int = DEFAULT_RETENTION_DAYS,
    *,
    dry_run: bool = False,
    now: Optional[datetime] = None,
) -> CleanupResult:
    """Delete inactive templates (row and file) not updated within ``retention_days``."""

    result = CleanupResult()
    cutoff = _now(now) - timedelta(days=retention_days)
    try:
        frame = template_store.query(TemplateQuery(is_active=False, updated_before=cutoff))
    except (StoreError, OSError) as exc:
        result.errors.append(f"Could not query inactive templates: {exc}")
        return result

    if frame.empty:
        LOGGER.info("No inactive template to clean up")
        return result

    for row in frame.itertuples(index=False):
        result.deleted_records.append(row.id)
        if dry_run:
            continue
        try:
            result.deleted_files += blob_store.remove(row.storage_bucket, [row.storage_path])
        except (StoreError, OSError) as exc:
            result.errors.append(f"Could not delete file {row.storage_path}: {exc}")
        try:
            template_store.delete([row.id])
        except (StoreError, OSError) as exc:
            result.errors.append(f"Could not delete template {row.id}: {exc}")
            continue
        LOGGER.info("Inactive template removed: %s", row.id)

    LOGGER.info(
        "Inactive cleanup finished: %s file(s) deleted, %s error(s)",
        result.deleted_files,
        len(result.errors),
    )
    return result


def run_full_cleanup(
    blob_store: BlobStore,
    template_store: TemplateStore,
    bucket: str,
    *,
    min_age: timedelta = DEFAULT_ORPHAN_MIN_AGE,
    retention_days: int = DEFAULT_RETENTION_DAYS,
    dry_run: bool = False,
    now: Optional[datetime] = None,
) -> FullCleanupResult:
    LOGGER.info("Starting full template cleanup")
    inactive = cleanup_inactive_templates(
        blob_store, template_store, retention_days, dry_run=dry_run, now=now
    )
    orphaned = cleanup_orphaned_templates(
        blob_store, template_store, bucket, min_age, dry_run=dry_run, now=now
    )
    outcome = FullCleanupResult(orphaned=orphaned, inactive=inactive)
    LOGGER.info(
        "Full cleanup finished: %s file(s) deleted, %s error(s)",
        outcome.deleted_files,
        len(outcome.errors),
    )
    return outcome


__all__ = [
    "CleanupResult",
    "FullCleanupResult",
    "cleanup_inactive_templates",
    "cleanup_orphaned_templates",
    "run_full_cleanup",
]
