"""
RESPONSIBILITIES
- Manage the XLSX-backed registry of uploaded templates and their mapping metadata.
- Handle initialization, idempotent upserts keyed by id, lookups, queries and deletes.
PROCESS OVERVIEW
1. init_store() ensures <root>/store/template_store.xlsx is ready.
2. upsert() merges a TemplateRecord by id, keeping created_at and refreshing updated_at.
3. get() / active_for_category() return rich TemplateRecord instances.
4. query() returns a pandas.DataFrame filtered by category, activity, name and age.
5. delete() drops rows by id; healthcheck() verifies permissions and lock availability.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, Mapping

import pandas as pd

from reportflow_persist.schemas.template import TemplateQuery, TemplateRecord, parse_timestamp, utcnow
from reportflow_persist.stores.base_store import (
    BaseStore,
    PersistHealth,
    StoreError,
    StoreInitializationError,
    StoreValidationError,
)
from reportflow_persist.utils.excel_io import ensure_workbook, read_sheet, workbook_lock, write_sheet
from reportflow_persist.utils.log import get_logger
from reportflow_persist.utils.paths import ensure_structure, store_file_path

TEMPLATE_SHEET_NAME = "templates"
TEMPLATE_WORKBOOK = "template_store.xlsx"
TEMPLATE_COLUMNS: tuple[str, ...] = (
    "id",
    "name",
    "description",
    "category",
    "storage_bucket",
    "storage_path",
    "metadata",
    "is_active",
    "created_by",
    "created_at",
    "updated_at",
)
_REQUIRED_FIELDS = ("id", "name", "category", "storage_bucket", "storage_path")


class TemplateStore(BaseStore):
    """Template registry persisted in a single worksheet."""

    sheet_name = TEMPLATE_SHEET_NAME
    columns = TEMPLATE_COLUMNS

    def __init__(self, root: Path | str | None = None, *, logger: logging.Logger | None = None) -> None:
        resolved_root = Path(root).expanduser().resolve() if root else None
        super().__init__(logger=logger or get_logger("template_store", resolved_root))
        self._root = resolved_root
        self.path = store_file_path(TEMPLATE_WORKBOOK, self._root)

    # BaseStore API -----------------------------------------------------------------

    def init_store(self) -> Path:
        self.logger.debug("Ensuring template store workbook exists at %s", self.path)
        try:
            ensure_workbook(self.path, self.sheet_name, self.columns)
        except OSError as exc:
            raise StoreInitializationError(str(exc)) from exc
        return self.path

    def upsert(self, record: TemplateRecord) -> TemplateRecord:
        """Insert or replace ``record`` by id and return it with timestamps filled."""

        payload = dict(record.to_dict())
        for name in _REQUIRED_FIELDS:
            if not str(payload.get(name, "")).strip():
                raise StoreValidationError(f"Missing required field: {name}")

        self.init_store()
        now = utcnow()
        with workbook_lock(self.path):
            rows = read_sheet(self.path, self.sheet_name, self.columns, use_lock=False)
            created_at = record.created_at or now
            updated: list[dict[str, object]] = []
            for row in rows:
                if str(row.get("id")) == record.id:
                    created_at = parse_timestamp(row.get("created_at")) or created_at
                    continue
                updated.append(row)
            record.created_at = created_at
            record.updated_at = now
            updated.append(dict(record.to_dict()))
            write_sheet(self.path, self.sheet_name, updated, self.columns, use_lock=False)
        self.logger.info("Template %s (%s) saved for category %s", record.id, record.name, record.category)
        return record

    def query(self, params: Mapping[str, object] | TemplateQuery | None = None) -> pd.DataFrame:
        filters = self._normalize_query(params)
        frame = self._frame()
        if frame.empty:
            return frame

        category = filters.get("category")
        if category:
            frame = frame[frame["category"] == category]
        if filters.get("is_active") is not None:
            frame = frame[frame["is_active"] == filters["is_active"]]
        name = filters.get("name_contains")
        if name:
            frame = frame[frame["name"].str.contains(str(name), case=False, regex=False)]
        cutoff = filters.get("updated_before")
        if cutoff is not None:
            frame = frame[frame["updated_at"].notnull()]
            frame = frame[frame["updated_at"] < pd.Timestamp(cutoff)]

        # later rows win ties on updated_at
        frame = frame.iloc[::-1].sort_values("updated_at", ascending=False, na_position="last", kind="mergesort")
        return frame.reset_index(drop=True)

    def healthcheck(self) -> PersistHealth:
        issues: list[str] = []
        writable_paths: dict[str, bool] = {}
        locked: list[str] = []

        try:
            ensure_structure(self._root)
        except OSError as exc:
            issues.append(f"Failed to ensure root directories: {exc}")

        target_dir = self.path.parent
        writable_paths[str(target_dir)] = target_dir.exists() and os.access(target_dir, os.W_OK | os.X_OK)
        try:
            self.init_store()
        except StoreError as exc:
            issues.append(str(exc))
        try:
            with workbook_lock(self.path):
                pass
        except StoreError as exc:
            locked.append(str(self.path))
            issues.append(f"Lock acquisition failed: {exc}")

        return PersistHealth(writable_paths=writable_paths, locked_paths=locked, issues=issues)

    # Lookups ----------------------------------------------------------------------

    def records(self) -> list[TemplateRecord]:
        self.init_store()
        return [TemplateRecord.from_row(row) for row in read_sheet(self.path, self.sheet_name, self.columns)]

    def get(self, template_id: str) -> TemplateRecord | None:
        for record in self.records():
            if record.id == template_id:
                return record
        return None

    def active_for_category(self, category: str) -> TemplateRecord | None:
        """Return the most recently created active template of ``category``."""

        frame = self.query(TemplateQuery(category=category, is_active=True))
        if frame.empty:
            return None
        frame = frame.sort_values("created_at", ascending=False, na_position="last", kind="mergesort")
        return self.get(str(frame.iloc[0]["id"]))

    def templates_for_category(self, category: str) -> list[TemplateRecord]:
        """Active templates of ``category`` ordered by name."""

        frame = self.query(TemplateQuery(category=category, is_active=True))
        if frame.empty:
            return []
        wanted = frame.sort_values("name", kind="mergesort")["id"].tolist()
        by_id = {record.id: record for record in self.records()}
        return [by_id[template_id] for template_id in wanted if template_id in by_id]

    def delete(self, template_ids: Iterable[str]) -> int:
        targets = {str(template_id) for template_id in template_ids}
        if not targets:
            return 0
        self.init_store()
        with workbook_lock(self.path):
            rows = read_sheet(self.path, self.sheet_name, self.columns, use_lock=False)
            kept = [row for row in rows if str(row.get("id")) not in targets]
            removed = len(rows) - len(kept)
            if removed:
                write_sheet(self.path, self.sheet_name, kept, self.columns, use_lock=False)
        if removed:
            self.logger.info("Deleted %s template record(s)", removed)
        return removed

    # Helpers ----------------------------------------------------------------------

    def _frame(self) -> pd.DataFrame:
        self.init_store()
        rows = read_sheet(self.path, self.sheet_name, self.columns)
        if not rows:
            return pd.DataFrame(columns=self.columns)
        frame = pd.DataFrame(rows, columns=self.columns)
        for column in ("id", "name", "description", "category", "storage_bucket", "storage_path", "created_by"):
            frame[column] = frame[column].astype(str)
        frame["is_active"] = frame["is_active"].astype(str).str.strip().str.lower().isin({"1", "true", "yes"})
        for column in ("created_at", "updated_at"):
            frame[column] = pd.to_datetime(frame[column], utc=True, errors="coerce")
        return frame

    def _normalize_query(self, params: Mapping[str, object] | TemplateQuery | None) -> dict[str, object]:
        if params is None:
            return {}
        raw = params.to_dict() if isinstance(params, TemplateQuery) else dict(params)
        result: dict[str, object] = {}
        if raw.get("category"):
            result["category"] = str(raw["category"])
        if raw.get("is_active") is not None:
            result["is_active"] = bool(raw["is_active"])
        if raw.get("name_contains"):
            result["name_contains"] = str(raw["name_contains"])
        if raw.get("updated_before"):
            result["updated_before"] = parse_timestamp(raw["updated_before"])
        return result


def init_template_store(root: Path | None = None) -> Path:
    return TemplateStore(root).init_store()
