"""
RESPONSIBILITIES
- Provide typed containers for template registry rows and query filters.
- Convert between rich records and the flat, string-friendly XLSX row shape.
PROCESS OVERVIEW
1. Callers build TemplateRecord with a TemplateMetadata instance.
2. to_dict() serializes metadata to JSON and timestamps to ISO text.
3. from_row() parses a stored row back, tolerating blanks written by older headers.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Mapping, MutableMapping

from reportflow_io.mapping import TemplateMetadata
from reportflow_persist.stores.base_store import StoreValidationError


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def parse_timestamp(value: object) -> datetime | None:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    text = str(value or "").strip()
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise StoreValidationError(f"Invalid timestamp: {text}") from exc
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _as_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes"}


@dataclass(slots=True)
class TemplateRecord:
    name: str
    category: str
    storage_bucket: str
    storage_path: str
    metadata: TemplateMetadata | None = None
    description: str = ""
    is_active: bool = True
    created_by: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> MutableMapping[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "storage_bucket": self.storage_bucket,
            "storage_path": self.storage_path,
            "metadata": self.metadata.to_json() if self.metadata is not None else "",
            "is_active": "true" if self.is_active else "false",
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else "",
            "updated_at": self.updated_at.isoformat() if self.updated_at else "",
        }

    @classmethod
    def from_row(cls, row: Mapping[str, object]) -> "TemplateRecord":
        raw_metadata = str(row.get("metadata", "") or "").strip()
        return cls(
            id=str(row.get("id", "")),
            name=str(row.get("name", "")),
            description=str(row.get("description", "") or ""),
            category=str(row.get("category", "")),
            storage_bucket=str(row.get("storage_bucket", "")),
            storage_path=str(row.get("storage_path", "")),
            metadata=TemplateMetadata.parse(raw_metadata) if raw_metadata else None,
            is_active=_as_bool(row.get("is_active", "")),
            created_by=str(row.get("created_by", "") or ""),
            created_at=parse_timestamp(row.get("created_at")),
            updated_at=parse_timestamp(row.get("updated_at")),
        )


@dataclass(slots=True)
class TemplateQuery:
    category: str | None = None
    is_active: bool | None = None
    name_contains: str | None = None
    updated_before: datetime | None = None

    def to_dict(self) -> Mapping[str, object]:
        return {
            "category": self.category,
            "is_active": self.is_active,
            "name_contains": self.name_contains,
            "updated_before": self.updated_before.isoformat() if self.updated_before else None,
        }
