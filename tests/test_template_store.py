from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from reportflow_io.mapping import TemplateMetadata
from reportflow_persist import (
    BlobNotFoundError,
    LocalBlobStore,
    StoreValidationError,
    TemplateQuery,
    TemplateRecord,
    TemplateStore,
    init_template_store,
)

METADATA = TemplateMetadata.parse(
    {"mappings": {"users": {"type": "array", "source": "users", "startRow": 4, "fields": {"full_name": 1}}}}
)


def _record(name: str, category: str = "users", **kwargs) -> TemplateRecord:
    return TemplateRecord(
        name=name,
        category=category,
        storage_bucket="excel-templates",
        storage_path=f"{category}/{name}.xlsx",
        metadata=METADATA,
        **kwargs,
    )


def test_template_store_workflow(tmp_path: Path) -> None:
    root = tmp_path / "persist"
    assert init_template_store(root).exists()
    store = TemplateStore(root)

    saved = store.upsert(_record("Alunos", created_by="admin"))
    assert saved.created_at is not None and saved.updated_at is not None

    loaded = store.get(saved.id)
    assert loaded is not None
    assert loaded.name == "Alunos"
    assert loaded.is_active is True
    assert loaded.metadata == METADATA
    assert loaded.created_by == "admin"

    created_at = loaded.created_at
    time.sleep(1)
    loaded.description = "v2"
    store.upsert(loaded)

    frame = store.query(TemplateQuery(category="users"))
    assert len(frame) == 1
    row = frame.iloc[0]
    assert row["description"] == "v2"
    assert row["created_at"].to_pydatetime() == created_at
    assert row["updated_at"].to_pydatetime() > created_at


def test_active_for_category_prefers_newest_active(tmp_path: Path) -> None:
    store = TemplateStore(tmp_path)
    store.upsert(_record("old"))
    time.sleep(1)
    newest = store.upsert(_record("new"))
    store.upsert(_record("retired", is_active=False))
    store.upsert(_record("grades", category="grades"))

    active = store.active_for_category("users")
    assert active is not None and active.id == newest.id
    assert [r.name for r in store.templates_for_category("users")] == ["new", "old"]
    assert store.active_for_category("access") is None
    assert store.get("missing") is None


def test_query_filters(tmp_path: Path) -> None:
    store = TemplateStore(tmp_path)
    store.upsert(_record("Relatório Mensal"))
    store.upsert(_record("Antigo", is_active=False))

    assert store.query(TemplateQuery(name_contains="mensal"))["name"].tolist() == ["Relatório Mensal"]
    assert store.query({"is_active": False})["name"].tolist() == ["Antigo"]
    future = datetime.now(timezone.utc) + timedelta(days=1)
    assert len(store.query(TemplateQuery(updated_before=future))) == 2
    past = datetime.now(timezone.utc) - timedelta(days=1)
    assert store.query(TemplateQuery(updated_before=past)).empty


def test_upsert_requires_identity_fields(tmp_path: Path) -> None:
    store = TemplateStore(tmp_path)
    with pytest.raises(StoreValidationError):
        store.upsert(TemplateRecord(name="", category="users", storage_bucket="b", storage_path="p"))


def test_delete_and_healthcheck(tmp_path: Path) -> None:
    store = TemplateStore(tmp_path)
    keep = store.upsert(_record("keep"))
    drop = store.upsert(_record("drop"))

    assert store.delete([drop.id, "unknown"]) == 1
    assert store.delete([]) == 0
    assert [r.id for r in store.records()] == [keep.id]
    assert store.healthcheck().is_healthy()


def test_blob_store_round_trip(tmp_path: Path) -> None:
    blobs = LocalBlobStore(tmp_path)
    blobs.upload("excel-templates", "users/a.xlsx", b"one")

    assert blobs.exists("excel-templates", "users/a.xlsx")
    assert blobs.download("excel-templates", "users/a.xlsx") == b"one"
    with pytest.raises(StoreValidationError):
        blobs.upload("excel-templates", "users/a.xlsx", b"two", overwrite=False)

    listing = blobs.list("excel-templates")
    assert [(b.path, b.size) for b in listing] == [("users/a.xlsx", 3)]
    assert blobs.list("excel-templates", prefix="grades/") == []

    assert blobs.remove("excel-templates", ["users/a.xlsx", "users/none.xlsx"]) == 1
    assert not (tmp_path / "blobs" / "excel-templates" / "users").exists()
    with pytest.raises(BlobNotFoundError):
        blobs.download("excel-templates", "users/a.xlsx")
    with pytest.raises(FileNotFoundError):
        blobs.download("excel-templates", "users/a.xlsx")


@pytest.mark.parametrize("path", ["../escape.xlsx", "users/../../x", ""])
def test_blob_store_confines_paths(tmp_path: Path, path: str) -> None:
    with pytest.raises(StoreValidationError):
        LocalBlobStore(tmp_path).upload("excel-templates", path, b"x")


def test_blob_store_rejects_bad_bucket(tmp_path: Path) -> None:
    with pytest.raises(StoreValidationError):
        LocalBlobStore(tmp_path).list("../other")
