from __future__ import annotations

from io import BytesIO
from pathlib import Path

import pytest
from openpyxl import load_workbook

from reportflow.core.errors import LoadError
from reportflow.services.template_engine import generate_from_template, generate_report_with_template
from reportflow_io.mapping import TemplateMetadata
from reportflow_io.schema import XLSX_MIME_TYPE
from reportflow_persist import LocalBlobStore, TemplateRecord, TemplateStore

BUCKET = "excel-templates"
METADATA = TemplateMetadata.parse(
    {
        "mappings": {
            "B1": "institution.name",
            "users": {"type": "array", "source": "users", "startRow": 4, "fields": {"full_name": 1, "email": 2}},
        }
    }
)
DATA = {
    "institution": {"name": "IPETEC"},
    "users": [{"full_name": "Ana Souza", "email": "ana@example.com"}],
}


@pytest.fixture()
def registry(tmp_path: Path, users_template: bytes) -> tuple[LocalBlobStore, TemplateStore]:
    blobs = LocalBlobStore(tmp_path)
    blobs.upload(BUCKET, "users/alunos.xlsx", users_template)
    store = TemplateStore(tmp_path)
    return blobs, store


def _record(name: str, **kwargs) -> TemplateRecord:
    return TemplateRecord(
        name=name,
        category="users",
        storage_bucket=BUCKET,
        storage_path="users/alunos.xlsx",
        metadata=METADATA,
        **kwargs,
    )


def test_generate_from_template_reads_blob_store(registry) -> None:
    blobs, _ = registry
    output = generate_from_template(_record("Relatório de Alunos"), DATA, blobs)

    assert output.mime_type == XLSX_MIME_TYPE
    assert output.file_name == "relatrio_de_alunos.xlsx"
    assert output.warnings == []
    ws = load_workbook(BytesIO(output.content)).active
    assert ws["B1"].value == "IPETEC"
    assert ws["A4"].value == "Ana Souza"


def test_generate_from_template_accepts_document_bytes(users_template: bytes) -> None:
    record = TemplateRecord(name="", category="users", storage_bucket=BUCKET, storage_path="x.xlsx", metadata=METADATA)
    output = generate_from_template(record, DATA, document=users_template)

    assert output.file_name == "report.xlsx"
    assert load_workbook(BytesIO(output.content)).active["B4"].value == "ana@example.com"


def test_missing_blob_raises_load_error(tmp_path: Path) -> None:
    record = _record("ghost")
    with pytest.raises(LoadError, match="Template not found in storage"):
        generate_from_template(record, DATA, LocalBlobStore(tmp_path))


def test_generate_report_uses_active_template(registry) -> None:
    blobs, store = registry
    store.upsert(_record("Alunos"))

    output = generate_report_with_template("users", DATA, blobs, store)
    assert output is not None
    assert output.file_name == "alunos.xlsx"


def test_generate_report_with_explicit_template_id(registry) -> None:
    blobs, store = registry
    store.upsert(_record("Alunos"))
    retired = store.upsert(_record("Arquivado", is_active=False))

    output = generate_report_with_template("users", DATA, blobs, store, template_id=retired.id)
    assert output is not None
    assert output.file_name == "arquivado.xlsx"


def test_generate_report_without_template_returns_none(registry) -> None:
    blobs, store = registry

    assert generate_report_with_template("users", DATA, blobs, store) is None
    assert generate_report_with_template("users", DATA, blobs, store, template_id="missing") is None
