"""CLI smoke tests driven through Typer's CliRunner."""

from __future__ import annotations

import json
from io import BytesIO
from pathlib import Path

import pytest
from openpyxl import load_workbook
from typer.testing import CliRunner

from reportflow.cli import app
from reportflow_persist import LocalBlobStore, TemplateStore

runner = CliRunner()

METADATA = {
    "mappings": {
        "B2": "institution.name",
        "users": {"type": "array", "source": "users", "startRow": 4, "fields": {"full_name": 1, "email": 2}},
    }
}
DATA = {
    "institution": {"name": "IPETEC"},
    "users": [
        {"full_name": "Ana Souza", "email": "ana@example.com"},
        {"full_name": "Bruno Lima", "email": "bruno@example.com"},
    ],
}


@pytest.fixture()
def files(tmp_path: Path, users_template: bytes) -> dict[str, Path]:
    template = tmp_path / "Usuarios.xlsx"
    template.write_bytes(users_template)
    metadata = tmp_path / "metadata.json"
    metadata.write_text(json.dumps(METADATA), encoding="utf-8")
    data = tmp_path / "data.yaml"
    data.write_text(
        "institution:\n  name: IPETEC\nusers:\n"
        "  - {full_name: Ana Souza, email: ana@example.com}\n"
        "  - {full_name: Bruno Lima, email: bruno@example.com}\n",
        encoding="utf-8",
    )
    return {"template": template, "metadata": metadata, "data": data, "root": tmp_path / "root"}


def _invoke(root: Path, *args: str):
    return runner.invoke(app, ["--root", str(root), *args])


def test_suggest(tmp_path: Path) -> None:
    result = _invoke(tmp_path, "suggest", "E-mail do Aluno")
    assert result.exit_code == 0
    assert result.stdout.strip() == "email"

    result = _invoke(tmp_path, "suggest", "Observações")
    assert result.stdout.strip() == "(no suggestion)"


def test_analyze_with_category(files: dict[str, Path]) -> None:
    result = _invoke(files["root"], "analyze", str(files["template"]), "--category", "users")

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["analysis"]["dataStartRow"] == 4
    assert payload["suggestedMapping"]["fields"]["email"] == 2
    assert payload["validation"] == {"valid": True, "missingFields": [], "warnings": []}


def test_analyze_rejects_unknown_category(files: dict[str, Path]) -> None:
    result = _invoke(files["root"], "analyze", str(files["template"]), "--category", "payroll")
    assert result.exit_code == 2


def test_validate_exit_codes(files: dict[str, Path], tmp_path: Path) -> None:
    ok = _invoke(files["root"], "validate", str(files["metadata"]), "--category", "users")
    assert ok.exit_code == 0, ok.output
    assert "Metadata is valid" in ok.stdout

    missing = _invoke(files["root"], "validate", str(files["metadata"]), "--category", "grades")
    assert missing.exit_code == 2

    broken = tmp_path / "broken.json"
    broken.write_text(json.dumps({"mappings": {"2B": "x"}}), encoding="utf-8")
    assert _invoke(files["root"], "validate", str(broken)).exit_code == 2


def test_inspect_lists_cells(files: dict[str, Path]) -> None:
    result = _invoke(files["root"], "inspect", str(files["template"]))

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["sheets"] == ["Usuarios"]
    cells = {c["address"]: c for c in payload["cells"]["Usuarios"]}
    assert cells["A3"] == {"address": "A3", "value": "Nome", "type": "string"}


def test_fill_writes_report(files: dict[str, Path], tmp_path: Path) -> None:
    out = tmp_path / "out" / "report.xlsx"
    result = _invoke(
        files["root"],
        "fill",
        str(files["template"]),
        str(files["metadata"]),
        str(files["data"]),
        "--out",
        str(out),
        "--mappings",
        '{"B1": "institution.name"}',
    )

    assert result.exit_code == 0, result.output
    assert "Report written" in result.stdout
    ws = load_workbook(out).active
    assert ws["B1"].value == "IPETEC"
    assert ws["B2"].value == "IPETEC"
    assert ws["A5"].value == "Bruno Lima"


def test_fill_rejects_bad_inputs(files: dict[str, Path], tmp_path: Path) -> None:
    out = tmp_path / "report.xlsx"
    args = [str(files["template"]), str(files["metadata"]), str(files["data"]), "--out", str(out)]

    assert _invoke(files["root"], "fill", *args, "--mappings", "[1, 2]").exit_code == 2

    garbage = tmp_path / "garbage.xlsx"
    garbage.write_bytes(b"not a workbook")
    result = _invoke(files["root"], "fill", str(garbage), *args[1:])
    assert result.exit_code == 1
    assert not out.exists()


def test_register_generate_and_cleanup(files: dict[str, Path], tmp_path: Path) -> None:
    root = files["root"]
    registered = _invoke(
        root,
        "register",
        str(files["template"]),
        "--name",
        "Relatório de Usuários",
        "--category",
        "users",
        "--metadata",
        str(files["metadata"]),
    )
    assert registered.exit_code == 0, registered.output
    assert "Template registered" in registered.stdout

    records = TemplateStore(root).records()
    assert len(records) == 1
    assert records[0].storage_path.startswith("users/")
    assert records[0].storage_path.endswith("_usuarios.xlsx")
    assert LocalBlobStore(root).exists("excel-templates", records[0].storage_path)

    out = tmp_path / "generated.xlsx"
    generated = _invoke(root, "generate", "users", str(files["data"]), "--out", str(out))
    assert generated.exit_code == 0, generated.output
    assert load_workbook(BytesIO(out.read_bytes())).active["A4"].value == "Ana Souza"

    assert _invoke(root, "generate", "grades", str(files["data"]), "--out", str(out)).exit_code == 1

    cleaned = _invoke(root, "cleanup", "--dry-run")
    assert cleaned.exit_code == 0, cleaned.output
    assert "Would delete orphaned files: 0" in cleaned.stdout
    assert "Would delete inactive templates: 0" in cleaned.stdout


def test_register_suggests_metadata_when_omitted(files: dict[str, Path]) -> None:
    result = _invoke(files["root"], "register", str(files["template"]), "--name", "Auto", "--category", "users")

    assert result.exit_code == 0, result.output
    record = TemplateStore(files["root"]).records()[0]
    assert record.metadata is not None
    assert record.metadata.sheet_name == "Usuarios"


def test_invalid_config_exits_with_input_error(tmp_path: Path) -> None:
    result = runner.invoke(app, ["--config", str(tmp_path / "absent.yaml"), "suggest", "Nome"])
    assert result.exit_code == 2

    malformed = tmp_path / "malformed.yaml"
    malformed.write_text("root: [unclosed\n", encoding="utf-8")
    result = runner.invoke(app, ["--config", str(malformed), "suggest", "Nome"])
    assert result.exit_code == 2
    assert result.exception is None or isinstance(result.exception, SystemExit)
