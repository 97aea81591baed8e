from __future__ import annotations

import pytest
from openpyxl import Workbook

from reportflow.core.errors import LoadError
from reportflow.services.template_analyzer import (
    analyze_template,
    build_suggested_mapping,
    build_suggested_metadata,
    suggest_field,
    validate_mapping,
)
from reportflow.services.template_analyzer.analyzer import (
    DEFAULT_DATA_START_ROW,
    MAX_SCAN_ROWS,
    RowSummary,
    extract_static_cells,
    find_table_header_row,
)
from reportflow.services.template_analyzer.builder import NO_FIELDS_WARNING
from reportflow_io.mapping import ArrayMapping, split_mappings


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Nome Completo", "full_name"),
        ("E-mail do Aluno", "email"),
        ("  CURSO  ", "course"),
        ("Telefone", "phone"),
        ("Escola", "institution"),
        ("Data", "created_at"),
    ],
)
def test_suggest_field_known_headers(text: str, expected: str) -> None:
    assert suggest_field(text) == expected


def test_suggest_field_blank_and_unknown() -> None:
    assert suggest_field("") is None
    assert suggest_field("   ") is None
    assert suggest_field(None) is None
    assert suggest_field("xyzzy") is None


def test_analyze_detects_header_row_and_static_cells(users_template: bytes) -> None:
    analysis = analyze_template(users_template)

    assert analysis.table_header_row == 3
    assert analysis.data_start_row == 4
    assert analysis.sheet_name == "Usuarios"
    assert analysis.total_columns == 5
    first = analysis.headers[0]
    assert (first.column, first.value, first.suggested_field) == (1, "Nome", "full_name")
    assert [h.suggested_field for h in analysis.headers] == ["full_name", "email", "course", "status", "created_at"]

    assert len(analysis.static_cells) == 1
    static = analysis.static_cells[0]
    assert static.address == "B1"
    assert static.label == "Escola"
    assert static.value == "Colégio Modelo"
    assert static.suggested_field == "institution"


def test_header_below_scan_window_is_ignored(workbook_bytes) -> None:
    wb = Workbook()
    ws = wb.active
    for column, header in enumerate(["Nome", "Email", "Curso", "Status", "Data", "Nota"], start=1):
        ws.cell(row=MAX_SCAN_ROWS + 1, column=column, value=header)

    analysis = analyze_template(workbook_bytes(wb))

    assert analysis.headers == ()
    assert analysis.table_header_row == 0
    assert analysis.data_start_row == DEFAULT_DATA_START_ROW == 2


def test_header_on_last_scanned_row_is_found(workbook_bytes) -> None:
    wb = Workbook()
    ws = wb.active
    for column, header in enumerate(["Nome", "Email", "Curso", "Status", "Data"], start=1):
        ws.cell(row=MAX_SCAN_ROWS, column=column, value=header)

    analysis = analyze_template(workbook_bytes(wb))

    assert analysis.table_header_row == MAX_SCAN_ROWS
    assert analysis.data_start_row == MAX_SCAN_ROWS + 1


def test_analyze_header_row_without_labels_above(workbook_bytes) -> None:
    wb = Workbook()
    ws = wb.active
    ws.append([])
    ws.append([])
    ws.append(["Nome", "Email", "Curso", "Status", "Data"])

    analysis = analyze_template(workbook_bytes(wb))

    assert analysis.table_header_row == 3
    assert analysis.data_start_row == 4
    assert analysis.headers[0].suggested_field == "full_name"
    assert analysis.static_cells == ()


def test_analyze_empty_sheet_defaults(workbook_bytes) -> None:
    analysis = analyze_template(workbook_bytes(Workbook()))

    assert analysis.headers == ()
    assert analysis.table_header_row == 0
    assert analysis.data_start_row == DEFAULT_DATA_START_ROW
    assert analysis.total_columns == 0


def test_rows_with_a_label_never_become_header(workbook_bytes) -> None:
    wb = Workbook()
    ws = wb.active
    ws.append(["Curso:", "A", "B", "C", "D", "E"])
    ws.append(["x", "y"])

    analysis = analyze_template(workbook_bytes(wb))

    assert analysis.headers == ()
    assert analysis.data_start_row == 2
    # without a header row no static cells are collected
    assert analysis.static_cells == ()


def test_header_scan_keeps_earliest_row_on_tie() -> None:
    summaries = [
        RowSummary(row=1, filled=3, is_label_row=False),
        RowSummary(row=2, filled=6, is_label_row=False),
        RowSummary(row=3, filled=6, is_label_row=False),
        RowSummary(row=4, filled=9, is_label_row=True),
    ]
    assert find_table_header_row(summaries) == 2
    assert find_table_header_row([]) == 0


def test_static_cell_value_is_trimmed_neighbour_or_empty() -> None:
    rows = [
        ("Curso:", "  Pós  ", None),
        (None, None, "Aluno:"),
        ("A", "B", "C"),
    ]
    cells = extract_static_cells(rows, header_row=3)

    assert [(c.address, c.label, c.value) for c in cells] == [("B1", "Curso", "Pós"), ("D2", "Aluno", "")]
    assert cells[1].suggested_field == "student_name"


def test_analyze_unknown_sheet_falls_back_with_warning(users_template: bytes) -> None:
    analysis = analyze_template(users_template, "Nope")

    assert analysis.sheet_name == "Usuarios"
    assert analysis.warnings and "Nope" in analysis.warnings[0]
    assert analysis.available_sheets == ("Usuarios",)


def test_analyze_rejects_garbage_bytes() -> None:
    with pytest.raises(LoadError):
        analyze_template(b"not a workbook")
    with pytest.raises(LoadError):
        analyze_template(b"")


def test_build_suggested_mapping_and_validate(users_template: bytes) -> None:
    analysis = analyze_template(users_template)
    mapping = build_suggested_mapping(analysis, "users")

    assert mapping.source == "users"
    assert mapping.start_row == 4
    assert mapping.fields == {"full_name": 1, "email": 2, "course": 3, "status": 4, "created_at": 5}

    result = validate_mapping(mapping, "users")
    assert result.valid
    assert result.missing_fields == []
    assert result.warnings == []


def test_validate_reports_missing_required_fields() -> None:
    mapping = ArrayMapping(type="array", source="grades", start_row=2, fields={"full_name": 1})
    result = validate_mapping(mapping, "grades")

    assert not result.valid
    assert result.missing_fields == ["course", "grade"]


def test_validate_ignores_static_fields_and_warns_on_empty_mapping() -> None:
    mapping = ArrayMapping(type="array", source="modules", start_row=2, fields={})
    result = validate_mapping(mapping, "student-history")

    assert result.missing_fields == ["code", "name"]
    assert result.warnings == [NO_FIELDS_WARNING]


def test_build_suggested_metadata_stores_array_under_source(users_template: bytes) -> None:
    analysis = analyze_template(users_template)
    metadata = build_suggested_metadata(analysis, "access")

    static, arrays = split_mappings(metadata.mappings)
    assert static == {"B1": "institution"}
    assert list(arrays) == ["accessLogs"]
    assert metadata.analysis is not None
    assert metadata.analysis.sheet_name == "Usuarios"
    assert metadata.analysis.data_start_row == 4
