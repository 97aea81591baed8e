from __future__ import annotations

import os
import sys
import tempfile
from io import BytesIO
from pathlib import Path
from typing import Callable

import pytest
from openpyxl import Workbook
from openpyxl.styles import Border, Font, PatternFill, Side

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# application logs go to a throwaway root
os.environ.setdefault("REPORTFLOW_ROOT", tempfile.mkdtemp(prefix="reportflow-tests-"))

THIN = Side(style="thin")
BOXED = Border(left=THIN, right=THIN, top=THIN, bottom=THIN)
SHADED = PatternFill(fill_type="solid", start_color="FFDDEEFF", end_color="FFDDEEFF")


def to_bytes(workbook: Workbook) -> bytes:
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture()
def workbook_bytes() -> Callable[[Workbook], bytes]:
    return to_bytes


@pytest.fixture()
def users_template() -> bytes:
    """Label row, a five-column header on row 3 and one styled data row."""

    wb = Workbook()
    ws = wb.active
    ws.title = "Usuarios"
    ws["A1"] = "Escola:"
    ws["B1"] = "  Colégio Modelo  "
    ws["B2"] = "placeholder"
    ws["B2"].font = Font(bold=True, color="FF112233")
    for column, header in enumerate(["Nome", "Email", "Curso", "Status", "Data"], start=1):
        ws.cell(row=3, column=column, value=header)
    for column in range(1, 6):
        cell = ws.cell(row=4, column=column)
        cell.border = BOXED
        cell.fill = SHADED
    ws.row_dimensions[4].height = 21
    return to_bytes(wb)


@pytest.fixture()
def phantom_template() -> bytes:
    """Rows 5-7 pre-formatted in the mapped columns, a footer on row 8 and a merge on row 9."""

    wb = Workbook()
    ws = wb.active
    ws.title = "Relatorio"
    for column, header in enumerate(["Nome", "Email"], start=1):
        ws.cell(row=4, column=column, value=header)
    for row in (5, 6, 7):
        for column in (1, 2):
            ws.cell(row=row, column=column).border = BOXED
    ws["D8"] = "Total"
    ws["D9"] = "Assinatura"
    ws.merge_cells("D9:E9")
    ws.row_dimensions[8].height = 30
    return to_bytes(wb)
