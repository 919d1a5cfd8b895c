from datetime import datetime
from types import SimpleNamespace

import pytest
from openpyxl import Workbook, load_workbook

from recon_checker import workbook
from recon_checker.errors import NoWorksheetError
from recon_checker.recon_pipeline import run_davanu_job
from recon_checker.table_builder import ExtractedTable
from recon_checker.workbook import (
    BLUE_FILL,
    RED_FILL,
    default_output_name,
    format_cell_value,
    load_davanu_preview,
    load_sheet_preview,
    write_davanu_workbook,
    write_pdf_table,
)

from conftest import HORIZON_HEADERS


@pytest.fixture()
def horizon_xlsx(tmp_path):
    wb = Workbook()
    ws = wb.active
    ws.title = "Horizon"
    ws.append(HORIZON_HEADERS + ["Rezervacijas kods", "Pardosanas cena"])
    rows = [
        ["Pardosana", "Z-1", datetime(2026, 1, 2), "D40", "Davanu", 70, "EUR", "G", "ref", 59, "Given", "ABC123", None, None],
        ["Pardosana", "Z-3", datetime(2026, 1, 4), "D40", "Davanu", 49.5, "EUR", "G", "ref", 59, "Given", "NO-CODE", None, None],
    ]
    for r in rows:
        ws.append(r)
    ws["C2"].number_format = "DD.MM.YYYY."
    ws["C3"].number_format = "DD/MM/YYYY"
    ws.column_dimensions["B"].width = 22
    path = tmp_path / "horizon.xlsx"
    wb.save(path)
    return path


def test_format_cell_value():
    assert format_cell_value(None) == ""
    assert format_cell_value(70.0) == "70"
    assert format_cell_value(49.5) == "49.5"
    assert format_cell_value(True) == "TRUE"
    assert format_cell_value(datetime(2026, 1, 4), "dd.mm.yyyy") == "04.01.2026"


def test_load_sheet_preview_renders_dates_by_number_format(horizon_xlsx):
    preview = load_sheet_preview(horizon_xlsx)

    assert preview.sheet_name == "Horizon"
    assert preview.file_name == "horizon.xlsx"
    assert preview.headers[-1] == "Pardosanas cena"
    assert preview.rows[0][2] == "02.01.2026."
    assert preview.rows[1][2] == "04/01/2026"
    assert preview.rows[0][5] == "70"
    assert preview.rows[0][-2:] == ["", ""]
    assert preview.source_row_count == 2
    assert preview.column_widths[1] == 22
    assert preview.row_count == 3 and preview.col_count == 14


def test_davanu_preview_renders_document_sum(horizon_xlsx):
    preview = load_davanu_preview(horizon_xlsx.read_bytes(), file_name="upload.xlsx")
    assert preview.file_name == "upload.xlsx"
    assert [r[5] for r in preview.rows] == ["70,00", "49,50"]


def test_missing_worksheet(monkeypatch, tmp_path):
    path = tmp_path / "empty.xlsx"
    path.write_bytes(b"PK")
    monkeypatch.setattr(workbook, "load_workbook", lambda *a, **k: SimpleNamespace(worksheets=[]))
    with pytest.raises(NoWorksheetError, match="No worksheets found in this file."):
        load_sheet_preview(path)


def test_davanu_export_highlights_rows(horizon_xlsx, tmp_path):
    excel = load_davanu_preview(horizon_xlsx)
    pdf = ExtractedTable(
        headers=("Nr.", "Rezervacijas kods", "Sistema atzimets", "Pardosanas cena"),
        rows=(("1", "ABC123", "2026-01-02 09:00", "70,00"), ("2", "ZZZ", "2026-01-09 09:00", "5,00")),
        anchors=(0.0, 50.0, 100.0, 150.0),
        page_count=1,
    )
    result = run_davanu_job(excel, pdf)
    out = write_davanu_workbook(result.excel, result.pdf, tmp_path / "out" / "result.xlsx")

    wb = load_workbook(out)
    assert wb.sheetnames == ["Horizon", "Davanu PDF"]
    ws = wb["Horizon"]
    assert ws.cell(row=2, column=13).value == "ABC123"
    assert ws.cell(row=2, column=14).value == 70
    assert ws.cell(row=3, column=12).fill.fgColor.rgb == RED_FILL.fgColor.rgb
    assert ws.max_row == 4
    assert ws.column_dimensions["B"].width == 22
    pdf_ws = wb["Davanu PDF"]
    assert pdf_ws.cell(row=1, column=2).value == "Rezervacijas kods"
    assert pdf_ws.cell(row=3, column=2).value == "ZZZ"


def test_fallback_rows_are_blue(horizon_xlsx, tmp_path):
    excel = load_davanu_preview(horizon_xlsx)
    pdf = ExtractedTable(
        headers=("Nr.", "Rezervacijas kods", "Sistema atzimets", "Pardosanas cena"),
        rows=(("1", "DATE70", "2026-01-02 13:00", "70,00"),),
        anchors=(0.0, 50.0, 100.0, 150.0),
    )
    result = run_davanu_job(excel, pdf)
    out = write_davanu_workbook(result.excel, result.pdf, tmp_path / "result.xlsx")

    ws = load_workbook(out)["Horizon"]
    assert result.excel.fallback_rows == [0]
    assert ws.cell(row=2, column=13).value == "DATE70"
    assert ws.cell(row=2, column=13).fill.fgColor.rgb == BLUE_FILL.fgColor.rgb


def test_write_pdf_table_csv_and_xlsx(tmp_path):
    table = ExtractedTable(("", "Kods"), (("1", "ABC"),), (0.0, 50.0), 1)
    csv_path = write_pdf_table(table, tmp_path / "table.csv")
    assert csv_path.read_text(encoding="utf-8").splitlines() == ["Column 1,Kods", "1,ABC"]

    xlsx_path = write_pdf_table(table, tmp_path / "table.xlsx")
    ws = load_workbook(xlsx_path).active
    assert ws.title == "Davanu serviss"
    assert [c.value for c in ws[2]] == ["1", "ABC"]


def test_default_output_name():
    name = default_output_name("Horizon.xlsx", "davanu")
    assert name.startswith("Horizon-davanu-")
    assert name.endswith(".xlsx")
