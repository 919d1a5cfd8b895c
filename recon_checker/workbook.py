# recon_checker/workbook.py
from __future__ import annotations

import re
from datetime import date, datetime
from io import BytesIO
from pathlib import Path
from typing import Optional, Sequence

import pandas as pd
from openpyxl import Workbook, load_workbook
from openpyxl.styles import PatternFill
from openpyxl.utils import get_column_letter

from .errors import NoWorksheetError
from .logging import get_logger
from .models import DOC_AMOUNT_COLUMN, SheetPreview
from .normalize import format_amount, parse_number
from .recon_pipeline import RowStatus, row_statuses

log = get_logger(__name__)

DATE_FMT_RE = re.compile(r"[dmy]", re.I)
RED_FILL    = PatternFill(fill_type="solid", fgColor="FFFFD6D6")
YELLOW_FILL = PatternFill(fill_type="solid", fgColor="FFFFF1B8")
BLUE_FILL   = PatternFill(fill_type="solid", fgColor="FFD6ECFF")


def _read_bytes(source: str | Path | bytes) -> tuple[bytes, str]:
    if isinstance(source, (bytes, bytearray)):
        return bytes(source), ""
    p = Path(source)
    if not p.exists():
        raise FileNotFoundError(p)
    return p.read_bytes(), p.name


def _format_date_by_numfmt(value: date, numfmt: str) -> str:
    sep = "/" if "/" in numfmt else "."
    base = f"{value.day:02d}{sep}{value.month:02d}{sep}{value.year:04d}"
    return f"{base}." if numfmt.strip().endswith(".") else base


def format_cell_value(value, numfmt: str | None = None) -> str:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        fmt = str(numfmt or "")
        if DATE_FMT_RE.search(fmt):
            return _format_date_by_numfmt(value, fmt)
        return str(value)
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def load_sheet_preview(source: str | Path | bytes, file_name: str | None = None) -> SheetPreview:
    """
    Load the first worksheet with openpyxl.
    Row 1 is the header (blank header cells become 'Column N'); date cells are
    rendered day-first following their own number format.
    """
    data, name = _read_bytes(source)
    wb = load_workbook(BytesIO(data), data_only=True)
    if not wb.worksheets:
        raise NoWorksheetError()
    ws = wb.worksheets[0]

    grid = [
        [format_cell_value(c.value, c.number_format) for c in row]
        for row in ws.iter_rows(min_row=1, max_row=ws.max_row, max_col=ws.max_column)
    ]
    if not any(any(v for v in r) for r in grid):
        grid = []

    n_cols = ws.max_column if grid else 0
    head = grid[0] if grid else []
    headers = [(h.strip() or f"Column {i + 1}") for i, h in enumerate(head)]
    rows = [r[:n_cols] + [""] * (n_cols - len(r)) for r in grid[1:]]

    widths: list[Optional[float]] = []
    formats: list[Optional[str]] = []
    for i in range(1, n_cols + 1):
        dim = ws.column_dimensions.get(get_column_letter(i))
        widths.append(float(dim.width) if dim is not None and dim.width else None)
        fmt = getattr(dim, "number_format", None) if dim is not None else None
        formats.append(fmt if fmt and fmt != "General" else None)

    log.info("workbook_loaded", file=file_name or name, sheet=ws.title, rows=len(rows), cols=n_cols)
    return SheetPreview(
        headers=headers,
        rows=rows,
        sheet_name=ws.title,
        file_name=file_name or name,
        column_widths=widths,
        column_formats=formats,
        source_row_count=len(rows),
        original_bytes=data,
    )


def apply_amount_column(rows: Sequence[Sequence[str]], index: int) -> list[list[str]]:
    out = []
    for row in rows:
        nxt = list(row)
        if 0 <= index < len(nxt):
            nxt[index] = format_amount(nxt[index])
        out.append(nxt)
    return out


def load_davanu_preview(source: str | Path | bytes, file_name: str | None = None) -> SheetPreview:
    """Horizon export for the Davanu job: 'Dokumenta summa' shown as '70,00'."""
    preview = load_sheet_preview(source, file_name=file_name)
    preview.rows = apply_amount_column(preview.rows, DOC_AMOUNT_COLUMN)
    return preview


# =========================
# Export
# =========================

def _auto_widths(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> list[float]:
    widths = []
    for i, h in enumerate(headers):
        longest = max([len(str(h or ""))] + [len(str(r[i])) if i < len(r) else 0 for r in rows])
        widths.append(min(max(longest + 2, 10), 60))
    return widths


def _write_grid(ws, headers: Sequence[str], rows: Sequence[Sequence[str]]) -> None:
    if ws.max_row:
        ws.delete_rows(1, ws.max_row)
    for c, value in enumerate(headers, start=1):
        ws.cell(row=1, column=c, value=value)
    for r, row in enumerate(rows, start=2):
        for c, value in enumerate(row, start=1):
            ws.cell(row=r, column=c, value=value if value != "" else None)


def _numeric_column(ws, rows: Sequence[Sequence[str]], index: int, numfmt: str | None = "0.00") -> None:
    if index < 0:
        return
    for r, row in enumerate(rows, start=2):
        if index >= len(row):
            continue
        parsed = parse_number(row[index], amount=True)
        if parsed is None:
            continue
        cell = ws.cell(row=r, column=index + 1, value=parsed)
        if numfmt:
            cell.number_format = numfmt


def _restore_layout(ws, preview: SheetPreview) -> None:
    for i, width in enumerate(preview.column_widths, start=1):
        if width:
            ws.column_dimensions[get_column_letter(i)].width = width
    for i, fmt in enumerate(preview.column_formats, start=1):
        if fmt:
            ws.column_dimensions[get_column_letter(i)].number_format = fmt


def _open_for_export(preview: SheetPreview):
    if preview.original_bytes:
        wb = load_workbook(BytesIO(preview.original_bytes))
    else:
        wb = Workbook()
    if not wb.worksheets:
        raise NoWorksheetError("No worksheets found for export.")
    return wb


def _paint_statuses(ws, preview: SheetPreview) -> None:
    n = len(preview.headers)
    if n < 3:
        return
    form_i, code_i, amount_i = n - 3, n - 2, n - 1
    for r, status in enumerate(row_statuses(preview), start=2):
        if status is RowStatus.FALLBACK:
            cols, fill = (form_i, code_i, amount_i), BLUE_FILL
        elif status is RowStatus.MISSING_FORM:
            cols, fill = (code_i, amount_i), YELLOW_FILL
        elif status is RowStatus.UNMATCHED:
            cols, fill = (form_i, code_i, amount_i), RED_FILL
        else:
            continue
        for c in cols:
            ws.cell(row=r, column=c + 1).fill = fill


def write_pdf_table(table, out_path: str | Path) -> Path:
    """PDF table alone: .csv via pandas, anything else as .xlsx."""
    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    df = table.to_frame()
    if out.suffix.lower() == ".csv":
        df.to_csv(out, index=False, encoding="utf-8")
    else:
        df.to_excel(out, index=False, sheet_name="Davanu serviss")
    log.info("pdf_table_written", path=str(out), rows=len(df))
    return out


def write_davanu_workbook(excel: SheetPreview, pdf, out_path: str | Path) -> Path:
    """Reconciled Horizon sheet (highlighted) plus the extracted PDF table on a second sheet."""
    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    wb = _open_for_export(excel)

    ws = wb.worksheets[0]
    _write_grid(ws, excel.headers, excel.rows)
    ws.title = "Horizon"
    _restore_layout(ws, excel)
    _numeric_column(ws, excel.rows, DOC_AMOUNT_COLUMN)
    _numeric_column(ws, excel.rows, max(len(excel.headers) - 1, 0))
    _paint_statuses(ws, excel)

    pdf_headers = [h or f"Column {i + 1}" for i, h in enumerate(pdf.headers)]
    pdf_rows = [list(r) for r in pdf.rows]
    pdf_ws = wb.worksheets[1] if len(wb.worksheets) > 1 else wb.create_sheet("Davanu PDF")
    pdf_ws.title = "Davanu PDF"
    _write_grid(pdf_ws, pdf_headers, pdf_rows)
    if len(pdf_headers) >= 3:
        _numeric_column(pdf_ws, pdf_rows, len(pdf_headers) - 3)
        _numeric_column(pdf_ws, pdf_rows, len(pdf_headers) - 1)
    for i, width in enumerate(_auto_widths(pdf_headers, pdf_rows), start=1):
        pdf_ws.column_dimensions[get_column_letter(i)].width = width

    wb.save(out)
    log.info("workbook_written", path=str(out), job="davanu", rows=len(excel.rows))
    return out


def write_lieliska_workbook(preview: SheetPreview, out_path: str | Path) -> Path:
    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    wb = _open_for_export(preview)

    ws = wb.worksheets[0]
    _write_grid(ws, preview.headers, preview.rows)
    _restore_layout(ws, preview)
    _numeric_column(ws, preview.rows, DOC_AMOUNT_COLUMN, numfmt=None)
    _numeric_column(ws, preview.rows, max(len(preview.headers) - 1, 0), numfmt=None)
    _paint_statuses(ws, preview)

    wb.save(out)
    log.info("workbook_written", path=str(out), job="lieliska", rows=len(preview.rows))
    return out


def default_output_name(file_name: str, suffix: str) -> str:
    base = re.sub(r"\.(xlsx|pdf)$", "", file_name or "result", flags=re.I)
    stamp = pd.Timestamp.now().strftime("%Y-%m-%d")
    return f"{base}-{suffix}-{stamp}.xlsx"
