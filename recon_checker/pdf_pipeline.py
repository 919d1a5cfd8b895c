# recon_checker/pdf_pipeline.py
from __future__ import annotations

import threading
from contextlib import contextmanager
from functools import partial
from io import BytesIO
from pathlib import Path
from typing import Callable, ContextManager, Dict, Iterator, List, Optional, Sequence

import fitz
from pypdf import PdfReader

from .config import ExtractionConfig
from .errors import ExtractionCancelled, HeaderNotFoundError, ReconError
from .layout import PositionedText, clean_items, group_into_lines, to_top_y
from .logging import get_logger
from .normalize import format_amount
from .table_builder import ExtractedTable, PageLayout, extract_table_from_lines, layout_of

log = get_logger(__name__)

PageReader = Callable[[], List[PositionedText]]

_BACKEND_LOCK = threading.Lock()
_BACKEND_READY = False


def ensure_backend_initialized() -> None:
    """
    One-time process setup for the PDF libraries.
    MuPDF prints its own errors to stderr; those are muted so that broken pages
    show up only as 'page_skipped' events.
    """
    global _BACKEND_READY
    if _BACKEND_READY:
        return
    with _BACKEND_LOCK:
        if _BACKEND_READY:
            return
        fitz.TOOLS.mupdf_display_errors(False)
        if hasattr(fitz.TOOLS, "mupdf_display_warnings"):
            fitz.TOOLS.mupdf_display_warnings(False)
        _BACKEND_READY = True
        log.debug("pdf_backend_initialized")


def _read_bytes(source: str | Path | bytes) -> bytes:
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    p = Path(source)
    if not p.exists():
        raise FileNotFoundError(p)
    return p.read_bytes()


# =========================
# Backends: one reader per page
# =========================

def _pymupdf_page_items(doc, index: int) -> List[PositionedText]:
    """Text spans of one page; span origins are already measured from the page top."""
    page = doc[index]
    items: List[PositionedText] = []
    for block in page.get_text("dict").get("blocks", []):
        for line in block.get("lines", []):
            for span in line.get("spans", []):
                text = span.get("text", "")
                if not text:
                    continue
                x, y = span["origin"]
                items.append(PositionedText(text, float(x), float(y)))
    return items


@contextmanager
def pymupdf_pages(data: bytes) -> Iterator[List[PageReader]]:
    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except Exception as exc:
        raise ReconError(f"Cannot open PDF: {exc}") from exc
    try:
        yield [partial(_pymupdf_page_items, doc, i) for i in range(doc.page_count)]
    finally:
        doc.close()


def _pypdf_page_items(page) -> List[PositionedText]:
    """Text-show operations of one page, user-space origin flipped to top-origin y."""
    box = page.mediabox
    height, bottom = float(box.height), float(box.bottom)
    items: List[PositionedText] = []

    def visitor(text, cm, tm, font_dict, font_size):
        if not text or not text.strip():
            return
        x = tm[4] * cm[0] + tm[5] * cm[2] + cm[4]
        y = tm[4] * cm[1] + tm[5] * cm[3] + cm[5]
        items.append(PositionedText(text, float(x), to_top_y(height, y - bottom)))

    page.extract_text(visitor_text=visitor)
    return items


@contextmanager
def pypdf_pages(data: bytes) -> Iterator[List[PageReader]]:
    try:
        reader = PdfReader(BytesIO(data))
        pages = list(reader.pages)
    except Exception as exc:
        raise ReconError(f"Cannot open PDF: {exc}") from exc
    yield [partial(_pypdf_page_items, page) for page in pages]


PAGE_SOURCES: Dict[str, Callable[[bytes], ContextManager[List[PageReader]]]] = {
    "pymupdf": pymupdf_pages,
    "pypdf": pypdf_pages,
}


# =========================
# Document loop
# =========================

def _fit_width(row: Sequence[str], width: int) -> tuple:
    row = tuple(row[:width])
    return row + ("",) * (width - len(row))


def apply_money_columns(table: ExtractedTable) -> ExtractedTable:
    """Price columns (len-3, len-1) as '70,00' when they hold a plain number; '70 €' stays."""
    width = len(table.headers)
    if width < 3:
        return table
    money = (width - 3, width - 1)
    rows = []
    for row in table.rows:
        cells = list(row)
        for i in money:
            if i < len(cells) and cells[i]:
                cells[i] = format_amount(cells[i], amount=False)
        rows.append(tuple(cells))
    return ExtractedTable(table.headers, tuple(rows), table.anchors, table.page_count)


def extract_document(
    source: str | Path | bytes,
    config: Optional[ExtractionConfig] = None,
    cancel: Optional[threading.Event] = None,
) -> ExtractedTable:
    """
    Pages strictly in order. A page that cannot be read or yields no table is
    logged and skipped; its neighbours still use the last good page's anchors.
    The first good page supplies the document headers.
    """
    cfg = config or ExtractionConfig()
    data = _read_bytes(source)
    ensure_backend_initialized()

    headers: Optional[tuple] = None
    anchors: tuple = ()
    previous: Optional[PageLayout] = None
    rows: list[tuple] = []
    page_count = 0
    skipped = 0

    with PAGE_SOURCES[cfg.backend](data) as pages:
        for page_no, read_items in enumerate(pages, start=1):
            if cancel is not None and cancel.is_set():
                raise ExtractionCancelled(f"Extraction cancelled before page {page_no}.")
            page_count += 1
            try:
                lines = group_into_lines(clean_items(read_items()), cfg.row_eps)
                table = extract_table_from_lines(lines, previous, cfg)
            except Exception as exc:
                skipped += 1
                log.warning("page_skipped", page=page_no, error=str(exc), error_type=type(exc).__name__)
                continue

            if headers is None:
                headers, anchors = table.headers, table.anchors
            previous = layout_of(table)
            rows.extend(_fit_width(r, len(headers)) for r in table.rows)

    if headers is None:
        raise HeaderNotFoundError()

    result = apply_money_columns(ExtractedTable(headers, tuple(rows), anchors, page_count))
    log.info(
        "pdf_extracted", backend=cfg.backend, pages=page_count, skipped=skipped,
        rows=len(result.rows), cols=len(result.headers),
    )
    return result
