import threading
from contextlib import contextmanager

import fitz
import pytest

from recon_checker import pdf_pipeline
from recon_checker.config import ExtractionConfig
from recon_checker.errors import ExtractionCancelled, HeaderNotFoundError, ReconError
from recon_checker.layout import PositionedText
from recon_checker.table_builder import ExtractedTable

HEADER = [
    (10, "Nr."), (60, "Rezervacijas kods"), (160, "Pakalpojuma nosaukums"),
    (300, "Sistema atzimets"), (380, "Komisija, EUR"), (450, "Komisija, %"), (520, "Pardosanas cena"),
]


def items(*rows):
    return [PositionedText(text, x, y) for y, cells in rows for x, text in cells]


def data_row(y, nr, code, when, fee, price):
    return (y, [(10, nr), (60, code), (160, "Davanu karte"), (300, when), (380, fee), (450, "20 %"), (520, price)])


def fake_source(*pages):
    @contextmanager
    def source(data):
        yield [p if callable(p) else (lambda p=p: p) for p in pages]
    return source


def broken_page():
    raise RuntimeError("bad content stream")


@pytest.fixture()
def use_pages(monkeypatch):
    def _use(*pages):
        monkeypatch.setitem(pdf_pipeline.PAGE_SOURCES, "pymupdf", fake_source(*pages))
    return _use


def test_pages_are_joined_with_carry_over_and_failures_skipped(use_pages):
    use_pages(
        items((40, HEADER), data_row(60, "1", "ABC123", "2026-01-05 11:53", "9", "45")),
        broken_page,
        items(data_row(30, "2", "DEF456", "2026-01-06 09:00", "14", "70")),
    )

    table = pdf_pipeline.extract_document(b"%PDF", config=ExtractionConfig())

    assert table.headers[1] == "Rezervacijas kods"
    assert table.page_count == 3
    assert [r[1] for r in table.rows] == ["ABC123", "DEF456"]
    # money columns len-3 and len-1 re-rendered
    assert table.rows[0][4] == "9,00"
    assert table.rows[0][6] == "45,00"
    assert table.rows[0][5] == "20 %"


def test_money_columns_keep_currency_text():
    table = ExtractedTable(("a", "b", "c", "d"), (("1", "70 €", "x", "1 234,5"),), (0.0, 1.0, 2.0, 3.0), 1)
    out = pdf_pipeline.apply_money_columns(table)
    assert out.rows == (("1", "70 €", "x", "1234,50"),)


def test_no_usable_page_raises_header_not_found(use_pages):
    use_pages(items((10, [(10, "Scanned page")])), broken_page)
    with pytest.raises(HeaderNotFoundError, match="could be scanned PDF"):
        pdf_pipeline.extract_document(b"%PDF")


def test_cancel_is_honoured_between_pages(use_pages):
    cancel = threading.Event()
    seen = []

    def first_page():
        seen.append(1)
        cancel.set()
        return items((40, HEADER), data_row(60, "1", "ABC123", "2026-01-05 11:53", "9", "45"))

    def second_page():
        seen.append(2)
        return []

    use_pages(first_page, second_page)
    with pytest.raises(ExtractionCancelled):
        pdf_pipeline.extract_document(b"%PDF", cancel=cancel)
    assert seen == [1]


def test_backend_bootstrap_is_idempotent():
    pdf_pipeline.ensure_backend_initialized()
    pdf_pipeline.ensure_backend_initialized()
    assert pdf_pipeline._BACKEND_READY is True


def _sample_pdf() -> bytes:
    doc = fitz.open()
    page = doc.new_page(width=842, height=595)
    for x, text in HEADER:
        page.insert_text((x, 80), text, fontsize=8)
    for x, text in [(10, "1"), (60, "ABC123"), (160, "Davanu karte"), (300, "2026-01-05 11:53"), (380, "9"), (450, "20"), (520, "45")]:
        page.insert_text((x, 100), text, fontsize=8)
    page.insert_text((10, 140), "Summa kopa", fontsize=8)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.mark.parametrize("backend", ["pymupdf", "pypdf"])
def test_real_pdf_backends(backend):
    table = pdf_pipeline.extract_document(_sample_pdf(), config=ExtractionConfig(backend=backend))

    assert table.page_count == 1
    assert len(table.rows) == 1
    assert any("ABC123" in cell for cell in table.rows[0])
    assert all("Summa" not in cell for cell in table.rows[0])


def test_unreadable_pdf_is_reported():
    with pytest.raises(ReconError, match="Cannot open PDF"):
        pdf_pipeline.extract_document(b"not a pdf at all")
