import pytest

from recon_checker.models import SheetPreview

HORIZON_HEADERS = [
    "DokT.Nosaukums",
    "Numurs",
    "Dok. datums",
    "Kl.Kods",
    "Kl.Nosaukums",
    "Dokumenta summa",
    "V.Kods",
    "Statuss",
    "References numurs",
    "Atb.Kods",
    "Atb.Strv.Nosaukums",
    "Veidlapas Nr.",
]


@pytest.fixture()
def make_preview():
    def _make(rows, trailing=("Rezervacijas kods", "Pardosanas cena"), headers=None):
        hdrs = list(headers) if headers is not None else HORIZON_HEADERS + list(trailing)
        return SheetPreview(
            headers=hdrs,
            rows=[list(r) for r in rows],
            sheet_name="Horizon",
            file_name="demo.xlsx",
            source_row_count=len(rows),
        )
    return _make


def horizon_row(numurs, date, amount, form, code="", price=""):
    return ["Pardosana", numurs, date, "D40", "Davanu", amount, "EUR", "Gramatots", "ref", "59", "Given", form, code, price]
