# recon_checker/normalize.py
from __future__ import annotations

import re
import unicodedata
from datetime import datetime
from typing import Optional

WS_RE        = re.compile(r"\s+")
NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
ALNUM_TOKEN  = re.compile(r"[a-z0-9]+")
NON_DIGIT_RE = re.compile(r"\D")
AMOUNT_JUNK  = re.compile(r"[^0-9.\-]")
# plain decimal literal; rejects "inf", "nan", "1_000" that float() would accept
NUMBER_RE    = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
DAY_FIRST_RE = re.compile(r"(\d{2})\.(\d{2})\.(\d{4})")         # 02.01.2026. / 02.01.2026 13:00
ISO_PREFIX_RE = re.compile(r"(\d{4})-(\d{2})-(\d{2})")          # 2026-01-02 11:00
LEADING_DIGIT = re.compile(r"^\d")


def norm_str(value) -> str:
    """NFKC-fold PDF text (ligatures, odd spaces) and collapse whitespace."""
    raw = unicodedata.normalize("NFKC", str(value if value is not None else ""))
    return WS_RE.sub(" ", raw).strip()


def strip_diacritics(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_search_text(value) -> str:
    """
    Canonical comparison key for headers, trailer markers and codes:
      'Rezervācijas kods' -> 'rezervacijaskods'
    """
    return NON_ALNUM_RE.sub("", strip_diacritics(norm_str(value).lower()))


def search_tokens(value) -> list[str]:
    """Alnum tokens of a phrase after lowercasing and diacritic stripping."""
    return ALNUM_TOKEN.findall(strip_diacritics(norm_str(value).lower()))


def starts_with_digit(value) -> bool:
    return bool(LEADING_DIGIT.match(norm_str(value)))


def parse_number(value, amount: bool = False) -> Optional[float]:
    """
    Parse '1 234,50' / '70.00' style numbers.
    amount=True additionally drops currency signs and other noise ('70 €' -> 70.0).
    Returns None (never 0.0) for empty or unparseable input.
    """
    s = str(value if value is not None else "").strip()
    if not s:
        return None
    s = WS_RE.sub("", s).replace(",", ".", 1)
    if amount:
        s = AMOUNT_JUNK.sub("", s)
    if not s or not NUMBER_RE.fullmatch(s):
        return None
    try:
        return float(s)
    except ValueError:
        return None


def parse_amount(value) -> Optional[float]:
    return parse_number(value, amount=True)


def format_amount(value, amount: bool = True) -> str:
    """Render as two decimals with a comma separator; unparseable input is returned as-is."""
    parsed = parse_number(value, amount=amount)
    if parsed is None:
        return str(value if value is not None else "")
    return f"{parsed:.2f}".replace(".", ",")


def parse_day_first_date(value) -> Optional[str]:
    """'04.01.2026.' or '04.01.2026 13:00' -> '2026-01-04'; no DD.MM.YYYY in the cell -> None."""
    m = DAY_FIRST_RE.search(str(value if value is not None else "").strip())
    if not m:
        return None
    try:
        return datetime.strptime(f"{m.group(1)}.{m.group(2)}.{m.group(3)}", "%d.%m.%Y").strftime("%Y-%m-%d")
    except ValueError:
        return None


def parse_iso_date_prefix(value) -> Optional[str]:
    """'2026-01-04 13:00' -> '2026-01-04'; anything else -> None."""
    m = ISO_PREFIX_RE.match(str(value if value is not None else "").strip())
    if not m:
        return None
    try:
        return datetime.strptime(m.group(0), "%Y-%m-%d").strftime("%Y-%m-%d")
    except ValueError:
        return None


def normalize_code(value) -> str:
    return str(value if value is not None else "").strip().lower()


def last_four_digits(value) -> str:
    return NON_DIGIT_RE.sub("", str(value if value is not None else ""))[-4:]
