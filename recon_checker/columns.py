# recon_checker/columns.py
from __future__ import annotations

from enum import Enum
from typing import Sequence

from .normalize import normalize_search_text, search_tokens


class ColumnRole(str, Enum):
    CODE = "code"
    DATE = "date"
    AMOUNT = "amount"


# candidate phrases per role, highest priority first
COLUMN_RULES: dict[ColumnRole, tuple[str, ...]] = {
    ColumnRole.CODE:   ("Rezervacijas kods", "Rezervacijas"),
    ColumnRole.DATE:   ("Sistema atzimets", "Starpnieka atzimets"),
    ColumnRole.AMOUNT: ("Pardosanas cena", "Cena"),
}


def _fallback_index(role: ColumnRole, headers: Sequence[str]) -> int:
    if role is ColumnRole.CODE:
        return 1
    if role is ColumnRole.DATE:
        return 3
    return max(len(headers) - 1, 0)


def header_matches(normalized_header: str, candidate: str) -> bool:
    """Whole phrase as a substring, or every token of the phrase somewhere in the header."""
    target = normalize_search_text(candidate)
    if target and target in normalized_header:
        return True
    tokens = search_tokens(candidate)
    return bool(tokens) and all(t in normalized_header for t in tokens)


def find_column_index(headers: Sequence[str], candidates: Sequence[str], fallback: int) -> int:
    normalized = [normalize_search_text(h) for h in headers]
    for candidate in candidates:
        for i, header in enumerate(normalized):
            if header_matches(header, candidate):
                return i
    return fallback


def resolve_column(headers: Sequence[str], role: ColumnRole) -> int:
    return find_column_index(headers, COLUMN_RULES[role], _fallback_index(role, headers))


def code_column(headers: Sequence[str]) -> int:
    return resolve_column(headers, ColumnRole.CODE)


def date_column(headers: Sequence[str]) -> int:
    return resolve_column(headers, ColumnRole.DATE)


def amount_column(headers: Sequence[str]) -> int:
    return resolve_column(headers, ColumnRole.AMOUNT)
