# recon_checker/models.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import List, Optional

# Horizon export column positions
DOC_DATE_COLUMN = 2        # "Dok. datums"
DOC_AMOUNT_COLUMN = 5      # "Dokumenta summa"


@dataclass
class SheetPreview:
    """First worksheet of an uploaded workbook, every cell rendered to display text."""
    headers: List[str]
    rows: List[List[str]]
    sheet_name: str = "Sheet1"
    file_name: str = ""
    column_widths: List[Optional[float]] = field(default_factory=list)
    column_formats: List[Optional[str]] = field(default_factory=list)
    source_row_count: Optional[int] = None   # None -> every row is a source row
    fallback_rows: List[int] = field(default_factory=list)
    original_bytes: bytes = b""

    def __post_init__(self) -> None:
        if self.source_row_count is None:
            self.source_row_count = len(self.rows)

    @property
    def row_count(self) -> int:
        return len(self.rows) + 1

    @property
    def col_count(self) -> int:
        return len(self.headers)

    def clone(self) -> "SheetPreview":
        return replace(
            self,
            headers=list(self.headers),
            rows=[list(r) for r in self.rows],
            column_widths=list(self.column_widths),
            column_formats=list(self.column_formats),
            fallback_rows=list(self.fallback_rows),
        )
