# recon_checker/table_builder.py
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import pandas as pd

from .config import ExtractionConfig
from .errors import HeaderNotFoundError
from .layout import Line, PositionedText
from .normalize import norm_str, normalize_search_text, starts_with_digit

HEADER_BLOCK_MAX = 4
CODE_TOKEN     = "rezerv"
KODS_TOKEN     = "kods"
SERVICE_TOKEN  = "pakalpoj"
STOP_PREFIXES  = ("summa", "starpiba")
STOP_CONTAINS  = ("juridiskaadrese",)


@dataclass(frozen=True)
class Cell:
    x: float
    text: str


@dataclass(frozen=True)
class ExtractedTable:
    headers: Tuple[str, ...]
    rows: Tuple[Tuple[str, ...], ...]
    anchors: Tuple[float, ...]
    page_count: int = 0

    def to_frame(self) -> pd.DataFrame:
        cols = [h or f"Column {i + 1}" for i, h in enumerate(self.headers)]
        width = len(cols)
        data = [list(r[:width]) + [""] * (width - len(r)) for r in self.rows]
        return pd.DataFrame(data, columns=cols)


@dataclass(frozen=True)
class PageLayout:
    """Header + anchors carried from one page to the next."""
    headers: Tuple[str, ...]
    anchors: Tuple[float, ...]


def merge_cell_text(prev: str, nxt: str) -> str:
    # 'Pakalpo-' + 'juma' -> 'Pakalpo-juma'
    if not prev:
        return nxt
    if not nxt:
        return prev
    return f"{prev}{nxt}" if prev.endswith("-") else f"{prev} {nxt}"


def split_line_into_cells(items: Sequence[PositionedText], cell_gap: float = 10.0) -> list[Cell]:
    cells: list[Cell] = []
    x0: Optional[float] = None
    text = ""
    prev_x: Optional[float] = None
    for it in items:
        t = norm_str(it.text)
        if not t:
            continue
        if prev_x is not None and it.x - prev_x > cell_gap:
            if text.strip():
                cells.append(Cell(x0 if x0 is not None else 0.0, text.strip()))
            x0, text = None, ""
        if x0 is None:
            x0 = it.x
        text = merge_cell_text(text, t)
        prev_x = it.x
    if text.strip():
        cells.append(Cell(x0 if x0 is not None else 0.0, text.strip()))
    return cells


def cluster_1d(values: Sequence[float], gap: float = 15.0) -> list[float]:
    """Sorted 1-D clustering: new cluster when a value is farther than gap from the running mean."""
    clusters: list[list[float]] = []
    for x in sorted(values):
        if clusters:
            last = clusters[-1]
            if abs(x - sum(last) / len(last)) <= gap:
                last.append(x)
                continue
        clusters.append([x])
    return [sum(c) / len(c) for c in clusters]


def nearest_anchor(anchors: Sequence[float], x: float) -> int:
    best, best_dist = 0, float("inf")
    for k, a in enumerate(anchors):
        d = abs(a - x)
        if d < best_dist:          # strict: ties stay on the lower index
            best, best_dist = k, d
    return best


def _line_key(line: Line) -> str:
    return normalize_search_text(line.text)


def _first_cell_text(line: Line, cell_gap: float) -> str:
    cells = split_line_into_cells(line.items, cell_gap)
    return norm_str(cells[0].text) if cells else ""


def find_header_line_index(lines: Sequence[Line]) -> int:
    keys = [_line_key(l) for l in lines]
    for i, text in enumerate(keys):
        if CODE_TOKEN in text and (KODS_TOKEN in text or SERVICE_TOKEN in text):
            return i
    for i, text in enumerate(keys):
        if CODE_TOKEN in text and KODS_TOKEN in text:
            return i
    return -1


def is_terminal_line(line: Line) -> bool:
    text = _line_key(line)
    return text.startswith(STOP_PREFIXES) or any(s in text for s in STOP_CONTAINS)


def build_rows_from_lines(
    lines: Sequence[Line],
    anchors: Sequence[float],
    start: int,
    cell_gap: float = 10.0,
) -> list[list[str]]:
    rows: list[list[str]] = []
    for line in lines[start:]:
        if is_terminal_line(line):
            break

        cells = split_line_into_cells(line.items, cell_gap)
        if not cells:
            continue

        row = [""] * len(anchors)
        for c in cells:
            k = nearest_anchor(anchors, c.x)
            row[k] = merge_cell_text(row[k], c.text)

        if starts_with_digit(row[0]):
            rows.append([norm_str(v) for v in row])
            continue

        # continuation line: fold into the previous data row column by column
        if rows:
            last = rows[-1]
            for k, value in enumerate(row):
                value = norm_str(value)
                if value:
                    last[k] = merge_cell_text(last[k], value)
    return rows


def _assign_headers(cells: Sequence[Cell], anchors: Sequence[float]) -> list[str]:
    header = [""] * len(anchors)
    for c in cells:
        k = nearest_anchor(anchors, c.x)
        header[k] = f"{header[k]} {c.text}" if header[k] else c.text
    return [norm_str(h) for h in header]


def extract_table_from_lines(
    lines: Sequence[Line],
    previous: Optional[PageLayout] = None,
    config: Optional[ExtractionConfig] = None,
) -> ExtractedTable:
    """
    Recover one page's table.
      1) header line found -> header block (<=4 lines) -> anchors -> rows below it
      2) no header, nothing carried over -> first digit-led line gives the anchors
      3) no header, previous page layout -> reuse its anchors over the whole page
    """
    cfg = config or ExtractionConfig()

    header_idx = find_header_line_index(lines)
    if header_idx >= 0:
        block: list[Line] = []
        for i in range(header_idx, len(lines)):
            first = _first_cell_text(lines[i], cfg.cell_gap)
            if i > header_idx and first and starts_with_digit(first):
                break
            block.append(lines[i])
            if len(block) >= HEADER_BLOCK_MAX:
                break
        header_cells = [c for l in block for c in split_line_into_cells(l.items, cfg.cell_gap)]
        anchors = cluster_1d([c.x for c in header_cells], cfg.col_cluster_gap)
        headers = _assign_headers(header_cells, anchors)
        rows = build_rows_from_lines(lines, anchors, header_idx + len(block), cfg.cell_gap)
        return _freeze(headers, rows, anchors)

    if previous is None:
        for i, line in enumerate(lines):
            first = _first_cell_text(line, cfg.cell_gap)
            if first and starts_with_digit(first):
                cells = split_line_into_cells(line.items, cfg.cell_gap)
                anchors = cluster_1d([c.x for c in cells], cfg.col_cluster_gap)
                rows = build_rows_from_lines(lines, anchors, i, cfg.cell_gap)
                # no header row on this layout: one blank header per anchor
                return _freeze([""] * len(anchors), rows, anchors)
        raise HeaderNotFoundError()

    rows = build_rows_from_lines(lines, previous.anchors, 0, cfg.cell_gap)
    if not rows:
        raise HeaderNotFoundError()
    return _freeze(previous.headers, rows, previous.anchors)


def _freeze(headers: Sequence[str], rows: List[List[str]], anchors: Sequence[float]) -> ExtractedTable:
    return ExtractedTable(
        headers=tuple(headers),
        rows=tuple(tuple(r) for r in rows),
        anchors=tuple(float(a) for a in anchors),
    )


def layout_of(table: ExtractedTable) -> PageLayout:
    return PageLayout(headers=table.headers, anchors=table.anchors)
