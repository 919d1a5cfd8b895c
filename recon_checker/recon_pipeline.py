# recon_checker/recon_pipeline.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from .columns import amount_column, code_column, date_column, header_matches
from .errors import SchemaMismatchError
from .logging import get_logger
from .matcher import ANY_REUSED, ANY_UNUSED, MatchResult, Tier, TieredMatcher
from .models import DOC_AMOUNT_COLUMN, DOC_DATE_COLUMN, SheetPreview
from .normalize import (
    format_amount,
    last_four_digits,
    normalize_code,
    normalize_search_text,
    parse_amount,
    parse_day_first_date,
    parse_iso_date_prefix,
)
from .table_builder import ExtractedTable

log = get_logger(__name__)

LIELISKA_ROLES = ("Veidlapas Nr.", "Svitrkods", "Summa")
DAVANU_ROLES   = ("Veidlapas Nr.", "Rezervacijas kods", "Pardosanas cena")


def _cell(row: Sequence[str], index: int) -> str:
    return row[index] if 0 <= index < len(row) and row[index] is not None else ""


def _padded(row: Sequence[str], width: int) -> list[str]:
    out = [str(v) if v is not None else "" for v in row[:width]]
    return out + [""] * (width - len(out))


def _blank_row(width: int, code: str, amount: str) -> list[str]:
    row = [""] * width
    row[width - 2] = code
    row[width - 1] = amount
    return row


# =========================
# Schema checks
# =========================

def _ensure_schema(preview: SheetPreview, roles: Tuple[str, str, str]) -> SheetPreview:
    """
    Trailing three columns must be <form no.> <code> <amount>.
    A sheet that ends at the form number column gets two empty result columns.
    """
    out = preview.clone()
    if out.headers and header_matches(normalize_search_text(out.headers[-1]), roles[0]):
        width = len(out.headers)
        out.headers = out.headers + [roles[1], roles[2]]
        out.rows = [_padded(r, width) + ["", ""] for r in out.rows]
        if out.column_widths:
            out.column_widths = out.column_widths + [None, None]
        if out.column_formats:
            out.column_formats = out.column_formats + [None, None]

    if len(out.headers) < 3:
        raise SchemaMismatchError(roles[0], "Need at least 3 columns to run this job.")
    for offset, role in zip((3, 2, 1), roles):
        if not header_matches(normalize_search_text(out.headers[-offset]), role):
            raise SchemaMismatchError(role)
    return out


def ensure_lieliska_schema(preview: SheetPreview) -> SheetPreview:
    return _ensure_schema(preview, LIELISKA_ROLES)


def ensure_davanu_schema(preview: SheetPreview) -> SheetPreview:
    return _ensure_schema(preview, DAVANU_ROLES)


# =========================
# Pattern A: barcode suffix job (Lieliska)
# =========================

@dataclass(frozen=True)
class SuffixSource:
    code: str
    amount: str
    key: str


@dataclass(frozen=True)
class SuffixTarget:
    form: str
    doc_amount: str
    key: str


@dataclass
class LieliskaJobResult:
    rows: List[List[str]]
    unmatched_rows: List[List[str]]          # form rows that received no barcode
    unmatched_sources: List[List[str]]       # [barcode, amount] pairs with no form
    source_row_count: int
    match: MatchResult = field(default_factory=MatchResult)


def run_lieliska_job(
    preview: SheetPreview,
    sources: Optional[Sequence[Tuple[str, str]]] = None,
) -> LieliskaJobResult:
    """
    Attach each (barcode, amount) pair to the form row whose number ends with the
    barcode's last 4 digits.

    Sources default to the trailing two columns of the sheet's own rows; a side
    list of pairs may be passed instead. Preference per source:
      1) unused form row whose 'Dokumenta summa' equals the amount (sheets > 5 columns)
      2) any unused form row
      3) an amount-equal form row even if already used
      4) the first candidate even if already used
    Tiers 3-4 overwrite the earlier source's pair on that row.
    """
    width = len(preview.headers)
    if width < 3:
        raise SchemaMismatchError(LIELISKA_ROLES[0], "Need at least 3 columns to run this job.")
    form_i, code_i, amount_i = width - 3, width - 2, width - 1
    has_sum_column = width > DOC_AMOUNT_COLUMN

    base_rows = [_padded(r, width) for r in preview.rows[: preview.source_row_count]]
    if sources is None:
        pairs = [(r[code_i], r[amount_i]) for r in base_rows]
    else:
        pairs = [(str(c or ""), str(a or "")) for c, a in sources]

    src = [(i, SuffixSource(c, a, last_four_digits(c))) for i, (c, a) in enumerate(pairs)]
    targets = [
        (i, SuffixTarget(r[form_i], r[DOC_AMOUNT_COLUMN] if has_sum_column else "", last_four_digits(r[form_i])))
        for i, r in enumerate(base_rows)
    ]

    def amount_equal(s: SuffixSource, t: SuffixTarget) -> bool:
        return has_sum_column and t.doc_amount == s.amount

    def candidates_for(s: SuffixSource):
        if not s.key:
            return []
        return [(i, t) for i, t in targets if t.key.endswith(s.key)]

    matcher = TieredMatcher(
        [
            Tier("amount_unused", amount_equal),
            ANY_UNUSED,
            Tier("amount_reused", amount_equal, reuse=True),
            ANY_REUSED,
        ],
        unique=False,
    )
    matches, unmatched_idx, _ = matcher.run(src, candidates_for)

    assigned: dict[int, Tuple[str, str]] = {}
    for s_idx, t_idx, tier in matches:
        if tier in ("amount_reused", "any_reused") and t_idx in assigned:
            log.warning("suffix_target_overwritten", row=t_idx, previous=assigned[t_idx][0], barcode=pairs[s_idx][0])
        assigned[t_idx] = pairs[s_idx]

    merged = []
    for i, row in enumerate(base_rows):
        nxt = list(row)
        nxt[code_i], nxt[amount_i] = assigned.get(i, ("", ""))
        merged.append(nxt)

    unmatched_targets = [i for i, r in enumerate(merged) if not r[code_i] and not r[amount_i]]
    unmatched_rows = [merged[i][: max(width - 2, 0)] for i in unmatched_targets]
    trimmed = [r for r in merged if any(cell.strip() for cell in r)]
    unmatched_sources = [[pairs[i][0], pairs[i][1]] for i in unmatched_idx]
    appended = [_blank_row(width, c, a) for c, a in unmatched_sources]

    log.info(
        "job_finished", job="lieliska", sources=len(pairs), matched=len(matches),
        unmatched_sources=len(unmatched_sources), unmatched_rows=len(unmatched_rows),
    )
    return LieliskaJobResult(
        rows=trimmed + appended,
        unmatched_rows=unmatched_rows,
        unmatched_sources=unmatched_sources,
        source_row_count=len(trimmed),
        match=MatchResult(
            pairs=[(s, t) for s, t, _ in matches],
            unmatched_sources=list(unmatched_idx),
            unmatched_targets=unmatched_targets,
        ),
    )


def apply_lieliska_result(preview: SheetPreview, result: LieliskaJobResult) -> SheetPreview:
    out = preview.clone()
    out.rows = [list(r) for r in result.rows]
    out.source_row_count = result.source_row_count
    return out


# =========================
# Pattern B: reservation code, then date + amount (Davanu)
# =========================

@dataclass(frozen=True)
class Record:
    index: int
    key: str
    amount: Optional[float]
    date: Optional[str]
    raw: Tuple[str, ...]


@dataclass
class DavanuJobResult:
    excel: SheetPreview
    pdf: ExtractedTable
    match: MatchResult
    unmatched_pdf_rows: List[List[str]]
    warnings: List[str] = field(default_factory=list)


def _same_amount(s: Record, t: Record) -> bool:
    return s.amount is not None and t.amount == s.amount


def _same_date_and_amount(s: Record, t: Record) -> bool:
    return s.date is not None and t.date == s.date and _same_amount(s, t)


CODE_MATCHER = TieredMatcher([Tier("code_amount", _same_amount), ANY_UNUSED], unique=True)
FALLBACK_MATCHER = TieredMatcher([Tier("date_amount", _same_date_and_amount)], unique=True)


def run_davanu_job(excel: SheetPreview, pdf: ExtractedTable) -> DavanuJobResult:
    """
    Reconcile Horizon rows against the PDF act.
      pass 1: equal reservation code (trimmed, lowercased), same amount preferred
      pass 2: still-unmatched rows by exact date + exact amount, unused PDF rows only
    Matched rows get the PDF code and the PDF amount as '70,00' in the trailing two
    columns; unmatched PDF rows are appended as rows carrying only those columns.
    """
    width = len(excel.headers)
    warnings: list[str] = []
    if width < 3:
        raise SchemaMismatchError(DAVANU_ROLES[0], "Need at least 3 columns to run this job.")
    form_i, code_i, amount_i = width - 3, width - 2, width - 1

    pdf_code_i = code_column(pdf.headers)
    pdf_amount_i = amount_column(pdf.headers)
    pdf_date_i = date_column(pdf.headers)

    next_rows = [_padded(r, width) for r in excel.rows]
    sources = [
        Record(
            index=i,
            key=normalize_code(row[form_i]),
            amount=parse_amount(_cell(row, DOC_AMOUNT_COLUMN)),
            date=parse_day_first_date(_cell(row, DOC_DATE_COLUMN)),
            raw=tuple(row),
        )
        for i, row in enumerate(next_rows)
    ]
    targets = [
        Record(
            index=i,
            key=normalize_code(_cell(row, pdf_code_i)),
            amount=parse_amount(_cell(row, pdf_amount_i)),
            date=parse_iso_date_prefix(_cell(row, pdf_date_i)),
            raw=tuple(row),
        )
        for i, row in enumerate(pdf.rows)
    ]

    by_code: dict[str, list[Tuple[int, Record]]] = {}
    for t in targets:
        if t.key:
            by_code.setdefault(t.key, []).append((t.index, t))

    # 1) code pass over all sources
    code_hits, leftover, used = CODE_MATCHER.run(
        ((s.index, s) for s in sources),
        lambda s: by_code.get(s.key, []) if s.key else [],
    )

    # 2) date+amount fallback, strictly after pass 1
    all_targets = [(t.index, t) for t in targets]
    # rows that already carry a code from an earlier run are left as they are
    fallback_pool = [
        (i, sources[i])
        for i in leftover
        if not next_rows[i][code_i] and sources[i].date is not None and sources[i].amount is not None
    ]
    date_hits, _, used = FALLBACK_MATCHER.run(fallback_pool, lambda s: all_targets, used=used)

    for s_idx, t_idx, _ in code_hits + date_hits:
        raw = targets[t_idx].raw
        row = list(next_rows[s_idx])
        row[code_i] = _cell(raw, pdf_code_i)
        row[amount_i] = format_amount(_cell(raw, pdf_amount_i))
        next_rows[s_idx] = row

    matched_sources = {s for s, _, _ in code_hits + date_hits}
    unmatched_sources = [s.index for s in sources if s.index not in matched_sources]
    unmatched_targets = [t.index for t in targets if t.index not in used]
    unmatched_pdf_rows = [list(targets[i].raw) for i in unmatched_targets]
    appended = [
        _blank_row(width, _cell(r, pdf_code_i), format_amount(_cell(r, pdf_amount_i)))
        for r in unmatched_pdf_rows
    ]
    fallback_rows = [s for s, _, _ in date_hits]

    if not pdf.rows:
        warnings.append("PDF table has no rows.")

    out = excel.clone()
    out.rows = next_rows + appended
    out.fallback_rows = fallback_rows

    log.info(
        "job_finished", job="davanu", excel_rows=len(sources), pdf_rows=len(targets),
        code_matches=len(code_hits), fallback_matches=len(date_hits),
        unmatched_pdf=len(unmatched_targets),
    )
    return DavanuJobResult(
        excel=out,
        pdf=pdf,
        match=MatchResult(
            pairs=[(s, t) for s, t, _ in code_hits + date_hits],
            unmatched_sources=unmatched_sources,
            unmatched_targets=unmatched_targets,
            fallback_indices=list(fallback_rows),
        ),
        unmatched_pdf_rows=unmatched_pdf_rows,
        warnings=warnings,
    )


# =========================
# Result views
# =========================

class RowStatus(str, Enum):
    OK = "ok"
    FALLBACK = "fallback"          # matched by date + amount
    MISSING_FORM = "missing_form"  # barcode / code present without a form number
    UNMATCHED = "unmatched"        # form number present, nothing attached


@dataclass
class TableSlice:
    headers: List[str]
    rows: List[List[str]]


def row_statuses(preview: SheetPreview) -> list[RowStatus]:
    width = len(preview.headers)
    if width < 3:
        return [RowStatus.OK for _ in preview.rows]
    form_i, code_i, amount_i = width - 3, width - 2, width - 1
    fallback = set(preview.fallback_rows)
    out = []
    for i, row in enumerate(preview.rows):
        form = _cell(row, form_i).strip()
        code = _cell(row, code_i).strip()
        amount = _cell(row, amount_i).strip()
        if i in fallback:
            out.append(RowStatus.FALLBACK)
        elif not form and (code or amount):
            out.append(RowStatus.MISSING_FORM)
        elif form and not code:
            out.append(RowStatus.UNMATCHED)
        else:
            out.append(RowStatus.OK)
    return out


def unmatched_form_rows(preview: SheetPreview) -> TableSlice:
    width = len(preview.headers)
    if width < 3:
        return TableSlice([], [])
    form_i, code_i = width - 3, width - 2
    rows = [
        list(r[: form_i + 1])
        for r in preview.rows
        if _cell(r, form_i) and not _cell(r, code_i)
    ]
    return TableSlice(list(preview.headers[: form_i + 1]), rows)


def unmatched_pdf_table(result: DavanuJobResult) -> TableSlice:
    return TableSlice(list(result.pdf.headers), [list(r) for r in result.unmatched_pdf_rows])


def fallback_match_rows(result: DavanuJobResult) -> TableSlice:
    """Rows resolved by the date+amount pass, side by side with the PDF date."""
    preview = result.excel
    width = len(preview.headers)
    if width < 3:
        return TableSlice([], [])
    form_i, code_i, amount_i = width - 3, width - 2, width - 1
    pdf_date_i = date_column(result.pdf.headers)
    headers = [
        _cell(preview.headers, DOC_DATE_COLUMN) or "Dok. datums",
        _cell(result.pdf.headers, pdf_date_i) or "Sistēmā atzīmēts",
        preview.headers[form_i],
        preview.headers[code_i],
        preview.headers[amount_i],
    ]
    by_source = dict(result.match.pairs)
    rows = []
    for idx in preview.fallback_rows:
        row = preview.rows[idx] if idx < len(preview.rows) else []
        t_idx = by_source.get(idx)
        pdf_row = result.pdf.rows[t_idx] if t_idx is not None else ()
        rows.append([
            _cell(row, DOC_DATE_COLUMN),
            _cell(pdf_row, pdf_date_i),
            _cell(row, form_i),
            _cell(row, code_i),
            _cell(row, amount_i),
        ])
    return TableSlice(headers, rows)
