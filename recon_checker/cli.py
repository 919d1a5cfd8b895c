# recon_checker/cli.py
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from .config import PDF_BACKENDS, AppConfig, ExtractionConfig, load_config
from .errors import ReconError
from .logging import configure_logging, get_logger
from .pdf_pipeline import extract_document
from .recon_pipeline import (
    apply_lieliska_result,
    ensure_davanu_schema,
    ensure_lieliska_schema,
    run_davanu_job,
    run_lieliska_job,
)
from .workbook import (
    default_output_name,
    load_davanu_preview,
    load_sheet_preview,
    write_davanu_workbook,
    write_lieliska_workbook,
    write_pdf_table,
)

log = get_logger(__name__)


def _add_extraction_args(ap: argparse.ArgumentParser) -> None:
    ap.add_argument("--row-eps", type=float, default=None, help="Max y distance (pt) for runs on one line (default 2.0)")
    ap.add_argument("--cell-gap", type=float, default=None, help="x jump (pt) that starts a new cell (default 10.0)")
    ap.add_argument("--col-cluster-gap", type=float, default=None, help="Clustering gap (pt) for column anchors (default 15.0)")
    ap.add_argument("--backend", choices=PDF_BACKENDS, default=None, help="PDF text backend (default pymupdf)")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(prog="recon-checker", description="Horizon export vs. Davanu serviss act reconciliation")
    ap.add_argument("--log-level", default=None, help="Overrides LOG_LEVEL")
    sub = ap.add_subparsers(dest="command", required=True)

    p_pdf = sub.add_parser("pdf", help="Extract the PDF act table to .xlsx or .csv")
    p_pdf.add_argument("pdf", help="Davanu serviss PDF")
    p_pdf.add_argument("--out", help="Output file (.xlsx or .csv)")
    _add_extraction_args(p_pdf)

    p_dav = sub.add_parser("davanu", help="Match Horizon rows to PDF rows by code, then date + amount")
    p_dav.add_argument("--excel", required=True, help="Horizon export (.xlsx)")
    p_dav.add_argument("--pdf", required=True, help="Davanu serviss PDF")
    p_dav.add_argument("--out", help="Output workbook (.xlsx)")
    _add_extraction_args(p_dav)

    p_lie = sub.add_parser("lieliska", help="Attach barcodes to form numbers by last 4 digits")
    p_lie.add_argument("--excel", required=True, help="Horizon export (.xlsx)")
    p_lie.add_argument("--out", help="Output workbook (.xlsx)")

    return ap.parse_args(argv)


def _extraction_config(cfg: AppConfig, args: argparse.Namespace) -> ExtractionConfig:
    return cfg.extraction.with_overrides(
        row_eps=getattr(args, "row_eps", None),
        cell_gap=getattr(args, "cell_gap", None),
        col_cluster_gap=getattr(args, "col_cluster_gap", None),
        backend=getattr(args, "backend", None),
    )


def _out_path(explicit: Optional[str], source: str, suffix: str) -> Path:
    if explicit:
        return Path(explicit)
    src = Path(source)
    return src.with_name(default_output_name(src.name, suffix))


def run_pdf(args: argparse.Namespace, cfg: AppConfig) -> Path:
    table = extract_document(args.pdf, config=_extraction_config(cfg, args))
    return write_pdf_table(table, _out_path(args.out, args.pdf, "pdf"))


def run_davanu(args: argparse.Namespace, cfg: AppConfig) -> Path:
    excel = ensure_davanu_schema(load_davanu_preview(args.excel))
    pdf = extract_document(args.pdf, config=_extraction_config(cfg, args))
    result = run_davanu_job(excel, pdf)
    for w in result.warnings:
        print(f"[warn] {w}")
    print(
        f"[INFO] matched {len(result.match.pairs)} rows "
        f"({len(result.match.fallback_indices)} by date + amount), "
        f"{len(result.unmatched_pdf_rows)} PDF rows unmatched"
    )
    return write_davanu_workbook(result.excel, result.pdf, _out_path(args.out, args.excel, "davanu"))


def run_lieliska(args: argparse.Namespace, cfg: AppConfig) -> Path:
    preview = ensure_lieliska_schema(load_sheet_preview(args.excel))
    result = run_lieliska_job(preview)
    print(
        f"[INFO] {len(result.unmatched_rows)} form rows without barcode, "
        f"{len(result.unmatched_sources)} barcodes without form"
    )
    return write_lieliska_workbook(apply_lieliska_result(preview, result), _out_path(args.out, args.excel, "lieliska"))


COMMANDS = {
    "pdf": run_pdf,
    "davanu": run_davanu,
    "lieliska": run_lieliska,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    try:
        cfg = load_config()
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2
    configure_logging(args.log_level or cfg.log_level, json=cfg.log_json)

    try:
        out = COMMANDS[args.command](args, cfg)
    except (ReconError, FileNotFoundError, ValueError) as e:
        log.error("command_failed", command=args.command, error=str(e))
        print(str(e), file=sys.stderr)
        return 1

    print(f"Wrote: {out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
