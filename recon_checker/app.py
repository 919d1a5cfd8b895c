import tempfile
from pathlib import Path

import pandas as pd
import streamlit as st

from recon_checker.config import load_config
from recon_checker.errors import ReconError
from recon_checker.logging import configure_logging, is_configured
from recon_checker.pdf_pipeline import extract_document
from recon_checker.recon_pipeline import (
    apply_lieliska_result,
    ensure_davanu_schema,
    ensure_lieliska_schema,
    fallback_match_rows,
    run_davanu_job,
    run_lieliska_job,
    unmatched_form_rows,
    unmatched_pdf_table,
)
from recon_checker.workbook import (
    default_output_name,
    load_davanu_preview,
    load_sheet_preview,
    write_davanu_workbook,
    write_lieliska_workbook,
)

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

cfg = load_config()
if not is_configured():
    configure_logging(cfg.log_level, json=cfg.log_json)

st.set_page_config(page_title="Recon Checker")

st.title("Recon Checker")
st.markdown("""
Upload the **Horizon export (.xlsx)** and, for the Davanu job, the **Davanu serviss act (.pdf)**.

- **Davanu**: reservation code match, then date + amount for what is left (blue rows)
- **Lieliska**: barcodes attached to form numbers by their last 4 digits

Red rows have a form number but nothing attached; yellow rows have a code without a form number.
""")

job = st.radio("Job", ["Davanu", "Lieliska"], horizontal=True)
uploaded_xlsx = st.file_uploader("Horizon export", type=["xlsx"])
uploaded_pdf = st.file_uploader("Davanu serviss PDF", type=["pdf"]) if job == "Davanu" else None


def _frame(headers, rows) -> pd.DataFrame:
    cols = [h or f"Column {i + 1}" for i, h in enumerate(headers)]
    return pd.DataFrame([list(r) for r in rows], columns=cols)


def _download(write, file_name: str, *args) -> None:
    with tempfile.TemporaryDirectory() as tmp:
        out = write(*args, Path(tmp) / file_name)
        data = out.read_bytes()
    st.download_button(
        label="⬇️ Download result (.xlsx)",
        data=data,
        file_name=file_name,
        mime=XLSX_MIME,
    )


def run_davanu(xlsx_file, pdf_file) -> None:
    excel = ensure_davanu_schema(load_davanu_preview(xlsx_file.getvalue(), file_name=xlsx_file.name))
    pdf = extract_document(pdf_file.getvalue(), config=cfg.extraction)
    result = run_davanu_job(excel, pdf)
    for w in result.warnings:
        st.warning(w)

    st.success(
        f"Matched {len(result.match.pairs)} rows "
        f"({len(result.match.fallback_indices)} by date + amount)."
    )
    st.subheader("Horizon")
    st.dataframe(_frame(result.excel.headers, result.excel.rows), use_container_width=True)

    approx = fallback_match_rows(result)
    if approx.rows:
        st.subheader("Matched by date + amount")
        st.dataframe(_frame(approx.headers, approx.rows), use_container_width=True)

    missing_pdf = unmatched_pdf_table(result)
    if missing_pdf.rows:
        st.subheader("PDF rows without a Horizon row")
        st.dataframe(_frame(missing_pdf.headers, missing_pdf.rows), use_container_width=True)

    _download(write_davanu_workbook, default_output_name(xlsx_file.name, "davanu"), result.excel, result.pdf)


def run_lieliska(xlsx_file) -> None:
    preview = ensure_lieliska_schema(load_sheet_preview(xlsx_file.getvalue(), file_name=xlsx_file.name))
    result = run_lieliska_job(preview)
    updated = apply_lieliska_result(preview, result)

    st.success(
        f"{len(result.unmatched_rows)} form rows without barcode, "
        f"{len(result.unmatched_sources)} barcodes without form."
    )
    st.dataframe(_frame(updated.headers, updated.rows), use_container_width=True)

    missing = unmatched_form_rows(updated)
    if missing.rows:
        st.subheader("Form numbers without barcode")
        st.dataframe(_frame(missing.headers, missing.rows), use_container_width=True)

    _download(write_lieliska_workbook, default_output_name(xlsx_file.name, "lieliska"), updated)


ready = uploaded_xlsx is not None and (job == "Lieliska" or uploaded_pdf is not None)
if ready:
    status = st.empty()
    if st.button("▶️ Start reconciliation"):
        status.info("⚙️ Running reconciliation... please wait")
        try:
            if job == "Davanu":
                run_davanu(uploaded_xlsx, uploaded_pdf)
            else:
                run_lieliska(uploaded_xlsx)
            status.success("Reconciliation complete!")
        except ReconError as e:
            status.error(str(e))
        except Exception as e:
            status.error(f"❌ Error during processing: {e}")
else:
    st.info("Please upload the files for the selected job first.")
