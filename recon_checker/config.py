"""Configuration loader for the reconciliation tool."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Optional

PDF_BACKENDS = ("pymupdf", "pypdf")


def _get_env(key: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(key)
    if value is not None:
        value = value.strip()
        if value == "":
            return default
        return value
    return default


def _get_float(key: str, default: float) -> float:
    value = _get_env(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {key} must be a number") from exc


def _get_choice(key: str, default: str, choices: tuple[str, ...]) -> str:
    value = (_get_env(key, default) or default).lower()
    if value not in choices:
        raise ValueError(f"Environment variable {key} must be one of {', '.join(choices)}")
    return value


@dataclass(frozen=True, slots=True)
class ExtractionConfig:
    row_eps: float = 2.0          # y-band for grouping runs into one line
    cell_gap: float = 10.0        # x-jump that starts a new cell
    col_cluster_gap: float = 15.0 # 1-D clustering gap for column anchors
    backend: str = "pymupdf"

    def with_overrides(self, **kwargs) -> "ExtractionConfig":
        clean = {k: v for k, v in kwargs.items() if v is not None}
        if "backend" in clean and clean["backend"] not in PDF_BACKENDS:
            raise ValueError(f"Unknown PDF backend: {clean['backend']}")
        return replace(self, **clean)


@dataclass(frozen=True, slots=True)
class AppConfig:
    extraction: ExtractionConfig
    log_level: str
    log_json: bool


def load_config() -> AppConfig:
    extraction = ExtractionConfig(
        row_eps=_get_float("RECON_ROW_EPS", 2.0),
        cell_gap=_get_float("RECON_CELL_GAP", 10.0),
        col_cluster_gap=_get_float("RECON_COL_CLUSTER_GAP", 15.0),
        backend=_get_choice("RECON_PDF_BACKEND", "pymupdf", PDF_BACKENDS),
    )
    log_level = (_get_env("LOG_LEVEL", "INFO") or "INFO").upper()
    log_json = (_get_env("LOG_FORMAT", "json") or "json").lower() != "console"

    return AppConfig(
        extraction=extraction,
        log_level=log_level,
        log_json=log_json,
    )
