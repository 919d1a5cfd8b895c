"""Error kinds surfaced to the CLI / app boundary."""

from __future__ import annotations

HEADER_NOT_FOUND_MSG = "Header line not found (could be scanned PDF or different layout)."
NO_WORKSHEET_MSG = "No worksheets found in this file."


class ReconError(Exception):
    """Base class for fatal extraction / reconciliation errors."""


class HeaderNotFoundError(ReconError, ValueError):
    def __init__(self, message: str = HEADER_NOT_FOUND_MSG) -> None:
        super().__init__(message)


class NoWorksheetError(ReconError, ValueError):
    def __init__(self, message: str = NO_WORKSHEET_MSG) -> None:
        super().__init__(message)


class SchemaMismatchError(ReconError, ValueError):
    """Trailing columns of the workbook do not carry the expected roles."""

    def __init__(self, role: str, message: str | None = None) -> None:
        self.role = role
        super().__init__(message or f"Expected {role} column.")


class ExtractionCancelled(ReconError):
    """Raised between pages when the caller's cancel event is set."""
