"""Delimited text report export."""

from finledger.export.report import (
    HISTORY_HEADERS,
    build_report_rows,
    fmt_amount,
    render_csv,
    report_filename,
)

__all__ = [
    "HISTORY_HEADERS",
    "build_report_rows",
    "fmt_amount",
    "render_csv",
    "report_filename",
]
