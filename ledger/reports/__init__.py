"""Reporting package: period selection, aggregation and CSV export."""

from ledger.reports.aggregation import (
    LedgerTotals,
    category_breakdown,
    compute_totals,
    filter_by_month,
    filter_by_range,
)
from ledger.reports.export import (
    EXPORT_HEADER,
    CsvExport,
    ExportError,
    build_export,
    export_filename,
    to_csv,
)
from ledger.reports.periods import (
    DateRange,
    MonthOption,
    current_month_range,
    month_key,
    month_options,
    month_range,
    parse_month_key,
    year_options,
    year_range,
)

__all__ = [
    # Aggregation
    "LedgerTotals",
    "category_breakdown",
    "compute_totals",
    "filter_by_month",
    "filter_by_range",
    # Export
    "EXPORT_HEADER",
    "CsvExport",
    "ExportError",
    "build_export",
    "export_filename",
    "to_csv",
    # Periods
    "DateRange",
    "MonthOption",
    "current_month_range",
    "month_key",
    "month_options",
    "month_range",
    "parse_month_key",
    "year_options",
    "year_range",
]
