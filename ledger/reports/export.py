"""
CSV Report Export

Serializes a month's transactions for download:

    Date,Type,Category,Amount,Description
    2024-03-01,expense,Food,12.50,lunch

Rows keep the order of the input list. Fields are quoted only when they
need it (commas, quotes or line breaks in a description), so ordinary
rows stay exactly as above. Exporting nothing is an error, not an empty
file, so callers can tell "nothing to export" apart from a real export.
"""

import csv
import io
from collections.abc import Sequence

from pydantic import BaseModel, ConfigDict

from ledger.config import get_settings
from ledger.models.transaction import Transaction, to_cents
from ledger.reports.periods import month_key


EXPORT_HEADER = ["Date", "Type", "Category", "Amount", "Description"]
CSV_MEDIA_TYPE = "text/csv; charset=utf-8"


class ExportError(Exception):
    """Export was requested for an empty set of transactions."""
    pass


class CsvExport(BaseModel):
    """A CSV file ready to hand to the user."""
    model_config = ConfigDict(frozen=True)

    filename: str
    content: str
    row_count: int
    media_type: str = CSV_MEDIA_TYPE

    def to_bytes(self) -> bytes:
        """UTF-8 without a byte-order mark."""
        return self.content.encode("utf-8")


def _to_row(transaction: Transaction) -> list[str]:
    return [
        transaction.date.strftime("%Y-%m-%d"),
        transaction.type,
        transaction.category.value,
        f"{to_cents(transaction.amount):.2f}",
        transaction.description,
    ]


def to_csv(transactions: Sequence[Transaction]) -> str:
    """
    Render transactions as CSV text (no trailing newline).

    Raises:
        ExportError: If there is nothing to export
    """
    if not transactions:
        raise ExportError("No transactions to export for the selected period")

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(EXPORT_HEADER)
    writer.writerows(_to_row(t) for t in transactions)
    return buffer.getvalue().removesuffix("\n")


def export_filename(year: int, month: int) -> str:
    """e.g. transactions_2024-03.csv"""
    prefix = get_settings().ledger.export_filename_prefix
    return f"{prefix}_{month_key(year, month)}.csv"


def build_export(
    transactions: Sequence[Transaction],
    year: int,
    month: int,
) -> CsvExport:
    """
    Build the downloadable CSV for one month.

    Raises:
        ExportError: If there is nothing to export
    """
    return CsvExport(
        filename=export_filename(year, month),
        content=to_csv(transactions),
        row_count=len(transactions),
    )
