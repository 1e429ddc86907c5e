"""
Tests for CSV report export.
"""

import csv
import io
import pytest
from datetime import date

from ledger.reports.export import (
    CSV_MEDIA_TYPE,
    EXPORT_HEADER,
    ExportError,
    build_export,
    export_filename,
    to_csv,
)


class TestToCsv:
    """Tests for CSV rendering."""

    def test_single_row(self, make_tx):
        transaction = make_tx("expense", "12.5", "Food", date(2024, 3, 1), "lunch")
        assert to_csv([transaction]) == (
            "Date,Type,Category,Amount,Description\n"
            "2024-03-01,expense,Food,12.50,lunch"
        )

    def test_rows_keep_input_order(self, make_tx):
        transactions = [
            make_tx("income", "2500", "Salary", date(2024, 3, 25), "March pay"),
            make_tx("expense", "9.99", "Entertainment", date(2024, 3, 5)),
        ]
        lines = to_csv(transactions).split("\n")
        assert lines == [
            "Date,Type,Category,Amount,Description",
            "2024-03-25,income,Salary,2500.00,March pay",
            "2024-03-05,expense,Entertainment,9.99,",
        ]

    def test_multiword_category(self, make_tx):
        transaction = make_tx("income", "1", "Other Income", date(2024, 3, 1))
        assert to_csv([transaction]).endswith("2024-03-01,income,Other Income,1.00,")

    def test_description_with_comma_is_quoted(self, make_tx):
        """Test a comma in the description doesn't add a column."""
        transaction = make_tx("expense", "20", "Food", date(2024, 3, 1), 'pizza, "extra" cheese')
        content = to_csv([transaction])
        assert content.endswith('"pizza, ""extra"" cheese"')

        rows = list(csv.reader(io.StringIO(content)))
        assert rows[0] == EXPORT_HEADER
        assert rows[1][4] == 'pizza, "extra" cheese'
        assert len(rows[1]) == 5

    def test_sub_cent_amount_rounded_half_up(self, make_tx):
        transaction = make_tx("expense", "12.345", "Food", date(2024, 3, 1), "lunch")
        assert to_csv([transaction]).endswith("2024-03-01,expense,Food,12.35,lunch")

    def test_no_trailing_newline(self, make_tx):
        content = to_csv([make_tx()])
        assert not content.endswith("\n")

    def test_empty_set_is_an_error(self):
        with pytest.raises(ExportError):
            to_csv([])


class TestBuildExport:
    """Tests for the downloadable export."""

    def test_filename(self):
        assert export_filename(2024, 3) == "transactions_2024-03.csv"

    def test_build_export(self, make_tx):
        export = build_export([make_tx(), make_tx(transaction_id="other")], 2024, 3)
        assert export.filename == "transactions_2024-03.csv"
        assert export.row_count == 2
        assert export.media_type == CSV_MEDIA_TYPE
        assert export.content.startswith("Date,Type,Category,Amount,Description\n")

    def test_bytes_are_utf8_without_bom(self, make_tx):
        export = build_export(
            [make_tx("expense", "3.20", "Food", date(2024, 3, 1), "café")],
            2024,
            3,
        )
        data = export.to_bytes()
        assert not data.startswith(b"\xef\xbb\xbf")
        assert data.decode("utf-8").endswith("café")

    def test_empty_month_rejected(self):
        with pytest.raises(ExportError):
            build_export([], 2024, 3)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
