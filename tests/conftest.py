"""
Shared test fixtures.

No test talks to Google: the Sheets backend runs against an in-process
fake worksheet that behaves like gspread's for the calls we make.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

import pytest
from gspread.utils import a1_to_rowcol

from ledger.auth import Session
from ledger.models.transaction import stamp, build_transaction
from ledger.services.storage.google_sheets import AUDIT_COLUMNS, TRANSACTION_COLUMNS


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the ledger store."""

    def __init__(self, header: list[str]):
        self.rows: list[list[str]] = [list(header)]
        self.fail_with: Optional[Exception] = None
        self.calls: list[str] = []

    def _maybe_fail(self, call: str) -> None:
        self.calls.append(call)
        if self.fail_with is not None:
            raise self.fail_with

    def get_all_values(self) -> list[list[str]]:
        self._maybe_fail("get_all_values")
        return [list(row) for row in self.rows]

    def append_row(self, values, value_input_option=None) -> None:
        self._maybe_fail("append_row")
        self.rows.append([str(v) for v in values])

    def update(self, range_name=None, values=None, value_input_option=None) -> None:
        self._maybe_fail("update")
        start, _ = range_name.split(":")
        row_idx, col_idx = a1_to_rowcol(start)
        assert col_idx == 1
        self.rows[row_idx - 1] = [str(v) for v in values[0]]

    def delete_rows(self, index: int) -> None:
        self._maybe_fail("delete_rows")
        del self.rows[index - 1]


class FakeSheetsClient:
    """Stands in for GoogleSheetsClient: one fake worksheet per user."""

    def __init__(self):
        self.transaction_sheets: dict[str, FakeWorksheet] = {}
        self.audit_sheet = FakeWorksheet(AUDIT_COLUMNS)

    def get_transactions_sheet(self, user_id: str) -> FakeWorksheet:
        if user_id not in self.transaction_sheets:
            self.transaction_sheets[user_id] = FakeWorksheet(TRANSACTION_COLUMNS)
        return self.transaction_sheets[user_id]

    def find_transactions_sheet(self, user_id: str) -> Optional[FakeWorksheet]:
        return self.transaction_sheets.get(user_id)

    def get_audit_sheet(self) -> FakeWorksheet:
        return self.audit_sheet


class FakeIdentityProvider:
    """Identity provider whose signed-in user the test controls."""

    def __init__(self, user_id: Optional[str] = None):
        self.user_id = user_id
        self.callbacks = []

    def current_user_id(self) -> Optional[str]:
        return self.user_id

    def on_auth_change(self, callback):
        self.callbacks.append(callback)

        def unsubscribe():
            self.callbacks.remove(callback)

        return unsubscribe

    def sign_in(self, user_id: str) -> None:
        self.user_id = user_id
        for callback in list(self.callbacks):
            callback(user_id)

    def sign_out(self) -> None:
        self.user_id = None
        for callback in list(self.callbacks):
            callback(None)


def make_transaction(
    type: str = "expense",
    amount="10.00",
    category: str = "Food",
    day: date = date(2024, 3, 1),
    description: str = "",
    user_id: str = "user-1",
    transaction_id: Optional[str] = None,
):
    """A persisted transaction built without going through a store."""
    draft = build_transaction(type, Decimal(str(amount)), category, day, description)
    return stamp(
        draft,
        user_id,
        transaction_id or f"tx-{type}-{category}-{day.isoformat()}-{amount}",
        datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def sheets_client() -> FakeSheetsClient:
    return FakeSheetsClient()


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def session() -> Session:
    return Session(user_id="user-1")


@pytest.fixture
def make_tx():
    return make_transaction
