"""
Aggregation Engine

DESIGN DECISION: Aggregation is DETERMINISTIC and side-effect free.
It works on a list of transactions the caller has already fetched, so
the same input always produces the same totals and breakdowns.

Amounts are Decimals, so income - expenses == net savings exactly.
"""

from collections.abc import Iterable
from decimal import Decimal
from typing import Union

from pydantic import BaseModel, ConfigDict

from ledger.models.transaction import Transaction, TransactionType
from ledger.reports.periods import DateRange, month_range


ZERO = Decimal("0.00")


class LedgerTotals(BaseModel):
    """Income, expense and net totals for a set of transactions."""
    model_config = ConfigDict(frozen=True)

    total_income: Decimal = ZERO
    total_expenses: Decimal = ZERO
    net_savings: Decimal = ZERO


def _total(transactions: Iterable[Transaction], transaction_type: TransactionType) -> Decimal:
    return sum(
        (t.amount for t in transactions if t.type == transaction_type),
        ZERO,
    )


def compute_totals(transactions: Iterable[Transaction]) -> LedgerTotals:
    """
    Sum income and expenses. An empty input gives all zeros.
    """
    transactions = list(transactions)
    income = _total(transactions, TransactionType.INCOME)
    expenses = _total(transactions, TransactionType.EXPENSE)
    return LedgerTotals(
        total_income=income,
        total_expenses=expenses,
        net_savings=income - expenses,
    )


def category_breakdown(
    transactions: Iterable[Transaction],
    transaction_type: Union[TransactionType, str],
) -> dict[str, Decimal]:
    """
    Sum amounts per category for one transaction type.

    Only categories that actually occur are included (no zero-filling);
    keys appear in order of first occurrence.
    """
    transaction_type = TransactionType(transaction_type)
    groups: dict[str, Decimal] = {}
    for t in transactions:
        if t.type != transaction_type:
            continue
        key = t.category.value
        groups[key] = groups.get(key, ZERO) + t.amount
    return groups


def filter_by_month(
    transactions: Iterable[Transaction],
    year: int,
    month: int,
) -> list[Transaction]:
    """
    Keep transactions dated in the given calendar month of the given year.

    Both month and year must match: March 2023 is not March 2024.
    """
    month_range(year, month)  # validates the selection
    return [t for t in transactions if t.date.year == year and t.date.month == month]


def filter_by_range(
    transactions: Iterable[Transaction],
    period: DateRange,
) -> list[Transaction]:
    """Keep transactions dated within an inclusive range, preserving order."""
    return [t for t in transactions if period.contains(t.date)]
