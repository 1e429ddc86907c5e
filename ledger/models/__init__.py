"""
Data Models Package

This package contains all Pydantic models used in the Personal Ledger.
All data flowing through the system must conform to these schemas.
"""

from ledger.models.transaction import (
    CATEGORIES,
    ExpenseCategory,
    ExpenseDraft,
    ExpenseTransaction,
    IncomeCategory,
    IncomeDraft,
    IncomeTransaction,
    MissingIdentifierError,
    Transaction,
    TransactionDraft,
    TransactionType,
    ValidationError,
    apply_update,
    build_transaction,
    categories_for,
    to_cents,
    coerce_draft,
    parse_transaction,
    stamp,
)
from ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "CATEGORIES",
    "ExpenseCategory",
    "ExpenseDraft",
    "ExpenseTransaction",
    "IncomeCategory",
    "IncomeDraft",
    "IncomeTransaction",
    "MissingIdentifierError",
    "Transaction",
    "TransactionDraft",
    "TransactionType",
    "ValidationError",
    "apply_update",
    "build_transaction",
    "categories_for",
    "to_cents",
    "coerce_draft",
    "parse_transaction",
    "stamp",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
