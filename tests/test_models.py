"""
Tests for Personal Ledger models

Test strategy:
1. Unit tests for individual components (models, aggregation, export)
2. Integration tests for flows (with in-memory or faked storage)
3. No real API calls in tests
"""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal

from pydantic import ValidationError as PydanticValidationError

from ledger.models.transaction import (
    CATEGORIES,
    ExpenseCategory,
    ExpenseDraft,
    ExpenseTransaction,
    IncomeCategory,
    IncomeDraft,
    IncomeTransaction,
    TransactionType,
    ValidationError,
    apply_update,
    build_transaction,
    categories_for,
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


class TestBuildTransaction:
    """Tests for validating raw transaction input."""

    def test_expense_creation(self):
        """Test a valid expense produces a normalized draft."""
        draft = build_transaction("expense", 12.5, "Food", date(2024, 3, 1), "lunch")
        assert isinstance(draft, ExpenseDraft)
        assert draft.type == "expense"
        assert draft.amount == Decimal("12.50")
        assert draft.category == ExpenseCategory.FOOD
        assert draft.date == date(2024, 3, 1)
        assert draft.description == "lunch"

    def test_income_creation_with_enums(self):
        """Test enum members are accepted for type and category."""
        draft = build_transaction(
            TransactionType.INCOME,
            Decimal("2500"),
            IncomeCategory.SALARY,
            date(2024, 3, 25),
        )
        assert isinstance(draft, IncomeDraft)
        assert draft.category == IncomeCategory.SALARY
        assert draft.amount == Decimal("2500.00")

    def test_description_is_trimmed(self):
        """Test that whitespace is stripped from the description."""
        draft = build_transaction("expense", 5, "Transport", date(2024, 3, 1), "  bus fare  ")
        assert draft.description == "bus fare"

    def test_description_is_optional(self):
        """Test a missing description becomes an empty string."""
        draft = build_transaction("expense", 5, "Transport", date(2024, 3, 1), None)
        assert draft.description == ""

    def test_date_string_is_parsed(self):
        """Test an ISO date string becomes a date value."""
        draft = build_transaction("expense", 5, "Rent", "2024-03-15")
        assert draft.date == date(2024, 3, 15)

    def test_sub_cent_amount_kept(self):
        """Test amounts keep the precision they were entered with."""
        draft = build_transaction("expense", "12.345", "Food", date(2024, 3, 1))
        assert str(draft.amount) == "12.345"

    def test_tiny_positive_amount_accepted(self):
        draft = build_transaction("expense", "0.004", "Food", date(2024, 3, 1))
        assert draft.amount == Decimal("0.004")

    @pytest.mark.parametrize("amount", [0, -5, "0.00", "-0.001"])
    def test_non_positive_amount_rejected(self, amount):
        """Test zero and negative amounts are rejected."""
        with pytest.raises(ValidationError, match="greater than zero"):
            build_transaction("expense", amount, "Food", date(2024, 3, 1))

    def test_non_numeric_amount_rejected(self):
        """Test garbage amounts are rejected."""
        with pytest.raises(ValidationError, match="amount"):
            build_transaction("expense", "twelve", "Food", date(2024, 3, 1))

    def test_empty_category_rejected(self):
        """Test that a category is required."""
        with pytest.raises(ValidationError, match="Category is required"):
            build_transaction("expense", 10, "  ", date(2024, 3, 1))

    def test_category_must_match_type(self):
        """Test an expense category cannot be used for income."""
        with pytest.raises(ValidationError, match="not a valid income category"):
            build_transaction("income", 100, "Food", date(2024, 3, 1))

    def test_unknown_type_rejected(self):
        """Test only income and expense are accepted."""
        with pytest.raises(ValidationError, match="Unknown transaction type"):
            build_transaction("transfer", 100, "Food", date(2024, 3, 1))

    def test_invalid_date_rejected(self):
        """Test an unparseable date is reported against the date field."""
        with pytest.raises(ValidationError) as exc_info:
            build_transaction("expense", 10, "Food", "not-a-date")
        assert any(issue.startswith("date") for issue in exc_info.value.issues)

    def test_validation_error_is_value_error(self):
        """Test callers can catch validation failures as ValueError."""
        with pytest.raises(ValueError):
            build_transaction("expense", -1, "Food", date(2024, 3, 1))


class TestCoerceDraft:
    """Tests for accepting drafts or mappings."""

    def test_mapping_is_validated(self):
        draft = coerce_draft({
            "type": "income",
            "amount": "100",
            "category": "Gift",
            "date": "2024-03-01",
        })
        assert isinstance(draft, IncomeDraft)
        assert draft.category == IncomeCategory.GIFT

    def test_draft_passes_through(self):
        draft = build_transaction("expense", 10, "Food", date(2024, 3, 1))
        assert coerce_draft(draft) is draft

    def test_unknown_fields_rejected(self):
        """Test owner and ID fields cannot be smuggled into new input."""
        with pytest.raises(ValidationError, match="Unexpected fields"):
            coerce_draft({
                "type": "expense",
                "amount": 10,
                "category": "Food",
                "date": "2024-03-01",
                "user_id": "someone-else",
            })

    def test_non_mapping_rejected(self):
        with pytest.raises(ValidationError, match="Expected a mapping"):
            coerce_draft(["expense", 10])


class TestCategories:
    """Tests for the category vocabularies."""

    def test_expense_categories(self):
        assert categories_for("expense") == [
            "Food", "Transport", "Utilities", "Rent", "Entertainment",
            "Shopping", "Health", "Education", "Other",
        ]

    def test_income_categories(self):
        assert categories_for(TransactionType.INCOME) == [
            "Salary", "Freelance", "Investment", "Gift", "Other Income",
        ]

    def test_vocabularies_are_disjoint(self):
        income = set(CATEGORIES[TransactionType.INCOME])
        expense = set(CATEGORIES[TransactionType.EXPENSE])
        assert income.isdisjoint(expense)

    def test_unknown_type(self):
        with pytest.raises(ValidationError):
            categories_for("transfer")


class TestStoredTransaction:
    """Tests for persisted transaction records."""

    def _stored(self):
        draft = build_transaction("expense", 40, "Utilities", date(2024, 3, 5), "power")
        return stamp(
            draft,
            "user-1",
            "tx-1",
            datetime(2024, 3, 5, 12, 0, tzinfo=timezone.utc),
        )

    def test_stamp_assigns_identity(self):
        transaction = self._stored()
        assert isinstance(transaction, ExpenseTransaction)
        assert transaction.id == "tx-1"
        assert transaction.user_id == "user-1"
        assert transaction.created_at.year == 2024
        assert transaction.amount == Decimal("40.00")

    def test_stamp_defaults_created_at(self):
        draft = build_transaction("income", 10, "Gift", date(2024, 3, 5))
        transaction = stamp(draft, "user-1", "tx-2")
        assert isinstance(transaction, IncomeTransaction)
        assert transaction.created_at.tzinfo is not None

    def test_transactions_are_immutable(self):
        transaction = self._stored()
        with pytest.raises(PydanticValidationError):
            transaction.amount = Decimal("1.00")

    def test_parse_from_strings(self):
        """Test a record read back as text (e.g. from a sheet) parses."""
        transaction = parse_transaction({
            "id": "tx-9",
            "user_id": "user-1",
            "type": "income",
            "amount": "1500.00",
            "category": "Freelance",
            "date": "2024-02-29",
            "description": "",
            "created_at": "2024-02-29T10:00:00+00:00",
        })
        assert isinstance(transaction, IncomeTransaction)
        assert transaction.amount == Decimal("1500.00")
        assert transaction.date == date(2024, 2, 29)

    def test_parse_rejects_wrong_vocabulary(self):
        with pytest.raises(ValidationError):
            parse_transaction({
                "id": "tx-9",
                "user_id": "user-1",
                "type": "income",
                "amount": "10",
                "category": "Food",
                "date": "2024-02-29",
                "created_at": "2024-02-29T10:00:00+00:00",
            })


class TestApplyUpdate:
    """Tests for merging partial updates."""

    def _stored(self):
        draft = build_transaction("expense", 40, "Utilities", date(2024, 3, 5), "power")
        return stamp(draft, "user-1", "tx-1", datetime(2024, 3, 5, tzinfo=timezone.utc))

    def test_partial_update_keeps_other_fields(self):
        existing = self._stored()
        updated = apply_update(existing, {"amount": "45.5"})
        assert updated.amount == Decimal("45.50")
        assert updated.category == ExpenseCategory.UTILITIES
        assert updated.description == "power"
        assert updated.id == existing.id
        assert updated.created_at == existing.created_at

    def test_type_switch_requires_new_category(self):
        """Test switching type without re-selecting a category is rejected."""
        with pytest.raises(ValidationError, match="re-selected"):
            apply_update(self._stored(), {"type": "income"})

    def test_type_switch_with_category(self):
        updated = apply_update(self._stored(), {"type": "income", "category": "Gift"})
        assert isinstance(updated, IncomeTransaction)
        assert updated.category == IncomeCategory.GIFT
        assert updated.user_id == "user-1"

    def test_category_revalidated_against_type(self):
        with pytest.raises(ValidationError, match="not a valid expense category"):
            apply_update(self._stored(), {"category": "Salary"})

    @pytest.mark.parametrize("field", ["id", "user_id", "created_at"])
    def test_immutable_fields_rejected(self, field):
        with pytest.raises(ValidationError, match="cannot be changed"):
            apply_update(self._stored(), {field: "x"})

    def test_empty_update_rejected(self):
        with pytest.raises(ValidationError, match="No fields"):
            apply_update(self._stored(), {})

    def test_invalid_amount_rejected(self):
        with pytest.raises(ValidationError, match="greater than zero"):
            apply_update(self._stored(), {"amount": 0})


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            description="Test transaction created",
        )
        assert event.event_type == AuditEventType.TRANSACTION_CREATED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEventBuilder.transaction_created(
            user_id="user-1",
            transaction_id="tx-1",
            transaction_type="expense",
            amount="12.50",
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "transaction_created"
        assert log_dict["user_id"] == "user-1"
        assert log_dict["details"]["amount"] == "12.50"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEventBuilder.transaction_deleted(
            user_id="user-1",
            transaction_id="tx-1",
            existed=True,
        )
        row = event.to_sheets_row()
        assert len(row) == 12  # Expected number of columns
        assert row[2] == "transaction_deleted"
        assert row[4] == "user-1"
        assert row[6] == "tx-1"
        assert row[11] == "True"  # is_user_action

    def test_transaction_rejected_is_warning(self):
        event = AuditEventBuilder.transaction_rejected(
            user_id="user-1",
            issues=["amount: Amount must be greater than zero"],
        )
        assert event.severity == AuditSeverity.WARNING
        assert event.details["issues"] == ["amount: Amount must be greater than zero"]

    def test_store_error_is_error(self):
        event = AuditEventBuilder.store_error(
            user_id="user-1",
            operation="query_range",
            error_message="quota exceeded",
        )
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "quota exceeded"
        assert event.details["operation"] == "query_range"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
