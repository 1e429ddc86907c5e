"""
Transaction Models for Personal Ledger

A transaction is the only entity this system persists. It is either
income or expense, and the category vocabulary depends on which.

DESIGN DECISION: Income and expense are separate Pydantic models joined
into a discriminated union on `type`. A category from the wrong list
simply cannot be represented, so there is no "if income check list A,
else check list B" branch anywhere else in the code.

Two stages of a transaction's life are modelled:
- Draft: validated user input, not yet persisted (no id, no owner)
- Transaction: a persisted record (id, user_id and created_at assigned)
"""

import datetime as dt
from collections.abc import Mapping
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
)
from pydantic import ValidationError as PydanticValidationError


CENT = Decimal("0.01")


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of money flow."""
    INCOME = "income"
    EXPENSE = "expense"


class IncomeCategory(str, Enum):
    """Categories available for income."""
    SALARY = "Salary"
    FREELANCE = "Freelance"
    INVESTMENT = "Investment"
    GIFT = "Gift"
    OTHER_INCOME = "Other Income"


class ExpenseCategory(str, Enum):
    """Categories available for expenses."""
    FOOD = "Food"
    TRANSPORT = "Transport"
    UTILITIES = "Utilities"
    RENT = "Rent"
    ENTERTAINMENT = "Entertainment"
    SHOPPING = "Shopping"
    HEALTH = "Health"
    EDUCATION = "Education"
    OTHER = "Other"


CATEGORIES: dict[TransactionType, tuple[str, ...]] = {
    TransactionType.INCOME: tuple(c.value for c in IncomeCategory),
    TransactionType.EXPENSE: tuple(c.value for c in ExpenseCategory),
}

# Fields a caller may never change after creation
IMMUTABLE_FIELDS = frozenset({"id", "user_id", "created_at"})
EDITABLE_FIELDS = frozenset({"type", "amount", "category", "date", "description"})


def to_cents(amount: Decimal) -> Decimal:
    """Round an amount half-up to cents for display and export."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def categories_for(transaction_type: Union[TransactionType, str]) -> list[str]:
    """
    Get the category vocabulary for a transaction type.

    Raises:
        ValidationError: If the type is not income or expense
    """
    try:
        return list(CATEGORIES[TransactionType(transaction_type)])
    except ValueError:
        raise ValidationError([f"Unknown transaction type: {transaction_type!r}"])


# =============================================================================
# ERRORS
# =============================================================================

class ValidationError(ValueError):
    """
    Transaction input is malformed.

    Raised before any persistence attempt. The caller can always recover
    by correcting the input and retrying the same call.
    """

    def __init__(self, issues: Union[list[str], str]):
        self.issues = [issues] if isinstance(issues, str) else list(issues)
        super().__init__("; ".join(self.issues))


class MissingIdentifierError(ValidationError):
    """A user ID or transaction ID required by a ledger operation is missing."""
    pass


# =============================================================================
# DRAFTS - validated input, not yet persisted
# =============================================================================

class _TransactionFields(BaseModel):
    """Fields shared by income and expense transactions."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    amount: Decimal = Field(
        ...,
        description="Positive amount, stored with the precision it was entered with"
    )
    date: dt.date = Field(
        ...,
        description="Calendar date the transaction is attributed to"
    )
    description: str = Field(
        default="",
        max_length=500,
        description="Free-text note"
    )

    @field_validator("amount")
    @classmethod
    def positive_amount(cls, v: Decimal) -> Decimal:
        """Reject anything that is not strictly positive. Precision is kept as given."""
        if not v.is_finite():
            raise ValueError("Amount must be a finite number")
        if v <= 0:
            raise ValueError("Amount must be greater than zero")
        return v

    @field_validator("description", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v


class IncomeDraft(_TransactionFields):
    """An income entry before it is saved."""
    type: Literal["income"] = "income"
    category: IncomeCategory


class ExpenseDraft(_TransactionFields):
    """An expense entry before it is saved."""
    type: Literal["expense"] = "expense"
    category: ExpenseCategory


TransactionDraft = Annotated[
    Union[IncomeDraft, ExpenseDraft],
    Field(discriminator="type"),
]


# =============================================================================
# PERSISTED TRANSACTIONS
# =============================================================================

class _StoredFields(BaseModel):
    """Fields assigned by the ledger store on creation."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Store-assigned identifier"
    )
    user_id: str = Field(
        ...,
        min_length=1,
        description="Owner of this transaction"
    )
    created_at: datetime = Field(
        ...,
        description="When the record was written (UTC, audit only)"
    )


class IncomeTransaction(IncomeDraft, _StoredFields):
    """A persisted income record."""
    pass


class ExpenseTransaction(ExpenseDraft, _StoredFields):
    """A persisted expense record."""
    pass


Transaction = Annotated[
    Union[IncomeTransaction, ExpenseTransaction],
    Field(discriminator="type"),
]

_DRAFT_ADAPTER: TypeAdapter = TypeAdapter(TransactionDraft)
_TRANSACTION_ADAPTER: TypeAdapter = TypeAdapter(Transaction)
_UNION_TAGS = frozenset(t.value for t in TransactionType)


# =============================================================================
# CONSTRUCTION AND VALIDATION
# =============================================================================

def _issues_from(error: PydanticValidationError) -> list[str]:
    """Flatten pydantic errors into readable messages."""
    issues = []
    for err in error.errors():
        # Drop the union tag (e.g. "income") from the location
        loc = [str(part) for part in err["loc"] if part not in _UNION_TAGS]
        field = ".".join(loc) or "transaction"
        message = err["msg"].removeprefix("Value error, ")
        issues.append(f"{field}: {message}")
    return issues


def _normalize_input(data: Mapping[str, Any]) -> dict[str, Any]:
    """Pre-checks that give clearer errors than the union validator would."""
    data = dict(data)
    issues = []

    raw_type = data.get("type")
    if raw_type is None or raw_type == "":
        issues.append("type: Transaction type is required")
    else:
        try:
            data["type"] = TransactionType(raw_type).value
        except ValueError:
            issues.append(f"type: Unknown transaction type {raw_type!r}")

    category = data.get("category")
    if isinstance(category, Enum):
        category = category.value
    if category is None or (isinstance(category, str) and not category.strip()):
        issues.append("category: Category is required")
    elif "type" in data and not issues:
        category = category.strip() if isinstance(category, str) else category
        if category not in CATEGORIES[TransactionType(data["type"])]:
            issues.append(
                f"category: {category!r} is not a valid {data['type']} category"
            )
        data["category"] = category

    if issues:
        raise ValidationError(issues)
    return data


def build_transaction(
    type: Union[TransactionType, str],
    amount: Any,
    category: Union[IncomeCategory, ExpenseCategory, str],
    date: Any,
    description: Optional[str] = "",
) -> Union[IncomeDraft, ExpenseDraft]:
    """
    Validate user input and produce a draft ready for persistence.

    Raises:
        ValidationError: If amount <= 0, the category is empty or does not
            belong to the type's vocabulary, or any field is malformed
    """
    return coerce_draft({
        "type": type,
        "amount": amount,
        "category": category,
        "date": date,
        "description": description,
    })


def coerce_draft(value: Any) -> Union[IncomeDraft, ExpenseDraft]:
    """Accept a draft model or a plain mapping and return a validated draft."""
    if isinstance(value, (IncomeDraft, ExpenseDraft)):
        if isinstance(value, _StoredFields):
            value = value.model_dump(include=set(EDITABLE_FIELDS))
        else:
            return value
    if not isinstance(value, Mapping):
        raise ValidationError(
            f"transaction: Expected a mapping of fields, got {type(value).__name__}"
        )

    unknown = set(value) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(
            f"transaction: Unexpected fields {sorted(unknown)}"
        )

    data = _normalize_input(value)
    try:
        return _DRAFT_ADAPTER.validate_python(data)
    except PydanticValidationError as e:
        raise ValidationError(_issues_from(e)) from e


def stamp(
    draft: Union[IncomeDraft, ExpenseDraft],
    user_id: str,
    transaction_id: str,
    created_at: Optional[datetime] = None,
) -> Union[IncomeTransaction, ExpenseTransaction]:
    """Turn a draft into a persisted record owned by `user_id`."""
    return parse_transaction({
        **draft.model_dump(),
        "id": transaction_id,
        "user_id": user_id,
        "created_at": created_at or datetime.now(timezone.utc),
    })


def parse_transaction(data: Mapping[str, Any]) -> Union[IncomeTransaction, ExpenseTransaction]:
    """Validate a full stored record (e.g. one read back from storage)."""
    try:
        return _TRANSACTION_ADAPTER.validate_python(dict(data))
    except PydanticValidationError as e:
        raise ValidationError(_issues_from(e)) from e


def apply_update(
    existing: Union[IncomeTransaction, ExpenseTransaction],
    changes: Mapping[str, Any],
) -> Union[IncomeTransaction, ExpenseTransaction]:
    """
    Merge a partial update into an existing record and re-validate it.

    Switching `type` clears the old category: the caller must supply a
    category from the new vocabulary in the same update.

    Raises:
        ValidationError: If the change touches an immutable or unknown
            field, or the merged record is invalid
    """
    if not changes:
        raise ValidationError("transaction: No fields to update")

    forbidden = IMMUTABLE_FIELDS & set(changes)
    if forbidden:
        raise ValidationError(
            f"transaction: Fields {sorted(forbidden)} cannot be changed"
        )
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(
            f"transaction: Unexpected fields {sorted(unknown)}"
        )

    merged = existing.model_dump(include=set(EDITABLE_FIELDS))
    new_type = changes.get("type", merged["type"])
    if isinstance(new_type, Enum):
        new_type = new_type.value
    if new_type != existing.type and "category" not in changes:
        raise ValidationError(
            "category: Category must be re-selected when the type changes"
        )
    merged.update(changes)

    draft = coerce_draft(merged)
    return stamp(draft, existing.user_id, existing.id, existing.created_at)
