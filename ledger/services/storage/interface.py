"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for ledger storage.
This allows us to:
1. Swap Google Sheets for a real document database later
2. Use in-memory storage for testing and local runs
3. Keep reporting logic decoupled from the storage implementation

Every operation is scoped to a caller-supplied user ID. A user's
transactions form their own collection, addressed as
users/{user_id}/transactions/{transaction_id}; there is no way to read
or write across users through this interface.

None of the operations retry. If a call fails, the failure is logged
and raised as StoreError; retry policy belongs to the caller.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import date
from typing import Any, Optional, Union
from uuid import UUID

import structlog

from ledger.models.audit import AuditEvent
from ledger.models.transaction import (
    ExpenseDraft,
    IncomeDraft,
    MissingIdentifierError,
    Transaction,
)


logger = structlog.get_logger(__name__)

NewTransaction = Union[IncomeDraft, ExpenseDraft, Mapping[str, Any]]


def document_path(user_id: str, transaction_id: Optional[str] = None) -> str:
    """Address of a user's transaction collection, or of one document in it."""
    path = f"users/{user_id}/transactions"
    if transaction_id:
        path = f"{path}/{transaction_id}"
    return path


def require_identifiers(
    operation: str,
    user_id: Optional[str],
    transaction_id: Optional[str] = None,
    check_transaction_id: bool = True,
) -> None:
    """
    Fail fast when a mutation is missing its user or record ID.

    Raises:
        MissingIdentifierError: If user_id (or transaction_id, when checked) is falsy
    """
    missing = []
    if not user_id:
        missing.append("user_id")
    if check_transaction_id and not transaction_id:
        missing.append("transaction_id")
    if missing:
        logger.warning(
            "ledger_missing_identifier",
            operation=operation,
            missing=missing,
        )
        raise MissingIdentifierError(
            [f"{field}: Required for {operation}" for field in missing]
        )


class LedgerStoreInterface(ABC):
    """
    Abstract interface for ledger storage operations.

    Any storage implementation (Google Sheets, Firestore, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def create(self, user_id: str, transaction: NewTransaction) -> str:
        """
        Persist a new transaction for a user.

        The input is validated before anything is written. The store
        assigns the ID and stamps created_at.

        Args:
            user_id: Owner of the new transaction
            transaction: A draft or a mapping of transaction fields

        Returns:
            The generated transaction ID

        Raises:
            ValidationError: If the input is invalid (nothing is written)
            MissingIdentifierError: If user_id is missing
            StoreError: If the write fails
        """
        pass

    @abstractmethod
    async def query_range(
        self,
        user_id: Optional[str],
        start: date,
        end: date,
    ) -> list[Transaction]:
        """
        Get a user's transactions dated within [start, end], newest first.

        Transactions sharing a date keep the order in which the store
        holds them (insertion order); callers must not rely on any other
        tiebreak.

        Args:
            user_id: Owner of the ledger. A falsy value returns [].
            start: First date included
            end: Last date included

        Returns:
            Matching transactions ordered by date descending

        Raises:
            StoreError: If the read fails
        """
        pass

    @abstractmethod
    async def update(
        self,
        user_id: str,
        transaction_id: str,
        changes: Mapping[str, Any],
    ) -> None:
        """
        Merge changed fields into an existing transaction.

        Args:
            user_id: Owner of the transaction
            transaction_id: The transaction to change
            changes: Any subset of type, amount, category, date, description

        Raises:
            MissingIdentifierError: If user_id or transaction_id is missing
            ValidationError: If the merged record would be invalid
            NotFoundError: If the transaction doesn't exist
            StoreError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, user_id: str, transaction_id: str) -> bool:
        """
        Hard-delete a transaction.

        Returns:
            True if a record was removed, False if it did not exist

        Raises:
            MissingIdentifierError: If user_id or transaction_id is missing
            StoreError: If the delete fails
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one edit and its re-fetch).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StoreError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StoreError):
    """Entity not found in storage."""
    pass


class StoreConnectionError(StoreError):
    """Could not connect to storage backend."""
    pass
