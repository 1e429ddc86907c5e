"""
In-Memory Storage Implementation

Process-local ledger and audit storage with the same contract as the
Google Sheets backend. Used for local runs (LEDGER_STORAGE_BACKEND=memory)
and as the store behind the test suite.

Records are frozen Pydantic models, so handing them out directly
cannot corrupt the store.
"""

from collections.abc import Mapping
from datetime import date
from typing import Any, Optional
from uuid import UUID, uuid4

import structlog

from ledger.models.audit import AuditEvent
from ledger.models.transaction import (
    Transaction,
    apply_update,
    coerce_draft,
    stamp,
)
from ledger.services.storage.interface import (
    AuditStorageInterface,
    LedgerStoreInterface,
    NewTransaction,
    NotFoundError,
    document_path,
    require_identifiers,
)


logger = structlog.get_logger(__name__)


class InMemoryLedgerStore(LedgerStoreInterface):
    """
    Dictionary-backed ledger storage.

    Each user's collection is an insertion-ordered dict keyed by
    transaction ID.
    """

    def __init__(self):
        self._collections: dict[str, dict[str, Transaction]] = {}

    async def create(self, user_id: str, transaction: NewTransaction) -> str:
        require_identifiers("create", user_id, check_transaction_id=False)
        draft = coerce_draft(transaction)

        transaction_id = uuid4().hex
        record = stamp(draft, user_id, transaction_id)
        self._collections.setdefault(user_id, {})[transaction_id] = record

        logger.info(
            "transaction_created",
            path=document_path(user_id, transaction_id),
            type=record.type,
        )
        return transaction_id

    async def query_range(
        self,
        user_id: Optional[str],
        start: date,
        end: date,
    ) -> list[Transaction]:
        if not user_id:
            logger.warning("query_range_without_user", start=str(start), end=str(end))
            return []

        matches = [
            t for t in self._collections.get(user_id, {}).values()
            if start <= t.date <= end
        ]
        # sort() is stable, so same-day transactions keep insertion order
        matches.sort(key=lambda t: t.date, reverse=True)
        return matches

    async def update(
        self,
        user_id: str,
        transaction_id: str,
        changes: Mapping[str, Any],
    ) -> None:
        require_identifiers("update", user_id, transaction_id)

        collection = self._collections.get(user_id, {})
        existing = collection.get(transaction_id)
        if existing is None:
            raise NotFoundError(
                f"Transaction not found: {document_path(user_id, transaction_id)}"
            )

        collection[transaction_id] = apply_update(existing, changes)
        logger.info(
            "transaction_updated",
            path=document_path(user_id, transaction_id),
            fields=sorted(changes),
        )

    async def delete(self, user_id: str, transaction_id: str) -> bool:
        require_identifiers("delete", user_id, transaction_id)

        removed = self._collections.get(user_id, {}).pop(transaction_id, None)
        logger.info(
            "transaction_deleted",
            path=document_path(user_id, transaction_id),
            existed=removed is not None,
        )
        return removed is not None


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
