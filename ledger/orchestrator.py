"""
Main Orchestrator for Personal Ledger

This module ties together all the components and defines the flows
behind the two views of the ledger:
1. Dashboard (current month → fetch → totals)
2. Reports (selected year → fetch once → filter by month → breakdowns/export)
plus the mutations shared by both (add, edit, delete).

DESIGN DECISION: Fetched transactions are caller-local snapshots. After
any mutation the snapshot is thrown away and fetched again, never patched
in place. That costs one extra round trip per mutation and removes any
chance of a stale snapshot being written back.

Concurrency: everything runs on one asyncio loop with no locks. If two
fetches overlap (e.g. the user flips years quickly), both complete, but
only the most recently started one is kept as the reports snapshot
(last request wins). Nothing is cancelled and the core imposes no
timeouts.
"""

from collections.abc import Callable, Mapping
from datetime import date
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, ConfigDict

from ledger.audit import AuditLogger, create_correlation_id
from ledger.auth import Session, require_session
from ledger.config import get_settings
from ledger.models.transaction import (
    MissingIdentifierError,
    Transaction,
    ValidationError,
    coerce_draft,
    to_cents,
)
from ledger.reports import (
    CsvExport,
    DateRange,
    ExportError,
    LedgerTotals,
    build_export,
    category_breakdown,
    compute_totals,
    current_month_range,
    filter_by_month,
    month_key,
    month_range,
    year_range,
)
from ledger.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
    InMemoryAuditStorage,
    InMemoryLedgerStore,
    LedgerStoreInterface,
    StoreConnectionError,
    StoreError,
)


logger = structlog.get_logger(__name__)

ChangeListener = Callable[[str], None]


# =============================================================================
# VIEW MODELS
# =============================================================================

class DashboardView(BaseModel):
    """What the dashboard shows: this month's transactions and totals."""
    model_config = ConfigDict(frozen=True)

    period: DateRange
    transactions: list[Transaction]
    totals: LedgerTotals


class MonthlyReport(BaseModel):
    """One month of the reports view."""
    model_config = ConfigDict(frozen=True)

    year: int
    month: int
    period: DateRange
    transactions: list[Transaction]
    totals: LedgerTotals
    expense_breakdown: dict[str, Decimal]
    income_breakdown: dict[str, Decimal]


# =============================================================================
# FLOWS
# =============================================================================

class TransactionFlow:
    """
    Add, edit and delete transactions for the signed-in user.

    Every outcome is audited. After a successful mutation the change
    listeners are called with the user ID so cached snapshots can be
    discarded.
    """

    def __init__(
        self,
        store: LedgerStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
        on_change: Optional[ChangeListener] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger or AuditLogger()
        self._listeners: list[ChangeListener] = [on_change] if on_change else []

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def _notify(self, user_id: str) -> None:
        for listener in self._listeners:
            listener(user_id)

    async def _audit_failure(
        self,
        operation: str,
        session: Session,
        error: Exception,
        transaction_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        if isinstance(error, MissingIdentifierError):
            await self._audit_logger.log_missing_identifier(
                operation=operation,
                user_id=session.user_id,
                transaction_id=transaction_id,
                correlation_id=correlation_id,
            )
        elif isinstance(error, ValidationError):
            await self._audit_logger.log_transaction_rejected(
                user_id=session.user_id,
                issues=error.issues,
                transaction_id=transaction_id,
                correlation_id=correlation_id,
            )
        else:
            await self._audit_logger.log_store_error(
                user_id=session.user_id,
                operation=operation,
                error_message=str(error),
                correlation_id=correlation_id,
            )

    async def add(
        self,
        session: Optional[Session],
        fields: Any,
        correlation_id: Optional[UUID] = None,
    ) -> str:
        """
        Validate and save a new transaction.

        Returns:
            The new transaction's ID

        Raises:
            NotAuthenticatedError: If there is no session
            ValidationError: If the input is invalid (nothing is saved)
            StoreError: If the store rejects the write
        """
        session = require_session(session)
        correlation_id = correlation_id or create_correlation_id()

        try:
            draft = coerce_draft(fields)
            transaction_id = await self._store.create(session.user_id, draft)
        except (ValidationError, StoreError) as e:
            await self._audit_failure("create", session, e, None, correlation_id)
            raise

        await self._audit_logger.log_transaction_created(
            user_id=session.user_id,
            transaction_id=transaction_id,
            transaction_type=draft.type,
            amount=f"{to_cents(draft.amount):.2f}",
            correlation_id=correlation_id,
        )
        self._notify(session.user_id)
        return transaction_id

    async def edit(
        self,
        session: Optional[Session],
        transaction_id: str,
        changes: Mapping[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Change some fields of an existing transaction.

        Raises:
            NotAuthenticatedError: If there is no session
            MissingIdentifierError: If transaction_id is empty
            ValidationError: If the edited record would be invalid
            NotFoundError: If the transaction doesn't exist
            StoreError: If the store rejects the write
        """
        session = require_session(session)
        correlation_id = correlation_id or create_correlation_id()

        try:
            await self._store.update(session.user_id, transaction_id, changes)
        except (ValidationError, StoreError) as e:
            await self._audit_failure("update", session, e, transaction_id, correlation_id)
            raise

        await self._audit_logger.log_transaction_updated(
            user_id=session.user_id,
            transaction_id=transaction_id,
            fields=list(changes),
            correlation_id=correlation_id,
        )
        self._notify(session.user_id)

    async def remove(
        self,
        session: Optional[Session],
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Delete a transaction.

        Returns:
            True if it existed and was deleted

        Raises:
            NotAuthenticatedError: If there is no session
            MissingIdentifierError: If transaction_id is empty
            StoreError: If the store rejects the delete
        """
        session = require_session(session)
        correlation_id = correlation_id or create_correlation_id()

        try:
            existed = await self._store.delete(session.user_id, transaction_id)
        except (ValidationError, StoreError) as e:
            await self._audit_failure("delete", session, e, transaction_id, correlation_id)
            raise

        await self._audit_logger.log_transaction_deleted(
            user_id=session.user_id,
            transaction_id=transaction_id,
            existed=existed,
            correlation_id=correlation_id,
        )
        if existed:
            self._notify(session.user_id)
        return existed


class _LedgerReader:
    """Range fetch with auditing, shared by the dashboard and reports."""

    def __init__(
        self,
        store: LedgerStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger or AuditLogger()

    async def _fetch(self, session: Session, period: DateRange) -> list[Transaction]:
        correlation_id = create_correlation_id()
        try:
            transactions = await self._store.query_range(
                session.user_id, period.start, period.end
            )
        except StoreError as e:
            await self._audit_logger.log_store_error(
                user_id=session.user_id,
                operation="query_range",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        await self._audit_logger.log_ledger_queried(
            user_id=session.user_id,
            start=period.start.isoformat(),
            end=period.end.isoformat(),
            result_count=len(transactions),
            correlation_id=correlation_id,
        )
        return transactions


class DashboardFlow(_LedgerReader):
    """
    The dashboard only ever looks at the current month, so it fetches
    exactly that month on every load and keeps nothing between loads.
    """

    async def load(
        self,
        session: Optional[Session],
        today: Optional[date] = None,
    ) -> DashboardView:
        """
        Fetch the current month and total it.

        Without a session the view is empty rather than an error.
        """
        period = current_month_range(today)
        if session is None:
            return DashboardView(period=period, transactions=[], totals=compute_totals([]))

        transactions = await self._fetch(session, period)
        return DashboardView(
            period=period,
            transactions=transactions,
            totals=compute_totals(transactions),
        )


class ReportsFlow(_LedgerReader):
    """
    Reports fetch a whole year at once and filter months in memory.

    The year is cached as a snapshot keyed by (user_id, year) until a
    mutation invalidates it or a different year/user is requested.
    """

    def __init__(
        self,
        store: LedgerStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(store, audit_logger)
        self._snapshot_key: Optional[tuple[str, int]] = None
        self._snapshot: list[Transaction] = []
        self._generation = 0

    def invalidate(self, user_id: Optional[str] = None) -> None:
        """
        Discard the cached year (only if it belongs to `user_id`, when given).

        Fetches already in flight are never cached when they finish, whoever
        they belong to.
        """
        self._generation += 1
        if user_id is not None and self._snapshot_key and self._snapshot_key[0] != user_id:
            return
        self._snapshot_key = None
        self._snapshot = []

    async def load_year(
        self,
        session: Optional[Session],
        year: int,
        refresh: bool = False,
    ) -> list[Transaction]:
        """Transactions of a whole year, newest first (cached)."""
        if session is None:
            return []

        key = (session.user_id, year)
        if not refresh and self._snapshot_key == key:
            return list(self._snapshot)

        self._generation += 1
        generation = self._generation

        transactions = await self._fetch(session, year_range(year))

        if generation == self._generation:
            self._snapshot_key = key
            self._snapshot = transactions
        else:
            logger.info(
                "superseded_fetch_ignored",
                user_id=session.user_id,
                year=year,
            )
        return list(transactions)

    async def month_report(
        self,
        session: Optional[Session],
        year: int,
        month: int,
    ) -> MonthlyReport:
        """Totals and category breakdowns for one month of the selected year."""
        period = month_range(year, month)
        transactions = filter_by_month(await self.load_year(session, year), year, month)
        return MonthlyReport(
            year=year,
            month=month,
            period=period,
            transactions=transactions,
            totals=compute_totals(transactions),
            expense_breakdown=category_breakdown(transactions, "expense"),
            income_breakdown=category_breakdown(transactions, "income"),
        )

    async def export_month(
        self,
        session: Optional[Session],
        year: int,
        month: int,
    ) -> CsvExport:
        """
        Build the CSV download for one month.

        Raises:
            NotAuthenticatedError: If there is no session
            ExportError: If the month has no transactions
        """
        session = require_session(session)
        report = await self.month_report(session, year, month)

        try:
            export = build_export(report.transactions, year, month)
        except ExportError:
            await self._audit_logger.log_export_rejected(
                user_id=session.user_id,
                period=month_key(year, month),
            )
            raise

        await self._audit_logger.log_report_exported(
            user_id=session.user_id,
            filename=export.filename,
            row_count=export.row_count,
        )
        return export


# =============================================================================
# WIRING
# =============================================================================

def create_app_components(
    backend: Optional[str] = None,
) -> tuple[TransactionFlow, DashboardFlow, ReportsFlow]:
    """
    Factory function to create all application components.

    Args:
        backend: "google_sheets" or "memory". Defaults to
                 LEDGER_STORAGE_BACKEND.

    Returns:
        (transaction_flow, dashboard_flow, reports_flow)

    Raises:
        StoreConnectionError: If Google Sheets is selected but not configured
    """
    backend = backend or get_settings().ledger.storage_backend

    if backend == "memory":
        store: LedgerStoreInterface = InMemoryLedgerStore()
        audit_logger = AuditLogger(InMemoryAuditStorage())
    elif backend == "google_sheets":
        try:
            sheets_client = GoogleSheetsClient()
        except Exception as e:
            raise StoreConnectionError(f"Google Sheets is not configured: {e}") from e
        store = GoogleSheetsLedgerStore(sheets_client)
        audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
    else:
        raise ValueError(f"Unknown storage backend: {backend!r}")

    logger.info("ledger_components_created", backend=backend)

    dashboard_flow = DashboardFlow(store, audit_logger)
    reports_flow = ReportsFlow(store, audit_logger)
    transaction_flow = TransactionFlow(
        store,
        audit_logger,
        on_change=reports_flow.invalidate,
    )
    return transaction_flow, dashboard_flow, reports_flow
