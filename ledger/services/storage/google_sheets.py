"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets plays the role of the remote per-user
document store:
1. Each user's collection is its own worksheet ("transactions_<user_id>")
2. Each row is one transaction document, keyed by its ID in column A
3. The user can open their ledger directly in Sheets

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No server-side range queries (we read the worksheet and filter in Python)
- No transactions (every mutation touches a single row)

Connecting to Google is the transport layer: it retries with backoff.
Ledger operations themselves never retry; failures are logged and raised
as StoreError for the caller to handle.
"""

import json
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any, Optional
from uuid import UUID, uuid4

import gspread
import structlog
from google.oauth2.service_account import Credentials
from gspread.utils import rowcol_to_a1
from tenacity import retry, stop_after_attempt, wait_exponential

from ledger.config import GoogleSheetsSettings, get_settings
from ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from ledger.models.transaction import (
    Transaction,
    ValidationError,
    apply_update,
    coerce_draft,
    parse_transaction,
    stamp,
)
from ledger.services.storage.interface import (
    AuditStorageInterface,
    LedgerStoreInterface,
    NewTransaction,
    NotFoundError,
    StoreConnectionError,
    StoreError,
    document_path,
    require_identifiers,
)


logger = structlog.get_logger(__name__)


# Column mappings for a user's transactions sheet
TRANSACTION_COLUMNS = [
    "id",
    "user_id",
    "type",
    "amount",
    "category",
    "date",
    "description",
    "created_at",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for connecting.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError as e:
                raise StoreConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                ) from e
            except Exception as e:
                raise StoreConnectionError(f"Failed to connect to Google Sheets: {e}") from e

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound as e:
                raise StoreConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                ) from e
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def transactions_sheet_name(self, user_id: str) -> str:
        return f"{self._settings.transactions_sheet_prefix}{user_id}"

    def get_transactions_sheet(self, user_id: str) -> gspread.Worksheet:
        """Get or create the worksheet holding one user's transactions."""
        return self._get_or_create_sheet(
            self.transactions_sheet_name(user_id),
            TRANSACTION_COLUMNS,
            rows=1000,
        )

    def find_transactions_sheet(self, user_id: str) -> Optional[gspread.Worksheet]:
        """The user's worksheet, or None if they have never saved a transaction."""
        try:
            return self.get_spreadsheet().worksheet(self.transactions_sheet_name(user_id))
        except gspread.WorksheetNotFound:
            return None

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


class GoogleSheetsLedgerStore(LedgerStoreInterface):
    """
    Google Sheets implementation of ledger storage.

    Transactions are stored one per row in the owner's worksheet.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _transaction_to_row(self, transaction: Transaction) -> list[str]:
        """Convert a Transaction to a spreadsheet row."""
        return [
            transaction.id,
            transaction.user_id,
            transaction.type,
            str(transaction.amount),
            transaction.category.value,
            transaction.date.isoformat(),
            transaction.description,
            transaction.created_at.isoformat(),
        ]

    def _row_to_transaction(self, row: list) -> Transaction:
        """
        Convert a spreadsheet row to a Transaction.

        Raises:
            ValidationError: If the row doesn't hold a valid transaction
        """
        # Handle missing columns gracefully
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return parse_transaction({
            column: safe_get(index)
            for index, column in enumerate(TRANSACTION_COLUMNS)
        })

    def _fail(self, operation: str, user_id: Optional[str], error: Exception) -> None:
        logger.error(
            "ledger_store_failed",
            operation=operation,
            path=document_path(user_id or "-"),
            error=str(error),
        )

    def _read_rows(
        self,
        operation: str,
        user_id: str,
    ) -> tuple[Optional[gspread.Worksheet], list]:
        """
        Fetch the user's worksheet and all its rows (header included).

        Reads never create the worksheet: a user without one gets (None, []).
        """
        try:
            sheet = self._client.find_transactions_sheet(user_id)
            if sheet is None:
                return None, []
            return sheet, sheet.get_all_values()
        except StoreError as e:
            self._fail(operation, user_id, e)
            raise
        except Exception as e:
            self._fail(operation, user_id, e)
            raise StoreError(f"Failed to read transactions: {e}") from e

    def _find_row(
        self,
        all_rows: list,
        user_id: str,
        transaction_id: str,
    ) -> Optional[tuple[int, list]]:
        # Start from 2 (row 1 is header)
        for idx, row in enumerate(all_rows[1:], start=2):
            if row and row[0] == transaction_id and len(row) > 1 and row[1] == user_id:
                return idx, row
        return None

    async def create(self, user_id: str, transaction: NewTransaction) -> str:
        """Append a new transaction row to the user's worksheet."""
        require_identifiers("create", user_id, check_transaction_id=False)
        draft = coerce_draft(transaction)
        record = stamp(draft, user_id, uuid4().hex)

        try:
            sheet = self._client.get_transactions_sheet(user_id)
            sheet.append_row(self._transaction_to_row(record), value_input_option="RAW")
        except StoreError as e:
            self._fail("create", user_id, e)
            raise
        except Exception as e:
            self._fail("create", user_id, e)
            raise StoreError(f"Failed to create transaction: {e}") from e

        logger.info(
            "transaction_created",
            path=document_path(user_id, record.id),
            type=record.type,
        )
        return record.id

    async def query_range(
        self,
        user_id: Optional[str],
        start: date,
        end: date,
    ) -> list[Transaction]:
        """Read the user's worksheet and keep rows dated within [start, end]."""
        if not user_id:
            logger.warning("query_range_without_user", start=str(start), end=str(end))
            return []

        _, all_rows = self._read_rows("query_range", user_id)

        transactions = []
        for row in all_rows[1:]:  # Skip header
            if not row or not row[0]:  # Skip empty rows
                continue

            try:
                transaction = self._row_to_transaction(row)
            except ValidationError as e:
                logger.warning(
                    "skipping_malformed_row",
                    path=document_path(user_id, row[0]),
                    issues=e.issues,
                )
                continue

            if transaction.user_id != user_id:
                continue
            if start <= transaction.date <= end:
                transactions.append(transaction)

        # Sort by date descending (newest first); stable for same-day rows
        transactions.sort(key=lambda t: t.date, reverse=True)
        return transactions

    async def update(
        self,
        user_id: str,
        transaction_id: str,
        changes: Mapping[str, Any],
    ) -> None:
        """Rewrite the transaction's row with the merged fields."""
        require_identifiers("update", user_id, transaction_id)

        sheet, all_rows = self._read_rows("update", user_id)
        found = self._find_row(all_rows, user_id, transaction_id)
        if found is None:
            raise NotFoundError(
                f"Transaction not found: {document_path(user_id, transaction_id)}"
            )

        idx, row = found
        try:
            current = self._row_to_transaction(row)
        except ValidationError as e:
            self._fail("update", user_id, e)
            raise StoreError(
                f"Stored transaction is malformed: {document_path(user_id, transaction_id)}"
            ) from e
        updated = apply_update(current, changes)
        new_row = self._transaction_to_row(updated)

        try:
            sheet.update(
                range_name=f"{rowcol_to_a1(idx, 1)}:{rowcol_to_a1(idx, len(new_row))}",
                values=[new_row],
                value_input_option="RAW",
            )
        except Exception as e:
            self._fail("update", user_id, e)
            raise StoreError(f"Failed to update transaction: {e}") from e

        logger.info(
            "transaction_updated",
            path=document_path(user_id, transaction_id),
            fields=sorted(changes),
        )

    async def delete(self, user_id: str, transaction_id: str) -> bool:
        """Delete the transaction's row."""
        require_identifiers("delete", user_id, transaction_id)

        sheet, all_rows = self._read_rows("delete", user_id)
        found = self._find_row(all_rows, user_id, transaction_id)
        if found is None:
            logger.info(
                "transaction_delete_missing",
                path=document_path(user_id, transaction_id),
            )
            return False

        try:
            sheet.delete_rows(found[0])
        except Exception as e:
            self._fail("delete", user_id, e)
            raise StoreError(f"Failed to delete transaction: {e}") from e

        logger.info("transaction_deleted", path=document_path(user_id, transaction_id))
        return True


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            user_id=safe_get(4) or None,
            entity_type=safe_get(5) or None,
            entity_id=safe_get(6) or None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
            is_user_action=safe_get(11).lower() == "true",
        )

    def _read_events(self) -> list[AuditEvent]:
        try:
            all_rows = self._client.get_audit_sheet().get_all_values()[1:]
        except Exception as e:
            raise StoreError(f"Failed to get audit events: {e}") from e

        events = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValueError, KeyError) as e:
                logger.warning("skipping_malformed_audit_row", row=row[0], error=str(e))
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning(
                "audit_event_write_failed",
                event_id=str(event.event_id),
                error=str(e),
            )
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        events = [e for e in self._read_events() if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        events = [
            e for e in self._read_events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        events = self._read_events()
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
