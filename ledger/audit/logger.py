"""
Audit Logger

DESIGN DECISION: Every change to a ledger is logged.
This provides:
1. Complete traceability
2. Debugging capability when the store misbehaves
3. User can see history of their changes

The audit logger:
- Is async so it can persist to the same remote backend as the ledger
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from ledger.config import get_settings
from ledger.models.audit import AuditEvent, AuditEventBuilder
from ledger.services.storage import AuditStorageInterface


def configure_logging(debug: Optional[bool] = None) -> None:
    """
    Configure structlog on top of the standard library logger.

    Called once on import; call again to change the level.
    """
    if debug is None:
        debug = get_settings().ledger.debug_mode

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=logging.DEBUG if debug else logging.INFO,
        force=True,
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("ledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_transaction_created(
        self,
        user_id: str,
        transaction_id: str,
        transaction_type: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a new transaction."""
        await self.log(AuditEventBuilder.transaction_created(
            user_id=user_id,
            transaction_id=transaction_id,
            transaction_type=transaction_type,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_transaction_updated(
        self,
        user_id: str,
        transaction_id: str,
        fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an edit."""
        await self.log(AuditEventBuilder.transaction_updated(
            user_id=user_id,
            transaction_id=transaction_id,
            fields=fields,
            correlation_id=correlation_id,
        ))

    async def log_transaction_deleted(
        self,
        user_id: str,
        transaction_id: str,
        existed: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a delete."""
        await self.log(AuditEventBuilder.transaction_deleted(
            user_id=user_id,
            transaction_id=transaction_id,
            existed=existed,
            correlation_id=correlation_id,
        ))

    async def log_transaction_rejected(
        self,
        user_id: Optional[str],
        issues: list[str],
        transaction_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log input that failed validation."""
        await self.log(AuditEventBuilder.transaction_rejected(
            user_id=user_id,
            issues=issues,
            transaction_id=transaction_id,
            correlation_id=correlation_id,
        ))

    async def log_missing_identifier(
        self,
        operation: str,
        user_id: Optional[str],
        transaction_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a mutation attempted without its IDs."""
        await self.log(AuditEventBuilder.missing_identifier(
            operation=operation,
            user_id=user_id,
            transaction_id=transaction_id,
            correlation_id=correlation_id,
        ))

    async def log_ledger_queried(
        self,
        user_id: str,
        start: str,
        end: str,
        result_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a range fetch."""
        await self.log(AuditEventBuilder.ledger_queried(
            user_id=user_id,
            start=start,
            end=end,
            result_count=result_count,
            correlation_id=correlation_id,
        ))

    async def log_report_exported(
        self,
        user_id: str,
        filename: str,
        row_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a CSV export."""
        await self.log(AuditEventBuilder.report_exported(
            user_id=user_id,
            filename=filename,
            row_count=row_count,
            correlation_id=correlation_id,
        ))

    async def log_export_rejected(
        self,
        user_id: str,
        period: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an export with nothing to export."""
        await self.log(AuditEventBuilder.export_rejected(
            user_id=user_id,
            period=period,
            correlation_id=correlation_id,
        ))

    async def log_store_error(
        self,
        user_id: Optional[str],
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed store call."""
        await self.log(AuditEventBuilder.store_error(
            user_id=user_id,
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., an edit).
    Pass it through all subsequent operations.
    """
    return uuid4()
