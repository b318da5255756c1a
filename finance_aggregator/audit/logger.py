"""
Audit Logger

DESIGN DECISION: Every ledger write and every reading we could not
place is logged. This provides:
1. Traceability from a balance back to its file or provider call
2. A record of unmatched provider accounts waiting to be linked
3. Debugging capability when a fetch fails

The audit logger:
- Gracefully handles failures (doesn't crash a batch if logging fails)
- Supports correlation IDs to trace all events of one batch run
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from finance_aggregator.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from finance_aggregator.services.storage import AuditStorageInterface


# Configure structlog for local logging
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


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Google Sheets (for persistence and user visibility)
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
        self._logger = structlog.get_logger("finance_aggregator.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
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

    async def log_csv_imported(
        self,
        filename: str,
        institution: str,
        account_id: str,
        balance: Decimal,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.csv_imported(
            filename=filename,
            institution=institution,
            account_id=account_id,
            balance=balance,
            correlation_id=correlation_id,
        ))

    async def log_csv_extraction_failed(
        self,
        filename: str,
        institution: str,
        error: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.csv_extraction_failed(
            filename=filename,
            institution=institution,
            error=error,
            correlation_id=correlation_id,
        ))

    async def log_balance_recorded(
        self,
        account_id: str,
        reading_id: UUID,
        amount: Decimal,
        source: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.balance_recorded(
            account_id=account_id,
            reading_id=reading_id,
            amount=amount,
            source=source,
            correlation_id=correlation_id,
        ))

    async def log_external_id_linked(
        self,
        account_id: str,
        external_id: str,
        provider: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.external_id_linked(
            account_id=account_id,
            external_id=external_id,
            provider=provider,
            correlation_id=correlation_id,
        ))

    async def log_account_unmatched(
        self,
        provider: str,
        provider_account_id: str,
        institution_label: str,
        account_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.account_unmatched(
            provider=provider,
            provider_account_id=provider_account_id,
            institution_label=institution_label,
            account_name=account_name,
            correlation_id=correlation_id,
        ))

    async def log_provider_fetch_failed(
        self,
        provider: str,
        institution: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.provider_fetch_failed(
            provider=provider,
            institution=institution,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_fetch_completed(
        self,
        source: str,
        fetched: int,
        unmatched: int,
        errors: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.fetch_completed(
            source=source,
            fetched=fetched,
            unmatched=unmatched,
            errors=errors,
            correlation_id=correlation_id,
        ))

    async def log_stale_accounts(
        self,
        account_ids: list[str],
        threshold_days: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.stale_accounts_detected(
            account_ids=account_ids,
            threshold_days=threshold_days,
            correlation_id=correlation_id,
        ))

    async def log_balances_cleared(self, count: int) -> None:
        await self.log(AuditEventBuilder.balances_cleared(count))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a batch run and pass it through all
    subsequent operations.
    """
    return uuid4()
