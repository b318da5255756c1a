"""
Audit Models for Finance Aggregator

Every write to the ledger, and every reading that could not be written,
is recorded as an audit event. This provides:
1. Traceability from a balance back to the file or provider call it came from
2. A place to find unmatched provider accounts after the fact
3. Debugging information when a fetch goes wrong

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from finance_aggregator.models.account import utcnow


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # CSV import
    CSV_IMPORTED = "csv_imported"
    CSV_EXTRACTION_FAILED = "csv_extraction_failed"

    # Provider fetch
    PROVIDER_FETCH_FAILED = "provider_fetch_failed"
    FETCH_COMPLETED = "fetch_completed"

    # Reconciliation
    BALANCE_RECORDED = "balance_recorded"
    EXTERNAL_ID_LINKED = "external_id_linked"
    ACCOUNT_UNMATCHED = "account_unmatched"

    # Monitoring
    STALE_ACCOUNTS_DETECTED = "stale_accounts_detected"

    # Administration
    BALANCES_CLEARED = "balances_cleared"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'account', 'reading', 'file')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - one ID per batch run
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events in one fetch)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.balance_recorded(account_id, reading_id, ...)
        event = AuditEventBuilder.account_unmatched("plaid", provider_id, ...)
    """

    @staticmethod
    def csv_imported(
        filename: str,
        institution: str,
        account_id: str,
        balance: Decimal,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CSV_IMPORTED,
            entity_type="file",
            entity_id=filename,
            correlation_id=correlation_id,
            description=f"CSV imported: {filename} -> {account_id}",
            details={
                "institution": institution,
                "account_id": account_id,
                "balance": str(balance),
            },
        )

    @staticmethod
    def csv_extraction_failed(
        filename: str,
        institution: str,
        error: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CSV_EXTRACTION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="file",
            entity_id=filename,
            correlation_id=correlation_id,
            description=f"Could not extract a balance from {filename}",
            details={"institution": institution},
            error_message=error,
        )

    @staticmethod
    def balance_recorded(
        account_id: str,
        reading_id: UUID,
        amount: Decimal,
        source: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_RECORDED,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Balance recorded for {account_id}: {amount} ({source})",
            details={
                "reading_id": str(reading_id),
                "amount": str(amount),
                "source": source,
            },
        )

    @staticmethod
    def external_id_linked(
        account_id: str,
        external_id: str,
        provider: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_ID_LINKED,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Account {account_id} linked to {provider} account",
            details={
                "external_id": external_id,
                "provider": provider,
            },
        )

    @staticmethod
    def account_unmatched(
        provider: str,
        provider_account_id: str,
        institution_label: str,
        account_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_UNMATCHED,
            severity=AuditSeverity.WARNING,
            entity_type="provider_account",
            entity_id=provider_account_id,
            correlation_id=correlation_id,
            description=(
                f"Unmatched {provider} account: {account_name or provider_account_id}"
                f" at {institution_label or 'unknown institution'}"
            )[:500],
            details={
                "provider": provider,
                "institution_label": institution_label,
                "account_name": account_name,
            },
        )

    @staticmethod
    def provider_fetch_failed(
        provider: str,
        institution: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROVIDER_FETCH_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="institution",
            entity_id=institution,
            correlation_id=correlation_id,
            description=f"{provider} fetch failed for {institution}",
            error_message=error_message,
            details={"provider": provider},
        )

    @staticmethod
    def fetch_completed(
        source: str,
        fetched: int,
        unmatched: int,
        errors: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FETCH_COMPLETED,
            severity=AuditSeverity.WARNING if errors else AuditSeverity.INFO,
            correlation_id=correlation_id,
            description=(
                f"{source} run finished: {fetched} recorded, "
                f"{unmatched} unmatched, {errors} errors"
            ),
            details={
                "source": source,
                "fetched": fetched,
                "unmatched": unmatched,
                "errors": errors,
            },
        )

    @staticmethod
    def stale_accounts_detected(
        account_ids: list[str],
        threshold_days: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STALE_ACCOUNTS_DETECTED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"{len(account_ids)} accounts not updated in {threshold_days} days",
            details={
                "account_ids": account_ids,
                "threshold_days": threshold_days,
            },
        )

    @staticmethod
    def balances_cleared(count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCES_CLEARED,
            severity=AuditSeverity.WARNING,
            entity_type="ledger",
            description=f"Balance history cleared ({count} readings)",
            details={"count": count},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
