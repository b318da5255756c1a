"""
Data Models Package

This package contains all Pydantic models used in the Finance Aggregator.
All data flowing through the system must conform to these schemas.
"""

from finance_aggregator.models.account import (
    Account,
    AccountType,
    BalanceReading,
    IngestionMethod,
    utcnow,
)
from finance_aggregator.models.extraction import (
    ExtractionResult,
    ProviderAccount,
)
from finance_aggregator.models.batch import (
    BatchError,
    BatchResult,
    FetchedBalance,
    NetWorthSummary,
    ReconcileOutcome,
    RunConfig,
    StaleAccount,
    UnmatchedReading,
)
from finance_aggregator.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Account",
    "AccountType",
    "BalanceReading",
    "IngestionMethod",
    "utcnow",
    # Ingestion models
    "ExtractionResult",
    "ProviderAccount",
    # Batch models
    "BatchError",
    "BatchResult",
    "FetchedBalance",
    "NetWorthSummary",
    "ReconcileOutcome",
    "RunConfig",
    "StaleAccount",
    "UnmatchedReading",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
