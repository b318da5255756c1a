"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the production backend; the in-memory backend serves tests.
"""

from finance_aggregator.services.storage.interface import (
    AccountRegistryInterface,
    AuditStorageInterface,
    BalanceStoreInterface,
    ConfigStoreInterface,
    DuplicateError,
    NotFoundError,
    StorageConnectionError,
    StorageError,
)
from finance_aggregator.services.storage.google_sheets import (
    GoogleSheetsAccountRegistry,
    GoogleSheetsAuditStorage,
    GoogleSheetsBalanceStore,
    GoogleSheetsClient,
    GoogleSheetsConfigStore,
)
from finance_aggregator.services.storage.memory import (
    InMemoryAccountRegistry,
    InMemoryAuditStorage,
    InMemoryBalanceStore,
    InMemoryConfigStore,
)

__all__ = [
    # Interfaces
    "AccountRegistryInterface",
    "AuditStorageInterface",
    "BalanceStoreInterface",
    "ConfigStoreInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    # Google Sheets implementation
    "GoogleSheetsAccountRegistry",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsBalanceStore",
    "GoogleSheetsClient",
    "GoogleSheetsConfigStore",
    # In-memory implementation
    "InMemoryAccountRegistry",
    "InMemoryAuditStorage",
    "InMemoryBalanceStore",
    "InMemoryConfigStore",
]
