"""Services package."""

from finance_aggregator.services.providers import (
    AccountProvider,
    PlaidProvider,
    ProviderError,
    SimpleFINProvider,
)
from finance_aggregator.services.storage import (
    AccountRegistryInterface,
    AuditStorageInterface,
    BalanceStoreInterface,
    ConfigStoreInterface,
    DuplicateError,
    GoogleSheetsAccountRegistry,
    GoogleSheetsAuditStorage,
    GoogleSheetsBalanceStore,
    GoogleSheetsClient,
    GoogleSheetsConfigStore,
    NotFoundError,
    StorageConnectionError,
    StorageError,
)

__all__ = [
    # Provider services
    "AccountProvider",
    "PlaidProvider",
    "ProviderError",
    "SimpleFINProvider",
    # Storage services
    "AccountRegistryInterface",
    "AuditStorageInterface",
    "BalanceStoreInterface",
    "ConfigStoreInterface",
    "DuplicateError",
    "GoogleSheetsAccountRegistry",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsBalanceStore",
    "GoogleSheetsClient",
    "GoogleSheetsConfigStore",
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
]
