"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The interface is intentionally simple - we're not building a full ORM.
Reads are full scans; writes are appends or single-field updates.
There are no transactions: callers order their writes so that a
partial failure can be repaired by running the batch again.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from finance_aggregator.models.account import Account, BalanceReading
from finance_aggregator.models.audit import AuditEvent
from finance_aggregator.models.batch import RunConfig
from finance_aggregator.networth.aggregator import latest_balances


class AccountRegistryInterface(ABC):
    """
    Abstract interface for the account registry.

    Accounts are created by the user. The only automated writes are
    last_updated and a one-time external_id backfill.
    """

    @abstractmethod
    async def list_accounts(self, active_only: bool = False) -> list[Account]:
        """
        List accounts in stable registry order.

        Args:
            active_only: Skip accounts with is_active False

        Returns:
            Accounts in the order they appear in storage
        """
        pass

    @abstractmethod
    async def get_account(self, account_id: str) -> Optional[Account]:
        """
        Retrieve an account by its ID.

        Returns:
            The account if found, None otherwise
        """
        pass

    @abstractmethod
    async def save_account(self, account: Account) -> bool:
        """
        Add a new account to the registry.

        Raises:
            DuplicateError: If an account with this ID already exists
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def update_last_updated(self, account_id: str, when: datetime) -> bool:
        """
        Set an account's last_updated timestamp.

        No monotonicity check: the value is overwritten as given.

        Raises:
            NotFoundError: If the account doesn't exist
        """
        pass

    @abstractmethod
    async def set_external_id(self, account_id: str, external_id: str) -> bool:
        """
        Write an account's external_id.

        Callers are responsible for only doing this on unlinked accounts.

        Raises:
            NotFoundError: If the account doesn't exist
        """
        pass


class BalanceStoreInterface(ABC):
    """
    Abstract interface for the balance ledger.

    Readings are append-only; the only removal is a bulk clear.
    """

    @abstractmethod
    async def append_balance(self, reading: BalanceReading) -> bool:
        """
        Append a reading to the ledger.

        Raises:
            StorageError: If the append fails
        """
        pass

    @abstractmethod
    async def list_balances(
        self,
        account_id: Optional[str] = None,
    ) -> list[BalanceReading]:
        """
        List readings, optionally for one account, in insertion order.
        """
        pass

    @abstractmethod
    async def clear_balances(self) -> int:
        """
        Remove every reading (administrative reset).

        Returns:
            Number of readings removed
        """
        pass

    async def latest_balances(self) -> dict[str, Decimal]:
        """Latest reading amount per account ID."""
        return latest_balances(await self.list_balances())


class ConfigStoreInterface(ABC):
    """Source of the per-run configuration."""

    @abstractmethod
    async def load_run_config(self, defaults: RunConfig) -> RunConfig:
        """
        Load the run configuration, falling back to defaults
        for anything storage doesn't specify.
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
        Get all events for a correlation ID (one batch run).

        Returns:
            List of related events in chronological order
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


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
