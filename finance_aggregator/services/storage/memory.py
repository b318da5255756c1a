"""
In-Memory Storage Implementation

Used by tests and by dry runs where nothing should reach the spreadsheet.
Behaves like the Google Sheets backend: registry order is insertion
order, readings are append-only, updates hit a single field.
"""

from datetime import datetime
from typing import Iterable, Optional
from uuid import UUID

from finance_aggregator.models.account import Account, BalanceReading
from finance_aggregator.models.audit import AuditEvent
from finance_aggregator.models.batch import RunConfig
from finance_aggregator.services.storage.interface import (
    AccountRegistryInterface,
    AuditStorageInterface,
    BalanceStoreInterface,
    ConfigStoreInterface,
    DuplicateError,
    NotFoundError,
)


class InMemoryAccountRegistry(AccountRegistryInterface):
    """Account registry held in a list."""

    def __init__(self, accounts: Optional[Iterable[Account]] = None):
        self._accounts: list[Account] = []
        for account in accounts or []:
            self._insert(account)

    def _insert(self, account: Account) -> None:
        if any(a.id == account.id for a in self._accounts):
            raise DuplicateError(f"Account already exists: {account.id}")
        self._accounts.append(account.model_copy())

    def _find(self, account_id: str) -> Account:
        for account in self._accounts:
            if account.id == account_id:
                return account
        raise NotFoundError(f"Account not found: {account_id}")

    async def list_accounts(self, active_only: bool = False) -> list[Account]:
        return [
            a.model_copy()
            for a in self._accounts
            if a.is_active or not active_only
        ]

    async def get_account(self, account_id: str) -> Optional[Account]:
        try:
            return self._find(account_id).model_copy()
        except NotFoundError:
            return None

    async def save_account(self, account: Account) -> bool:
        self._insert(account)
        return True

    async def update_last_updated(self, account_id: str, when: datetime) -> bool:
        self._find(account_id).last_updated = when
        return True

    async def set_external_id(self, account_id: str, external_id: str) -> bool:
        self._find(account_id).external_id = external_id
        return True


class InMemoryBalanceStore(BalanceStoreInterface):
    """Balance ledger held in a list."""

    def __init__(self):
        self._readings: list[BalanceReading] = []

    async def append_balance(self, reading: BalanceReading) -> bool:
        self._readings.append(reading)
        return True

    async def list_balances(
        self,
        account_id: Optional[str] = None,
    ) -> list[BalanceReading]:
        return [
            r for r in self._readings
            if account_id is None or r.account_id == account_id
        ]

    async def clear_balances(self) -> int:
        count = len(self._readings)
        self._readings.clear()
        return count


class InMemoryConfigStore(ConfigStoreInterface):
    """Run configuration from a plain dict of overrides."""

    def __init__(self, values: Optional[dict] = None):
        self._values = dict(values or {})

    async def load_run_config(self, defaults: RunConfig) -> RunConfig:
        return defaults.model_copy(update=self._values)


class InMemoryAuditStorage(AuditStorageInterface):
    """Audit log held in a list."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = sorted(self.events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
