"""
Shared fixtures.

Everything runs against in-memory storage; no test touches Google
Sheets or a real provider.
"""

from datetime import datetime

import pytest

from finance_aggregator.audit import AuditLogger
from finance_aggregator.models.account import Account, AccountType, IngestionMethod
from finance_aggregator.models.batch import RunConfig
from finance_aggregator.services.storage import (
    InMemoryAccountRegistry,
    InMemoryAuditStorage,
    InMemoryBalanceStore,
    InMemoryConfigStore,
)


@pytest.fixture
def accounts() -> list[Account]:
    return [
        Account(
            id="wf-checking",
            institution="Wells Fargo",
            display_name="Everyday Checking",
            type=AccountType.CHECKING,
            ingestion_method=IngestionMethod.PLAID,
        ),
        Account(
            id="chase-sapphire",
            institution="Chase",
            display_name="Sapphire",
            type=AccountType.CREDIT,
            is_asset=False,
            ingestion_method=IngestionMethod.CSV,
        ),
        Account(
            id="ally-savings",
            institution="Ally Bank",
            display_name="Savings",
            type=AccountType.SAVINGS,
            external_id="sfin-ally-1",
            ingestion_method=IngestionMethod.SIMPLEFIN,
            last_updated=datetime(2024, 1, 1),
        ),
        Account(
            id="house",
            institution="",
            display_name="House",
            type=AccountType.OTHER,
            ingestion_method=IngestionMethod.MANUAL,
        ),
    ]


@pytest.fixture
def registry(accounts) -> InMemoryAccountRegistry:
    return InMemoryAccountRegistry(accounts)


@pytest.fixture
def balance_store() -> InMemoryBalanceStore:
    return InMemoryBalanceStore()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def run_config() -> RunConfig:
    return RunConfig(stale_threshold_days=7)


@pytest.fixture
def config_store() -> InMemoryConfigStore:
    return InMemoryConfigStore()
