"""Net-worth aggregation package."""

from finance_aggregator.networth.aggregator import (
    account_balance,
    find_stale_accounts,
    latest_balances,
    summarize,
)

__all__ = [
    "account_balance",
    "find_stale_accounts",
    "latest_balances",
    "summarize",
]
