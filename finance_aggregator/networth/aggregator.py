"""
Net-Worth Aggregation

Pure functions over the account registry and the balance ledger.
Nothing here touches storage.

DESIGN DECISION: Every total is a restriction of one fold over
(account, latest balance) pairs, so the breakdowns can never disagree
with the headline figure:

    total_assets - total_liabilities == net_worth
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from finance_aggregator.models.account import Account, BalanceReading, utcnow
from finance_aggregator.models.batch import NetWorthSummary, StaleAccount


ZERO = Decimal("0")


def latest_balances(readings: Iterable[BalanceReading]) -> dict[str, Decimal]:
    """
    Project the ledger to the latest amount per account.

    The reading with the greatest date wins; on equal dates the one
    written last (created_at) wins.
    """
    latest: dict[str, BalanceReading] = {}
    for reading in readings:
        current = latest.get(reading.account_id)
        if current is None or (reading.date, reading.created_at) >= (current.date, current.created_at):
            latest[reading.account_id] = reading
    return {account_id: r.amount for account_id, r in latest.items()}


def _type_key(account: Account) -> str:
    return f"{account.type.value}:{'asset' if account.is_asset else 'liability'}"


def summarize(
    accounts: Iterable[Account],
    latest: dict[str, Decimal],
    as_of: Optional[datetime] = None,
) -> NetWorthSummary:
    """
    Fold active accounts into a NetWorthSummary.

    Accounts without a balance count as zero.
    """
    total_assets = ZERO
    total_liabilities = ZERO
    by_type: dict[str, Decimal] = {}
    count = 0

    for account in accounts:
        if not account.is_active:
            continue
        balance = latest.get(account.id, ZERO)
        count += 1
        if account.is_asset:
            total_assets += balance
        else:
            total_liabilities += balance
        key = _type_key(account)
        by_type[key] = by_type.get(key, ZERO) + balance

    return NetWorthSummary(
        net_worth=total_assets - total_liabilities,
        total_assets=total_assets,
        total_liabilities=total_liabilities,
        by_type=by_type,
        account_count=count,
        as_of=as_of or utcnow(),
    )


def account_balance(account: Account, latest: dict[str, Decimal]) -> Decimal:
    """
    Latest balance of one account as summarize counts it.

    Zero if the account has no reading or is inactive.
    """
    if not account.is_active:
        return ZERO
    return latest.get(account.id, ZERO)


def find_stale_accounts(
    accounts: Iterable[Account],
    threshold_days: int,
    now: Optional[datetime] = None,
) -> list[StaleAccount]:
    """
    Active accounts not updated within threshold_days.

    An account that was never updated is always stale.
    """
    now = now or utcnow()
    cutoff = now - timedelta(days=threshold_days)

    stale = []
    for account in accounts:
        if not account.is_active:
            continue
        if account.last_updated is None:
            stale.append(StaleAccount(
                account_id=account.id,
                display_name=account.display_name,
            ))
        elif account.last_updated < cutoff:
            stale.append(StaleAccount(
                account_id=account.id,
                display_name=account.display_name,
                last_updated=account.last_updated,
                days_since_update=(now - account.last_updated).days,
            ))
    return stale
