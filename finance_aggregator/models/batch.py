"""
Models describing one refresh cycle and its reports.

DESIGN DECISION: A batch never raises for partial failure. Everything
that went right, everything that needs a human, and everything that
went wrong comes back in one BatchResult.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from finance_aggregator.models.account import BalanceReading, IngestionMethod, utcnow


class RunConfig(BaseModel):
    """
    Per-invocation configuration for the batch runner.

    Loaded once from the Settings worksheet at the start of a run and
    passed explicitly, so nothing reads configuration mid-algorithm.
    """

    stale_threshold_days: int = Field(default=7, ge=1)
    alert_email: Optional[str] = None
    auto_refresh: bool = False
    import_folder: Optional[str] = None
    # institution tag -> Account.id, used when a CSV file names no account
    csv_account_map: dict[str, str] = Field(default_factory=dict)


class FetchedBalance(BaseModel):
    """A reading that was matched and written."""

    account_id: str
    provider_account_id: Optional[str] = None
    amount: Decimal
    date: datetime
    source: IngestionMethod
    linked: bool = Field(
        default=False,
        description="True if this write backfilled the account's external_id"
    )


class UnmatchedReading(BaseModel):
    """
    A provider account that maps to no tracked account.

    Not an error: a human needs to link it. The raw provider id is
    kept so it can be pasted into the registry.
    """

    provider: IngestionMethod
    provider_account_id: str
    institution_label: str = ""
    account_name: str = ""
    amount: Decimal


class BatchError(BaseModel):
    """A recoverable failure scoped to one institution or file."""

    source: str = Field(..., description="Institution key, access URL host or filename")
    message: str


class BatchResult(BaseModel):
    """
    Outcome of one refresh cycle.

    success is True only when errors is empty.
    """

    correlation_id: UUID = Field(default_factory=uuid4)
    source: str
    fetched: list[FetchedBalance] = Field(default_factory=list)
    unmatched: list[UnmatchedReading] = Field(default_factory=list)
    errors: list[BatchError] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=utcnow)
    finished_at: Optional[datetime] = None

    @property
    def success(self) -> bool:
        return not self.errors

    def add_error(self, source: str, message: str) -> None:
        self.errors.append(BatchError(source=source, message=message))

    def merge(self, other: "BatchResult") -> None:
        self.fetched.extend(other.fetched)
        self.unmatched.extend(other.unmatched)
        self.errors.extend(other.errors)

    def to_summary_dict(self) -> dict:
        """Shape returned to the CLI / automation caller."""
        return {
            "success": self.success,
            "source": self.source,
            "correlation_id": str(self.correlation_id),
            "fetched": [f.model_dump(mode="json") for f in self.fetched],
            "unmatched": [u.model_dump(mode="json") for u in self.unmatched],
            "errors": [e.model_dump(mode="json") for e in self.errors],
        }


class ReconcileOutcome(BaseModel):
    """What the reconciler did with one provider reading."""

    reading: Optional[BalanceReading] = None
    unmatched: Optional[UnmatchedReading] = None
    external_id_backfilled: bool = False

    @property
    def matched(self) -> bool:
        return self.reading is not None


class NetWorthSummary(BaseModel):
    """
    Net worth fold over active accounts.

    total_assets - total_liabilities == net_worth always holds.
    """

    net_worth: Decimal = Decimal("0")
    total_assets: Decimal = Decimal("0")
    total_liabilities: Decimal = Decimal("0")
    # "<type>:asset" / "<type>:liability" -> total
    by_type: dict[str, Decimal] = Field(default_factory=dict)
    account_count: int = 0
    as_of: datetime = Field(default_factory=utcnow)


class StaleAccount(BaseModel):
    """An active account that has not been updated recently."""

    account_id: str
    display_name: str = ""
    last_updated: Optional[datetime] = None
    days_since_update: Optional[int] = Field(
        default=None,
        description="None if the account was never updated"
    )
