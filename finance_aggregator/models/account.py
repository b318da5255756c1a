"""
Core Data Models for Finance Aggregator

These models define the strict schemas for the ledger:
1. Account - a tracked account in the registry
2. BalanceReading - one observation of an account's balance

DESIGN DECISION: A reading only stores the magnitude of a balance.
Whether it adds to or subtracts from net worth is decided by the
account's is_asset flag, so a credit card balance of 500.00 is stored
as 500.00 on the reading and treated as a liability at aggregation time.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in the spreadsheet."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class AccountType(str, Enum):
    """Account classification."""
    CHECKING = "checking"
    SAVINGS = "savings"
    CREDIT = "credit"
    INVESTMENT = "investment"
    LOAN = "loan"
    OTHER = "other"


class IngestionMethod(str, Enum):
    """
    How balances for an account are obtained.

    Also used as the source of a BalanceReading.
    """
    MANUAL = "manual"
    CSV = "csv"
    PLAID = "plaid"
    SIMPLEFIN = "simplefin"


# =============================================================================
# REGISTRY AND LEDGER MODELS
# =============================================================================

class Account(BaseModel):
    """
    A tracked financial account.

    CRITICAL: external_id links the account to a provider account.
    Once set it is never overwritten automatically; only the user
    may change it.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="User-assigned unique account ID"
    )
    institution: str = Field(
        default="",
        max_length=200,
        description="Institution name as the user typed it"
    )
    display_name: str = Field(
        default="",
        max_length=200,
        description="Human-friendly account name"
    )
    type: AccountType = Field(
        default=AccountType.OTHER,
        description="Account classification"
    )
    is_asset: bool = Field(
        default=True,
        description="False for liabilities (credit cards, loans)"
    )
    external_id: Optional[str] = Field(
        default=None,
        description="Provider-side account identifier"
    )
    ingestion_method: IngestionMethod = Field(
        default=IngestionMethod.MANUAL,
        description="Where balances for this account come from"
    )
    last_updated: Optional[datetime] = Field(
        default=None,
        description="Date of the most recently written reading"
    )
    is_active: bool = Field(
        default=True,
        description="Inactive accounts are ignored by aggregation"
    )

    @field_validator('external_id')
    @classmethod
    def blank_external_id_is_none(cls, v: Optional[str]) -> Optional[str]:
        """Empty spreadsheet cells mean "not linked"."""
        if v is not None and not v.strip():
            return None
        return v

    @property
    def is_linked(self) -> bool:
        return bool(self.external_id)


class BalanceReading(BaseModel):
    """
    One timestamped observation of an account's balance magnitude.

    Readings are append-only. They are never edited after creation.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique reading ID"
    )
    account_id: str = Field(
        ...,
        min_length=1,
        description="Account.id this reading belongs to"
    )
    date: datetime = Field(
        ...,
        description="When the balance was observed"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Absolute balance value"
    )
    source: IngestionMethod = Field(
        ...,
        description="How the reading was obtained"
    )
    notes: str = Field(
        default="",
        max_length=1000,
        description="Provenance of the reading"
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        description="When the reading was written"
    )
