"""
Transient models produced by the ingestion edge.

ExtractionResult comes out of the CSV extractor; ProviderAccount is the
normalized shape every provider adapter (Plaid, SimpleFIN) returns.
Neither is persisted directly - the reconciler turns them into readings.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ExtractionResult(BaseModel):
    """
    Candidate balance pulled from a CSV export.

    CRITICAL: When success is False, balance is meaningless and error
    explains why. The extractor never raises for malformed input.
    """

    success: bool
    institution: str = Field(
        ...,
        description="Institution tag the extraction strategy ran for"
    )
    balance: Decimal = Field(
        default=Decimal("0"),
        description="Extracted balance (absolute value on success)"
    )
    date: Optional[datetime] = Field(
        default=None,
        description="Date the balance applies to, if the file carried one"
    )
    account_hint: Optional[str] = Field(
        default=None,
        description="Account.id the caller expects this file to belong to"
    )
    note: str = ""
    error: Optional[str] = None

    @classmethod
    def failure(
        cls,
        institution: str,
        error: str,
        account_hint: Optional[str] = None,
    ) -> "ExtractionResult":
        return cls(
            success=False,
            institution=institution,
            account_hint=account_hint,
            error=error,
        )


class ProviderAccount(BaseModel):
    """
    A provider-reported account, normalized across Plaid and SimpleFIN.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    provider_account_id: str = Field(
        ...,
        min_length=1,
        description="Provider-side account identifier"
    )
    institution_label: str = Field(
        default="",
        description="Provider-scoped institution name or key"
    )
    account_name: str = Field(
        default="",
        description="Account name as the provider reports it"
    )
    current_balance_magnitude: Decimal = Field(
        ...,
        ge=0,
        description="Absolute current balance"
    )
    account_type: str = Field(
        default="",
        description="Provider account type (depository, credit, ...)"
    )
    balance_date: Optional[datetime] = Field(
        default=None,
        description="When the provider observed the balance"
    )
