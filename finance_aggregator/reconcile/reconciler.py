"""
Balance Reconciliation

Writes a matched reading back to the ledger.

DESIGN DECISION: There is no transaction around the writes. Instead
they run as a fixed sequence of steps, each safe to repeat:

    1. append the BalanceReading
    2. set Account.last_updated to the reading's date
    3. set Account.external_id, only if it is still empty

If step 2 or 3 fails after step 1 succeeded, the ledger has a reading
the registry doesn't reflect yet. Running the batch again repairs it:
last_updated is overwritten by the next reading and the external_id
backfill is retried on the next successful match.

Storage errors are NOT caught here. If the store is down, nothing
further in the batch can succeed.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from finance_aggregator.audit import AuditLogger
from finance_aggregator.models.account import (
    Account,
    BalanceReading,
    IngestionMethod,
    utcnow,
)
from finance_aggregator.models.batch import ReconcileOutcome, UnmatchedReading
from finance_aggregator.models.extraction import ExtractionResult, ProviderAccount
from finance_aggregator.services.storage import (
    AccountRegistryInterface,
    BalanceStoreInterface,
    NotFoundError,
)


def provenance_note(provider: IngestionMethod, provider_account_id: str) -> str:
    """Notes string identifying where a provider reading came from."""
    return f"{provider.value} account {provider_account_id}"


class BalanceReconciler:
    """
    Turns matched readings into ledger writes.
    """

    def __init__(
        self,
        registry: AccountRegistryInterface,
        balance_store: BalanceStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._registry = registry
        self._balances = balance_store
        self._audit_logger = audit_logger

    async def _require_account(self, account_id: str) -> Account:
        account = await self._registry.get_account(account_id)
        if account is None:
            raise NotFoundError(f"Account not found: {account_id}")
        return account

    async def _write(
        self,
        account: Account,
        reading: BalanceReading,
        external_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Run the write steps. Returns True if external_id was backfilled.
        """
        await self._balances.append_balance(reading)
        if self._audit_logger:
            await self._audit_logger.log_balance_recorded(
                account_id=account.id,
                reading_id=reading.id,
                amount=reading.amount,
                source=reading.source.value,
                correlation_id=correlation_id,
            )

        # No monotonicity check: an older reading still moves last_updated
        await self._registry.update_last_updated(account.id, reading.date)

        if external_id and not account.external_id:
            await self._registry.set_external_id(account.id, external_id)
            if self._audit_logger:
                await self._audit_logger.log_external_id_linked(
                    account_id=account.id,
                    external_id=external_id,
                    provider=reading.source.value,
                    correlation_id=correlation_id,
                )
            return True
        return False

    async def reconcile(
        self,
        provider_account: ProviderAccount,
        account_id: Optional[str],
        provider: IngestionMethod,
        correlation_id: Optional[UUID] = None,
    ) -> ReconcileOutcome:
        """
        Write back one provider reading.

        Args:
            provider_account: Normalized provider account
            account_id: Matched Account.id, or None if the matcher found nothing
            provider: Provider that reported the account
            correlation_id: Batch correlation ID for audit events

        Returns:
            ReconcileOutcome with either the written reading or the
            unmatched record

        Raises:
            NotFoundError: If account_id doesn't exist in the registry
            StorageError: If any write fails
        """
        if account_id is None:
            unmatched = UnmatchedReading(
                provider=provider,
                provider_account_id=provider_account.provider_account_id,
                institution_label=provider_account.institution_label,
                account_name=provider_account.account_name,
                amount=abs(provider_account.current_balance_magnitude),
            )
            if self._audit_logger:
                await self._audit_logger.log_account_unmatched(
                    provider=provider.value,
                    provider_account_id=provider_account.provider_account_id,
                    institution_label=provider_account.institution_label,
                    account_name=provider_account.account_name,
                    correlation_id=correlation_id,
                )
            return ReconcileOutcome(unmatched=unmatched)

        account = await self._require_account(account_id)
        reading = BalanceReading(
            account_id=account.id,
            date=provider_account.balance_date or utcnow(),
            amount=abs(provider_account.current_balance_magnitude),
            source=provider,
            notes=provenance_note(provider, provider_account.provider_account_id),
        )
        backfilled = await self._write(
            account,
            reading,
            external_id=provider_account.provider_account_id,
            correlation_id=correlation_id,
        )
        return ReconcileOutcome(reading=reading, external_id_backfilled=backfilled)

    async def record_manual_balance(
        self,
        account_id: str,
        amount: Decimal,
        when: Optional[datetime] = None,
        notes: str = "",
        correlation_id: Optional[UUID] = None,
    ) -> BalanceReading:
        """
        Record a balance the user typed in.

        Raises:
            NotFoundError: If the account doesn't exist
        """
        account = await self._require_account(account_id)
        reading = BalanceReading(
            account_id=account.id,
            date=when or utcnow(),
            amount=abs(Decimal(amount)),
            source=IngestionMethod.MANUAL,
            notes=notes or "Manual entry",
        )
        await self._write(account, reading, correlation_id=correlation_id)
        return reading

    async def record_csv_extraction(
        self,
        result: ExtractionResult,
        account_id: str,
        filename: str = "",
        correlation_id: Optional[UUID] = None,
    ) -> BalanceReading:
        """
        Record a successful CSV extraction against an account.

        Raises:
            ValueError: If the extraction did not succeed
            NotFoundError: If the account doesn't exist
        """
        if not result.success:
            raise ValueError(f"Cannot record failed extraction: {result.error}")

        account = await self._require_account(account_id)
        notes = f"csv {filename}".strip() if filename else "csv import"
        if result.note:
            notes = f"{notes}: {result.note}"
        reading = BalanceReading(
            account_id=account.id,
            date=result.date or utcnow(),
            amount=abs(result.balance),
            source=IngestionMethod.CSV,
            notes=notes[:1000],
        )
        await self._write(account, reading, correlation_id=correlation_id)
        return reading
