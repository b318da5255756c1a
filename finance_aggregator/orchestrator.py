"""
Main Orchestrator for Finance Aggregator

This module ties together all the components and defines the
end-to-end flows for:
1. Provider refresh (fetch → match → reconcile → report)
2. CSV import (detect institution → extract → resolve account → record)
3. Manual entry, net-worth summary and stale-account checks

DESIGN DECISION: The orchestrator enforces the boundaries:
- One institution failing never stops the others
- Readings we can't place are reported, never guessed
- A storage failure aborts the batch (nothing after it could succeed)
- Every step is audited

Processing is sequential. Each provider unit is fetched, matched and
written before the next one starts.
"""

from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Optional
from uuid import UUID

import structlog

from finance_aggregator.audit import AuditLogger, create_correlation_id
from finance_aggregator.config import get_settings
from finance_aggregator.extraction import GENERIC, detect_institution, extract_balance
from finance_aggregator.matching import institutions_overlap, match_account
from finance_aggregator.models.account import (
    Account,
    BalanceReading,
    IngestionMethod,
    utcnow,
)
from finance_aggregator.models.batch import (
    BatchResult,
    FetchedBalance,
    NetWorthSummary,
    RunConfig,
    StaleAccount,
)
from finance_aggregator.networth import find_stale_accounts, summarize
from finance_aggregator.reconcile import BalanceReconciler
from finance_aggregator.services.providers import (
    AccountProvider,
    PlaidProvider,
    ProviderError,
    SimpleFINProvider,
)
from finance_aggregator.services.storage import (
    AccountRegistryInterface,
    BalanceStoreInterface,
    ConfigStoreInterface,
    GoogleSheetsAccountRegistry,
    GoogleSheetsAuditStorage,
    GoogleSheetsBalanceStore,
    GoogleSheetsClient,
    GoogleSheetsConfigStore,
    InMemoryAccountRegistry,
    InMemoryBalanceStore,
    InMemoryConfigStore,
    StorageError,
)


logger = structlog.get_logger(__name__)


def default_run_config() -> RunConfig:
    """RunConfig defaults from the environment (AppSettings)."""
    app = get_settings().app
    return RunConfig(
        stale_threshold_days=app.stale_threshold_days,
        alert_email=app.alert_email,
        auto_refresh=app.auto_refresh,
        import_folder=app.import_folder,
    )


class RefreshBatchRunner:
    """
    Orchestrates one refresh cycle per call.

    Flow for a provider fetch:
    1. Load the account registry once
    2. For each unit (Plaid token, SimpleFIN access URL):
       a. Fetch normalized accounts (ProviderError → batch error, next unit)
       b. Match each account against the registry
       c. Reconcile: write the reading, or report it as unmatched
    3. Return the BatchResult

    The runner never raises for partial failure. StorageError is the
    exception: it is audited and re-raised.
    """

    def __init__(
        self,
        registry: AccountRegistryInterface,
        balance_store: BalanceStoreInterface,
        config_store: Optional[ConfigStoreInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        providers: Optional[dict[IngestionMethod, AccountProvider]] = None,
        defaults: Optional[RunConfig] = None,
    ):
        self._registry = registry
        self._balances = balance_store
        self._config_store = config_store
        self._audit_logger = audit_logger
        self._providers = dict(providers or {})
        self._defaults = defaults
        self._reconciler = BalanceReconciler(registry, balance_store, audit_logger)

    @property
    def providers(self) -> dict[IngestionMethod, AccountProvider]:
        return dict(self._providers)

    def get_provider(self, method: IngestionMethod) -> Optional[AccountProvider]:
        return self._providers.get(method)

    async def load_run_config(self) -> RunConfig:
        """
        Run configuration for this invocation.

        Settings worksheet values override the environment defaults.
        """
        defaults = self._defaults or default_run_config()
        if self._config_store is None:
            return defaults
        return await self._config_store.load_run_config(defaults)

    async def _abort(self, error: StorageError, correlation_id: UUID) -> None:
        logger.error("batch_aborted", error=str(error), correlation_id=str(correlation_id))
        if self._audit_logger:
            await self._audit_logger.log_error(
                error_type=type(error).__name__,
                error_message=str(error),
                correlation_id=correlation_id,
            )

    async def _finish(self, result: BatchResult) -> BatchResult:
        result.finished_at = utcnow()
        if self._audit_logger:
            await self._audit_logger.log_fetch_completed(
                source=result.source,
                fetched=len(result.fetched),
                unmatched=len(result.unmatched),
                errors=len(result.errors),
                correlation_id=result.correlation_id,
            )
        return result

    # =========================================================================
    # PROVIDER FETCH
    # =========================================================================

    async def run_provider_fetch(
        self,
        provider: AccountProvider,
        correlation_id: Optional[UUID] = None,
    ) -> BatchResult:
        """
        Fetch, match and reconcile every unit of one provider.

        Raises:
            StorageError: If the store fails; the batch stops there
        """
        correlation_id = correlation_id or create_correlation_id()
        method = provider.provider
        result = BatchResult(source=method.value, correlation_id=correlation_id)

        try:
            accounts = await self._registry.list_accounts()

            for unit in provider.units():
                label = provider.unit_label(unit)
                try:
                    fetch = provider.fetch_accounts(unit)
                except ProviderError as e:
                    logger.warning("provider_unit_failed", provider=method.value,
                                   unit=label, error=str(e))
                    result.add_error(label, str(e))
                    if self._audit_logger:
                        await self._audit_logger.log_provider_fetch_failed(
                            provider=method.value,
                            institution=label,
                            error_message=str(e),
                            correlation_id=correlation_id,
                        )
                    continue

                for message in fetch.messages:
                    result.add_error(label, message)

                for provider_account in fetch.accounts:
                    account_id = match_account(
                        accounts,
                        provider_account.provider_account_id,
                        provider_account.institution_label,
                        provider_account.account_name,
                        method,
                    )
                    outcome = await self._reconciler.reconcile(
                        provider_account, account_id, method, correlation_id
                    )
                    if not outcome.matched:
                        result.unmatched.append(outcome.unmatched)
                        continue

                    result.fetched.append(FetchedBalance(
                        account_id=outcome.reading.account_id,
                        provider_account_id=provider_account.provider_account_id,
                        amount=outcome.reading.amount,
                        date=outcome.reading.date,
                        source=method,
                        linked=outcome.external_id_backfilled,
                    ))
                    if outcome.external_id_backfilled:
                        # The account is linked now; later units must not claim it again
                        accounts = await self._registry.list_accounts()
        except StorageError as e:
            await self._abort(e, correlation_id)
            raise

        return await self._finish(result)

    async def run_fetch(
        self,
        method: IngestionMethod,
        correlation_id: Optional[UUID] = None,
    ) -> BatchResult:
        """Refresh a single configured provider."""
        provider = self._providers.get(method)
        if provider is None:
            result = BatchResult(
                source=method.value,
                correlation_id=correlation_id or create_correlation_id(),
            )
            result.add_error(method.value, f"{method.value} is not configured")
            return await self._finish(result)
        return await self.run_provider_fetch(provider, correlation_id)

    async def run_plaid_fetch(self, correlation_id: Optional[UUID] = None) -> BatchResult:
        return await self.run_fetch(IngestionMethod.PLAID, correlation_id)

    async def run_simplefin_fetch(self, correlation_id: Optional[UUID] = None) -> BatchResult:
        return await self.run_fetch(IngestionMethod.SIMPLEFIN, correlation_id)

    async def run_all(self, correlation_id: Optional[UUID] = None) -> BatchResult:
        """
        Refresh every configured provider, one after another.

        All sub-batches share one correlation ID. Each provider writes its
        own fetch_completed event, followed by one for the combined run.
        """
        correlation_id = correlation_id or create_correlation_id()
        combined = BatchResult(source="all", correlation_id=correlation_id)
        if not self._providers:
            combined.add_error("all", "No providers are configured")
            return await self._finish(combined)

        for method in (IngestionMethod.PLAID, IngestionMethod.SIMPLEFIN):
            provider = self._providers.get(method)
            if provider is not None:
                combined.merge(await self.run_provider_fetch(provider, correlation_id))
        return await self._finish(combined)

    # =========================================================================
    # CSV IMPORT
    # =========================================================================

    async def _resolve_csv_account(
        self,
        institution: str,
        account_id: Optional[str],
        run_config: RunConfig,
    ) -> tuple[Optional[str], Optional[str]]:
        """
        Pick the account a CSV file belongs to.

        Order: explicit account, the Settings sheet mapping for the
        institution tag, then the first active CSV account whose
        institution matches the tag.

        Returns:
            (account_id, error_message)
        """
        if account_id:
            if await self._registry.get_account(account_id) is None:
                return None, f"Account not found: {account_id}"
            return account_id, None

        mapped = run_config.csv_account_map.get(institution)
        if mapped:
            if await self._registry.get_account(mapped) is None:
                return None, f"Settings map '{institution}' CSV files to unknown account {mapped}"
            return mapped, None

        if institution != GENERIC:
            for account in await self._registry.list_accounts(active_only=True):
                if (
                    account.ingestion_method == IngestionMethod.CSV
                    and institutions_overlap(account.institution, institution)
                ):
                    return account.id, None

        return None, f"No account configured for {institution} CSV files; pass --account"

    async def import_csv(
        self,
        filename: str,
        csv_text: str,
        account_id: Optional[str] = None,
        run_config: Optional[RunConfig] = None,
        correlation_id: Optional[UUID] = None,
    ) -> BatchResult:
        """
        Extract a balance from one CSV export and record it.

        Extraction failures and unresolvable accounts are reported in
        the result's errors.
        """
        correlation_id = correlation_id or create_correlation_id()
        run_config = run_config or await self.load_run_config()
        result = BatchResult(source=IngestionMethod.CSV.value, correlation_id=correlation_id)

        institution = detect_institution(filename)
        extraction = extract_balance(csv_text, institution, account_hint=account_id)
        if not extraction.success:
            result.add_error(filename, extraction.error or "Extraction failed")
            if self._audit_logger:
                await self._audit_logger.log_csv_extraction_failed(
                    filename=filename,
                    institution=institution,
                    error=extraction.error or "",
                    correlation_id=correlation_id,
                )
            return result

        try:
            target, error = await self._resolve_csv_account(institution, account_id, run_config)
            if target is None:
                result.add_error(filename, error)
                return result

            reading = await self._reconciler.record_csv_extraction(
                extraction, target, filename=filename, correlation_id=correlation_id
            )
        except StorageError as e:
            await self._abort(e, correlation_id)
            raise

        result.fetched.append(FetchedBalance(
            account_id=target,
            amount=reading.amount,
            date=reading.date,
            source=IngestionMethod.CSV,
        ))
        if self._audit_logger:
            await self._audit_logger.log_csv_imported(
                filename=filename,
                institution=institution,
                account_id=target,
                balance=reading.amount,
                correlation_id=correlation_id,
            )
        result.finished_at = utcnow()
        return result

    async def import_csv_files(
        self,
        paths: Iterable[Path],
        account_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> BatchResult:
        """Import several CSV files as one batch."""
        correlation_id = correlation_id or create_correlation_id()
        run_config = await self.load_run_config()
        combined = BatchResult(source=IngestionMethod.CSV.value, correlation_id=correlation_id)

        for path in paths:
            path = Path(path)
            try:
                text = path.read_text(encoding="utf-8-sig")
            except (OSError, UnicodeDecodeError) as e:
                combined.add_error(path.name, f"Could not read file: {e}")
                continue
            combined.merge(await self.import_csv(
                path.name, text, account_id, run_config, correlation_id
            ))

        return await self._finish(combined)

    async def import_csv_folder(
        self,
        folder: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> BatchResult:
        """
        Import every *.csv file in a folder.

        Defaults to the import_folder from the run configuration.
        """
        if folder is None:
            folder = (await self.load_run_config()).import_folder

        if not folder or not Path(folder).is_dir():
            result = BatchResult(
                source=IngestionMethod.CSV.value,
                correlation_id=correlation_id or create_correlation_id(),
            )
            result.add_error(str(folder or "import_folder"), "Import folder not found")
            return await self._finish(result)

        paths = sorted(Path(folder).glob("*.csv"))
        return await self.import_csv_files(paths, correlation_id=correlation_id)

    # =========================================================================
    # MANUAL ENTRY AND REPORTING
    # =========================================================================

    async def record_manual_balance(
        self,
        account_id: str,
        amount: Decimal,
        when: Optional[datetime] = None,
        notes: str = "",
    ) -> BalanceReading:
        """
        Record a balance typed in by the user.

        Raises:
            NotFoundError: If the account doesn't exist
        """
        return await self._reconciler.record_manual_balance(
            account_id, amount, when=when, notes=notes
        )

    async def net_worth_summary(self) -> NetWorthSummary:
        accounts = await self._registry.list_accounts()
        latest = await self._balances.latest_balances()
        return summarize(accounts, latest)

    async def accounts(self, active_only: bool = False) -> list[Account]:
        return await self._registry.list_accounts(active_only=active_only)

    async def check_stale_accounts(
        self,
        run_config: Optional[RunConfig] = None,
        now: Optional[datetime] = None,
    ) -> list[StaleAccount]:
        """Active accounts older than the configured stale threshold."""
        run_config = run_config or await self.load_run_config()
        accounts = await self._registry.list_accounts(active_only=True)
        stale = find_stale_accounts(accounts, run_config.stale_threshold_days, now=now)

        if stale and self._audit_logger:
            await self._audit_logger.log_stale_accounts(
                account_ids=[s.account_id for s in stale],
                threshold_days=run_config.stale_threshold_days,
            )
        return stale

    async def clear_balances(self) -> int:
        """
        Delete every balance reading.

        Administrative reset; accounts are left untouched.
        """
        count = await self._balances.clear_balances()
        if self._audit_logger:
            await self._audit_logger.log_balances_cleared(count)
        return count


def build_providers() -> dict[IngestionMethod, AccountProvider]:
    """
    Providers with usable configuration.

    A provider whose settings are missing is skipped, not an error.
    """
    settings = get_settings()
    providers: dict[IngestionMethod, AccountProvider] = {}

    try:
        plaid_settings = settings.plaid
        if plaid_settings.access_tokens:
            providers[IngestionMethod.PLAID] = PlaidProvider.from_settings(plaid_settings)
    except ValueError as e:
        logger.info("plaid_not_configured", reason=str(e))

    try:
        simplefin_settings = settings.simplefin
        if simplefin_settings.access_urls:
            providers[IngestionMethod.SIMPLEFIN] = SimpleFINProvider.from_settings(
                simplefin_settings
            )
    except ValueError as e:
        logger.info("simplefin_not_configured", reason=str(e))

    return providers


def create_app_components(
    use_storage: bool = True,
) -> tuple[RefreshBatchRunner, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run against in-memory storage.

    Returns:
        (batch_runner, sheets_client)
    """
    sheets_client = None

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            registry = GoogleSheetsAccountRegistry(sheets_client)
            balance_store = GoogleSheetsBalanceStore(sheets_client)
            config_store = GoogleSheetsConfigStore(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except ValueError as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            use_storage = False

    if not use_storage:
        registry = InMemoryAccountRegistry()
        balance_store = InMemoryBalanceStore()
        config_store = InMemoryConfigStore()
        audit_logger = AuditLogger()  # Local-only logging

    runner = RefreshBatchRunner(
        registry=registry,
        balance_store=balance_store,
        config_store=config_store,
        audit_logger=audit_logger,
        providers=build_providers(),
    )
    return runner, sheets_client
