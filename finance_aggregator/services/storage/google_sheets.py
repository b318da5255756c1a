"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the ledger because:
1. The user can read and edit accounts directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions (writes are ordered so a rerun repairs partial failures)
- Limited query capabilities (we filter in Python)
- No locking: overlapping runs may interleave last_updated writes

The implementation follows the abstract interface, so we can swap
to PostgreSQL/SQLite later without changing business logic.
"""

import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from pydantic import ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential

from finance_aggregator.config import get_settings
from finance_aggregator.models.account import (
    Account,
    AccountType,
    BalanceReading,
    IngestionMethod,
)
from finance_aggregator.models.audit import AuditEvent, AuditEventType, AuditSeverity
from finance_aggregator.models.batch import RunConfig
from finance_aggregator.services.storage.interface import (
    AccountRegistryInterface,
    AuditStorageInterface,
    BalanceStoreInterface,
    ConfigStoreInterface,
    DuplicateError,
    NotFoundError,
    StorageConnectionError,
    StorageError,
)


logger = structlog.get_logger(__name__)


# Column mappings for Accounts sheet
ACCOUNT_COLUMNS = [
    "id",
    "institution",
    "display_name",
    "type",
    "is_asset",
    "external_id",
    "ingestion_method",
    "last_updated",
    "is_active",
]

# Column mappings for Balances sheet
BALANCE_COLUMNS = [
    "balance_id",
    "account_id",
    "date",
    "amount",
    "source",
    "notes",
    "created_at",
]

# Column mappings for Settings sheet
SETTINGS_COLUMNS = ["key", "value"]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
]

# Settings keys with this prefix map an institution tag to an account
CSV_ACCOUNT_PREFIX = "csv_account."

TRUE_STRINGS = {"true", "yes", "y", "1"}
FALSE_STRINGS = {"false", "no", "n", "0"}


def _parse_bool(value: str, default: bool) -> bool:
    value = (value or "").strip().lower()
    if value in TRUE_STRINGS:
        return True
    if value in FALSE_STRINGS:
        return False
    return default


def _safe_get(row: list, index: int, default: str = "") -> str:
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def _parse_iso(value: str) -> datetime:
    """Parse an ISO timestamp typed into the sheet as naive UTC."""
    parsed = datetime.fromisoformat(value.strip())
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _parse_timestamp(value: str) -> Optional[datetime]:
    return _parse_iso(value) if value else None


def account_to_row(account: Account) -> list:
    """Convert an Account to a spreadsheet row."""
    return [
        account.id,
        account.institution,
        account.display_name,
        account.type.value,
        "TRUE" if account.is_asset else "FALSE",
        account.external_id or "",
        account.ingestion_method.value,
        account.last_updated.isoformat() if account.last_updated else "",
        "TRUE" if account.is_active else "FALSE",
    ]


def row_to_account(row: list) -> Account:
    """
    Convert a spreadsheet row to an Account.

    Type and ingestion method are matched case-insensitively since
    the user types them by hand.
    """
    return Account(
        id=_safe_get(row, 0),
        institution=_safe_get(row, 1),
        display_name=_safe_get(row, 2),
        type=AccountType(_safe_get(row, 3, "other").strip().lower()),
        is_asset=_parse_bool(_safe_get(row, 4), default=True),
        external_id=_safe_get(row, 5) or None,
        ingestion_method=IngestionMethod(_safe_get(row, 6, "manual").strip().lower()),
        last_updated=_parse_timestamp(_safe_get(row, 7)),
        is_active=_parse_bool(_safe_get(row, 8), default=True),
    )


def reading_to_row(reading: BalanceReading) -> list:
    """Convert a BalanceReading to a spreadsheet row."""
    return [
        str(reading.id),
        reading.account_id,
        reading.date.isoformat(),
        str(reading.amount),
        reading.source.value,
        reading.notes,
        reading.created_at.isoformat(),
    ]


def row_to_reading(row: list) -> BalanceReading:
    """Convert a spreadsheet row to a BalanceReading."""
    return BalanceReading(
        id=UUID(_safe_get(row, 0)),
        account_id=_safe_get(row, 1),
        date=_parse_iso(_safe_get(row, 2)),
        amount=Decimal(_safe_get(row, 3).replace(",", "")),
        source=IngestionMethod(_safe_get(row, 4).strip().lower()),
        notes=_safe_get(row, 5),
        created_at=_parse_iso(_safe_get(row, 6)),
    )


def settings_rows_to_run_config(rows: list[list], defaults: RunConfig) -> RunConfig:
    """
    Build a RunConfig from key/value rows (header excluded).

    Unknown keys are ignored; blank values leave the default in place.

    Raises:
        StorageError: If a value is present but invalid
    """
    overrides: dict = {}
    csv_account_map = dict(defaults.csv_account_map)

    for row in rows:
        key = _safe_get(row, 0).strip()
        value = _safe_get(row, 1).strip()
        if not key or not value:
            continue

        key_lower = key.lower()
        if key_lower.startswith(CSV_ACCOUNT_PREFIX):
            tag = key_lower[len(CSV_ACCOUNT_PREFIX):]
            if tag:
                csv_account_map[tag] = value
        elif key_lower in RunConfig.model_fields and key_lower != "csv_account_map":
            overrides[key_lower] = value

    data = defaults.model_dump()
    data.update(overrides)
    data["csv_account_map"] = csv_account_map
    try:
        return RunConfig.model_validate(data)
    except ValidationError as e:
        raise StorageError(f"Invalid value in Settings sheet: {e}")


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            logger.info("creating_worksheet", title=title)
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_accounts_sheet(self) -> gspread.Worksheet:
        """Get or create the Accounts worksheet."""
        return self._get_or_create(self._settings.accounts_sheet_name, ACCOUNT_COLUMNS, 200)

    def get_balances_sheet(self) -> gspread.Worksheet:
        """Get or create the Balances worksheet."""
        return self._get_or_create(self._settings.balances_sheet_name, BALANCE_COLUMNS, 5000)

    def get_settings_sheet(self) -> gspread.Worksheet:
        """Get or create the Settings worksheet."""
        return self._get_or_create(self._settings.settings_sheet_name, SETTINGS_COLUMNS, 50)

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create(self._settings.audit_sheet_name, AUDIT_COLUMNS, 5000)


class GoogleSheetsAccountRegistry(AccountRegistryInterface):
    """
    Google Sheets implementation of the account registry.

    One account per row, in the order the user entered them.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _find_row(self, all_rows: list[list], account_id: str) -> int:
        # Row 1 is the header
        for idx, row in enumerate(all_rows[1:], start=2):
            if row and row[0].strip() == account_id:
                return idx
        raise NotFoundError(f"Account not found: {account_id}")

    def _update_field(self, account_id: str, column: str, value: str) -> bool:
        try:
            sheet = self._client.get_accounts_sheet()
            idx = self._find_row(sheet.get_all_values(), account_id)
            sheet.update_cell(idx, ACCOUNT_COLUMNS.index(column) + 1, value)
            return True
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update {column} for {account_id}: {e}")

    async def list_accounts(self, active_only: bool = False) -> list[Account]:
        """List accounts in sheet order."""
        try:
            sheet = self._client.get_accounts_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except Exception as e:
            raise StorageError(f"Failed to list accounts: {e}")

        accounts = []
        for row_number, row in enumerate(all_rows, start=2):
            if not row or not row[0].strip():  # Skip empty rows
                continue
            try:
                account = row_to_account(row)
            except (ValueError, ValidationError) as e:
                logger.warning("malformed_account_row", row=row_number, error=str(e))
                continue
            if active_only and not account.is_active:
                continue
            accounts.append(account)
        return accounts

    async def get_account(self, account_id: str) -> Optional[Account]:
        """Retrieve an account by its ID."""
        for account in await self.list_accounts():
            if account.id == account_id:
                return account
        return None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _append_account_row(self, account: Account) -> None:
        try:
            sheet = self._client.get_accounts_sheet()
            sheet.append_row(account_to_row(account), value_input_option="RAW")
        except Exception as e:
            raise StorageError(f"Failed to save account: {e}")

    async def save_account(self, account: Account) -> bool:
        """Append a new account row."""
        if await self.get_account(account.id) is not None:
            raise DuplicateError(f"Account already exists: {account.id}")
        self._append_account_row(account)
        return True

    async def update_last_updated(self, account_id: str, when: datetime) -> bool:
        """Overwrite the last_updated cell."""
        return self._update_field(account_id, "last_updated", when.isoformat())

    async def set_external_id(self, account_id: str, external_id: str) -> bool:
        """Overwrite the external_id cell."""
        return self._update_field(account_id, "external_id", external_id)


class GoogleSheetsBalanceStore(BalanceStoreInterface):
    """
    Google Sheets implementation of the balance ledger.

    Append-only: one reading per row.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_balance(self, reading: BalanceReading) -> bool:
        """Append a reading row."""
        try:
            sheet = self._client.get_balances_sheet()
            sheet.append_row(reading_to_row(reading), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to save balance: {e}")

    async def list_balances(
        self,
        account_id: Optional[str] = None,
    ) -> list[BalanceReading]:
        """List readings in sheet order."""
        try:
            sheet = self._client.get_balances_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list balances: {e}")

        readings = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            if account_id is not None and _safe_get(row, 1) != account_id:
                continue
            try:
                readings.append(row_to_reading(row))
            except Exception:
                continue  # Skip malformed rows
        return readings

    async def clear_balances(self) -> int:
        """Delete every row below the header."""
        try:
            sheet = self._client.get_balances_sheet()
            all_rows = sheet.get_all_values()
            count = len(all_rows) - 1
            if count > 0:
                sheet.delete_rows(2, len(all_rows))
            return max(count, 0)
        except Exception as e:
            raise StorageError(f"Failed to clear balances: {e}")


class GoogleSheetsConfigStore(ConfigStoreInterface):
    """Run configuration read from the Settings worksheet."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    async def load_run_config(self, defaults: RunConfig) -> RunConfig:
        try:
            sheet = self._client.get_settings_sheet()
            rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to read settings: {e}")
        return settings_rows_to_run_config(rows, defaults)


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=_parse_iso(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            entity_type=_safe_get(row, 4) or None,
            entity_id=_safe_get(row, 5) or None,
            correlation_id=UUID(_safe_get(row, 6)) if _safe_get(row, 6) else None,
            description=_safe_get(row, 7),
            details=json.loads(_safe_get(row, 8)) if _safe_get(row, 8) else {},
            error_message=_safe_get(row, 9) or None,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning("audit_append_failed", error=str(e), event_id=str(event.event_id))
            return False

    def _all_events(self) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except Exception:
                    continue
        return events

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        events = [e for e in self._all_events() if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        events = self._all_events()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
