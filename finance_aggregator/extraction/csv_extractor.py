"""
CSV Balance Extraction

Turns a bank's CSV export into a candidate balance.

DESIGN DECISION: Each institution exports differently, so each gets a
small strategy function. Strategies share one signature and are looked
up by institution tag; anything unrecognised goes to the generic one.

    chase, apple   -> transaction sum (card activity, not a true balance)
    bofa           -> trailing "Ending balance" summary row
    wellsfargo     -> running balance column, newest row first
    generic        -> first balance/total/amount column with a number

CRITICAL: Extraction never raises for bad input. A file we can't read
comes back as ExtractionResult(success=False, error=...) so one broken
export doesn't take down an import run.
"""

import csv
import io
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional

import structlog

from finance_aggregator.models.account import utcnow
from finance_aggregator.models.extraction import ExtractionResult


logger = structlog.get_logger(__name__)


GENERIC = "generic"

# (institution tag, filename substrings), checked in order
INSTITUTION_PATTERNS = [
    ("chase", ("chase",)),
    ("wellsfargo", ("wellsfargo", "wells_fargo")),
    ("bofa", ("bofa", "bankofamerica")),
    ("apple", ("apple", "goldman")),
]

INSTITUTION_NAMES = {
    "chase": "Chase",
    "wellsfargo": "Wells Fargo",
    "bofa": "Bank of America",
    "apple": "Apple Card",
    GENERIC: "Generic",
}

DATE_FORMATS = ["%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y"]

ENDING_BALANCE_MARKERS = ("ending balance", "closing balance")

ACTIVITY_NOTE = (
    "Sum of transaction amounts in the export; this is period activity, "
    "not a point-in-time balance"
)

Strategy = Callable[[list[list[str]], list[str], str], ExtractionResult]


# =============================================================================
# PARSING HELPERS
# =============================================================================

def detect_institution(filename: str) -> str:
    """
    Institution tag from a filename, case-insensitive.

    Returns "generic" when nothing matches.
    """
    name = (filename or "").lower()
    for tag, needles in INSTITUTION_PATTERNS:
        if any(needle in name for needle in needles):
            return tag
    return GENERIC


def parse_rows(csv_text: str) -> list[list[str]]:
    """
    Split CSV text into rows of cells.

    Quoted fields are handled by the csv module; if it rejects the
    input we fall back to a plain comma split. Blank rows are dropped.
    """
    text = (csv_text or "").lstrip("\ufeff")
    try:
        rows = list(csv.reader(io.StringIO(text)))
    except csv.Error as e:
        logger.debug("csv_parse_fallback", error=str(e))
        rows = [line.split(",") for line in text.splitlines()]
    return [row for row in rows if any(cell.strip() for cell in row)]


def parse_amount(value: str) -> Optional[Decimal]:
    """
    Parse a money cell such as "$1,234.56" or "-50.00".

    Returns None for anything that isn't a finite number.
    """
    cleaned = (value or "").replace("$", "").replace(",", "").strip()
    if not cleaned:
        return None
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


def parse_date(value: str) -> Optional[date]:
    """Parse a date cell in one of the formats banks use."""
    value = (value or "").strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def _as_datetime(value: Optional[date]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime(value.year, value.month, value.day)


def _cell(row: list[str], index: int) -> str:
    return row[index] if index < len(row) else ""


def find_column(header: list[str], keywords: tuple[str, ...]) -> Optional[int]:
    """Index of the first header cell containing any keyword."""
    for idx, name in enumerate(header):
        if any(keyword in name for keyword in keywords):
            return idx
    return None


def _missing_column(institution: str, wanted: str) -> str:
    return (
        f"Could not find {wanted} column in {INSTITUTION_NAMES.get(institution, institution)} CSV"
    )


# =============================================================================
# STRATEGIES
# =============================================================================

def extract_transaction_sum(
    rows: list[list[str]],
    header: list[str],
    institution: str,
) -> ExtractionResult:
    """
    Sum every transaction amount.

    Card exports carry no balance, so the figure reported is the
    absolute activity total over the export period.
    """
    amount_col = find_column(header, ("amount",))
    if amount_col is None:
        return ExtractionResult.failure(institution, _missing_column(institution, "an amount"))

    total = Decimal("0")
    latest: Optional[date] = None
    for row in rows[1:]:
        total += parse_amount(_cell(row, amount_col)) or Decimal("0")
        row_date = parse_date(_cell(row, 0))
        if row_date is not None and (latest is None or row_date > latest):
            latest = row_date

    return ExtractionResult(
        success=True,
        institution=institution,
        balance=abs(total),
        date=_as_datetime(latest) or utcnow(),
        note=ACTIVITY_NOTE,
    )


def extract_trailing_balance(
    rows: list[list[str]],
    header: list[str],
    institution: str,
) -> ExtractionResult:
    """
    Read the statement summary line ("Ending balance ...").

    Scans from the bottom; the first positive number in that row wins.
    """
    for row in reversed(rows):
        text = " ".join(row).lower()
        if not any(marker in text for marker in ENDING_BALANCE_MARKERS):
            continue
        for cell in row:
            amount = parse_amount(cell)
            if amount is not None and amount > 0:
                return ExtractionResult(
                    success=True,
                    institution=institution,
                    balance=amount,
                    date=utcnow(),
                    note="Ending balance row",
                )
        return ExtractionResult.failure(
            institution,
            f"Ending balance row in {INSTITUTION_NAMES.get(institution, institution)} CSV "
            "has no positive amount",
        )

    return ExtractionResult.failure(
        institution,
        f"Could not find an ending balance row in "
        f"{INSTITUTION_NAMES.get(institution, institution)} CSV",
    )


def extract_running_balance(
    rows: list[list[str]],
    header: list[str],
    institution: str,
) -> ExtractionResult:
    """
    Take the running balance from the newest transaction row.

    Exports list newest first, so that is the first data row with a
    readable balance.
    """
    balance_col = find_column(header, ("balance", "running"))
    if balance_col is None:
        return ExtractionResult.failure(institution, _missing_column(institution, "a balance"))

    for row in rows[1:]:
        amount = parse_amount(_cell(row, balance_col))
        if amount is None:
            continue
        if amount <= 0:
            return ExtractionResult.failure(
                institution,
                f"Balance in {INSTITUTION_NAMES.get(institution, institution)} CSV is not positive",
            )
        return ExtractionResult(
            success=True,
            institution=institution,
            balance=amount,
            date=_as_datetime(parse_date(_cell(row, 0))) or utcnow(),
            note="Running balance of most recent transaction",
        )

    return ExtractionResult.failure(
        institution,
        f"No readable balance in {INSTITUTION_NAMES.get(institution, institution)} CSV",
    )


def extract_generic(
    rows: list[list[str]],
    header: list[str],
    institution: str,
) -> ExtractionResult:
    """First numeric value in the first balance/total/amount column."""
    col = find_column(header, ("balance", "total", "amount"))
    if col is None:
        return ExtractionResult.failure(
            institution, "Could not find a balance, total or amount column in CSV"
        )

    for row in rows[1:]:
        amount = parse_amount(_cell(row, col))
        if amount is None:
            continue
        return ExtractionResult(
            success=True,
            institution=institution,
            balance=abs(amount),
            date=_as_datetime(parse_date(_cell(row, 0))) or utcnow(),
            note=f"First value in '{header[col]}' column",
        )

    return ExtractionResult.failure(institution, "No numeric balance found in CSV")


STRATEGIES: dict[str, Strategy] = {
    "chase": extract_transaction_sum,
    "apple": extract_transaction_sum,
    "bofa": extract_trailing_balance,
    "wellsfargo": extract_running_balance,
    GENERIC: extract_generic,
}


# =============================================================================
# ENTRY POINT
# =============================================================================

def extract_balance(
    csv_text: str,
    institution: str = GENERIC,
    account_hint: Optional[str] = None,
) -> ExtractionResult:
    """
    Extract a balance from CSV text using the institution's strategy.

    Args:
        csv_text: Raw file content
        institution: Institution tag (see detect_institution)
        account_hint: Account.id to carry through to the result

    Returns:
        ExtractionResult; never raises for malformed input
    """
    institution = (institution or GENERIC).lower()
    strategy = STRATEGIES.get(institution, extract_generic)

    rows = parse_rows(csv_text)
    if len(rows) < 2:
        return ExtractionResult.failure(institution, "Empty or invalid CSV", account_hint)

    header = [cell.strip().lower() for cell in rows[0]]
    try:
        result = strategy(rows, header, institution)
    except Exception as e:
        logger.warning("csv_strategy_crashed", institution=institution, error=str(e))
        return ExtractionResult.failure(institution, f"Failed to read CSV: {e}", account_hint)

    result.account_hint = account_hint
    return result


def extract_from_file(
    filename: str,
    csv_text: str,
    account_hint: Optional[str] = None,
) -> ExtractionResult:
    """Detect the institution from the filename, then extract."""
    return extract_balance(csv_text, detect_institution(filename), account_hint)
