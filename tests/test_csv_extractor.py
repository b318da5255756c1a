"""Tests for CSV balance extraction."""

from datetime import datetime
from decimal import Decimal

import pytest

from finance_aggregator.extraction import (
    GENERIC,
    STRATEGIES,
    detect_institution,
    extract_balance,
    extract_from_file,
    parse_amount,
    parse_rows,
)
from finance_aggregator.extraction.csv_extractor import ACTIVITY_NOTE, parse_date


class TestInstitutionDetection:
    """Tests for filename-based institution detection."""

    @pytest.mark.parametrize("filename,expected", [
        ("Chase1234_Activity.CSV", "chase"),
        ("wellsfargo-checking.csv", "wellsfargo"),
        ("Wells_Fargo_2024.csv", "wellsfargo"),
        ("bofa_stmt.csv", "bofa"),
        ("BankOfAmerica.csv", "bofa"),
        ("Apple Card Transactions.csv", "apple"),
        ("goldman-sachs.csv", "apple"),
        ("export.csv", GENERIC),
        ("", GENERIC),
    ])
    def test_detect(self, filename, expected):
        """Test filename substrings map to institution tags."""
        assert detect_institution(filename) == expected

    def test_every_tag_has_a_strategy(self):
        """Test the registry covers every detectable tag."""
        for tag in ("chase", "wellsfargo", "bofa", "apple", GENERIC):
            assert tag in STRATEGIES


class TestParsingHelpers:
    """Tests for cell and row parsing."""

    def test_parse_amount_strips_currency(self):
        """Test dollar signs and thousands separators are removed."""
        assert parse_amount(" $1,234.56 ") == Decimal("1234.56")
        assert parse_amount("-50.00") == Decimal("-50.00")

    @pytest.mark.parametrize("value", ["", "abc", "NaN", "Infinity", "-inf"])
    def test_parse_amount_rejects(self, value):
        """Test non-numeric and non-finite values are parse failures."""
        assert parse_amount(value) is None

    def test_parse_date_formats(self):
        """Test the supported date formats."""
        assert parse_date("2024-03-05").day == 5
        assert parse_date("03/05/2024").month == 3
        assert parse_date("03/05/24").year == 2024
        assert parse_date("March 5") is None

    def test_parse_rows_drops_blank_rows_and_bom(self):
        """Test BOM and blank lines are ignored."""
        rows = parse_rows('\ufeffDate,Amount\n\n2024-01-01,"1,000.00"\n , \n')
        assert rows == [["Date", "Amount"], ["2024-01-01", "1,000.00"]]


class TestGenericStrategy:
    """Tests for the fallback strategy."""

    def test_balance_column(self):
        """Test the first numeric value of the balance column."""
        result = extract_balance("Date,Description,Balance\n2024-01-01,Test,1234.56")
        assert result.success is True
        assert result.balance == Decimal("1234.56")
        assert result.date == datetime(2024, 1, 1)

    def test_negative_value_is_absolute(self):
        """Test the generic strategy returns a magnitude."""
        result = extract_balance("Date,Total\n2024-01-01,-99.10")
        assert result.success is True
        assert result.balance == Decimal("99.10")

    def test_skips_non_numeric_rows(self):
        """Test rows without a number are skipped."""
        result = extract_balance("Date,Amount\n2024-01-01,pending\n2024-01-02,12.00")
        assert result.balance == Decimal("12.00")

    def test_no_matching_column(self):
        """Test failure when no balance/total/amount column exists."""
        result = extract_balance("Date,Description\n2024-01-01,Coffee")
        assert result.success is False
        assert "column" in result.error

    def test_no_numeric_value(self):
        """Test failure when the column has no number."""
        result = extract_balance("Date,Balance\n2024-01-01,n/a")
        assert result.success is False

    def test_header_only(self):
        """Test a header-only file is rejected."""
        result = extract_balance("Date,Description,Balance\n")
        assert result.success is False
        assert "Empty or invalid CSV" in result.error

    def test_empty_input(self):
        """Test empty text is rejected without raising."""
        result = extract_balance("")
        assert result.success is False
        assert "Empty or invalid CSV" in result.error

    def test_unknown_institution_uses_generic(self):
        """Test an unknown tag falls back to the generic strategy."""
        result = extract_balance("Balance\n10", institution="mybank")
        assert result.success is True
        assert result.balance == Decimal("10")

    def test_account_hint_carried(self):
        """Test the caller's account hint is kept on the result."""
        result = extract_balance("Balance\n10", account_hint="acct-1")
        assert result.account_hint == "acct-1"
        failed = extract_balance("", account_hint="acct-1")
        assert failed.account_hint == "acct-1"


class TestTransactionSumStrategy:
    """Tests for card exports (chase, apple)."""

    def test_sum_of_amounts(self):
        """Test transactions are summed and the magnitude returned."""
        csv_text = "Date,Amount\n2024-01-01,-50.00\n2024-01-02,-25.00"
        result = extract_balance(csv_text, institution="chase")
        assert result.success is True
        assert result.balance == Decimal("75.00")
        assert result.note == ACTIVITY_NOTE
        assert result.date == datetime(2024, 1, 2)

    def test_positive_net_still_succeeds(self):
        """Test success regardless of sign."""
        csv_text = "Transaction Date,Description,Amount\n01/05/2024,Payment,500.00\n01/03/2024,Food,-20.00"
        result = extract_balance(csv_text, institution="apple")
        assert result.success is True
        assert result.balance == Decimal("480.00")
        assert result.date == datetime(2024, 1, 5)

    def test_non_numeric_counts_as_zero(self):
        """Test unparseable amounts add nothing."""
        csv_text = "Date,Amount\n2024-01-01,-10.00\n2024-01-02,--"
        result = extract_balance(csv_text, institution="chase")
        assert result.balance == Decimal("10.00")

    def test_missing_amount_column(self):
        """Test the failure names the institution."""
        result = extract_balance("Date,Memo\n2024-01-01,x", institution="chase")
        assert result.success is False
        assert "Chase" in result.error


class TestTrailingBalanceStrategy:
    """Tests for statement exports with a summary row (bofa)."""

    def test_ending_balance_row(self):
        """Test the ending balance row is read."""
        csv_text = (
            "Date,Description,Amount,Running Bal.\n"
            "01/01/2024,Deposit,100.00,2600.00\n"
            ",,Ending Balance,2500.00\n"
        )
        result = extract_balance(csv_text, institution="bofa")
        assert result.success is True
        assert result.balance == Decimal("2500.00")

    def test_closing_balance_row(self):
        """Test the closing balance marker is also recognised."""
        csv_text = "Description,Summary Amt.\nClosing balance as of 01/31/2024,\"$1,200.50\"\n"
        result = extract_balance(csv_text, institution="bofa")
        assert result.balance == Decimal("1200.50")

    def test_no_summary_row(self):
        """Test failure without an ending balance row."""
        csv_text = "Date,Description,Amount\n01/01/2024,Deposit,100.00"
        result = extract_balance(csv_text, institution="bofa")
        assert result.success is False

    def test_non_positive_balance(self):
        """Test failure when the summary row holds no positive amount."""
        csv_text = "Date,Description,Amount\n,,Ending Balance,-10.00"
        result = extract_balance(csv_text, institution="bofa")
        assert result.success is False


class TestRunningBalanceStrategy:
    """Tests for exports with a running balance column (wellsfargo)."""

    def test_first_readable_row(self):
        """Test the most recent (first) row wins."""
        csv_text = (
            "Date,Amount,Description,Balance\n"
            "01/31/2024,-20.00,Coffee,\n"
            "01/30/2024,-5.00,Bagel,980.25\n"
            "01/29/2024,-5.00,Bagel,985.25\n"
        )
        result = extract_balance(csv_text, institution="wellsfargo")
        assert result.success is True
        assert result.balance == Decimal("980.25")
        assert result.date == datetime(2024, 1, 30)

    def test_zero_balance_fails(self):
        """Test a non-positive balance is rejected."""
        result = extract_balance("Date,Balance\n01/30/2024,0.00", institution="wellsfargo")
        assert result.success is False

    def test_missing_balance_column(self):
        """Test the failure names the institution."""
        result = extract_balance("Date,Amount\n01/30/2024,1.00", institution="wellsfargo")
        assert result.success is False
        assert "Wells Fargo" in result.error


class TestExtractFromFile:
    """Tests for the filename entry point."""

    def test_detects_and_extracts(self):
        """Test the filename selects the strategy."""
        result = extract_from_file("Chase_Activity.csv", "Date,Amount\n2024-01-01,-5")
        assert result.institution == "chase"
        assert result.balance == Decimal("5")
