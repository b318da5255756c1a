"""Tests for the command-line front end (in-memory storage only)."""

import pytest

from app.main import build_parser, main
from finance_aggregator.config import validate_all_settings


@pytest.fixture(autouse=True)
def no_provider_env(monkeypatch):
    for name in ("PLAID_CLIENT_ID", "PLAID_SECRET", "PLAID_ACCESS_TOKENS", "SIMPLEFIN_ACCESS_URLS"):
        monkeypatch.delenv(name, raising=False)


class TestParser:
    """Tests for argument parsing."""

    def test_fetch_choices(self):
        """Test fetch accepts a provider name."""
        args = build_parser().parse_args(["fetch", "simplefin"])
        assert args.command == "fetch"
        assert args.provider == "simplefin"

    def test_import_csv_account(self):
        """Test import-csv takes several files and an account."""
        args = build_parser().parse_args(["import-csv", "a.csv", "b.csv", "--account", "x"])
        assert args.files == ["a.csv", "b.csv"]
        assert args.account == "x"

    def test_unknown_provider_rejected(self):
        """Test an unknown provider name is a usage error."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["fetch", "mint"])


class TestCommands:
    """Tests for running commands against in-memory storage."""

    def test_summary(self):
        """Test summary works on an empty ledger."""
        assert main(["--no-storage", "summary"]) == 0

    def test_fetch_without_providers(self):
        """Test fetch exits 1 when nothing is configured."""
        assert main(["--no-storage", "fetch", "all"]) == 1

    def test_record_unknown_account(self):
        """Test recording against an unknown account exits 1."""
        assert main(["--no-storage", "record", "nope", "100"]) == 1

    def test_record_bad_amount(self):
        """Test an unparseable amount exits 1."""
        assert main(["--no-storage", "record", "house", "lots"]) == 1

    def test_clear_requires_yes(self):
        """Test clear-balances refuses without --yes."""
        assert main(["--no-storage", "clear-balances"]) == 1


class TestCheckConfig:
    """Tests for the check-config command."""

    def test_missing_sheets_settings(self, monkeypatch):
        """Test check-config fails when Google Sheets is not configured."""
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
        assert main(["check-config"]) == 1

    def test_providers_are_optional(self, monkeypatch, tmp_path):
        """Test check-config passes with Sheets configured and no providers."""
        credentials = tmp_path / "service-account.json"
        credentials.write_text("{}")
        monkeypatch.setenv("GOOGLE_SHEETS_CREDENTIALS_PATH", str(credentials))
        monkeypatch.setenv("GOOGLE_SHEETS_SPREADSHEET_ID", "sheet-123")

        results = validate_all_settings()

        assert results["google_sheets"] is True
        assert results["plaid"] is False
        assert "plaid_error" in results
        assert main(["check-config"]) == 0
