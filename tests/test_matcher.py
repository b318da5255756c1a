"""Tests for provider-to-registry account matching."""

from finance_aggregator.matching import (
    institutions_overlap,
    match_account,
    normalize_institution,
)
from finance_aggregator.models.account import Account, IngestionMethod


PLAID = IngestionMethod.PLAID


class TestNormalization:
    """Tests for institution label comparison."""

    def test_normalize(self):
        """Test case and punctuation are ignored."""
        assert normalize_institution("Wells Fargo & Co.") == "wellsfargoco"

    def test_overlap_either_direction(self):
        """Test substring match works both ways."""
        assert institutions_overlap("Wells Fargo", "wellsfargo")
        assert institutions_overlap("Chase", "JPMorgan Chase Bank")
        assert institutions_overlap("JPMorgan Chase Bank", "chase")

    def test_empty_labels_never_overlap(self):
        """Test that a blank label matches nothing."""
        assert not institutions_overlap("", "chase")
        assert not institutions_overlap("Chase", "")
        assert not institutions_overlap("", "")


class TestMatchAccount:
    """Tests for match_account priority rules."""

    def test_external_id_wins(self, accounts):
        """Test an exact external_id match beats fuzzy candidates."""
        accounts = accounts + [
            Account(
                id="linked",
                institution="Somewhere Else",
                ingestion_method=IngestionMethod.SIMPLEFIN,
                external_id="p-123",
            ),
        ]
        assert match_account(accounts, "p-123", "Wells Fargo", "Checking", PLAID) == "linked"

    def test_external_id_ignores_provider_and_active(self):
        """Test the exact match does not check method or active flag."""
        accounts = [Account(id="old", external_id="p-1", is_active=False)]
        assert match_account(accounts, "p-1", "", "", PLAID) == "old"

    def test_institution_fuzzy_claims_unlinked(self, accounts):
        """Test an unlinked account is claimed by institution."""
        assert match_account(accounts, "p-new", "wellsfargo", "Checking", PLAID) == "wf-checking"

    def test_fuzzy_requires_same_ingestion_method(self, accounts):
        """Test a CSV account is not claimed by a Plaid reading."""
        assert match_account(accounts, "p-new", "chase", "Sapphire", PLAID) is None

    def test_fuzzy_skips_linked_accounts(self, accounts):
        """Test an account with an external_id is not claimed again."""
        assert match_account(
            accounts, "sfin-other", "Ally Bank", "Savings", IngestionMethod.SIMPLEFIN
        ) is None

    def test_fuzzy_skips_inactive(self):
        """Test inactive accounts are never claimed by institution."""
        accounts = [Account(id="closed", institution="Chase", ingestion_method=PLAID, is_active=False)]
        assert match_account(accounts, "p-1", "chase", "", PLAID) is None

    def test_first_candidate_in_registry_order(self):
        """Test that the first unlinked candidate wins."""
        accounts = [
            Account(id="first", institution="Chase", ingestion_method=PLAID),
            Account(id="second", institution="Chase", ingestion_method=PLAID),
        ]
        assert match_account(accounts, "p-1", "chase", "", PLAID) == "first"

    def test_no_match(self, accounts):
        """Test None when nothing fits."""
        assert match_account(accounts, "p-x", "Citi", "Card", PLAID) is None
