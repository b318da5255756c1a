"""
Account Matching

Maps a provider-reported account onto a tracked account.

Priority, first hit wins:
1. external_id equals the provider account id (authoritative once linked)
2. institution names overlap after normalization, the account uses
   this provider, is active, and is not yet linked
3. no match - the caller reports the reading as unmatched

KNOWN LIMITATION: step 2 claims the first unlinked account for the
institution in registry order. Two unlinked accounts at the same bank
can be linked the wrong way round if a fetch runs before the user
links them by hand.
"""

import re
from typing import Iterable, Optional

import structlog

from finance_aggregator.models.account import Account, IngestionMethod


logger = structlog.get_logger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_institution(name: str) -> str:
    """Lower-case and drop everything but letters and digits."""
    return _NON_ALNUM.sub("", (name or "").lower())


def institutions_overlap(a: str, b: str) -> bool:
    """True if either normalized name contains the other."""
    a, b = normalize_institution(a), normalize_institution(b)
    if not a or not b:
        return False
    return a in b or b in a


def match_account(
    accounts: Iterable[Account],
    provider_account_id: str,
    institution_label: str,
    account_name: str,
    provider: IngestionMethod,
) -> Optional[str]:
    """
    Resolve a provider account to an internal account ID.

    Args:
        accounts: Registry in stable order
        provider_account_id: Provider-side account identifier
        institution_label: Provider-scoped institution name or key
        account_name: Provider's name for the account (for logging only)
        provider: Which provider reported the account

    Returns:
        Account.id, or None if nothing matches
    """
    accounts = list(accounts)

    for account in accounts:
        if account.external_id and account.external_id == provider_account_id:
            return account.id

    for account in accounts:
        if (
            account.is_active
            and not account.external_id
            and account.ingestion_method == provider
            and institutions_overlap(account.institution, institution_label)
        ):
            logger.info(
                "account_claimed_by_institution",
                account_id=account.id,
                provider=provider.value,
                provider_account_id=provider_account_id,
                account_name=account_name,
            )
            return account.id

    return None
