"""
Plaid adapter.

One access token per linked institution, keyed by an institution key
such as "wellsfargo". The key doubles as the institution label handed
to the matcher, so it should resemble the institution names used in
the Accounts sheet.

Also implements the two calls needed to link a new institution
(link token creation and public token exchange); storing the resulting
access token is left to the user.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Optional

import httpx
import structlog

from finance_aggregator.config import PlaidSettings
from finance_aggregator.models.account import IngestionMethod
from finance_aggregator.models.extraction import ProviderAccount
from finance_aggregator.services.providers.base import (
    AccountProvider,
    ProviderError,
    ProviderFetch,
    ProviderHTTPClient,
)


logger = structlog.get_logger(__name__)

CLIENT_NAME = "Finance Aggregator"
CLIENT_USER_ID = "finance-aggregator-user"


def institution_key(name: str) -> str:
    """Access-token key for an institution name: "Wells Fargo" -> "wellsfargo"."""
    return re.sub(r"[^a-z0-9]", "", (name or "").lower())


def _to_decimal(value) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


class PlaidProvider(ProviderHTTPClient, AccountProvider):
    """Fetches balances for every configured Plaid access token."""

    provider = IngestionMethod.PLAID

    def __init__(
        self,
        client_id: str,
        secret: str,
        base_url: str,
        access_tokens: Optional[dict[str, str]] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        super().__init__(
            base_url=base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )
        self._client_id = client_id
        self._secret = secret
        self._access_tokens = dict(access_tokens or {})

    @classmethod
    def from_settings(cls, settings: PlaidSettings) -> "PlaidProvider":
        return cls(
            client_id=settings.client_id,
            secret=settings.secret,
            base_url=settings.base_url,
            access_tokens=settings.access_tokens,
            timeout=settings.timeout_seconds,
        )

    def _post(self, path: str, body: dict) -> dict:
        payload = {"client_id": self._client_id, "secret": self._secret, **body}
        data = self._json(self._request("POST", path, json=payload))
        if not isinstance(data, dict):
            raise ProviderError(f"Unexpected Plaid response for {path}")
        return data

    def units(self) -> list[str]:
        return list(self._access_tokens)

    def _normalize(self, key: str, raw: dict) -> Optional[ProviderAccount]:
        balances = raw.get("balances") or {}
        current = _to_decimal(balances.get("current"))
        if current is None:
            current = _to_decimal(balances.get("available"))
        if current is None:
            logger.warning("plaid_account_without_balance", institution=key,
                           account_id=raw.get("account_id"))
            return None
        return ProviderAccount(
            provider_account_id=raw["account_id"],
            institution_label=key,
            account_name=raw.get("official_name") or raw.get("name") or "",
            current_balance_magnitude=abs(current),
            account_type=raw.get("type") or "",
        )

    def fetch_accounts(self, unit: str) -> ProviderFetch:
        """
        Current balances for one linked institution.

        Raises:
            ProviderError: Unknown key, HTTP failure or malformed payload
        """
        token = self._access_tokens.get(unit)
        if not token:
            raise ProviderError(f"No Plaid access token for '{unit}'")

        data = self._post("/accounts/balance/get", {"access_token": token})
        fetch = ProviderFetch()
        for raw in data.get("accounts") or []:
            if not isinstance(raw, dict) or not raw.get("account_id"):
                raise ProviderError(f"Malformed Plaid account entry for '{unit}'")
            try:
                account = self._normalize(unit, raw)
            except (ValueError, TypeError, AttributeError) as e:
                # ValueError covers pydantic's ValidationError
                raise ProviderError(
                    f"Malformed Plaid account entry for '{unit}'"
                ) from e
            if account is None:
                fetch.messages.append(
                    f"{unit}: account {raw['account_id']} reported no balance"
                )
                continue
            fetch.accounts.append(account)
        return fetch

    def create_link_token(self, client_user_id: str = CLIENT_USER_ID) -> str:
        """Link token for opening Plaid Link in a browser."""
        data = self._post("/link/token/create", {
            "user": {"client_user_id": client_user_id},
            "client_name": CLIENT_NAME,
            "products": ["transactions"],
            "country_codes": ["US"],
            "language": "en",
        })
        token = data.get("link_token")
        if not token:
            raise ProviderError("Plaid did not return a link token")
        return token

    def exchange_public_token(self, public_token: str, institution_name: str) -> dict:
        """
        Exchange a Link public token for a long-lived access token.

        Returns:
            {institution, institution_key, access_token, item_id}
        """
        data = self._post("/item/public_token/exchange", {"public_token": public_token})
        if not data.get("access_token"):
            raise ProviderError("Plaid did not return an access token")
        name = institution_name or "Unknown"
        return {
            "institution": name,
            "institution_key": institution_key(name),
            "access_token": data["access_token"],
            "item_id": data.get("item_id", ""),
        }
