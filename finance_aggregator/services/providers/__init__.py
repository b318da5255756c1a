"""Account-data provider adapters."""

from finance_aggregator.services.providers.base import (
    AccountProvider,
    ProviderError,
    ProviderFetch,
    ProviderHTTPClient,
)
from finance_aggregator.services.providers.plaid import PlaidProvider, institution_key
from finance_aggregator.services.providers.simplefin import (
    SimpleFINProvider,
    split_access_url,
)

__all__ = [
    "AccountProvider",
    "ProviderError",
    "ProviderFetch",
    "ProviderHTTPClient",
    "PlaidProvider",
    "SimpleFINProvider",
    "institution_key",
    "split_access_url",
]
