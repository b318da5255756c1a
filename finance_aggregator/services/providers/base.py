"""
Base class for account-data provider adapters.

Every provider (Plaid, SimpleFIN) is reached over HTTP and returns
accounts in the same normalized ProviderAccount shape, so the batch
runner can treat them identically.

A provider is split into "units" - the thing that can fail on its own.
For Plaid that is one access token (one linked institution); for
SimpleFIN it is one access URL. A failure in one unit is reported and
the runner moves on to the next.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx
import structlog
from pydantic import BaseModel, Field
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from finance_aggregator.models.account import IngestionMethod
from finance_aggregator.models.extraction import ProviderAccount


logger = structlog.get_logger(__name__)


class ProviderError(Exception):
    """A provider call failed (network, HTTP status, or error payload)."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class ProviderFetch(BaseModel):
    """Accounts returned for one unit, plus any non-fatal provider messages."""

    accounts: list[ProviderAccount] = Field(default_factory=list)
    messages: list[str] = Field(default_factory=list)


def _error_detail(response: httpx.Response) -> str:
    """Best human-readable message from an error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        for key in ("error_message", "message", "error"):
            if body.get(key):
                return str(body[key])
    return response.text[:200]


class ProviderHTTPClient:
    """
    HTTP client with retry logic, timeouts and error handling.

    Transient transport errors are retried; everything else surfaces
    as ProviderError.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        headers: Optional[dict[str, str]] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.default_headers = headers or {}
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    @property
    def client(self) -> httpx.Client:
        """Lazy initialization of HTTP client."""
        if self._client is None:
            kwargs: dict[str, Any] = {
                "timeout": self.timeout,
                "headers": self.default_headers,
            }
            if self.base_url:
                kwargs["base_url"] = self.base_url
            if self._transport is not None:
                kwargs["transport"] = self._transport
            self._client = httpx.Client(**kwargs)
        return self._client

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.ConnectError)),
        reraise=True,
    )
    def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        return self.client.request(method, url, **kwargs)

    def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """
        Make an HTTP request.

        Raises:
            ProviderError: On HTTP errors, timeouts, or connection failures
        """
        try:
            response = self._send(method, url, **kwargs)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            detail = _error_detail(e.response)
            logger.warning(
                "provider_http_error",
                method=method,
                status=e.response.status_code,
                detail=detail,
            )
            raise ProviderError(
                f"HTTP {e.response.status_code}: {detail}",
                status_code=e.response.status_code,
                response_body=e.response.text,
            ) from e
        except httpx.TimeoutException as e:
            raise ProviderError("Request timed out") from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Connection failed: {e}") from e

    def _json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError("Provider returned invalid JSON") from e


class AccountProvider(ABC):
    """Interface the batch runner uses to fetch accounts."""

    provider: IngestionMethod

    @abstractmethod
    def units(self) -> list[str]:
        """Independent fetch units, in the order they should be processed."""
        pass

    def unit_label(self, unit: str) -> str:
        """Name of a unit that is safe to log and show to the user."""
        return unit

    @abstractmethod
    def fetch_accounts(self, unit: str) -> ProviderFetch:
        """
        Fetch normalized accounts for one unit.

        Raises:
            ProviderError: If the unit could not be fetched
        """
        pass
