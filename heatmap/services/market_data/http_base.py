# heatmap/services/market_data/http_base.py
"""
Shared HTTP plumbing for the REST quote providers.

Maps transport and status failures onto the provider exception hierarchy
so the retry policy in QuoteProvider can tell transient from permanent:

    timeout / connection error  -> ProviderUnavailableError (retried)
    HTTP 429                    -> RateLimitError (retried)
    HTTP 5xx                    -> ProviderUnavailableError (retried)
    other HTTP 4xx              -> NoDataError
    body is not JSON            -> DeserializationError
"""

import logging
from typing import Any

import httpx

from heatmap.services.exceptions import (
    DeserializationError,
    NoDataError,
    ProviderUnavailableError,
    RateLimitError,
)
from heatmap.services.market_data.base import QuoteProvider

logger = logging.getLogger(__name__)


class HTTPQuoteProvider(QuoteProvider):
    """
    QuoteProvider backed by a synchronous httpx.Client.

    Args:
        api_key: Provider API key, sent as a query parameter
        base_url: REST base URL
        timeout: Request timeout in seconds
        client: Pre-built client (tests pass one with httpx.MockTransport)
    """

    API_KEY_PARAM: str = "apikey"

    def __init__(
            self,
            api_key: str | None,
            base_url: str,
            timeout: float = 10.0,
            client: httpx.Client | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)
        logger.info(f"{type(self).__name__} initialized (base_url={self._base_url}, timeout={timeout}s)")

    def close(self) -> None:
        self._client.close()

    def _get_json(self, url: str, params: dict[str, Any] | None = None, symbol: str = "") -> Any:
        """
        GET a URL and decode its JSON body.

        Args:
            url: Absolute URL
            params: Query parameters (the API key is added here)
            symbol: Symbol being fetched, for error messages
        """
        query = dict(params or {})
        if self._api_key:
            query[self.API_KEY_PARAM] = self._api_key

        try:
            response = self._client.get(url, params=query)
        except httpx.TimeoutException as e:
            raise ProviderUnavailableError(provider=self.name, reason=f"timeout: {e}")
        except httpx.RequestError as e:
            raise ProviderUnavailableError(provider=self.name, reason=str(e))

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                provider=self.name,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if response.status_code >= 500:
            raise ProviderUnavailableError(
                provider=self.name,
                reason=f"HTTP {response.status_code}",
            )
        if response.status_code >= 400:
            raise NoDataError(
                provider=self.name,
                symbol=symbol or url,
                reason=f"HTTP {response.status_code}",
            )

        try:
            return response.json()
        except ValueError as e:
            raise DeserializationError(provider=self.name, reason=str(e))
