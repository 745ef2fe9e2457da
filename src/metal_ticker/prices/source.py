"""Price sources: the "fetch a price for a URL" collaborator.

Architecture
------------
The refresh orchestrator depends only on the ``PriceSource`` protocol:

    URL → PriceSource.fetch_price → normalized price text | FetchError

``HttpPriceSource`` is the production implementation: it downloads the
quote page with httpx and runs ``extract_price`` over the body. Network
errors, non-2xx responses and missing price markers all surface as
``FetchError`` so callers handle a single failure outcome.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

import httpx

from metal_ticker.core.config import SourceConfig
from metal_ticker.core.exceptions import FetchError
from metal_ticker.prices.extract import extract_price

logger = logging.getLogger(__name__)


@runtime_checkable
class PriceSource(Protocol):
    """Consumer-facing interface for fetching one price."""

    async def fetch_price(self, url: str) -> str:
        """Fetch and extract the current price at ``url``.

        Raises
        ------
        FetchError
            For any failure: transport, HTTP status or extraction.
        """
        ...


class HttpPriceSource:
    """Fetches quote pages over HTTP and extracts the price.

    Use via ``async with HttpPriceSource(config) as source:`` or call
    ``close()`` explicitly. The request timeout from ``SourceConfig`` is
    the only bound on how long a single fetch may take.

    Parameters
    ----------
    config : SourceConfig
        User agent, timeout and redirect policy.
    transport : httpx.AsyncBaseTransport | None
        Optional transport override (useful for testing).
    """

    def __init__(
        self,
        config: SourceConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or SourceConfig()
        self._client = httpx.AsyncClient(
            headers={"User-Agent": self._config.user_agent},
            timeout=httpx.Timeout(self._config.request_timeout),
            follow_redirects=self._config.follow_redirects,
            transport=transport,
        )

    async def __aenter__(self) -> HttpPriceSource:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client. Called automatically by __aexit__."""
        await self._client.aclose()

    async def fetch_text(self, url: str) -> str:
        """Download the raw page text.

        Raises:
            FetchError: Transport error or non-2xx status.
        """
        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise FetchError(
                f"HTTP {e.response.status_code} from {url}",
                context={"url": url, "status_code": e.response.status_code},
            ) from e
        except httpx.HTTPError as e:
            raise FetchError(
                f"Request failed for {url}: {e}",
                context={"url": url, "status_code": None},
            ) from e
        return response.text

    async def fetch_price(self, url: str) -> str:
        html = await self.fetch_text(url)
        price = extract_price(html, url)
        logger.debug("Extracted price %s from %s", price, url)
        return price
