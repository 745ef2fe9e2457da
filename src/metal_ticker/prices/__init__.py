"""Price retrieval, extraction and caching.

Key abstractions:

- ``PriceSource``: async "URL → price text" protocol.
- ``HttpPriceSource``: httpx-backed implementation for quote pages.
- ``extract_price`` / ``normalize_price``: HTML → price token.
- ``PriceCache``: lock-guarded last-known price per metal id.
"""

from metal_ticker.prices.cache import PriceCache
from metal_ticker.prices.extract import PRICE_SELECTOR, extract_price, normalize_price
from metal_ticker.prices.source import HttpPriceSource, PriceSource

__all__ = [
    "PriceSource",
    "HttpPriceSource",
    "PRICE_SELECTOR",
    "extract_price",
    "normalize_price",
    "PriceCache",
]
