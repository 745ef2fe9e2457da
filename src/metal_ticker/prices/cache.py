"""Last-known price per metal."""

from __future__ import annotations

import threading

from metal_ticker.core.models import MetalId
from metal_ticker.prices.extract import normalize_price


class PriceCache:
    """Lock-guarded mapping of metal id -> price text or None.

    ``None`` means "no usable value": the metal was never fetched or its
    last fetch failed. Every write overwrites unconditionally, so when two
    fetches for the same id overlap the one that completes last wins.
    Entries for metals that later leave the registry are kept until
    ``clear()``.
    """

    def __init__(self) -> None:
        self._prices: dict[MetalId, str | None] = {}
        self._lock = threading.Lock()

    def record(self, metal_id: MetalId, price: str | None) -> None:
        """Store a fetch outcome: price text on success, None on failure."""
        value = normalize_price(price) if price is not None else None
        with self._lock:
            self._prices[metal_id] = value or None

    def read(self, metal_id: MetalId) -> str | None:
        with self._lock:
            return self._prices.get(metal_id)

    def snapshot(self) -> dict[MetalId, str | None]:
        """Copy of every recorded entry."""
        with self._lock:
            return dict(self._prices)

    def clear(self) -> None:
        with self._lock:
            self._prices.clear()

    def __contains__(self, metal_id: object) -> bool:
        with self._lock:
            return metal_id in self._prices

    def __len__(self) -> int:
        with self._lock:
            return len(self._prices)
