"""Shared pytest fixtures for metal-ticker."""

from __future__ import annotations

import asyncio
import json

import pytest

from metal_ticker.core.config import RefreshConfig
from metal_ticker.core.exceptions import FetchError
from metal_ticker.core.models import (
    BUILTIN_METALS,
    CUSTOM_METALS_KEY,
    VISIBLE_METALS_KEY,
    Metal,
)
from metal_ticker.settings.store import MemorySettingsStore

GOLD_URL = BUILTIN_METALS[0].url
SILVER_URL = BUILTIN_METALS[1].url
PLATINUM_URL = "https://www.google.com/finance/quote/PLW00:COMEX"


class FakePriceSource:
    """PriceSource returning canned values keyed by URL.

    A value that is an exception instance is raised; a missing URL raises
    FetchError.
    """

    def __init__(self, prices: dict | None = None) -> None:
        self.prices = dict(prices or {})
        self.calls: list[str] = []
        self.closed = False

    async def fetch_price(self, url: str) -> str:
        self.calls.append(url)
        await asyncio.sleep(0)
        value = self.prices.get(url)
        if isinstance(value, BaseException):
            raise value
        if value is None:
            raise FetchError(f"No price for {url}", context={"url": url})
        return value

    async def close(self) -> None:
        self.closed = True


class GatedPriceSource:
    """PriceSource whose n-th call blocks until ``release(n)``.

    Lets tests choose the completion order of overlapping fetches.
    """

    def __init__(self, results: list) -> None:
        self._results = list(results)
        self._gates = [asyncio.Event() for _ in results]
        self.calls: list[str] = []

    async def fetch_price(self, url: str) -> str:
        index = len(self.calls)
        self.calls.append(url)
        await self._gates[index].wait()
        result = self._results[index]
        if isinstance(result, BaseException):
            raise result
        return result

    def release(self, index: int) -> None:
        self._gates[index].set()

    async def close(self) -> None:
        pass


def custom_entry(metal_id: str, name: str, url: str) -> str:
    return json.dumps({"id": metal_id, "name": name, "url": url})


@pytest.fixture
def gold() -> Metal:
    return BUILTIN_METALS[0]


@pytest.fixture
def silver() -> Metal:
    return BUILTIN_METALS[1]


@pytest.fixture
def platinum() -> Metal:
    return Metal(id="custom-platinum", name="Platinum", url=PLATINUM_URL, is_custom=True)


@pytest.fixture
def fake_source() -> FakePriceSource:
    return FakePriceSource(
        {
            GOLD_URL: "2,345.10",
            SILVER_URL: "$29.87",
            PLATINUM_URL: "1,012.40",
        }
    )


@pytest.fixture
def memory_store() -> MemorySettingsStore:
    return MemorySettingsStore({CUSTOM_METALS_KEY: [], VISIBLE_METALS_KEY: ["gold", "silver"]})


@pytest.fixture
def refresh_config() -> RefreshConfig:
    """Long interval so only the startup cycle runs during a test."""
    return RefreshConfig(interval_seconds=3600)
