"""Refresh orchestrator — concurrent per-metal price fetches.

Every metal in a refresh gets its own asyncio task. There is no cap on
concurrency and no batching; completions land in the shared ``PriceCache``
in whatever order they finish. A new cycle never cancels fetches still
running from an earlier one, and removing a metal from the registry does
not cancel its in-flight fetch either. Only ``close()`` cancels.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Sequence

from metal_ticker.core.config import DEFAULT_REFRESH_SECONDS
from metal_ticker.core.exceptions import FetchError
from metal_ticker.core.models import Metal, MetalId
from metal_ticker.prices.cache import PriceCache
from metal_ticker.prices.source import PriceSource

logger = logging.getLogger(__name__)

PriceListener = Callable[[MetalId], None]
MetalsProvider = Callable[[], Sequence[Metal]]


class RefreshOrchestrator:
    """Launches fetches, records their outcome and notifies listeners.

    Must be used from a running event loop; that loop is the single
    control thread on which every completion is recorded.

    Parameters
    ----------
    source : PriceSource
        Fetch collaborator. Any exception it raises counts as a failure.
    cache : PriceCache
        Destination for every fetch outcome.
    on_price_updated : PriceListener | None
        Called with the metal id after every cache write.
    """

    def __init__(
        self,
        source: PriceSource,
        cache: PriceCache,
        on_price_updated: PriceListener | None = None,
    ) -> None:
        self._source = source
        self._cache = cache
        self._on_price_updated = on_price_updated
        self._tasks: set[asyncio.Task[None]] = set()
        self._timer: asyncio.Task[None] | None = None
        self._cycles = 0

    @property
    def in_flight(self) -> int:
        """Number of fetches that have not completed yet."""
        return len(self._tasks)

    @property
    def cycles(self) -> int:
        """Number of periodic cycles launched so far."""
        return self._cycles

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def refresh(self, metals: Iterable[Metal]) -> None:
        """Start one independent fetch per metal and return immediately."""
        loop = asyncio.get_running_loop()
        for metal in metals:
            task = loop.create_task(self._fetch_one(metal), name=f"fetch:{metal.id}")
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _fetch_one(self, metal: Metal) -> None:
        price: str | None
        try:
            price = await self._source.fetch_price(metal.url)
        except FetchError as e:
            logger.warning("Price unavailable for %s: %s", metal.id, e)
            price = None
        except Exception:
            logger.exception("Unexpected error fetching price for %s", metal.id)
            price = None
        else:
            logger.debug("Fetched %s = %s", metal.id, price)

        self._cache.record(metal.id, price)

        if self._on_price_updated is not None:
            try:
                self._on_price_updated(metal.id)
            except Exception:
                logger.exception("Price listener failed for %s", metal.id)

    def start(
        self,
        metals_provider: MetalsProvider,
        interval_seconds: float = DEFAULT_REFRESH_SECONDS,
        refresh_on_start: bool = True,
    ) -> None:
        """Refresh ``metals_provider()`` now, then every ``interval_seconds``.

        The provider is called at the start of each cycle so every cycle
        covers the registry as it is at that moment.
        """
        if self.running:
            return
        if refresh_on_start:
            self._run_cycle(metals_provider)
        self._timer = asyncio.get_running_loop().create_task(
            self._periodic(metals_provider, interval_seconds),
            name="refresh-timer",
        )

    async def _periodic(self, metals_provider: MetalsProvider, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            self._run_cycle(metals_provider)

    def _run_cycle(self, metals_provider: MetalsProvider) -> None:
        metals = list(metals_provider())
        self._cycles += 1
        logger.info("Refresh cycle %d: %d metals", self._cycles, len(metals))
        self.refresh(metals)

    async def drain(self) -> None:
        """Wait until every in-flight fetch has completed."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Stop the timer and cancel in-flight fetches."""
        pending = list(self._tasks)
        if self._timer is not None:
            pending.append(self._timer)
            self._timer = None
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._tasks.clear()
