"""MetalTickerEngine — ties the registry, visibility set, cache and refresh together.

Control flow on a settings change:

    store change → rebuild registry → derive visibility (write back if
    sanitized) → reconcile added metals → refresh → cache → listeners

All state transitions happen on the event loop that called ``start()``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence

from metal_ticker.core.config import RefreshConfig
from metal_ticker.core.exceptions import RegistryError
from metal_ticker.core.models import (
    BUILTIN_METALS,
    CUSTOM_METALS_KEY,
    VISIBLE_METALS_KEY,
    EngineSnapshot,
    Metal,
    MetalId,
)
from metal_ticker.engine.orchestrator import PriceListener, RefreshOrchestrator
from metal_ticker.engine.reconciler import ChangeReconciler
from metal_ticker.prices.cache import PriceCache
from metal_ticker.prices.source import PriceSource
from metal_ticker.registry import metals as registry
from metal_ticker.registry.visibility import derive, toggle, toggle_sensitivity
from metal_ticker.settings.store import SettingsStore

logger = logging.getLogger(__name__)

RegistryListener = Callable[[], None]

_WATCHED_KEYS = frozenset({CUSTOM_METALS_KEY, VISIBLE_METALS_KEY})


class MetalTickerEngine:
    """Owns the registry snapshot and price cache for one settings store.

    Parameters
    ----------
    store : SettingsStore
        Holds the ``custom-metals`` and ``visible-metals`` lists.
    source : PriceSource
        Fetch collaborator used for every refresh.
    config : RefreshConfig | None
        Refresh interval and startup behaviour.
    builtins : Sequence[Metal]
        Built-in metals, always first in the registry.
    """

    def __init__(
        self,
        store: SettingsStore,
        source: PriceSource,
        config: RefreshConfig | None = None,
        builtins: Sequence[Metal] = BUILTIN_METALS,
    ) -> None:
        self._store = store
        self._config = config or RefreshConfig()
        self._builtins = tuple(builtins)
        self._cache = PriceCache()
        self._orchestrator = RefreshOrchestrator(source, self._cache, self._emit_price_updated)
        self._reconciler = ChangeReconciler(self._orchestrator)
        self._snapshot = EngineSnapshot()
        self._handler_id: int | None = None
        self._writing_back = False
        self._price_listeners: list[PriceListener] = []
        self._registry_listeners: list[RegistryListener] = []

    # --- Lifecycle ---

    async def start(self) -> None:
        """Subscribe to the store, build the first snapshot and start refreshing."""
        if self._handler_id is not None:
            return
        self._handler_id = self._store.connect(self._on_settings_changed)
        try:
            self._rebuild()
            self._orchestrator.start(
                lambda: self._snapshot.registry,
                self._config.interval_seconds,
                refresh_on_start=self._config.refresh_on_start,
            )
        except Exception:
            self._store.disconnect(self._handler_id)
            self._handler_id = None
            await self._orchestrator.close()
            raise

    async def close(self) -> None:
        """Unsubscribe, stop refreshing and drop every cached price."""
        if self._handler_id is not None:
            self._store.disconnect(self._handler_id)
            self._handler_id = None
        await self._orchestrator.close()
        self._cache.clear()
        self._snapshot = EngineSnapshot(version=self._snapshot.version + 1)

    async def __aenter__(self) -> MetalTickerEngine:
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def drain(self) -> None:
        """Wait for every in-flight fetch to land in the cache."""
        await self._orchestrator.drain()

    # --- Read access ---

    @property
    def started(self) -> bool:
        return self._handler_id is not None

    @property
    def snapshot(self) -> EngineSnapshot:
        return self._snapshot

    @property
    def metals(self) -> tuple[Metal, ...]:
        return self._snapshot.registry

    @property
    def visible_ids(self) -> tuple[MetalId, ...]:
        return self._snapshot.visible_ids

    @property
    def cache(self) -> PriceCache:
        return self._cache

    @property
    def orchestrator(self) -> RefreshOrchestrator:
        return self._orchestrator

    def metal(self, metal_id: MetalId) -> Metal | None:
        return self._snapshot.get(metal_id)

    def price(self, metal_id: MetalId) -> str | None:
        return self._cache.read(metal_id)

    def toggle_states(self) -> dict[MetalId, bool]:
        """Whether each metal's visibility toggle may currently be flipped."""
        snap = self._snapshot
        return toggle_sensitivity(snap.visible_ids, snap.registry_ids)

    def is_toggle_enabled(self, metal_id: MetalId) -> bool:
        return self.toggle_states().get(metal_id, False)

    # --- Mutations ---

    def set_visible(self, metal_id: MetalId, show: bool) -> bool:
        """Show or hide one metal.

        Returns False when hiding would leave nothing visible; the
        visibility set is then left unchanged.

        Raises:
            RegistryError: If ``metal_id`` is not in the registry.
        """
        snap = self._snapshot
        if snap.get(metal_id) is None:
            raise RegistryError(
                f"Unknown metal: {metal_id!r}", context={"metal_id": metal_id}
            )

        new_ids = toggle(snap.visible_ids, snap.registry_ids, metal_id, show)
        if new_ids is None:
            logger.info("Refusing to hide %s: it is the only visible metal", metal_id)
            return False

        self._store.set_strv(VISIBLE_METALS_KEY, new_ids)
        return True

    def add_custom_metal(self, name: str, url: str) -> Metal:
        """Persist a new custom metal. Its price is fetched right away.

        Raises:
            RegistryError: If name or url is blank.
        """
        raw, metal = registry.add_custom_metal(
            self._store.get_strv(CUSTOM_METALS_KEY), name, url, self._builtins
        )
        self._store.set_strv(CUSTOM_METALS_KEY, raw)
        logger.info("Added custom metal %s (%s)", metal.id, metal.url)
        return metal

    def remove_custom_metal(self, metal_id: MetalId) -> bool:
        """Remove a custom metal and hide it. Returns False if no such custom metal."""
        metal = self._snapshot.get(metal_id)
        if metal is None or not metal.is_custom:
            return False

        self._store.set_strv(
            CUSTOM_METALS_KEY,
            registry.remove_custom_metal(self._store.get_strv(CUSTOM_METALS_KEY), metal_id),
        )
        self._store.set_strv(
            VISIBLE_METALS_KEY,
            [i for i in self._store.get_strv(VISIBLE_METALS_KEY) if i != metal_id],
        )
        logger.info("Removed custom metal %s", metal_id)
        return True

    def refresh_now(self, metal_ids: Iterable[MetalId] | None = None) -> list[Metal]:
        """On-demand refresh of all metals, or only ``metal_ids``. Returns what was scheduled."""
        metals = list(self._snapshot.registry)
        if metal_ids is not None:
            wanted = set(metal_ids)
            metals = [m for m in metals if m.id in wanted]
        self._orchestrator.refresh(metals)
        return metals

    # --- Listeners ---

    def add_price_listener(self, listener: PriceListener) -> None:
        self._price_listeners.append(listener)

    def remove_price_listener(self, listener: PriceListener) -> None:
        if listener in self._price_listeners:
            self._price_listeners.remove(listener)

    def add_registry_listener(self, listener: RegistryListener) -> None:
        self._registry_listeners.append(listener)

    def remove_registry_listener(self, listener: RegistryListener) -> None:
        if listener in self._registry_listeners:
            self._registry_listeners.remove(listener)

    # --- Internals ---

    def _on_settings_changed(self, key: str) -> None:
        if key not in _WATCHED_KEYS:
            return
        # Our own corrective write; the snapshot already reflects it.
        if self._writing_back and key == VISIBLE_METALS_KEY:
            return

        previous_ids = self._snapshot.registry_ids
        self._rebuild()
        self._reconciler.reconcile(key, previous_ids, self._snapshot.registry)

    def _rebuild(self) -> None:
        metals = registry.rebuild(self._builtins, self._store.get_strv(CUSTOM_METALS_KEY))
        persisted = self._store.get_strv(VISIBLE_METALS_KEY)
        visible, changed = derive(metals, persisted)

        self._snapshot = EngineSnapshot(
            registry=metals,
            visible_ids=tuple(visible),
            version=self._snapshot.version + 1,
        )

        if changed:
            logger.info("Sanitized visible metals %s -> %s", persisted, visible)
            self._writing_back = True
            try:
                self._store.set_strv(VISIBLE_METALS_KEY, visible)
            finally:
                self._writing_back = False

        self._emit_registry_changed()

    def _emit_price_updated(self, metal_id: MetalId) -> None:
        for listener in list(self._price_listeners):
            try:
                listener(metal_id)
            except Exception:
                logger.exception("Price listener failed for %s", metal_id)

    def _emit_registry_changed(self) -> None:
        for listener in list(self._registry_listeners):
            try:
                listener()
            except Exception:
                logger.exception("Registry listener failed")
