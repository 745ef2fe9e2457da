"""Refresh orchestration, change reconciliation and the engine facade."""

from metal_ticker.engine.engine import MetalTickerEngine, RegistryListener
from metal_ticker.engine.orchestrator import PriceListener, RefreshOrchestrator
from metal_ticker.engine.reconciler import ChangeReconciler, added_metals

__all__ = [
    "MetalTickerEngine",
    "RefreshOrchestrator",
    "ChangeReconciler",
    "added_metals",
    "PriceListener",
    "RegistryListener",
]
