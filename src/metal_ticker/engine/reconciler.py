"""Change reconciler — out-of-cycle refresh for newly added metals."""

from __future__ import annotations

import logging
from collections.abc import Collection, Sequence

from metal_ticker.core.models import CUSTOM_METALS_KEY, Metal, MetalId
from metal_ticker.engine.orchestrator import RefreshOrchestrator

logger = logging.getLogger(__name__)


def added_metals(previous_ids: Collection[MetalId], registry: Sequence[Metal]) -> list[Metal]:
    """Metals in ``registry`` whose id was not in ``previous_ids``, in registry order."""
    previous = set(previous_ids)
    return [m for m in registry if m.id not in previous]


class ChangeReconciler:
    """Requests a partial refresh when the custom-metal list gains entries.

    Visibility changes never trigger a fetch: they only change which cached
    values are shown.
    """

    def __init__(self, orchestrator: RefreshOrchestrator) -> None:
        self._orchestrator = orchestrator

    def reconcile(
        self,
        key: str,
        previous_ids: Collection[MetalId],
        registry: Sequence[Metal],
    ) -> list[Metal]:
        """Refresh the metals added by a change to ``key``; return them."""
        if key != CUSTOM_METALS_KEY:
            return []

        added = added_metals(previous_ids, registry)
        if added:
            logger.info(
                "Fetching %d new metal(s): %s",
                len(added), ", ".join(m.id for m in added),
            )
            self._orchestrator.refresh(added)
        return added
