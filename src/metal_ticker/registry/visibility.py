"""Visibility set: the persisted, self-healing subset of displayed metals."""

from __future__ import annotations

from collections.abc import Sequence

from metal_ticker.core.models import Metal, MetalId


def _in_registry_order(ids: set[MetalId], registry_order: Sequence[MetalId]) -> list[MetalId]:
    return [metal_id for metal_id in registry_order if metal_id in ids]


def derive(
    registry: Sequence[Metal],
    persisted_ids: Sequence[MetalId],
) -> tuple[list[MetalId], bool]:
    """Sanitize a persisted visibility list against the registry.

    Unknown and duplicate ids are dropped and the result follows registry
    order. An empty result falls back to the first registry metal.

    Returns:
        (sanitized ids, whether they differ from ``persisted_ids``).
    """
    registry_order = [m.id for m in registry]
    sanitized = _in_registry_order(set(persisted_ids), registry_order)

    if not sanitized and registry_order:
        sanitized = [registry_order[0]]

    return sanitized, sanitized != list(persisted_ids)


def toggle(
    current_ids: Sequence[MetalId],
    registry_order: Sequence[MetalId],
    metal_id: MetalId,
    show: bool,
) -> list[MetalId] | None:
    """Show or hide one metal.

    Returns the new visibility list in registry order, or None when hiding
    ``metal_id`` would leave nothing visible. Callers must then revert any
    optimistic UI state.
    """
    visible = set(current_ids)
    if show:
        visible.add(metal_id)
    else:
        visible.discard(metal_id)

    ordered = _in_registry_order(visible, registry_order)
    return ordered or None


def toggle_sensitivity(
    visible_ids: Sequence[MetalId],
    registry_order: Sequence[MetalId],
) -> dict[MetalId, bool]:
    """Which toggles may currently be flipped.

    With exactly one visible metal its toggle is disabled, so the set can
    never be emptied from the UI.
    """
    visible = set(visible_ids)
    if len(visible) == 1:
        (only_id,) = visible
        return {metal_id: metal_id != only_id for metal_id in registry_order}
    return {metal_id: True for metal_id in registry_order}
