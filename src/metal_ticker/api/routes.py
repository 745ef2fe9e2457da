"""FastAPI route definitions for the metal-ticker API."""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response

import metal_ticker
from metal_ticker.api.deps import get_engine
from metal_ticker.api.schemas import (
    CustomMetalRequest,
    HealthResponse,
    MetalResponse,
    RefreshRequest,
    RefreshResponse,
    VisibilityRequest,
)
from metal_ticker.core.exceptions import RegistryError
from metal_ticker.core.models import Metal, format_menu_label
from metal_ticker.engine.engine import MetalTickerEngine

router = APIRouter()


def _metal_response(engine: MetalTickerEngine, metal: Metal) -> MetalResponse:
    price = engine.price(metal.id)
    return MetalResponse(
        id=metal.id,
        name=metal.name,
        url=metal.url,
        is_custom=metal.is_custom,
        visible=metal.id in engine.visible_ids,
        toggle_enabled=engine.is_toggle_enabled(metal.id),
        price=price,
        label=format_menu_label(metal, price),
    )


# -- Health --


@router.get("/health", response_model=HealthResponse)
async def health_check(engine: MetalTickerEngine = Depends(get_engine)):
    """Engine status and registry size."""
    return HealthResponse(
        status="ok" if engine.started else "stopped",
        version=metal_ticker.__version__,
        total_metals=len(engine.metals),
        visible_metals=len(engine.visible_ids),
        refreshes_in_flight=engine.orchestrator.in_flight,
    )


# -- Metals --


@router.get("/metals", response_model=list[MetalResponse])
async def list_metals(engine: MetalTickerEngine = Depends(get_engine)):
    """Every registered metal in registry order."""
    return [_metal_response(engine, m) for m in engine.metals]


@router.get("/metals/{metal_id}", response_model=MetalResponse)
async def get_metal(metal_id: str, engine: MetalTickerEngine = Depends(get_engine)):
    metal = engine.metal(metal_id)
    if metal is None:
        raise HTTPException(status_code=404, detail=f"Metal '{metal_id}' not found")
    return _metal_response(engine, metal)


@router.put("/metals/{metal_id}/visibility", response_model=MetalResponse)
async def set_visibility(
    metal_id: str,
    request: VisibilityRequest,
    engine: MetalTickerEngine = Depends(get_engine),
):
    """Show or hide a metal. Hiding the last visible metal is refused with 409."""
    try:
        accepted = engine.set_visible(metal_id, request.visible)
    except RegistryError:
        raise HTTPException(status_code=404, detail=f"Metal '{metal_id}' not found")

    if not accepted:
        raise HTTPException(
            status_code=409,
            detail=f"Cannot hide '{metal_id}': at least one metal must stay visible",
        )
    return _metal_response(engine, engine.metal(metal_id))


@router.post("/metals", response_model=MetalResponse, status_code=201)
async def add_metal(
    request: CustomMetalRequest,
    engine: MetalTickerEngine = Depends(get_engine),
):
    """Add a custom metal. Its price is fetched immediately in the background."""
    metal = engine.add_custom_metal(request.name, request.url)
    return _metal_response(engine, engine.metal(metal.id) or metal)


@router.delete("/metals/{metal_id}", status_code=204)
async def remove_metal(metal_id: str, engine: MetalTickerEngine = Depends(get_engine)):
    """Remove a custom metal. Built-in metals cannot be removed."""
    if not engine.remove_custom_metal(metal_id):
        raise HTTPException(
            status_code=404, detail=f"Custom metal '{metal_id}' not found"
        )
    return Response(status_code=204)


# -- Prices --


@router.get("/prices", response_model=dict[str, str | None])
async def list_prices(
    all_metals: bool = Query(False, alias="all", description="Include hidden metals"),
    engine: MetalTickerEngine = Depends(get_engine),
):
    """Last-known price per metal; null when unavailable."""
    metals = engine.metals if all_metals else engine.snapshot.visible_metals()
    return {m.id: engine.price(m.id) for m in metals}


@router.post("/refresh", response_model=RefreshResponse, status_code=202)
async def refresh(
    request: RefreshRequest | None = Body(None),
    engine: MetalTickerEngine = Depends(get_engine),
):
    """Start an on-demand refresh without waiting for it to finish."""
    scheduled = engine.refresh_now(request.ids if request else None)
    return RefreshResponse(scheduled=[m.id for m in scheduled])
