"""API-specific request/response schemas (Pydantic v2)."""

from __future__ import annotations

from pydantic import BaseModel, Field


# -- Error --


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    error: str
    detail: str | None = None


# -- Health --


class HealthResponse(BaseModel):
    """System health summary."""

    status: str
    version: str
    total_metals: int
    visible_metals: int
    refreshes_in_flight: int


# -- Metals --


class MetalResponse(BaseModel):
    """One registry entry with its visibility and last-known price."""

    id: str
    name: str
    url: str
    is_custom: bool
    visible: bool
    toggle_enabled: bool
    price: str | None = None
    label: str


class VisibilityRequest(BaseModel):
    """Request body for PUT /metals/{id}/visibility."""

    visible: bool


class CustomMetalRequest(BaseModel):
    """Request body for POST /metals."""

    name: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)


# -- Refresh --


class RefreshRequest(BaseModel):
    """Request body for POST /refresh. Omit ids to refresh every metal."""

    ids: list[str] | None = None


class RefreshResponse(BaseModel):
    """Metals scheduled for an on-demand refresh."""

    scheduled: list[str]
