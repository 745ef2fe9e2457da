"""Dependency injection for FastAPI routes."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request
from fastapi.responses import JSONResponse

from metal_ticker.core.config import TickerConfig
from metal_ticker.engine.engine import MetalTickerEngine


@dataclass
class AppState:
    """Shared application state, attached to app.state during lifespan."""

    config: TickerConfig
    engine: MetalTickerEngine


def get_app_state(request: Request) -> AppState:
    """Dependency: retrieve AppState from the request."""
    return request.app.state.app_state


def get_config(request: Request) -> TickerConfig:
    """Dependency: retrieve config."""
    return request.app.state.app_state.config


def get_engine(request: Request) -> MetalTickerEngine:
    """Dependency: retrieve the running engine."""
    return request.app.state.app_state.engine


EXEMPT_PATHS = {"/api/health"}


async def api_key_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Middleware: validate X-API-Key header when authentication is enabled."""
    if request.url.path in EXEMPT_PATHS:
        return await call_next(request)

    config = request.app.state.app_state.config
    if config.api.api_key:
        api_key = request.headers.get("X-API-Key")
        if api_key != config.api.api_key:
            return JSONResponse(
                status_code=401,
                content={"error": "Unauthorized", "detail": "Invalid or missing API key"},
            )
    return await call_next(request)
