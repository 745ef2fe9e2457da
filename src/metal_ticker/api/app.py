"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from metal_ticker.api.deps import AppState, api_key_middleware
from metal_ticker.api.routes import router
from metal_ticker.core.config import TickerConfig, load_config
from metal_ticker.core.exceptions import (
    ConfigError,
    MetalTickerError,
    RegistryError,
    SettingsError,
)
from metal_ticker.engine.engine import MetalTickerEngine
from metal_ticker.prices.source import HttpPriceSource, PriceSource
from metal_ticker.settings.store import SettingsStore, YamlSettingsStore


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown lifecycle."""
    config = app.state._pending_config or load_config()
    store = app.state._pending_store or YamlSettingsStore(config.settings.path)
    source = app.state._pending_source
    owned_source = source is None
    if owned_source:
        source = HttpPriceSource(config.source)

    engine = MetalTickerEngine(store, source, config.refresh)
    await engine.start()
    app.state.app_state = AppState(config=config, engine=engine)

    yield

    await engine.close()
    if owned_source:
        await source.close()


def create_app(
    config: TickerConfig | None = None,
    store: SettingsStore | None = None,
    source: PriceSource | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    import metal_ticker

    app = FastAPI(
        title="metal-ticker API",
        description="Precious-metal prices with a self-healing watch list",
        version=metal_ticker.__version__,
        lifespan=lifespan,
    )

    # Stash collaborators so lifespan can retrieve them
    app.state._pending_config = config
    app.state._pending_store = store
    app.state._pending_source = source

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if config and config.api.api_key:
        app.middleware("http")(api_key_middleware)

    app.include_router(router, prefix="/api")

    @app.exception_handler(MetalTickerError)
    async def ticker_exception_handler(request: Request, exc: MetalTickerError):
        status_map = {
            ConfigError: 400,
            RegistryError: 422,
            SettingsError: 500,
        }
        status = status_map.get(type(exc), 500)
        return JSONResponse(
            status_code=status,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    return app
