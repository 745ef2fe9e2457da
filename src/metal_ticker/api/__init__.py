"""HTTP API over the running engine."""

from metal_ticker.api.app import create_app

__all__ = ["create_app"]
