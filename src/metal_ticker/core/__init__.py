"""metal_ticker.core — Foundation types, config, and exceptions."""

from metal_ticker.core.config import (
    APIConfig,
    RefreshConfig,
    SettingsConfig,
    SourceConfig,
    TickerConfig,
    load_config,
)
from metal_ticker.core.exceptions import (
    ConfigError,
    ExtractionError,
    FetchError,
    MetalTickerError,
    RegistryError,
    SettingsError,
)
from metal_ticker.core.models import (
    BUILTIN_METALS,
    CUSTOM_METALS_KEY,
    VISIBLE_METALS_KEY,
    EngineSnapshot,
    Metal,
    MetalId,
    format_menu_label,
    format_panel_label,
)

__all__ = [
    # Type aliases
    "MetalId",
    # Models
    "Metal",
    "EngineSnapshot",
    "BUILTIN_METALS",
    "CUSTOM_METALS_KEY",
    "VISIBLE_METALS_KEY",
    "format_panel_label",
    "format_menu_label",
    # Config
    "TickerConfig",
    "SourceConfig",
    "RefreshConfig",
    "SettingsConfig",
    "APIConfig",
    "load_config",
    # Exceptions
    "MetalTickerError",
    "ConfigError",
    "SettingsError",
    "RegistryError",
    "FetchError",
    "ExtractionError",
]
