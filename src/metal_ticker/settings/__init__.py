"""Persisted settings backends."""

from metal_ticker.settings.store import (
    MemorySettingsStore,
    SettingsListener,
    SettingsStore,
    YamlSettingsStore,
)

__all__ = [
    "SettingsStore",
    "SettingsListener",
    "MemorySettingsStore",
    "YamlSettingsStore",
]
