"""Custom exception hierarchy for metal-ticker."""

from typing import Any


class MetalTickerError(Exception):
    """Base exception for all metal-ticker errors.

    All exceptions carry an optional `context` dict for structured error
    metadata that can be logged or serialized without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ConfigError(MetalTickerError):
    """Invalid or missing configuration.

    Raised by load_config() during startup. Should be treated as fatal.

    Context keys:
        field: str — the config field that failed validation
        value: Any — the invalid value (redacted for secrets)
    """


class SettingsError(MetalTickerError):
    """The persisted settings file could not be read or written.

    Policy: fatal at startup (corrupt file); raise on write failure.

    Context keys:
        path: str — the settings file
        key: str | None — the settings key involved, if any
    """


class RegistryError(MetalTickerError):
    """A custom metal could not be added or removed.

    Policy: surface to the caller as an input error. Never raised while
    rebuilding the registry; malformed persisted entries are skipped.

    Context keys:
        field: str — "name" or "url"
        metal_id: str — the metal involved, if known
    """


class FetchError(MetalTickerError):
    """Failed to retrieve a price page.

    Policy: record the metal as unavailable and move on. Never retried
    within a refresh cycle; the next cycle tries again.

    Context keys:
        url: str — the URL that was being fetched
        status_code: int | None — HTTP status if a response arrived
    """


class ExtractionError(FetchError):
    """The price page was retrieved but no price marker was found.

    Policy: same as FetchError.

    Context keys:
        url: str — the page the extraction ran against
        length: int — size of the page text in characters
    """
