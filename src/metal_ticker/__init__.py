"""metal-ticker — precious-metal price tracking with a self-healing registry."""

__version__ = "0.1.0"
