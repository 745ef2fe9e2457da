"""Metal registry and visibility set as pure derivation functions."""

from metal_ticker.registry.metals import (
    add_custom_metal,
    make_unique_id,
    parse_custom_metal,
    parse_custom_metals,
    rebuild,
    remove_custom_metal,
    serialize_custom_metals,
    slugify,
)
from metal_ticker.registry.visibility import derive, toggle, toggle_sensitivity

__all__ = [
    "rebuild",
    "parse_custom_metal",
    "parse_custom_metals",
    "serialize_custom_metals",
    "slugify",
    "make_unique_id",
    "add_custom_metal",
    "remove_custom_metal",
    "derive",
    "toggle",
    "toggle_sensitivity",
]
