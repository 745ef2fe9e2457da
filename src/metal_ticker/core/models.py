"""Pydantic data models — the system's type contracts."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator

# --- Type Aliases ---

MetalId = str

# --- Settings keys ---

CUSTOM_METALS_KEY = "custom-metals"
VISIBLE_METALS_KEY = "visible-metals"

# --- Registry Models ---


class Metal(BaseModel):
    """A tracked commodity: stable id, display name and price page URL."""

    model_config = ConfigDict(frozen=True)

    id: MetalId
    name: str
    url: str
    is_custom: bool = False

    @field_validator("id", "name", "url")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


BUILTIN_METALS: tuple[Metal, ...] = (
    Metal(
        id="gold",
        name="Gold",
        url="https://www.google.com/finance/quote/GCW00:COMEX",
    ),
    Metal(
        id="silver",
        name="Silver",
        url="https://www.google.com/finance/quote/SIW00:COMEX",
    ),
)


class EngineSnapshot(BaseModel):
    """Immutable view of the registry and visibility set.

    A new snapshot replaces the old one on every rebuild, so readers never
    see a half-built registry.
    """

    model_config = ConfigDict(frozen=True)

    registry: tuple[Metal, ...] = ()
    visible_ids: tuple[MetalId, ...] = ()
    version: int = 0

    @property
    def registry_ids(self) -> list[MetalId]:
        return [m.id for m in self.registry]

    def get(self, metal_id: MetalId) -> Metal | None:
        """Return the metal with this id, or None if not registered."""
        for metal in self.registry:
            if metal.id == metal_id:
                return metal
        return None

    def visible_metals(self) -> list[Metal]:
        """Visible metals in registry order."""
        visible = set(self.visible_ids)
        return [m for m in self.registry if m.id in visible]


def format_panel_label(metal: Metal, price: str | None) -> str:
    """Compact label, e.g. ``Gold 2345.10$`` or ``Gold ...`` when unavailable."""
    if not price:
        return f"{metal.name} ..."
    return f"{metal.name} {price}$"


def format_menu_label(metal: Metal, price: str | None) -> str:
    """Menu-style label, e.g. ``Gold: 2345.10$`` or ``Gold: ...``."""
    if not price:
        return f"{metal.name}: ..."
    return f"{metal.name}: {price}$"
