"""Metal registry — merges built-in and custom metals into one ordered list.

Custom metals are persisted as one JSON object per string-list element:

    {"id": "custom-platinum", "name": "Platinum", "url": "https://..."}

Elements that fail to parse, are not objects, or have a blank ``id``,
``name`` or ``url`` are skipped. Skipping never aborts the batch.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Sequence

from metal_ticker.core.exceptions import RegistryError
from metal_ticker.core.models import BUILTIN_METALS, Metal, MetalId

logger = logging.getLogger(__name__)

_CUSTOM_ID_PREFIX = "custom-"
_SLUG_FALLBACK = "metal"
_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")


def parse_custom_metal(entry: str) -> Metal | None:
    """Parse one persisted custom-metal record, or return None if malformed."""
    try:
        data = json.loads(entry)
    except (TypeError, ValueError):
        logger.debug("Skipping unparseable custom metal entry: %r", entry)
        return None

    if not isinstance(data, dict):
        logger.debug("Skipping non-object custom metal entry: %r", entry)
        return None

    fields: dict[str, str] = {}
    for name in ("id", "name", "url"):
        value = data.get(name)
        value = value.strip() if isinstance(value, str) else ""
        if not value:
            logger.debug("Skipping custom metal entry without %s: %r", name, entry)
            return None
        fields[name] = value

    return Metal(**fields, is_custom=True)


def parse_custom_metals(raw: Iterable[str]) -> list[Metal]:
    """Parse every well-formed custom metal, preserving persisted order."""
    metals: list[Metal] = []
    for entry in raw:
        metal = parse_custom_metal(entry)
        if metal is not None:
            metals.append(metal)
    return metals


def serialize_custom_metals(metals: Iterable[Metal]) -> list[str]:
    """Serialize metals back to the persisted one-JSON-object-per-entry form."""
    return [
        json.dumps({"id": m.id, "name": m.name, "url": m.url}, separators=(",", ":"))
        for m in metals
    ]


def rebuild(
    builtins: Sequence[Metal] = BUILTIN_METALS,
    custom_entries_raw: Iterable[str] = (),
) -> tuple[Metal, ...]:
    """Build the registry: built-ins first, then custom metals.

    A custom metal whose id is already present (built-in or an earlier
    custom entry) is dropped. Pure: persistence is not touched.
    """
    metals = list(builtins)
    seen = {m.id for m in metals}

    for custom in parse_custom_metals(custom_entries_raw):
        if custom.id in seen:
            logger.debug("Skipping custom metal with duplicate id %r", custom.id)
            continue
        metals.append(custom)
        seen.add(custom.id)

    return tuple(metals)


def slugify(value: str) -> str:
    """Lowercase ``value`` and collapse anything outside [a-z0-9] into dashes."""
    return _NON_SLUG_CHARS.sub("-", value.lower()).strip("-")


def make_unique_id(name: str, existing_ids: Iterable[MetalId]) -> MetalId:
    """Generate ``custom-<slug>``, adding ``-1``, ``-2``... until unused."""
    taken = set(existing_ids)
    base = slugify(name) or _SLUG_FALLBACK
    candidate = f"{_CUSTOM_ID_PREFIX}{base}"
    suffix = 1

    while candidate in taken:
        candidate = f"{_CUSTOM_ID_PREFIX}{base}-{suffix}"
        suffix += 1

    return candidate


def add_custom_metal(
    raw: Iterable[str],
    name: str,
    url: str,
    builtins: Sequence[Metal] = BUILTIN_METALS,
) -> tuple[list[str], Metal]:
    """Append a new custom metal to the persisted list.

    Returns:
        (new persisted list, the metal that was added).

    Raises:
        RegistryError: If name or url is blank.
    """
    name = name.strip()
    url = url.strip()
    if not name:
        raise RegistryError("Metal name must not be blank", context={"field": "name"})
    if not url:
        raise RegistryError("Metal URL must not be blank", context={"field": "url"})

    metals = parse_custom_metals(raw)
    existing = {m.id for m in metals} | {m.id for m in builtins}
    metal = Metal(id=make_unique_id(name, existing), name=name, url=url, is_custom=True)
    metals.append(metal)
    return serialize_custom_metals(metals), metal


def remove_custom_metal(raw: Iterable[str], metal_id: MetalId) -> list[str]:
    """Drop the custom metal with ``metal_id`` from the persisted list.

    Malformed entries do not survive the round trip.
    """
    return serialize_custom_metals(m for m in parse_custom_metals(raw) if m.id != metal_id)
