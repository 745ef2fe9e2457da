"""Key → string-list settings stores with change notifications.

The engine only needs four operations: read a list, write a list, and
subscribe/unsubscribe to change notifications. Listeners are invoked
synchronously with the changed key after every write that actually
changes the stored value.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from typing import Protocol, runtime_checkable

import yaml

from metal_ticker.core.exceptions import SettingsError

logger = logging.getLogger(__name__)

SettingsListener = Callable[[str], None]


@runtime_checkable
class SettingsStore(Protocol):
    """Protocol for the persisted configuration backend."""

    def get_strv(self, key: str) -> list[str]:
        """Return the list stored under ``key`` (empty if unset)."""
        ...

    def set_strv(self, key: str, values: Iterable[str]) -> None:
        """Replace the list stored under ``key`` and notify listeners."""
        ...

    def connect(self, listener: SettingsListener) -> int:
        """Register a change listener. Returns a handler id."""
        ...

    def disconnect(self, handler_id: int) -> None:
        """Remove a previously registered listener."""
        ...


class MemorySettingsStore:
    """In-process settings store. Nothing survives the process."""

    def __init__(self, initial: Mapping[str, Iterable[str]] | None = None) -> None:
        self._values: dict[str, list[str]] = {
            key: list(values) for key, values in (initial or {}).items()
        }
        self._listeners: dict[int, SettingsListener] = {}
        self._next_handler_id = 1
        self._lock = threading.RLock()

    def get_strv(self, key: str) -> list[str]:
        with self._lock:
            return list(self._values.get(key, []))

    def set_strv(self, key: str, values: Iterable[str]) -> None:
        new_values = [str(v) for v in values]
        with self._lock:
            previous = self._values.get(key)
            if previous == new_values:
                return
            self._values[key] = new_values
            try:
                self._persist()
            except SettingsError:
                if previous is None:
                    del self._values[key]
                else:
                    self._values[key] = previous
                raise
        self._emit(key)

    def connect(self, listener: SettingsListener) -> int:
        with self._lock:
            handler_id = self._next_handler_id
            self._next_handler_id += 1
            self._listeners[handler_id] = listener
        return handler_id

    def disconnect(self, handler_id: int) -> None:
        with self._lock:
            self._listeners.pop(handler_id, None)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._values)

    def _persist(self) -> None:
        """Hook for subclasses; called under the lock after every change."""

    def _emit(self, key: str) -> None:
        with self._lock:
            listeners = list(self._listeners.values())
        for listener in listeners:
            listener(key)


class YamlSettingsStore(MemorySettingsStore):
    """Settings store persisted as a YAML mapping of key -> list of strings.

    Writes go to a temporary file that replaces the original, so a crash
    never leaves a half-written file behind. ``reload()`` picks up edits
    made by other processes and notifies listeners of the keys that changed.

    Parameters
    ----------
    path : str | Path
        The settings file. Created on first write if it doesn't exist.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        super().__init__(self._read_file())

    @property
    def path(self) -> Path:
        return self._path

    def reload(self) -> list[str]:
        """Re-read the file. Returns the keys whose values changed."""
        fresh = self._read_file()
        with self._lock:
            changed = sorted(
                key
                for key in set(fresh) | set(self._values)
                if fresh.get(key, []) != self._values.get(key, [])
            )
            self._values = fresh
        for key in changed:
            logger.info("Settings key %r changed on disk", key)
            self._emit(key)
        return changed

    def _read_file(self) -> dict[str, list[str]]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise SettingsError(
                f"Failed to read settings file: {e}",
                context={"path": str(self._path), "key": None},
            ) from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise SettingsError(
                f"Settings file must be a mapping, got {type(data).__name__}",
                context={"path": str(self._path), "key": None},
            )

        values: dict[str, list[str]] = {}
        for key, raw in data.items():
            if raw is None:
                values[str(key)] = []
            elif isinstance(raw, list):
                values[str(key)] = [item for item in raw if isinstance(item, str)]
            else:
                raise SettingsError(
                    f"Settings key {key!r} must hold a list of strings",
                    context={"path": str(self._path), "key": str(key)},
                )
        return values

    def _persist(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", dir=self._path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                yaml.safe_dump(self._values, f, sort_keys=True, allow_unicode=True)
            os.replace(tmp_name, self._path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise SettingsError(
                f"Failed to write settings file: {e}",
                context={"path": str(self._path), "key": None},
            ) from e
