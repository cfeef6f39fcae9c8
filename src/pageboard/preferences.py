"""
User preferences: active site, favorite metrics and date notes.

Values are stored as JSON strings under fixed keys in a PreferencesStore.
Missing or corrupt values fall back to empty defaults and are never raised
to the caller. Every mutation is written through immediately; the last
write wins.
"""
import json
import logging
import time
from pathlib import Path
from typing import Protocol

from pydantic import TypeAdapter, ValidationError

from .core.models import Favorite, Note

logger = logging.getLogger(__name__)

ACTIVE_SITE_KEY = "activeSiteId"
NOTES_KEY = "analytics-notes"
FAVORITES_KEY = "analytics-favorites"

_NOTES = TypeAdapter(list[Note])
_FAVORITES = TypeAdapter(list[Favorite])


class PreferencesStore(Protocol):
    """Key/value string storage (browser local storage analogue)."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryPreferencesStore:
    """Process-local store. Used in tests and when no file is configured."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFilePreferencesStore:
    """Store backed by a single JSON object on disk.

    The file is read once on construction and rewritten on every change.
    An unreadable file starts an empty store.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._data: dict[str, str] = self._load()

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning(f"Ignoring unreadable preferences file {self.path}: {exc}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring preferences file {self.path}: expected a JSON object")
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _flush(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(self._data, indent=2), encoding="utf-8")
        except OSError as exc:
            logger.error(f"Failed to save preferences to {self.path}: {exc}")

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._flush()

    def remove(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._flush()


class Preferences:
    """Typed access to the preference keys."""

    def __init__(self, store: PreferencesStore | None = None):
        self.store = store if store is not None else MemoryPreferencesStore()
        self._notes: list[Note] = self._read(NOTES_KEY, _NOTES)
        self._favorites: list[Favorite] = self._read(FAVORITES_KEY, _FAVORITES)

    def _read(self, key: str, adapter: TypeAdapter) -> list:
        raw = self.store.get(key)
        if not raw:
            return []
        try:
            return adapter.validate_json(raw)
        except ValidationError as exc:
            logger.warning(f"Discarding corrupt preference {key!r}: {exc.error_count()} errors")
            return []

    def _write(self, key: str, adapter: TypeAdapter, value: list) -> None:
        self.store.set(key, adapter.dump_json(value).decode())

    # -------------------------------------------------------------------------
    # Active site
    # -------------------------------------------------------------------------

    @property
    def active_site_id(self) -> str | None:
        return self.store.get(ACTIVE_SITE_KEY) or None

    @active_site_id.setter
    def active_site_id(self, site_id: str | None) -> None:
        if site_id:
            self.store.set(ACTIVE_SITE_KEY, site_id)
        else:
            self.store.remove(ACTIVE_SITE_KEY)

    # -------------------------------------------------------------------------
    # Favorites
    # -------------------------------------------------------------------------

    @property
    def favorites(self) -> list[Favorite]:
        return list(self._favorites)

    def is_favorite(self, favorite_id: str) -> bool:
        return any(f.id == favorite_id for f in self._favorites)

    def toggle_favorite(self, favorite_id: str, name: str, section: str = "", value: str = "") -> bool:
        """Pin or unpin a metric.

        Returns:
            True if the metric is now a favorite
        """
        if self.is_favorite(favorite_id):
            self._favorites = [f for f in self._favorites if f.id != favorite_id]
            pinned = False
        else:
            self._favorites = [
                *self._favorites,
                Favorite(id=favorite_id, name=name, section=section, value=value),
            ]
            pinned = True
        self._write(FAVORITES_KEY, _FAVORITES, self._favorites)
        return pinned

    # -------------------------------------------------------------------------
    # Notes
    # -------------------------------------------------------------------------

    @property
    def notes(self) -> list[Note]:
        return list(self._notes)

    def notes_for(self, day: str) -> list[Note]:
        return [n for n in self._notes if n.date == day]

    def add_note(self, day: str, content: str) -> Note:
        """Attach a note to an ISO date. Ids are `{date}-{epoch ms}`."""
        note = Note(id=f"{day}-{int(time.time() * 1000)}", date=day, content=content)
        self._notes = [*self._notes, note]
        self._write(NOTES_KEY, _NOTES, self._notes)
        return note

    def delete_note(self, note_id: str) -> bool:
        """Remove a note. Returns False if no note had that id."""
        remaining = [n for n in self._notes if n.id != note_id]
        if len(remaining) == len(self._notes):
            return False
        self._notes = remaining
        self._write(NOTES_KEY, _NOTES, self._notes)
        return True


def open_store(path: str | None) -> PreferencesStore:
    """File store when a path is configured, otherwise in-memory."""
    if path:
        return JsonFilePreferencesStore(path)
    return MemoryPreferencesStore()
