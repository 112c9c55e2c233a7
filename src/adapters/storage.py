"""Key/value persistence.

Two implementations of `KeyValueStore`:
- `JsonFileStore`: one UTF-8 JSON document in the user state directory,
  survives across runs.
- `MemoryStore`: per-process fallback when the state directory is unusable.

`open_store` picks one at startup; the core never inspects which it got.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from core.config import AppSettings

logger = logging.getLogger(__name__)

STORE_FILENAME = "store.json"


class MemoryStore:
    """Non-persistent store, scoped to this process."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._data.get(key, default)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)


class JsonFileStore:
    """Plain-text values kept in a single JSON object on disk.

    Reads are served from memory after the first load; every `set` rewrites
    the file. Write errors (OSError) propagate to the caller.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._data: dict[str, str] | None = None

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        if self._data is not None:
            return self._data
        data: dict[str, str] = {}
        if self._path.exists():
            try:
                raw = json.loads(self._path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                logger.warning("Ignoring unreadable store %s: %s", self._path, exc)
                raw = {}
            if isinstance(raw, dict):
                data = {str(k): v for k, v in raw.items() if isinstance(v, str)}
        self._data = data
        return data

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._load().get(key, default)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            json.dumps(data, ensure_ascii=False, indent=2, sort_keys=True) + "\n",
            encoding="utf-8",
        )


def open_store(settings: AppSettings | None = None) -> JsonFileStore | MemoryStore:
    """File-backed store in `state_dir`, or a memory store if it is unusable."""

    settings = settings or AppSettings()
    state_dir = settings.state_dir
    try:
        state_dir.mkdir(parents=True, exist_ok=True)
        marker = state_dir / ".write-test"
        marker.write_text("ok", encoding="utf-8")
        marker.unlink()
    except OSError as exc:
        logger.warning("State directory %s unusable (%s); using a non-persistent store", state_dir, exc)
        return MemoryStore()
    return JsonFileStore(state_dir / STORE_FILENAME)
