"""Local key-value stores used for the cart and the auth session."""
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)

CART_KEY = "ayushyaa_cart"
USERS_KEY = "ayushyaa_users"
CURRENT_USER_KEY = "ayushyaa_current_user"
SESSIONS_KEY = "ayushyaa_sessions"


class MemoryStore:
    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            raw = self._data.get(key)
        return json.loads(raw) if raw is not None else default

    def set(self, key: str, value: Any) -> None:
        raw = json.dumps(value)
        with self._lock:
            self._data[key] = raw

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


class JsonFileStore:
    """One JSON file per key under `directory`."""

    def __init__(self, directory):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str, default: Any = None) -> Any:
        path = self._path(key)
        if not path.exists():
            return default
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except ValueError:
            logger.warning("Ignoring unreadable state file %s", path)
            return default

    def set(self, key: str, value: Any) -> None:
        # each write gets its own temp file so concurrent writers never share one
        with tempfile.NamedTemporaryFile(
            "w", dir=self.directory, prefix=f".{key}.", suffix=".tmp", encoding="utf-8", delete=False
        ) as tmp:
            json.dump(value, tmp)
        try:
            os.replace(tmp.name, self._path(key))
        except OSError:
            Path(tmp.name).unlink(missing_ok=True)
            raise

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class ScopedStore:
    """View of another store with every key prefixed by `scope`."""

    def __init__(self, store, scope: str):
        self.store = store
        self.scope = scope

    def _key(self, key: str) -> str:
        return f"{self.scope}.{key}"

    def get(self, key: str, default: Any = None) -> Any:
        return self.store.get(self._key(key), default)

    def set(self, key: str, value: Any) -> None:
        self.store.set(self._key(key), value)

    def delete(self, key: str) -> None:
        self.store.delete(self._key(key))
