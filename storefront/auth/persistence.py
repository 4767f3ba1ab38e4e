"""
Versioned persistence for the session store.

Only ``user``, ``token`` and the derived ``isAdmin`` flag are written,
under the ``auth-store`` slot, wrapped in an envelope that records the
schema version::

    {"auth-store": {"state": {"user": ..., "token": ..., "isAdmin": ...},
                    "version": 2}}

``load_session()`` reads the raw blob, applies every migration between
the stored version and ``STORE_VERSION`` in order, then validates the
result against the current schema before handing back a usable state.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .schemas import AuthUser


logger = logging.getLogger(__name__)

STORE_NAME = "auth-store"
STORE_VERSION = 2


class PersistedSession(BaseModel):
    """The persisted subset of the session state."""

    model_config = ConfigDict(populate_by_name=True)

    user: Optional[AuthUser] = None
    token: Optional[str] = None
    is_admin: bool = Field(default=False, alias="isAdmin")
    # Transient fields; never written, always reset on load.
    loading: bool = False
    error: Optional[str] = None


class MemoryStorage:
    """Dict-backed storage, mostly for tests."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})

    def get_item(self, name: str) -> Optional[Any]:
        return self._data.get(name)

    def set_item(self, name: str, value: Any) -> None:
        self._data[name] = value

    def remove_item(self, name: str) -> None:
        self._data.pop(name, None)


class JsonFileStorage:
    """Slots stored together in one JSON object on disk.

    All reads and writes of the file are synchronised with a
    ``threading.Lock``. A missing or unreadable file reads as empty.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable storage file %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)

    def get_item(self, name: str) -> Optional[Any]:
        with self._lock:
            return self._read().get(name)

    def set_item(self, name: str, value: Any) -> None:
        with self._lock:
            data = self._read()
            data[name] = value
            self._write(data)

    def remove_item(self, name: str) -> None:
        with self._lock:
            data = self._read()
            if name in data:
                del data[name]
                self._write(data)


def _migrate_v1(state: Dict[str, Any]) -> Dict[str, Any]:
    """v1 snapshots could hold a user without a role."""
    user = state.get("user")
    if not isinstance(user, dict):
        user = None
    role = (user or {}).get("role") or "user"
    return {
        **state,
        "user": {**user, "role": role} if user else None,
        "isAdmin": role == "admin",
        "error": None,
        "loading": False,
    }


# version -> transform producing version + 1
MIGRATIONS: Dict[int, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    1: _migrate_v1,
}


def migrate(state: Optional[Dict[str, Any]], from_version: int) -> Optional[Dict[str, Any]]:
    """Bring a raw persisted state up to ``STORE_VERSION``."""
    if not state or not isinstance(state, dict):
        return None
    version = from_version
    while version < STORE_VERSION:
        step = MIGRATIONS.get(version)
        if step is not None:
            logger.info("Migrating %s snapshot from version %s", STORE_NAME, version)
            state = step(state)
        version += 1
    return state


def load_session(storage) -> PersistedSession:
    """Read, migrate and validate the persisted session.

    A missing or null blob, or one that fails validation after
    migration, yields an empty session.
    """
    blob = storage.get_item(STORE_NAME) if storage is not None else None
    if not blob or not isinstance(blob, dict):
        return PersistedSession()

    try:
        version = int(blob.get("version") or 0)
    except (TypeError, ValueError):
        version = 0
    state = migrate(blob.get("state"), version)
    if not state:
        return PersistedSession()

    try:
        session = PersistedSession.model_validate(state)
    except ValidationError as exc:
        logger.warning("Discarding invalid %s snapshot: %s", STORE_NAME, exc)
        return PersistedSession()

    user = session.user
    return session.model_copy(update={
        "is_admin": user is not None and user.role == "admin",
        "loading": False,
        "error": None,
    })


def save_session(storage, user: Optional[AuthUser], token: Optional[str]) -> None:
    """Write the persisted subset of the session under the current version."""
    if storage is None:
        return
    state = {
        "user": user.model_dump(mode="json", by_alias=True) if user else None,
        "token": token,
        "isAdmin": user is not None and user.role == "admin",
    }
    storage.set_item(STORE_NAME, {"state": state, "version": STORE_VERSION})
