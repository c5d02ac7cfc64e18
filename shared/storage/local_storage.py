"""
Durable client-side key/value storage with the localStorage contract:
string keys, string values, synchronous reads and writes.
"""
import json
import logging
from typing import Any, Dict, Optional, Protocol

from sqlalchemy import delete, select
from sqlalchemy.engine import Engine

from shared.config.database import Base, build_engine, build_session_factory
from shared.errors import StorageError

from .models import StorageEntry

logger = logging.getLogger(__name__)


class LocalStorage(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...

    def clear(self) -> None: ...


class MemoryStorage:
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = str(value)

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def clear(self) -> None:
        self._items.clear()

    def keys(self):
        return list(self._items)


class SqlStorage:
    """SQLAlchemy-backed storage. Every call commits before returning."""

    def __init__(self, engine: Engine):
        self._engine = engine
        self._session_factory = build_session_factory(engine)
        Base.metadata.create_all(engine, tables=[StorageEntry.__table__])

    @classmethod
    def from_url(cls, storage_url: str) -> "SqlStorage":
        return cls(build_engine(storage_url))

    def get_item(self, key: str) -> Optional[str]:
        with self._session_factory() as db:
            entry = db.execute(select(StorageEntry).where(StorageEntry.key == key)).scalars().first()
            return entry.value if entry else None

    def set_item(self, key: str, value: str) -> None:
        with self._session_factory() as db:
            entry = db.get(StorageEntry, key)
            if entry:
                entry.value = str(value)
            else:
                db.add(StorageEntry(key=key, value=str(value)))
            db.commit()

    def remove_item(self, key: str) -> None:
        with self._session_factory() as db:
            db.execute(delete(StorageEntry).where(StorageEntry.key == key))
            db.commit()

    def clear(self) -> None:
        with self._session_factory() as db:
            db.execute(delete(StorageEntry))
            db.commit()

    def keys(self):
        with self._session_factory() as db:
            return list(db.execute(select(StorageEntry.key)).scalars())

    def dispose(self) -> None:
        self._engine.dispose()


def read_json(storage: LocalStorage, key: str) -> Any:
    """Decode a JSON value. Raises StorageError on corrupt data, returns None if absent."""
    raw = storage.get_item(key)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as e:
        raise StorageError(key, f"corrupt JSON ({e})") from e


def write_json(storage: LocalStorage, key: str, value: Any) -> None:
    storage.set_item(key, json.dumps(value, default=str))
