"""Snapshot storage - where versioned store snapshots live between sessions."""

import json
import logging
from typing import Protocol

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session, sessionmaker

from tripsync.persistence.engine import create_session_factory
from tripsync.persistence.models import Base, MemorySnapshot

logger = logging.getLogger(__name__)

KEY_PREFIX = "tripsync"


def snapshot_key(store: str) -> str:
    """Storage key for one store's snapshot."""
    return f"{KEY_PREFIX}:{store}"


def _payload_version(payload: str) -> int:
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError:
        return 0
    if isinstance(parsed, dict) and isinstance(parsed.get("version"), int):
        return parsed["version"]
    return 1


class SnapshotStorage(Protocol):
    """Key-value storage for serialized snapshots."""

    def read(self, key: str) -> str | None:
        """Read a stored snapshot.

        Args:
            key: Storage key

        Returns:
            Raw JSON payload, or None if absent
        """
        ...

    def write(self, key: str, payload: str) -> None:
        """Store a snapshot, replacing any previous value.

        Args:
            key: Storage key
            payload: Raw JSON payload
        """
        ...

    def delete(self, key: str) -> None:
        """Remove a stored snapshot (no-op if absent)."""
        ...


class InMemorySnapshotStorage:
    """In-memory implementation of SnapshotStorage."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}
        self.write_count = 0

    def read(self, key: str) -> str | None:
        return self._items.get(key)

    def write(self, key: str, payload: str) -> None:
        self._items[key] = payload
        self.write_count += 1

    def delete(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._items)


class SqlSnapshotStorage:
    """SQL implementation of SnapshotStorage."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    @classmethod
    def from_engine(cls, engine: Engine, create_tables: bool = True) -> "SqlSnapshotStorage":
        """Build storage on an engine, creating the snapshot table if needed."""
        if create_tables:
            Base.metadata.create_all(engine)
        return cls(create_session_factory(engine))

    def read(self, key: str) -> str | None:
        with self._session_factory() as session:
            row = session.get(MemorySnapshot, key)
            return row.payload if row is not None else None

    def write(self, key: str, payload: str) -> None:
        version = _payload_version(payload)
        with self._session_factory() as session:
            row = session.get(MemorySnapshot, key)
            if row is None:
                session.add(MemorySnapshot(key=key, version=version, payload=payload))
            else:
                row.version = version
                row.payload = payload
            session.commit()
        logger.debug("Wrote snapshot %s (v%d, %d bytes)", key, version, len(payload))

    def delete(self, key: str) -> None:
        with self._session_factory() as session:
            row = session.get(MemorySnapshot, key)
            if row is not None:
                session.delete(row)
                session.commit()

    def keys(self) -> list[str]:
        with self._session_factory() as session:
            return list(session.scalars(select(MemorySnapshot.key).order_by(MemorySnapshot.key)))
