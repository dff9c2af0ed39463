"""
Key/value store on top of the kv_entries table.

Every operation is a single independent key read or write in its own
database session. A process-wide lock serializes operations so the store can
be shared by all pipeline threads, including on a shared in-memory SQLite
connection.
"""

import threading
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional, Tuple, Union

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from harvester.exceptions import CacheError
from .models import KVEntry


Value = Union[bytes, str]


def _to_bytes(value: Value) -> bytes:
    if isinstance(value, str):
        return value.encode('utf-8')
    return bytes(value)


class KeyValueStore:
    """Thread-safe get/set/iterate by key service."""

    def __init__(self, session_factory: Callable[[], Session]):
        """
        Args:
            session_factory: Callable returning a new SQLAlchemy session,
                typically DatabaseManager.get_session
        """
        self._session_factory = session_factory
        self._lock = threading.RLock()

    @contextmanager
    def _session(self, action: str, key: Optional[str] = None):
        with self._lock:
            session = self._session_factory()
            try:
                yield session
            except SQLAlchemyError as e:
                session.rollback()
                raise CacheError(f"KV {action} failed: {e}", key=key) from e
            finally:
                session.close()

    def get(self, key: str) -> Optional[bytes]:
        """Return the stored value, or None if the key is absent."""
        with self._session('get', key) as session:
            entry = session.get(KVEntry, key)
            return bytes(entry.value) if entry is not None else None

    def set(self, key: str, value: Value) -> None:
        """Insert or replace a value."""
        with self._session('set', key) as session:
            session.merge(KVEntry(key=key, value=_to_bytes(value)))
            session.commit()

    def delete(self, key: str) -> bool:
        """Delete a key. Returns True if it existed."""
        with self._session('delete', key) as session:
            deleted = session.query(KVEntry).filter(KVEntry.key == key).delete(synchronize_session=False)
            session.commit()
            return deleted > 0

    def exists(self, key: str) -> bool:
        with self._session('exists', key) as session:
            return session.query(KVEntry.key).filter(KVEntry.key == key).first() is not None

    def claim(self, key: str, value: Value) -> bool:
        """
        Atomically create a key if it does not exist yet.

        Returns:
            True if this call created the key, False if it was already present
        """
        with self._session('claim', key) as session:
            session.add(KVEntry(key=key, value=_to_bytes(value)))
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                return False
            return True

    def compare_and_set(self, key: str, expected: Value, new: Value) -> bool:
        """Replace the value only if it currently equals `expected`."""
        with self._session('compare_and_set', key) as session:
            updated = session.query(KVEntry).filter(
                KVEntry.key == key,
                KVEntry.value == _to_bytes(expected)
            ).update({'value': _to_bytes(new)}, synchronize_session=False)
            session.commit()
            return updated == 1

    def compare_and_delete(self, key: str, expected: Value) -> bool:
        """Delete the key only if its value currently equals `expected`."""
        with self._session('compare_and_delete', key) as session:
            deleted = session.query(KVEntry).filter(
                KVEntry.key == key,
                KVEntry.value == _to_bytes(expected)
            ).delete(synchronize_session=False)
            session.commit()
            return deleted == 1

    def keys(self, prefix: str = '') -> List[str]:
        with self._session('keys') as session:
            query = session.query(KVEntry.key)
            if prefix:
                query = query.filter(KVEntry.key.startswith(prefix, autoescape=True))
            return [row.key for row in query.order_by(KVEntry.key)]

    def iterate(self, prefix: str = '') -> Iterator[Tuple[str, bytes]]:
        """
        Yield (key, value) pairs whose key starts with `prefix`, in key order.

        Rows are read up front so the lock is not held while the caller works.
        """
        with self._session('iterate') as session:
            query = session.query(KVEntry)
            if prefix:
                query = query.filter(KVEntry.key.startswith(prefix, autoescape=True))
            rows = [(entry.key, bytes(entry.value)) for entry in query.order_by(KVEntry.key)]
        yield from rows

    def count(self, prefix: str = '') -> int:
        with self._session('count') as session:
            query = session.query(KVEntry)
            if prefix:
                query = query.filter(KVEntry.key.startswith(prefix, autoescape=True))
            return query.count()

    def clear(self, prefix: str = '') -> int:
        """Delete every key with the given prefix (all keys if empty)."""
        with self._session('clear') as session:
            query = session.query(KVEntry)
            if prefix:
                query = query.filter(KVEntry.key.startswith(prefix, autoescape=True))
            deleted = query.delete(synchronize_session=False)
            session.commit()
            return deleted
