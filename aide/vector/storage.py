"""
Key-value storage surfaces that hold the serialized vector store record.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional

from ..core.db import get_db, init_db


class IKeyValueStorage(ABC):
    """Abstract interface for a synchronous string key-value slot store."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the value stored under key, or None."""
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Remove key if present."""
        pass


class InMemoryKeyValueStorage(IKeyValueStorage):
    """Dict-backed storage, the process-local analogue of browser local storage."""

    def __init__(self):
        self._values: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)

    def clear(self) -> None:
        """Remove every key."""
        self._values.clear()


class SqliteKeyValueStorage(IKeyValueStorage):
    """Durable storage in a SQLite table, one row per key."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        init_db(db_path)

    def get(self, key: str) -> Optional[str]:
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT value FROM vector_slots WHERE key = ?', (key,))
            row = cursor.fetchone()
            return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT INTO vector_slots (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP
            ''', (key, value))
            conn.commit()

    def remove(self, key: str) -> None:
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute('DELETE FROM vector_slots WHERE key = ?', (key,))
            conn.commit()
