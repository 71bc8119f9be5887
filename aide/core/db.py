"""
SQLite connection helper backing the durable key-value slot.
"""

import sqlite3
from contextlib import contextmanager
from typing import Generator


@contextmanager
def get_db(db_path: str) -> Generator[sqlite3.Connection, None, None]:
    """Get a SQLite database connection."""
    conn = sqlite3.connect(db_path)
    try:
        yield conn
    finally:
        conn.close()


def init_db(db_path: str):
    """Initialize the database with required tables."""
    with get_db(db_path) as conn:
        cursor = conn.cursor()

        # One row per storage key; value holds the serialized record
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS vector_slots (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        conn.commit()
