"""
Codec and migration registry for the persisted vector store record.

The record is a single JSON object stored under one key:

    {"formatVersion": 1, "entries": {"<documentId>": [[0.1, ...], ...]}}
"""

import json
from typing import Callable, Dict, Mapping, Optional

import numpy as np

from .errors import PersistenceError, UnsupportedFormatVersion

STORAGE_KEY = "foundryvtt.aide.vectors"
"""Storage slot for the persisted record"""

STORAGE_FORMAT_VERSION = 1
"""Bump when the record layout changes and register a migration for the old value"""

Migration = Callable[[dict], dict]


def storage_key(namespace: Optional[str] = None) -> str:
    """Return the slot key, suffixed with namespace when several stores share one storage."""
    if namespace:
        return f"{STORAGE_KEY}.{namespace}"
    return STORAGE_KEY


def encode(entries: Mapping[str, np.ndarray]) -> str:
    """Serialize document chunk matrices into the persisted JSON record."""
    data = {
        "formatVersion": STORAGE_FORMAT_VERSION,
        "entries": {doc_id: matrix.tolist() for doc_id, matrix in entries.items()},
    }
    try:
        return json.dumps(data, separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError) as e:
        raise PersistenceError(f"Failed to serialize vector store: {e}") from e


def decode(serialized: Optional[str]) -> dict:
    """Parse a persisted record; a missing slot decodes to an empty record."""
    if serialized is None or serialized == "":
        return {}
    try:
        data = json.loads(serialized)
    except ValueError as e:
        raise PersistenceError(f"Stored vector data is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise PersistenceError("Stored vector data must be a JSON object")
    return data


class MigrationRegistry:
    """
    Migration steps keyed by the format version they upgrade from.

    Each step takes the stored record and returns a record one or more versions
    newer. Steps are chained until the current version is reached. A stored
    version with no registered step is rejected.
    """

    def __init__(self, steps: Optional[Dict[int, Migration]] = None):
        self._steps: Dict[int, Migration] = dict(steps or {})

    def register(self, from_version: int, step: Migration) -> None:
        """Register the step that upgrades records stored as from_version."""
        self._steps[from_version] = step

    def migrate(self, record: dict, target: int = STORAGE_FORMAT_VERSION) -> dict:
        """Upgrade record to target; a gap raises UnsupportedFormatVersion, a failing step PersistenceError."""
        seen = set()
        version = record.get("formatVersion")
        while version != target:
            step = self._steps.get(version) if isinstance(version, int) else None
            if step is None or version in seen:
                raise UnsupportedFormatVersion(version, target)
            seen.add(version)
            try:
                record = step(record)
            except Exception as e:
                raise PersistenceError(f"Migration from format version {version} failed: {e}") from e
            if not isinstance(record, dict) or not isinstance(record.get("formatVersion"), int):
                raise PersistenceError(
                    f"Migration from format version {version} must return a record with an integer formatVersion"
                )
            version = record["formatVersion"]
        return record
