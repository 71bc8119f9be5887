"""
Test cases for the persisted record codec, migrations, failure policies and storage backends.
"""

import asyncio
import json
from unittest.mock import MagicMock

import numpy as np
import pytest

from aide.vector import (
    EmbeddingDocument,
    InMemoryKeyValueStorage,
    MigrationRegistry,
    PersistenceError,
    SqliteKeyValueStorage,
    STORAGE_FORMAT_VERSION,
    STORAGE_KEY,
    UnsupportedFormatVersion,
    VectorStore,
)
from aide.vector.persistence import decode, encode, storage_key


class FailingStorage(InMemoryKeyValueStorage):
    """Storage whose writes always fail, like a full local storage quota."""

    def set(self, key, value):
        raise OSError("quota exceeded")


@pytest.fixture
def storage():
    return InMemoryKeyValueStorage()


@pytest.fixture
def mock_logger():
    return MagicMock()


def test_encode_is_compact_json():
    serialized = encode({"doc1": np.array([[1.0, 2.0]])})

    assert serialized == '{"formatVersion":1,"entries":{"doc1":[[1.0,2.0]]}}'


def test_decode_missing_slot_is_empty_record():
    assert decode(None) == {}
    assert decode("") == {}


@pytest.mark.parametrize("serialized", ["{not json", "[1, 2, 3]", '"text"'])
def test_decode_rejects_malformed_records(serialized):
    with pytest.raises(PersistenceError):
        decode(serialized)


def test_storage_key_namespacing():
    assert storage_key() == STORAGE_KEY
    assert storage_key("world") == "foundryvtt.aide.vectors.world"


class TestLoadFailurePolicy:

    def test_malformed_json_is_logged_and_store_starts_empty(self, storage, mock_logger):
        storage.set(STORAGE_KEY, "{not json")

        store = VectorStore(storage=storage, logger=mock_logger)

        assert store.size() == 0
        mock_logger.error.assert_called_once()

    def test_malformed_json_raises_with_raise_policy(self, storage, mock_logger):
        storage.set(STORAGE_KEY, "{not json")

        with pytest.raises(PersistenceError):
            VectorStore(storage=storage, logger=mock_logger, failure_policy="raise")

    def test_inconsistent_stored_dimensions_are_rejected(self, storage, mock_logger):
        storage.set(STORAGE_KEY, json.dumps({
            "formatVersion": 1,
            "entries": {"doc1": [[1, 2, 3]], "doc2": [[1, 2]]},
        }))

        with pytest.raises(PersistenceError):
            VectorStore(storage=storage, logger=mock_logger, failure_policy="raise")

        store = VectorStore(storage=storage, logger=mock_logger)
        assert store.size() == 0
        assert store.dimension == 0

    def test_entries_must_be_an_object(self, storage, mock_logger):
        storage.set(STORAGE_KEY, json.dumps({"formatVersion": 1, "entries": [[1, 2, 3]]}))

        with pytest.raises(PersistenceError):
            VectorStore(storage=storage, logger=mock_logger, failure_policy="raise")

    def test_record_without_version_is_read_as_current(self, storage, mock_logger):
        storage.set(STORAGE_KEY, json.dumps({"entries": {"doc1": [[1, 2, 3]]}}))

        store = VectorStore(storage=storage, logger=mock_logger, failure_policy="raise")

        assert store.size() == 1

    def test_storage_read_errors_are_wrapped(self, mock_logger):
        broken = MagicMock()
        broken.get.side_effect = OSError("disk gone")

        with pytest.raises(PersistenceError):
            VectorStore(storage=broken, logger=mock_logger, failure_policy="raise")

        assert VectorStore(storage=broken, logger=mock_logger).size() == 0


class TestMigrations:

    def test_unknown_version_is_unsupported_by_default(self, storage, mock_logger):
        storage.set(STORAGE_KEY, json.dumps({"formatVersion": 99, "entries": {"doc1": [[1, 2, 3]]}}))

        with pytest.raises(UnsupportedFormatVersion) as exc_info:
            VectorStore(storage=storage, logger=mock_logger, failure_policy="raise")

        assert exc_info.value.found == 99
        assert exc_info.value.expected == STORAGE_FORMAT_VERSION

    def test_unknown_version_is_logged_with_log_policy(self, storage, mock_logger):
        storage.set(STORAGE_KEY, json.dumps({"formatVersion": 99, "entries": {"doc1": [[1, 2, 3]]}}))

        store = VectorStore(storage=storage, logger=mock_logger)

        assert store.size() == 0
        mock_logger.error.assert_called_once()

    def test_registered_step_upgrades_old_record(self, storage, mock_logger):
        # Version 0 kept a single vector per document under "vectors"
        storage.set(STORAGE_KEY, json.dumps({"formatVersion": 0, "vectors": {"doc1": [1, 2, 3]}}))

        def from_v0(record):
            return {
                "formatVersion": 1,
                "entries": {doc_id: [vector] for doc_id, vector in record["vectors"].items()},
            }

        migrations = MigrationRegistry()
        migrations.register(0, from_v0)
        store = VectorStore(storage=storage, logger=mock_logger, migrations=migrations,
                            failure_policy="raise")

        assert store.size() == 1
        assert store.stats().chunk_count == 1

    def test_steps_are_chained(self):
        migrations = MigrationRegistry({
            -1: lambda record: {"formatVersion": 0, "entries": record["entries"]},
            0: lambda record: {"formatVersion": 1, "entries": record["entries"]},
        })

        record = migrations.migrate({"formatVersion": -1, "entries": {}})

        assert record["formatVersion"] == 1

    def test_step_that_does_not_advance_is_rejected(self):
        migrations = MigrationRegistry({0: lambda record: record})

        with pytest.raises(UnsupportedFormatVersion):
            migrations.migrate({"formatVersion": 0})

    def test_non_integer_versions_are_unsupported(self):
        with pytest.raises(UnsupportedFormatVersion):
            MigrationRegistry().migrate({"formatVersion": [1]})

    def test_step_errors_become_persistence_errors(self):
        migrations = MigrationRegistry({0: lambda record: record["vectors"]})

        with pytest.raises(PersistenceError) as exc_info:
            migrations.migrate({"formatVersion": 0, "entries": {}})

        assert isinstance(exc_info.value.__cause__, KeyError)

    @pytest.mark.parametrize("result", [None, [], {"entries": {}}, {"formatVersion": "1"}])
    def test_step_must_return_versioned_record(self, result):
        migrations = MigrationRegistry({0: lambda record: result})

        with pytest.raises(PersistenceError):
            migrations.migrate({"formatVersion": 0})

    def test_failing_step_is_logged_with_log_policy(self, storage, mock_logger):
        storage.set(STORAGE_KEY, json.dumps({"formatVersion": 0, "entries": {}}))
        migrations = MigrationRegistry({0: lambda record: record["vectors"]})

        store = VectorStore(storage=storage, logger=mock_logger, migrations=migrations)

        assert store.size() == 0
        mock_logger.error.assert_called_once()

    def test_failing_step_raises_with_raise_policy(self, storage, mock_logger):
        storage.set(STORAGE_KEY, json.dumps({"formatVersion": 0, "entries": {}}))
        migrations = MigrationRegistry({0: lambda record: None})

        with pytest.raises(PersistenceError):
            VectorStore(storage=storage, logger=mock_logger, migrations=migrations,
                        failure_policy="raise")


class TestWriteFailures:

    def test_scheduled_write_failure_is_logged(self, mock_logger):
        store = VectorStore(storage=FailingStorage(), logger=mock_logger)

        store.add(EmbeddingDocument(id="doc1", vectors=[[1, 2, 3]]))

        assert store.size() == 1
        assert store.dirty
        mock_logger.error.assert_called_once()

    def test_deferred_write_failure_is_logged(self, mock_logger):
        async def scenario():
            store = VectorStore(storage=FailingStorage(), logger=mock_logger)
            store.add(EmbeddingDocument(id="doc1", vectors=[[1, 2, 3]]))
            await asyncio.sleep(0)
            return store

        store = asyncio.run(scenario())

        assert store.dirty
        mock_logger.error.assert_called_once()

    def test_save_raises_with_raise_policy(self, mock_logger):
        store = VectorStore(storage=FailingStorage(), logger=mock_logger, failure_policy="raise")

        with pytest.raises(PersistenceError):
            store.save()

    def test_flush_raises_with_raise_policy(self, mock_logger):
        async def scenario():
            store = VectorStore(storage=FailingStorage(), logger=mock_logger, failure_policy="raise")
            store.add(EmbeddingDocument(id="doc1", vectors=[[1, 2, 3]]))
            await store.flush()

        with pytest.raises(PersistenceError):
            asyncio.run(scenario())

    def test_flush_logs_with_log_policy(self, mock_logger):
        async def scenario():
            store = VectorStore(storage=FailingStorage(), logger=mock_logger)
            store.add(EmbeddingDocument(id="doc1", vectors=[[1, 2, 3]]))
            await store.flush()

        asyncio.run(scenario())

        mock_logger.error.assert_called_once()


class TestSqliteStorage:

    def test_get_set_remove(self, tmp_path):
        storage = SqliteKeyValueStorage(str(tmp_path / "aide.db"))

        assert storage.get("key") is None
        storage.set("key", "one")
        storage.set("key", "two")
        assert storage.get("key") == "two"
        storage.remove("key")
        assert storage.get("key") is None

    def test_store_round_trip_across_connections(self, tmp_path, mock_logger):
        db_path = str(tmp_path / "aide.db")
        store = VectorStore(storage=SqliteKeyValueStorage(db_path), logger=mock_logger)
        store.add_batch([
            EmbeddingDocument(id="doc1", vectors=[[1, 0, 0]]),
            EmbeddingDocument(id="doc2", vectors=[[0, 1, 0], [0, 0, 1]]),
        ])

        fresh = VectorStore(storage=SqliteKeyValueStorage(db_path), logger=mock_logger)

        assert fresh.size() == 2
        assert fresh.stats().chunk_count == 3
        assert fresh.find_similar([1, 0, 0])[0].id == "doc1"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
