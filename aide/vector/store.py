"""
In-memory store of document chunk vectors with weighted multi-vector search
and versioned persistence to a key-value slot.

Each document is a matrix of chunk vectors. A query vector is compared with
every chunk of a document and the document score blends the best chunk with
the chunk average:

    score = max_similarity * max_weight + avg_similarity * (1 - max_weight)

Several query vectors are scored independently and averaged.

Mutations are visible immediately. Persistence is deferred: inside a running
asyncio loop the write is queued with ``call_soon`` and coalesced with any
other mutation made before the loop regains control; outside a loop the write
happens at the end of the mutating call. ``await store.flush()`` waits for
durability.
"""

import asyncio
import numbers
from collections.abc import Mapping, Sequence
from typing import Dict, Iterable, List, Optional, Tuple, Union

import numpy as np

from util.logging import logger as default_logger

from .errors import PersistenceError, VectorValidationError
from .persistence import (
    STORAGE_FORMAT_VERSION,
    MigrationRegistry,
    decode,
    encode,
    storage_key,
)
from .similarity import SIMILARITY_MODES, similarity_matrix
from .storage import IKeyValueStorage, InMemoryKeyValueStorage
from .types import EmbeddingDocument, SimilarityResult, Vector, VectorStoreStats

FAILURE_POLICIES = ("log", "raise")


def _coerce_vector(vector, document_id: Optional[str]) -> np.ndarray:
    """Check that vector is a non-empty sequence of finite numbers and return it as float64."""
    if isinstance(vector, np.ndarray):
        if vector.ndim != 1 or vector.dtype.kind not in "iuf":
            raise VectorValidationError(document_id, "must be a sequence of numbers")
        array = vector.astype(np.float64)
    elif isinstance(vector, (str, bytes)) or not isinstance(vector, Sequence):
        raise VectorValidationError(document_id, "must be a sequence of numbers")
    else:
        if not all(isinstance(n, numbers.Real) and not isinstance(n, bool) for n in vector):
            raise VectorValidationError(document_id, "must be a sequence of numbers")
        array = np.array(vector, dtype=np.float64)

    if array.size == 0:
        raise VectorValidationError(document_id, "must not be empty")
    if not np.all(np.isfinite(array)):
        raise VectorValidationError(document_id, "must contain only finite numbers")
    return array


def _validate_document(document_id, vectors, dimension: int) -> Tuple[np.ndarray, int]:
    """
    Validate a document's chunk vectors against the store dimension.

    Returns:
        The chunk matrix and the dimension after this document (set by the
        first vector when the store has none yet)
    """
    if not isinstance(document_id, str):
        raise VectorValidationError(str(document_id), "document id must be a string")

    if isinstance(vectors, np.ndarray) and vectors.ndim == 2:
        rows = list(vectors)
    elif isinstance(vectors, (str, bytes)) or not isinstance(vectors, (Sequence, np.ndarray)):
        raise VectorValidationError(document_id, "vectors must be a sequence of vectors")
    else:
        rows = list(vectors)

    if not rows:
        raise VectorValidationError(document_id, "must have at least one chunk vector")

    arrays = []
    for row in rows:
        array = _coerce_vector(row, document_id)
        if dimension == 0:
            dimension = len(array)
        elif len(array) != dimension:
            raise VectorValidationError(
                document_id,
                f"dimension mismatch, expected {dimension}, got {len(array)}"
            )
        arrays.append(array)

    return np.vstack(arrays), dimension


def _unpack(document) -> Tuple[str, object]:
    if isinstance(document, Mapping):
        return document.get("id"), document.get("vectors")
    return document.id, document.vectors


class VectorStore:
    """Stores chunk vectors per document and ranks documents against query vectors."""

    def __init__(self,
                 storage: Optional[IKeyValueStorage] = None,
                 logger=None,
                 lookups: int = 3,
                 max_weight: float = 0.7,
                 query_boost_factor: float = 1.2,
                 namespace: Optional[str] = None,
                 similarity: str = "boosted",
                 failure_policy: str = "log",
                 migrations: Optional[MigrationRegistry] = None):
        """
        Initialize the store and hydrate it from storage.

        Args:
            storage: Key-value slot store; defaults to a fresh in-memory one
            logger: Diagnostic sink with debug/error methods
            lookups: Maximum number of results returned by find_similar
            max_weight: Weight of the best chunk versus the chunk average
            query_boost_factor: Norm ratio exponent when the query is shorter (boosted mode)
            namespace: Suffix for the storage key so several stores can share storage
            similarity: "boosted" or "cosine"
            failure_policy: "log" reports load and flush faults to the logger and
                carries on; "raise" propagates them as PersistenceError
            migrations: Upgrade steps for records stored with an older format version

        Raises:
            ValueError: On invalid tuning parameters
            PersistenceError: If loading fails and failure_policy is "raise"
        """
        if similarity not in SIMILARITY_MODES:
            raise ValueError(f"Unknown similarity mode: {similarity}")
        if failure_policy not in FAILURE_POLICIES:
            raise ValueError(f"Unknown failure policy: {failure_policy}")
        if lookups < 1:
            raise ValueError("lookups must be >= 1")
        if not 0.0 <= max_weight <= 1.0:
            raise ValueError("max_weight must be between 0 and 1")

        self.storage = storage if storage is not None else InMemoryKeyValueStorage()
        self.logger = logger if logger is not None else default_logger
        self.lookups = lookups
        self.max_weight = max_weight
        self.query_boost_factor = query_boost_factor
        self.similarity = similarity
        self.failure_policy = failure_policy
        self.migrations = migrations if migrations is not None else MigrationRegistry()
        self.storage_key = storage_key(namespace)

        self._cache: Dict[str, np.ndarray] = {}
        self._dimension = 0
        self._dirty = False
        self._pending: Optional[asyncio.Handle] = None

        self._load_from_storage()

    @property
    def dimension(self) -> int:
        """Vector dimension fixed by the first stored vector, 0 if none yet."""
        return self._dimension

    @property
    def dirty(self) -> bool:
        """True while in-memory changes have not been written to storage."""
        return self._dirty

    def add(self, document: EmbeddingDocument) -> None:
        """Add a document and its chunk vectors, replacing any previous entry for its id."""
        document_id, vectors = _unpack(document)
        matrix, dimension = _validate_document(document_id, vectors, self._dimension)

        self._dimension = dimension
        self._cache[document_id] = matrix
        self.logger.debug("Stored %d chunk vectors for %s", len(matrix), document_id)
        self._schedule_save()

    def add_batch(self, documents: Iterable[EmbeddingDocument]) -> None:
        """Add several documents; nothing is stored unless every document validates."""
        validated, dimension = self._validate_batch(documents)

        self._dimension = dimension
        for document_id, matrix in validated:
            self._cache[document_id] = matrix
        self.logger.debug("Stored batch of %d documents", len(validated))
        self._schedule_save()

    def replace_all(self, documents: Iterable[EmbeddingDocument]) -> None:
        """
        Replace the whole contents with documents in one step.

        Raises:
            VectorValidationError: If any document is invalid; the current
                contents are kept and nothing is written
        """
        validated, dimension = self._validate_batch(documents)

        self._dimension = dimension
        self._cache = dict(validated)
        self.logger.debug("Replaced contents with %d documents", len(validated))
        self._schedule_save()

    def delete(self, document_id: str) -> None:
        """Remove a document's vectors; unknown ids are ignored."""
        self._cache.pop(document_id, None)
        self._schedule_save()

    def clear(self) -> None:
        """Remove all documents. The vector dimension stays fixed."""
        self._cache.clear()
        self._schedule_save()

    def find_similar(self, query: Union[Vector, List[Vector]]) -> List[SimilarityResult]:
        """
        Rank stored documents against one query vector or a list of them.

        Args:
            query: A single vector, a sequence of vectors or a 2-D array

        Returns:
            Up to ``lookups`` results by descending score; equal scores keep
            insertion order

        Raises:
            VectorValidationError: If a query vector is malformed or does not
                match the store dimension
        """
        queries = self._coerce_query(query)
        if not self._cache:
            return []

        avg_weight = 1 - self.max_weight
        results = []
        for document_id, matrix in self._cache.items():
            similarities = similarity_matrix(queries, matrix, self.query_boost_factor, self.similarity)
            query_scores = similarities.max(axis=1) * self.max_weight + similarities.mean(axis=1) * avg_weight
            results.append(SimilarityResult(id=document_id, score=float(query_scores.mean())))

        # list.sort is stable, reverse=True included
        results.sort(key=lambda result: result.score, reverse=True)
        return results[:self.lookups]

    def size(self) -> int:
        """Return the number of documents in the store."""
        return len(self._cache)

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, document_id) -> bool:
        return document_id in self._cache

    def stats(self) -> VectorStoreStats:
        """Return statistics about the store."""
        return VectorStoreStats(
            document_count=len(self._cache),
            vector_dimensions=self._dimension,
            chunk_count=sum(len(matrix) for matrix in self._cache.values()),
            storage_size=len(encode(self._cache).encode("utf-8")),
            version=STORAGE_FORMAT_VERSION,
        )

    def save(self) -> None:
        """
        Write the current contents to storage now.

        Raises:
            PersistenceError: If the write fails and failure_policy is "raise"
        """
        self._cancel_pending()
        try:
            self._write()
        except PersistenceError as e:
            if self.failure_policy == "raise":
                raise
            self.logger.error("Failed to save vectors to %s: %s", self.storage_key, e)

    async def flush(self) -> None:
        """Wait until every mutation made so far has been written to storage."""
        if self._dirty:
            self.save()
        else:
            self._cancel_pending()

    def _validate_batch(self, documents) -> Tuple[List[Tuple[str, np.ndarray]], int]:
        validated = []
        dimension = self._dimension
        for document in documents:
            document_id, vectors = _unpack(document)
            matrix, dimension = _validate_document(document_id, vectors, dimension)
            validated.append((document_id, matrix))
        return validated, dimension

    def _coerce_query(self, query) -> np.ndarray:
        if isinstance(query, np.ndarray):
            if query.ndim == 1:
                rows = [query]
            elif query.ndim == 2:
                rows = list(query)
            else:
                raise VectorValidationError(None, "query must be a vector or a list of vectors")
        elif isinstance(query, (str, bytes)) or not isinstance(query, Sequence) or len(query) == 0:
            raise VectorValidationError(None, "query must be a non-empty vector or list of vectors")
        elif isinstance(query[0], (Sequence, np.ndarray)) and not isinstance(query[0], (str, bytes)):
            rows = list(query)
        else:
            rows = [query]

        if not rows:
            raise VectorValidationError(None, "query must contain at least one vector")

        arrays = [_coerce_vector(row, None) for row in rows]
        expected = self._dimension or len(arrays[0])
        for array in arrays:
            if len(array) != expected:
                raise VectorValidationError(
                    None, f"dimension mismatch, expected {expected}, got {len(array)}"
                )
        return np.vstack(arrays)

    def _schedule_save(self) -> None:
        self._dirty = True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No event loop to defer to; write before returning
            self._run_scheduled_save()
            return

        if self._pending is None:
            self._pending = loop.call_soon(self._run_scheduled_save)

    def _run_scheduled_save(self) -> None:
        self._pending = None
        if not self._dirty:
            return
        try:
            self._write()
        except PersistenceError as e:
            # Nobody is waiting on this write, so the logger is the only place to report it
            self.logger.error("Scheduled save to %s failed: %s", self.storage_key, e)

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _write(self) -> None:
        serialized = encode(self._cache)
        try:
            self.storage.set(self.storage_key, serialized)
        except Exception as e:
            raise PersistenceError(f"Failed to write {self.storage_key}: {e}") from e

        self._dirty = False
        self.logger.debug("Saved %d documents (%d bytes) to %s",
                          len(self._cache), len(serialized), self.storage_key)

    def _read(self) -> Optional[str]:
        try:
            return self.storage.get(self.storage_key)
        except Exception as e:
            raise PersistenceError(f"Failed to read {self.storage_key}: {e}") from e

    def _load_from_storage(self) -> None:
        try:
            record = decode(self._read())
            if "formatVersion" in record and record["formatVersion"] != STORAGE_FORMAT_VERSION:
                record = self.migrations.migrate(record)

            entries = record.get("entries") or {}
            if not isinstance(entries, dict):
                raise PersistenceError("Stored entries must be a JSON object")

            loaded = {}
            dimension = self._dimension
            for document_id, vectors in entries.items():
                try:
                    loaded[document_id], dimension = _validate_document(document_id, vectors, dimension)
                except VectorValidationError as e:
                    raise PersistenceError(f"Stored vectors are invalid: {e}") from e
        except PersistenceError as e:
            if self.failure_policy == "raise":
                raise
            self.logger.error("Failed to load vectors from %s: %s", self.storage_key, e)
            return

        self._cache.update(loaded)
        self._dimension = dimension
        self.logger.debug("Loaded %d documents from %s", len(loaded), self.storage_key)
