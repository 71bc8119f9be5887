"""
Value types shared by the vector store, its persistence codec and the indexer.
"""

from dataclasses import dataclass, field
from typing import List, Sequence, Union

import numpy as np

Vector = Union[Sequence[float], np.ndarray]


@dataclass
class EmbeddingDocument:
    """A document identifier paired with one vector per content chunk."""

    id: str
    """Unique identifier for the document"""

    vectors: List[Vector] = field(default_factory=list)
    """Chunk vectors, in chunk order"""


@dataclass
class SimilarityResult:
    """Represents a ranked search result from the vector store."""

    id: str
    """Identifier for the matching document"""

    score: float
    """Blended similarity score of the match"""


@dataclass
class VectorStoreStats:
    """Point-in-time statistics about a vector store."""

    document_count: int
    vector_dimensions: int
    chunk_count: int
    storage_size: int
    """Byte length of the current persisted form"""

    version: int
    """Persisted format version"""
