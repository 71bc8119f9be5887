"""
Embedding providers that turn chunk text into vectors for the store.
"""

from abc import ABC, abstractmethod
import hashlib
import re
from typing import List

import numpy as np


class IEmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    @abstractmethod
    def embed_text(self, text: str) -> List[float]:
        """Generate embedding vector for given text."""
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        pass

    def embed_texts(self, texts: List[str]) -> List[List[float]]:
        """Embed several texts, one vector per text."""
        return [self.embed_text(text) for text in texts]


class DeterministicHashEmbedding(IEmbeddingProvider):
    """Deterministic hash-based embedding provider for testing purposes.

    Each lowercase word is hashed to a pseudo-random direction and the word
    directions are summed, so texts sharing words point in similar directions.
    Reproducible across runs and processes without model dependencies.
    """

    _WORD = re.compile(r"\w+")

    def __init__(self, dimension: int = 384):
        if dimension < 1:
            raise ValueError("dimension must be >= 1")
        self.dimension = dimension

    def _word_vector(self, word: str) -> np.ndarray:
        # Stretch the digest with a counter until it covers every dimension
        digest = b""
        counter = 0
        while len(digest) < self.dimension * 4:
            digest += hashlib.sha256(f"{word}:{counter}".encode()).digest()
            counter += 1
        values = np.frombuffer(digest[:self.dimension * 4], dtype=np.uint32)
        # Map to [-1, 1]
        return values.astype(np.float64) / (2**32) * 2 - 1

    def embed_text(self, text: str) -> List[float]:
        """Generate deterministic embedding vector using hash function."""
        vector = np.zeros(self.dimension, dtype=np.float64)
        for word in self._WORD.findall(text.lower()):
            vector += self._word_vector(word)
        return vector.tolist()

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        return self.dimension


class SentenceTransformerEmbedding(IEmbeddingProvider):
    """Sentence transformers embedding provider using pre-trained models.

    Requires the optional ``sentence-transformers`` dependency; the model is
    loaded on first use.
    """

    def __init__(self, model_name: str = "all-mpnet-base-v2"):
        self.model_name = model_name
        self._model = None
        self._dimension = None

    @property
    def model(self):
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError:
                raise ImportError(
                    "sentence-transformers not installed. Install the 'embeddings' extra."
                )
            self._model = SentenceTransformer(self.model_name)
        return self._model

    def embed_text(self, text: str) -> List[float]:
        """Generate embedding vector using sentence transformers."""
        embedding = self.model.encode(text, convert_to_tensor=False)
        return embedding.tolist()

    def embed_texts(self, texts: List[str]) -> List[List[float]]:
        """Encode all texts in one model call."""
        embeddings = self.model.encode(list(texts), convert_to_tensor=False)
        return [embedding.tolist() for embedding in embeddings]

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        if self._dimension is None:
            self._dimension = self.model.get_sentence_embedding_dimension()
        return self._dimension
