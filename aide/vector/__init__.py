"""
Semantic vector store for document chunk embeddings.
"""

# Package initialization for vector module
from .chunker import chunk, iter_chunks, tokenize
from .embeddings import IEmbeddingProvider, DeterministicHashEmbedding, SentenceTransformerEmbedding
from .errors import VectorValidationError, PersistenceError, UnsupportedFormatVersion
from .indexer import DocumentIndexer
from .persistence import STORAGE_KEY, STORAGE_FORMAT_VERSION, MigrationRegistry
from .similarity import cosine_similarity, length_normalized_similarity
from .storage import IKeyValueStorage, InMemoryKeyValueStorage, SqliteKeyValueStorage
from .store import VectorStore
from .types import EmbeddingDocument, SimilarityResult, VectorStoreStats

__all__ = [
    'chunk',
    'iter_chunks',
    'tokenize',
    'IEmbeddingProvider',
    'DeterministicHashEmbedding',
    'SentenceTransformerEmbedding',
    'VectorValidationError',
    'PersistenceError',
    'UnsupportedFormatVersion',
    'DocumentIndexer',
    'STORAGE_KEY',
    'STORAGE_FORMAT_VERSION',
    'MigrationRegistry',
    'cosine_similarity',
    'length_normalized_similarity',
    'IKeyValueStorage',
    'InMemoryKeyValueStorage',
    'SqliteKeyValueStorage',
    'VectorStore',
    'EmbeddingDocument',
    'SimilarityResult',
    'VectorStoreStats',
]
