"""
Environment-driven configuration for the vector store, chunker and embedding providers.
"""

import os
from pathlib import Path

# Database path configuration (sqlite storage backend)
DB_PATH = os.getenv("DB_PATH", "./data/aide.db")

# Debug logging, read once at import; debug_enabled() re-reads the environment
DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# Vector store configuration
VECTOR_STORAGE = os.getenv("VECTOR_STORAGE", "memory")  # memory|sqlite
VECTOR_NAMESPACE = os.getenv("VECTOR_NAMESPACE") or None  # e.g. per-world suffix
VECTOR_LOOKUPS = int(os.getenv("VECTOR_LOOKUPS", "3"))
VECTOR_MAX_WEIGHT = float(os.getenv("VECTOR_MAX_WEIGHT", "0.7"))
VECTOR_QUERY_BOOST_FACTOR = float(os.getenv("VECTOR_QUERY_BOOST_FACTOR", "1.2"))
VECTOR_SIMILARITY = os.getenv("VECTOR_SIMILARITY", "boosted")  # boosted|cosine
VECTOR_FAILURE_POLICY = os.getenv("VECTOR_FAILURE_POLICY", "log")  # log|raise

# Chunking configuration, measured in chunker tokens
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "512"))
CHUNK_OVERLAP = int(os.getenv("CHUNK_OVERLAP", "32"))

# Embedding provider configuration
EMBED_PROVIDER = os.getenv("EMBED_PROVIDER", "hash")  # hash|sentence-transformers
EMBED_DIM = int(os.getenv("EMBED_DIM", "384"))
EMBED_MODEL_NAME = os.getenv("EMBED_MODEL_NAME", "all-mpnet-base-v2")

# Version string
VERSION = "1.0.0"


def get_storage():
    """Get the configured key-value storage surface for persisted vectors."""
    if VECTOR_STORAGE == "sqlite":
        from aide.vector.storage import SqliteKeyValueStorage
        ensure_db_directory()
        return SqliteKeyValueStorage(DB_PATH)

    # Default to memory storage for unknown backends
    from aide.vector.storage import InMemoryKeyValueStorage
    return InMemoryKeyValueStorage()


def get_vector_store(storage=None, logger=None):
    """Get a vector store built from the current configuration."""
    from aide.vector.store import VectorStore
    return VectorStore(
        storage=storage if storage is not None else get_storage(),
        logger=logger,
        lookups=VECTOR_LOOKUPS,
        max_weight=VECTOR_MAX_WEIGHT,
        query_boost_factor=VECTOR_QUERY_BOOST_FACTOR,
        namespace=VECTOR_NAMESPACE,
        similarity=VECTOR_SIMILARITY,
        failure_policy=VECTOR_FAILURE_POLICY,
    )


def get_embedding_provider():
    """Get configured embedding provider implementation."""
    if EMBED_PROVIDER == "sentence-transformers":
        from aide.vector.embeddings import SentenceTransformerEmbedding
        return SentenceTransformerEmbedding(EMBED_MODEL_NAME)

    from aide.vector.embeddings import DeterministicHashEmbedding
    return DeterministicHashEmbedding(EMBED_DIM)


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def ensure_db_directory():
    """Ensure the database directory exists."""
    Path(DB_PATH).parent.mkdir(parents=True, exist_ok=True)


def validate_vector_config():
    """Validate vector store and chunking configuration and return any issues."""
    issues = []

    if VECTOR_STORAGE not in ["memory", "sqlite"]:
        issues.append(f"Invalid VECTOR_STORAGE: {VECTOR_STORAGE}")

    if VECTOR_SIMILARITY not in ["boosted", "cosine"]:
        issues.append(f"Invalid VECTOR_SIMILARITY: {VECTOR_SIMILARITY}")

    if VECTOR_FAILURE_POLICY not in ["log", "raise"]:
        issues.append(f"Invalid VECTOR_FAILURE_POLICY: {VECTOR_FAILURE_POLICY}")

    if VECTOR_LOOKUPS < 1:
        issues.append("VECTOR_LOOKUPS must be >= 1")

    if not 0.0 <= VECTOR_MAX_WEIGHT <= 1.0:
        issues.append("VECTOR_MAX_WEIGHT must be between 0 and 1")

    if CHUNK_SIZE < 1:
        issues.append("CHUNK_SIZE must be >= 1")

    if CHUNK_OVERLAP < 0 or CHUNK_OVERLAP >= CHUNK_SIZE:
        issues.append("CHUNK_OVERLAP must be >= 0 and smaller than CHUNK_SIZE")

    if EMBED_PROVIDER not in ["hash", "sentence-transformers"]:
        issues.append(f"Invalid EMBED_PROVIDER: {EMBED_PROVIDER}")

    return issues
