"""
Document indexing pipeline: chunk text, embed each chunk, keep the store in sync.
"""

from typing import List, Mapping, Optional

from util.logging import logger as default_logger

from .chunker import chunk
from .embeddings import IEmbeddingProvider
from .store import VectorStore
from .types import EmbeddingDocument, SimilarityResult


class DocumentIndexer:
    """
    Keeps a VectorStore in step with a set of text documents.

    Documents are plain ``id -> text`` pairs; blank documents are not
    indexable and never reach the store.

    The logger must provide the StructuredLogger operation methods
    (``log_vector_operation`` and ``log_indexing_operation``); a plain
    debug/error sink is rejected at construction.
    """

    def __init__(self, store: VectorStore, embedder: IEmbeddingProvider,
                 chunk_size: Optional[int] = None, chunk_overlap: Optional[int] = None,
                 logger=None):
        from ..core.config import CHUNK_SIZE, CHUNK_OVERLAP

        self.store = store
        self.embedder = embedder
        self.chunk_size = chunk_size if chunk_size is not None else CHUNK_SIZE
        self.chunk_overlap = chunk_overlap if chunk_overlap is not None else CHUNK_OVERLAP
        self.logger = logger if logger is not None else default_logger
        for method in ("log_vector_operation", "log_indexing_operation"):
            if not callable(getattr(self.logger, method, None)):
                raise TypeError(f"DocumentIndexer logger must provide {method}()")

    def chunks(self, text: Optional[str]) -> List[str]:
        """Return the chunks of a document body; blank text has none."""
        if not text or not text.strip():
            return []
        return chunk(text, self.chunk_size, self.chunk_overlap)

    def embed(self, document_id: str, text: Optional[str]) -> Optional[EmbeddingDocument]:
        """Chunk and embed one document, or return None when it is not indexable."""
        chunks = self.chunks(text)
        if not chunks:
            return None
        return EmbeddingDocument(id=document_id, vectors=self.embedder.embed_texts(chunks))

    def index(self, document_id: str, text: Optional[str]) -> int:
        """
        Index (or re-index) one document.

        Returns:
            Number of chunks stored; 0 when the document is blank, in which
            case any previous vectors for it are removed
        """
        document = self.embed(document_id, text)
        if document is None:
            if document_id in self.store:
                self.store.delete(document_id)
            return 0

        self.store.add(document)
        self.logger.log_vector_operation("index", document_id, {"chunks": len(document.vectors)})
        return len(document.vectors)

    def rebuild(self, documents: Mapping[str, Optional[str]]) -> int:
        """
        Replace the store contents with every indexable document in one batch.

        Every document is embedded and validated before the store is touched,
        so a provider failure or a dimension mismatch leaves the previous
        contents in place.

        Returns:
            Number of documents stored
        """
        embedded = []
        chunk_count = 0
        for document_id, text in documents.items():
            document = self.embed(document_id, text)
            if document is None:
                continue
            embedded.append(document)
            chunk_count += len(document.vectors)

        self.store.replace_all(embedded)
        self.logger.log_indexing_operation("rebuild", len(embedded), chunk_count)
        return len(embedded)

    def remove(self, document_id: str) -> None:
        """Remove a document's vectors from the store."""
        self.store.delete(document_id)
        self.logger.log_vector_operation("delete", document_id)

    def search(self, text: str) -> List[SimilarityResult]:
        """Embed every chunk of the query text and rank documents against all of them."""
        chunks = self.chunks(text)
        if not chunks:
            return []
        return self.store.find_similar(self.embedder.embed_texts(chunks))
