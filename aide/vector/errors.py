"""
Exceptions raised by the vector store and its persistence layer.
"""

from typing import Optional


class VectorValidationError(ValueError):
    """A vector was not a numeric sequence or did not match the store dimension."""

    def __init__(self, document_id: Optional[str], reason: str):
        self.document_id = document_id
        self.reason = reason
        if document_id is None:
            super().__init__(f"Query vector invalid: {reason}")
        else:
            super().__init__(f"Vector for {document_id} invalid: {reason}")


class PersistenceError(RuntimeError):
    """Reading, parsing or writing the persisted storage slot failed."""


class UnsupportedFormatVersion(PersistenceError):
    """The persisted record uses a format version with no migration step."""

    def __init__(self, found, expected: int):
        self.found = found
        self.expected = expected
        super().__init__(
            f"Unsupported vector storage format version {found!r}, expected {expected}"
        )
