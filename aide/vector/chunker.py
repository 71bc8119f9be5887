"""
Split document text into overlapping, word-aligned chunks sized for embedding.

The tokenizer is deliberately naive: a token is at most 4 characters and is
closed early by whitespace or one of ``. , ! ?``. Chunk sizes and overlaps
are counted in these tokens.
"""

import re
from typing import Iterator, List

_BOUNDARY = re.compile(r"\s|[.,!?]")

MAX_TOKEN_LENGTH = 4


def tokenize(text: str) -> List[str]:
    """Break text into runs of up to 4 characters, ending early at boundaries."""
    tokens = []
    token = ""

    for char in text:
        token += char
        if len(token) >= MAX_TOKEN_LENGTH or _BOUNDARY.match(char):
            tokens.append(token)
            token = ""

    if token:
        tokens.append(token)

    return tokens


def _is_boundary(token: str) -> bool:
    return _BOUNDARY.search(token) is not None


def iter_chunks(text: str, chunk_size: int, chunk_overlap: int) -> Iterator[str]:
    """
    Yield overlapping chunks of text.

    Args:
        text: Raw document text
        chunk_size: Window width in tokens
        chunk_overlap: Tokens shared between consecutive windows

    Raises:
        ValueError: If the window would not advance
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
    if chunk_overlap < 0 or chunk_overlap >= chunk_size:
        raise ValueError(
            f"chunk_overlap must be in [0, {chunk_size}), got {chunk_overlap}"
        )

    tokens = tokenize(text)
    step = chunk_size - chunk_overlap

    for i in range(0, len(tokens), step):
        # Back the start up to the beginning of the word it lands in
        start = i
        while start > 0 and not _is_boundary(tokens[start - 1]):
            start -= 1

        # Pull the end back so the window does not cut a word in half
        end = i + chunk_size
        while end < len(tokens) and end > i and not _is_boundary(tokens[end - 1]):
            end -= 1

        yield "".join(tokens[start:end])


def chunk(text: str, chunk_size: int, chunk_overlap: int) -> List[str]:
    """Return all chunks of text as a list; empty text gives an empty list."""
    return list(iter_chunks(text, chunk_size, chunk_overlap))
