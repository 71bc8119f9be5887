"""
Similarity functions used to compare query vectors with document chunk vectors.

Two measures are available:

* ``cosine``: plain dot product over norms.
* ``boosted``: cosine similarity squared, scaled by the norm ratio of the two
  vectors. The ratio is raised to ``boost_factor`` when the query is the
  shorter vector, so a short query that lines up with a long chunk is not
  drowned out by the length difference.

Any comparison involving a zero vector scores 0.0.
"""

import numpy as np

SIMILARITY_MODES = ("boosted", "cosine")


def cosine_similarity(vec_a, vec_b) -> float:
    """Calculate cosine similarity between two vectors."""
    a = np.asarray(vec_a, dtype=np.float64)
    b = np.asarray(vec_b, dtype=np.float64)
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))


def length_normalized_similarity(query, document, boost_factor: float = 1.2) -> float:
    """Calculate squared cosine similarity with a query length boost."""
    q = np.asarray(query, dtype=np.float64)
    d = np.asarray(document, dtype=np.float64)
    return float(similarity_matrix(q.reshape(1, -1), d.reshape(1, -1), boost_factor, "boosted")[0, 0])


def similarity_matrix(queries: np.ndarray, documents: np.ndarray,
                      boost_factor: float = 1.2, mode: str = "boosted") -> np.ndarray:
    """
    Compare every query row with every document row.

    Args:
        queries: Array of shape (m, dim)
        documents: Array of shape (n, dim)
        boost_factor: Exponent for the norm ratio when the query is shorter
        mode: "boosted" or "cosine"

    Returns:
        Array of shape (m, n) of similarities
    """
    if mode not in SIMILARITY_MODES:
        raise ValueError(f"Unknown similarity mode: {mode}")

    query_norms = np.linalg.norm(queries, axis=1)[:, np.newaxis]
    doc_norms = np.linalg.norm(documents, axis=1)[np.newaxis, :]
    norm_products = query_norms * doc_norms
    nonzero = norm_products > 0

    dots = queries @ documents.T
    cosine = np.divide(dots, norm_products, out=np.zeros_like(dots), where=nonzero)
    if mode == "cosine":
        return cosine

    # Square it to emphasize directional alignment
    direction = cosine * cosine

    shorter = np.minimum(query_norms, doc_norms)
    longer = np.maximum(query_norms, doc_norms)
    ratio = np.divide(shorter, longer, out=np.zeros_like(norm_products), where=longer > 0)
    exponent = np.where(query_norms < doc_norms, boost_factor, 1.0)

    return np.where(nonzero, direction * np.power(ratio, exponent), 0.0)
