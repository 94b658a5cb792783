"""Vector similarity and result ranking."""
from typing import List, Optional, Sequence, TypeVar, Union

import numpy as np

from .models import SearchResult

VectorLike = Union[Sequence[float], np.ndarray]
R = TypeVar("R", bound=SearchResult)


class DimensionMismatch(ValueError):
    """Raised when two vectors, or a vector and the store, disagree on dimension."""

    def __init__(self, expected: int, actual: int, context: str = "vector"):
        self.expected = expected
        self.actual = actual
        super().__init__(f"{context} has dimension {actual}, expected {expected}")


def as_vector(values: VectorLike) -> np.ndarray:
    """Convert a list or array of numbers to a 1-D float64 array."""
    vector = np.asarray(values, dtype=np.float64)
    if vector.ndim != 1:
        raise ValueError(f"Expected a 1-D vector, got shape {vector.shape}")
    return vector


def check_dimension(values: VectorLike, expected: int, context: str = "vector") -> None:
    """Raise DimensionMismatch unless ``values`` has ``expected`` entries."""
    actual = len(values)
    if actual != expected:
        raise DimensionMismatch(expected, actual, context)


def cosine_similarity(a: VectorLike, b: VectorLike) -> float:
    """Cosine similarity of two equal-length vectors.

    Args:
        a: First vector
        b: Second vector

    Returns:
        float: dot(a, b) / (|a| * |b|), or 0.0 when either norm is zero

    Raises:
        DimensionMismatch: If the vectors differ in length
    """
    vec_a = as_vector(a)
    vec_b = as_vector(b)
    if vec_a.shape[0] != vec_b.shape[0]:
        raise DimensionMismatch(vec_a.shape[0], vec_b.shape[0])

    norm_a = np.linalg.norm(vec_a)
    norm_b = np.linalg.norm(vec_b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(vec_a, vec_b) / (norm_a * norm_b))


def rank_results(
    results: List[R],
    min_similarity: Optional[float] = None,
    limit: int = 5,
) -> List[R]:
    """Filter, order and truncate scored results.

    The threshold is inclusive and applied before truncation. ``sorted`` is
    stable, so results with equal similarity keep their incoming order.

    Args:
        results: Scored results in insertion order
        min_similarity: Optional inclusive lower bound on similarity
        limit: Maximum number of results to return

    Returns:
        List of at most ``limit`` results, best first
    """
    if limit <= 0:
        raise ValueError(f"limit must be positive, got {limit}")

    if min_similarity is not None:
        results = [r for r in results if r.similarity >= min_similarity]

    return sorted(results, key=lambda r: r.similarity, reverse=True)[:limit]
