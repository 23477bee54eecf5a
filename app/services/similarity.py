"""Vector math shared by the store adapter and the query service."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from app.errors import DimensionMismatchError


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Dot product over the product of norms.

    Raises :class:`DimensionMismatchError` when the vectors differ in length.
    A zero-norm vector has no direction, so its similarity to anything is 0.0.
    """
    if len(a) != len(b):
        raise DimensionMismatchError(len(a), len(b))

    vec_a = np.asarray(a, dtype=np.float64)
    vec_b = np.asarray(b, dtype=np.float64)
    norm = float(np.linalg.norm(vec_a) * np.linalg.norm(vec_b))
    if norm == 0.0:
        return 0.0
    return float(np.clip(np.dot(vec_a, vec_b) / norm, -1.0, 1.0))


def to_similarity(distance: float) -> float:
    """Convert a cosine distance reported by the index into a similarity."""
    return 1.0 - float(distance)


def to_distance(similarity: float) -> float:
    return 1.0 - float(similarity)
