# clausewise/memory/similarity.py

"""
Cosine similarity and dynamic top-K selection.

Missing, mismatched or zero vectors score 0.0; they are never an error.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

from clausewise.config import (
    HIGH_CONFIDENCE_SIMILARITY,
    LOW_CONFIDENCE_SIMILARITY,
    TOP_K_HIGH_CONFIDENCE,
    TOP_K_DEFAULT,
    TOP_K_LOW_CONFIDENCE,
)

Vector = Optional[Sequence[float]]


@dataclass
class RankingResult:
    scores: List[float] = field(default_factory=list)
    max_similarity: float = 0.0
    k: int = 0
    selected: List[int] = field(default_factory=list)


def cosine_similarity(a: Vector, b: Vector) -> float:

    if a is None or b is None or len(a) == 0 or len(a) != len(b):
        return 0.0

    va = np.asarray(a, dtype="float64")
    vb = np.asarray(b, dtype="float64")

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)

    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.dot(va, vb) / (norm_a * norm_b))


def dynamic_top_k(max_similarity: float) -> int:

    if max_similarity >= HIGH_CONFIDENCE_SIMILARITY:
        return TOP_K_HIGH_CONFIDENCE

    if max_similarity < LOW_CONFIDENCE_SIMILARITY:
        return TOP_K_LOW_CONFIDENCE

    return TOP_K_DEFAULT


def rank(query: Vector, candidates: Sequence[Vector]) -> RankingResult:
    """
    Score every candidate against the query and pick the top K.

    `selected` holds candidate positions, best first; equal scores keep
    candidate order. K never exceeds the number of candidates.
    """

    if not candidates:
        return RankingResult()

    scores = [cosine_similarity(query, candidate) for candidate in candidates]

    max_similarity = max(scores)

    k = min(dynamic_top_k(max_similarity), len(scores))

    order = sorted(range(len(scores)), key=lambda i: -scores[i])

    return RankingResult(
        scores=scores,
        max_similarity=max_similarity,
        k=k,
        selected=order[:k],
    )
