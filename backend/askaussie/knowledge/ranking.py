"""Cosine-similarity ranking over the in-memory corpus.

The corpus is small and static, so every query is a full linear scan.
"""

from collections.abc import Sequence

import numpy as np

from askaussie.core.ai_constants import DEFAULT_TOP_K
from askaussie.knowledge.models import CorpusSection, ScoredSection


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between two vectors.

    Returns exactly 0.0 for mismatched lengths, empty input or a
    zero-magnitude vector.
    """
    if len(a) == 0 or len(b) == 0 or len(a) != len(b):
        return 0.0

    vec_a = np.asarray(a, dtype=np.float64)
    vec_b = np.asarray(b, dtype=np.float64)

    magnitude_a = float(np.linalg.norm(vec_a))
    magnitude_b = float(np.linalg.norm(vec_b))
    if magnitude_a == 0.0 or magnitude_b == 0.0:
        return 0.0

    similarity = float(np.dot(vec_a, vec_b)) / (magnitude_a * magnitude_b)
    if not np.isfinite(similarity):
        return 0.0
    return similarity


def rank_sections(
    query_embedding: Sequence[float],
    sections: Sequence[CorpusSection],
    top_k: int = DEFAULT_TOP_K,
) -> list[ScoredSection]:
    """Score every embedded section and return the top K.

    No minimum-similarity floor is applied: low or negative scores are
    still returned when fewer than K better sections exist. Equal scores
    keep corpus order.

    Args:
        query_embedding: Query vector.
        sections: Corpus sections; those without an embedding are skipped.
        top_k: Maximum number of results.

    Returns:
        Up to ``top_k`` ScoredSection objects, highest similarity first.
    """
    if len(query_embedding) == 0 or top_k <= 0:
        return []

    scored = [
        ScoredSection(
            **section.model_dump(),
            similarity=cosine_similarity(query_embedding, section.embedding or []),
        )
        for section in sections
        if section.has_embedding
    ]

    # sorted() is stable, also with reverse=True
    scored = sorted(scored, key=lambda s: s.similarity, reverse=True)
    return scored[:top_k]
