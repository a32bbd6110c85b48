"""
Semantic duplicate detection for candidate ideas.

A thin comparison layer: the idea store answers "nearest neighbours for this
vector" (exact scan or ANN, its choice) and the detector scores each returned
vector by cosine similarity, keeping the single best match.

Default threshold: cosine similarity >= 0.92 is a duplicate. A similarity of
1.0 (identical embeddings) is always a duplicate whatever the threshold.
"""

from __future__ import annotations

import math
from typing import Iterable

import numpy as np
from loguru import logger

from config import get_settings
from ideaforge.core.errors import PersistenceError
from ideaforge.core.interfaces import IdeaStore
from ideaforge.core.models import DuplicateResult
from ideaforge.semantic.embedding_service import EmbeddingService


class DuplicateDetector:
    """
    Classify a candidate embedding against a corpus of stored ones.

    Example:
        >>> detector = DuplicateDetector(store, threshold=0.92)
        >>> result = await detector.find(candidate_vector)
        >>> result.is_duplicate, result.match_id, round(result.similarity, 2)
        (True, 'idea-42', 0.97)
    """

    DEFAULT_DUPLICATE_THRESHOLD = 0.92
    EXACT_MATCH_TOLERANCE = 1e-6

    def __init__(
        self,
        store: IdeaStore | None = None,
        threshold: float | None = None,
        search_limit: int | None = None,
    ):
        """
        Args:
            store: Idea store used by ``find`` for the nearest-neighbour lookup.
            threshold: Minimum similarity for a duplicate (default from settings).
            search_limit: Neighbours requested from the store per lookup.
        """
        settings = get_settings()
        self.store = store
        self.threshold = (
            threshold if threshold is not None else settings.semantic_duplicate_threshold
        )
        self.search_limit = search_limit or settings.duplicate_search_limit

        if not 0.0 <= self.threshold <= 1.0:
            raise ValueError(f"threshold must be within [0, 1], got {self.threshold}")

    def is_duplicate(self, similarity: float) -> bool:
        if math.isclose(similarity, 1.0, abs_tol=self.EXACT_MATCH_TOLERANCE):
            return True
        return similarity >= self.threshold

    def check(
        self,
        candidate: np.ndarray,
        corpus: Iterable[tuple[str, np.ndarray]],
    ) -> DuplicateResult:
        """
        Compare a candidate vector against (id, vector) pairs.

        Returns:
            The best match; ``similarity`` is 0.0 and ``match_id`` None when the
            corpus is empty.
        """
        best_id: str | None = None
        best_similarity = -math.inf

        for idea_id, vector in corpus:
            similarity = EmbeddingService.cosine_similarity(candidate, vector)
            if similarity > best_similarity:
                best_id, best_similarity = idea_id, similarity

        if best_id is None:
            return DuplicateResult(is_duplicate=False, similarity=0.0)

        return DuplicateResult(
            is_duplicate=self.is_duplicate(best_similarity),
            similarity=best_similarity,
            match_id=best_id,
        )

    async def find(self, candidate: np.ndarray) -> DuplicateResult:
        """Fetch nearest stored ideas and classify the candidate against them."""
        if self.store is None:
            raise PersistenceError("Duplicate lookup needs an idea store")

        corpus = list(await self.store.find_nearest_by_vector(candidate, self.search_limit))
        result = self.check(candidate, corpus)
        logger.debug(
            "Duplicate check over {} neighbour(s): best={} similarity={:.3f}",
            len(corpus),
            result.match_id,
            result.similarity,
        )
        return result
