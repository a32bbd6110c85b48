"""
In-memory idea store.

Reference IdeaStore used by the CLI and the tests. Nearest-neighbour lookup is
an exact cosine scan over every stored embedding, which is fine for the few
thousand ideas a single process generates.
"""

from __future__ import annotations

import asyncio
import uuid

import numpy as np
from loguru import logger

from ideaforge.core.errors import PersistenceError
from ideaforge.core.models import Idea


class InMemoryIdeaStore:
    """Keep saved ideas in a dict keyed by generated id."""

    def __init__(self):
        self._ideas: dict[str, Idea] = {}
        self._lock = asyncio.Lock()

    async def save(self, idea: Idea) -> str:
        if not idea.name:
            raise PersistenceError("Idea has no name")
        async with self._lock:
            idea_id = str(uuid.uuid4())
            idea.id = idea_id
            self._ideas[idea_id] = idea
        logger.debug("Stored idea {} ({})", idea_id, idea.folder_name)
        return idea_id

    async def find_nearest_by_vector(
        self, vector: np.ndarray, limit: int
    ) -> list[tuple[str, np.ndarray]]:
        async with self._lock:
            stored = [
                (idea_id, idea.embedding)
                for idea_id, idea in self._ideas.items()
                if idea.embedding is not None
            ]
        if not stored or limit <= 0:
            return []

        query = np.asarray(vector, dtype=np.float32)
        matrix = np.vstack([np.asarray(v, dtype=np.float32) for _, v in stored])
        if matrix.shape[1] != query.shape[0]:
            raise PersistenceError(
                f"Vector dimension mismatch: query {query.shape[0]}, stored {matrix.shape[1]}"
            )

        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        with np.errstate(divide="ignore", invalid="ignore"):
            similarities = np.where(norms > 0, matrix @ query / norms, 0.0)
        order = np.argsort(-similarities)[:limit]
        return [stored[i] for i in order]

    def get(self, idea_id: str) -> Idea | None:
        return self._ideas.get(idea_id)

    def all(self) -> list[Idea]:
        return sorted(self._ideas.values(), key=lambda idea: idea.created_at)

    def __len__(self) -> int:
        return len(self._ideas)
