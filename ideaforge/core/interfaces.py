"""
Collaborator interfaces consumed by the engine.

Concrete implementations shipped in this package:
- ProfileProvider  -> ideaforge.core.profile.InMemoryProfileProvider
- AIProvider       -> ideaforge.integrations.ai_provider (Claude, Gemini)
- EmbeddingProvider -> ideaforge.semantic.embedding_service.EmbeddingService
- IdeaStore        -> ideaforge.storage.memory_store.InMemoryIdeaStore
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence, runtime_checkable

import numpy as np

from ideaforge.core.models import Idea
from ideaforge.core.profile import ConfigProfile


@dataclass(frozen=True)
class CompletionSettings:
    """Sampling parameters passed with a prompt."""

    temperature: float = 1.0
    max_tokens: int = 16384
    system_prompt: str | None = None


@runtime_checkable
class ProfileProvider(Protocol):
    async def resolve(self, profile_id: str) -> ConfigProfile:
        """Raises ConfigError when the profile is missing or malformed."""
        ...


@runtime_checkable
class AIProvider(Protocol):
    name: str

    async def complete(self, prompt: str, settings: CompletionSettings) -> str:
        """Raises ProviderError on timeout, non-2xx or malformed transport payload."""
        ...


@runtime_checkable
class EmbeddingProvider(Protocol):
    async def embed(self, text: str) -> np.ndarray:
        """Raises ProviderError when no vector can be produced."""
        ...


@runtime_checkable
class IdeaStore(Protocol):
    async def save(self, idea: Idea) -> str:
        """Persist and return the generated id. Raises PersistenceError."""
        ...

    async def find_nearest_by_vector(
        self, vector: np.ndarray, limit: int
    ) -> Sequence[tuple[str, np.ndarray]]:
        """Nearest stored ideas as (id, vector) pairs. Raises PersistenceError."""
        ...
