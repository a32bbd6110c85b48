"""
Embedding Service - Generate semantic embeddings using sentence-transformers.

Uses all-MiniLM-L6-v2 model (384 dimensions) by default. Ideas are embedded
from their canonical text (domain + problem + solution) so that two ideas
attacking the same problem the same way land close together.

References:
- https://www.sbert.net/docs/pretrained_models.html
- https://huggingface.co/sentence-transformers/all-MiniLM-L6-v2
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

import numpy as np
from loguru import logger

from config import get_settings
from ideaforge.core.errors import ProviderError

if TYPE_CHECKING:
    from sentence_transformers import SentenceTransformer


@dataclass
class EmbeddingResult:
    """Result of embedding generation for a single text."""

    text: str
    embedding: np.ndarray
    model_name: str
    generated_at: datetime

    @property
    def dimension(self) -> int:
        return len(self.embedding)


class EmbeddingService:
    """
    Generate semantic embeddings for idea text.

    The model is lazy-loaded on first use to avoid startup delays. ``embed``
    is the async entry point used by the pipeline; encoding runs in a worker
    thread so a slow model never stalls the other slots.

    Example:
        >>> service = EmbeddingService()
        >>> vector = await service.embed("FinTech | invoice chasing | AI agent")
        >>> vector.shape
        (384,)
    """

    def __init__(self, model_name: str | None = None):
        """
        Initialize the embedding service.

        Args:
            model_name: Sentence transformer model to use.
                        Defaults to config value (all-MiniLM-L6-v2).
        """
        settings = get_settings()
        self.model_name = model_name or settings.embedding_model
        self.expected_dimension = settings.embedding_dimension
        self._model: SentenceTransformer | None = None

    @property
    def model(self) -> SentenceTransformer:
        """
        Lazy load the model on first use.

        The model is downloaded from HuggingFace Hub on first run (~90MB).
        Subsequent runs use the cached version.
        """
        if self._model is None:
            from sentence_transformers import SentenceTransformer

            logger.info("Loading embedding model: {}", self.model_name)
            self._model = SentenceTransformer(self.model_name)
            logger.info(
                "Embedding model loaded: {} ({}-dim)",
                self.model_name,
                self.expected_dimension,
            )
        return self._model

    def generate_embedding(self, text: str) -> EmbeddingResult:
        """Generate embedding for a single text (blocking)."""
        embedding = self.model.encode(text, convert_to_numpy=True)

        return EmbeddingResult(
            text=text,
            embedding=embedding,
            model_name=self.model_name,
            generated_at=datetime.now(),
        )

    async def embed(self, text: str) -> np.ndarray:
        """
        Embed text for duplicate detection.

        Raises:
            ProviderError: If the model cannot be loaded or encoding fails.
        """
        if not text.strip():
            raise ProviderError("embedding", "cannot embed empty text")
        try:
            result = await asyncio.to_thread(self.generate_embedding, text)
        except Exception as e:
            logger.error("Embedding generation failed: {}", e)
            raise ProviderError("embedding", str(e)) from e

        if result.dimension != self.expected_dimension:
            raise ProviderError(
                "embedding",
                f"expected {self.expected_dimension}-dim vector, got {result.dimension}",
            )
        return result.embedding

    @staticmethod
    def cosine_similarity(emb1: np.ndarray, emb2: np.ndarray) -> float:
        """
        Calculate cosine similarity between two embeddings.

        Returns:
            Cosine similarity score between -1 and 1 (0.0 for a zero vector).
        """
        dot_product = np.dot(emb1, emb2)
        norm1 = np.linalg.norm(emb1)
        norm2 = np.linalg.norm(emb2)

        if norm1 == 0 or norm2 == 0:
            return 0.0

        return float(np.clip(dot_product / (norm1 * norm2), -1.0, 1.0))

    def get_model_info(self) -> dict:
        return {
            "model_name": self.model_name,
            "dimension": self.expected_dimension,
            "is_loaded": self._model is not None,
        }
