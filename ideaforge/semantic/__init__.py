"""
Semantic analysis for embedding-based duplicate detection.

Technology:
- sentence-transformers (all-MiniLM-L6-v2, 384-dim)
- numpy cosine similarity over nearest neighbours returned by the idea store
"""

from ideaforge.semantic.duplicate_detector import DuplicateDetector
from ideaforge.semantic.embedding_service import EmbeddingResult, EmbeddingService

__all__ = [
    # Embedding
    "EmbeddingService",
    "EmbeddingResult",
    # Duplicates
    "DuplicateDetector",
]
