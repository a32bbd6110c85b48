"""
IdeaForge - concurrent generation, scoring and deduplication of AI business ideas.

Public entry points:
- GenerationService: slot pool + pipeline + observer queries
- SlotManager / GenerationPipeline for finer control
"""

__version__ = "1.0.0"
