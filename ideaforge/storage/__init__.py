"""Idea persistence."""

from ideaforge.storage.memory_store import InMemoryIdeaStore

__all__ = ["InMemoryIdeaStore"]
