"""
Configuration settings for the ideaforge generation engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # AI Provider
    # ========================================
    ai_provider: Literal["claude", "gemini"] = Field(
        default="claude",
        description="Which AI provider answers generation prompts",
    )
    anthropic_api_key: str | None = Field(
        default=None,
        description="Anthropic API key for Claude models",
    )
    gemini_api_key: str | None = Field(
        default=None,
        description="Google Generative AI (Gemini) API key",
    )
    ai_model: str | None = Field(
        default=None,
        description="Model override (provider default when unset)",
    )
    ai_timeout_seconds: float = Field(
        default=180.0,
        description="Timeout for a single generation call",
    )
    anthropic_base_url: str = Field(
        default="https://api.anthropic.com",
        description="Anthropic Messages API base URL",
    )
    default_temperature: float = Field(
        default=1.0,
        description="Sampling temperature when the profile does not set one",
    )
    default_max_tokens: int = Field(
        default=16384,
        description="Max output tokens when the profile does not set one",
    )

    # ========================================
    # Semantic Embeddings
    # ========================================
    embedding_model: str = Field(
        default="all-MiniLM-L6-v2",
        description="Sentence transformer model for embeddings (384-dim)",
    )
    embedding_dimension: int = Field(
        default=384,
        description="Embedding vector dimension (must match model)",
    )
    semantic_duplicate_threshold: float = Field(
        default=0.92,
        ge=0.0,
        le=1.0,
        description="Cosine similarity threshold for duplicate detection",
    )
    duplicate_search_limit: int = Field(
        default=10,
        ge=1,
        description="Nearest neighbours fetched from the idea store per check",
    )

    # ========================================
    # Generation Slots
    # ========================================
    slot_count: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Number of concurrent generation slots at startup",
    )
    max_slots: int = Field(
        default=10,
        ge=1,
        le=10,
        description="Upper bound for runtime slot resizing",
    )
    auto_generate_check_seconds: float = Field(
        default=30.0,
        description="How often the scheduler looks for due slots",
    )

    # ========================================
    # Profiles
    # ========================================
    default_profile_id: str = Field(
        default="default",
        description="Profile used when neither the request nor the slot names one",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default="logs/ideaforge.log",
        description="Log file path (None for stderr only)",
    )
    log_retention_seconds: float = Field(
        default=3600.0,
        description="Grace period a finished session's log stays queryable",
    )

    # ========================================
    # Helper Methods
    # ========================================
    def has_ai_configured(self) -> bool:
        """Check if the selected AI provider has a key."""
        if self.ai_provider == "gemini":
            return bool(self.gemini_api_key)
        return bool(self.anthropic_api_key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
