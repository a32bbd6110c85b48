"""External AI provider clients."""

from ideaforge.integrations.ai_provider import (
    AnthropicProvider,
    GeminiProvider,
    create_ai_provider,
)

__all__ = ["AnthropicProvider", "GeminiProvider", "create_ai_provider"]
