"""
AI provider clients for idea generation.

- Claude: Anthropic Messages API through the anthropic SDK
- Gemini: google.generativeai GenerativeModel, called off the event loop

A call is a single attempt. Timeouts, API errors, transport errors and
payloads without text all surface as ProviderError so the pipeline can fail
the session with a clear kind.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import anthropic
import google.api_core.exceptions
import httpx
from loguru import logger

from config import Settings, get_settings
from ideaforge.core.errors import ConfigError, ProviderError
from ideaforge.core.interfaces import AIProvider, CompletionSettings

DEFAULT_CLAUDE_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_GEMINI_MODEL = "gemini-1.5-pro"

_STATUS_MESSAGES = {
    401: "Invalid API key",
    403: "API key not authorized for this model",
    404: "Model or endpoint not found",
    429: "Rate limit exceeded",
}


def _require_key(provider: str, api_key: str) -> None:
    if not api_key or not api_key.strip():
        raise ConfigError(f"No API key configured for {provider}")


def _status_reason(status: int | None) -> str:
    return _STATUS_MESSAGES.get(status, f"HTTP {status}")


# =============================================================================
# Claude
# =============================================================================


class AnthropicProvider:
    """Claude over the Anthropic Messages API."""

    name = "claude"

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        base_url: str = "https://api.anthropic.com",
        timeout_seconds: float = 180.0,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the provider.

        Args:
            api_key: Anthropic API key.
            model: Model identifier (defaults to DEFAULT_CLAUDE_MODEL).
            base_url: API base URL.
            timeout_seconds: Timeout for one completion call.
            client: httpx client for the SDK to send through (tests pass one
                with a mock transport).
        """
        _require_key(self.name, api_key)
        self.model = model or DEFAULT_CLAUDE_MODEL
        self.timeout_seconds = timeout_seconds
        self.client = anthropic.AsyncAnthropic(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout_seconds,
            max_retries=0,
            http_client=client,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.close()

    async def complete(self, prompt: str, settings: CompletionSettings) -> str:
        request: dict[str, Any] = {
            "model": self.model,
            "max_tokens": settings.max_tokens,
            "temperature": settings.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if settings.system_prompt:
            request["system"] = settings.system_prompt

        logger.debug("[{}] Calling Messages API with model {}", self.name, self.model)
        try:
            message = await self.client.messages.create(**request)
        except anthropic.APITimeoutError as e:
            logger.warning("[{}] Timed out after {}s", self.name, self.timeout_seconds)
            raise ProviderError(
                self.name,
                f"Request timed out after {self.timeout_seconds:g}s",
                {"model": self.model},
            ) from e
        except anthropic.APIStatusError as e:
            logger.error("[{}] API error {} for model {}", self.name, e.status_code, self.model)
            raise ProviderError(
                self.name,
                _status_reason(e.status_code),
                {"status_code": e.status_code, "model": self.model, "body": e.response.text[:500]},
            ) from e
        except anthropic.APIConnectionError as e:
            logger.error("[{}] Request error: {}", self.name, e)
            raise ProviderError(self.name, f"Request failed: {e}", {"model": self.model}) from e
        except anthropic.APIResponseValidationError as e:
            raise ProviderError(self.name, "Malformed response payload", {"model": self.model}) from e

        blocks = getattr(message, "content", None)
        if not isinstance(blocks, list) or not all(hasattr(block, "type") for block in blocks):
            raise ProviderError(self.name, "Malformed response payload", {"model": self.model})

        text = "\n".join(
            getattr(block, "text", None) or "" for block in blocks if block.type == "text"
        )
        stop_reason = getattr(message, "stop_reason", None)
        if not text.strip():
            raise ProviderError(self.name, "Response contained no text", {"stop_reason": stop_reason})
        if stop_reason == "max_tokens":
            logger.warning("[{}] Response truncated at max_tokens={}", self.name, settings.max_tokens)
        return text


# =============================================================================
# Gemini
# =============================================================================


ModelFactory = Callable[[str, "str | None"], Any]


class GeminiProvider:
    """Gemini through google.generativeai."""

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        timeout_seconds: float = 180.0,
        model_factory: ModelFactory | None = None,
    ):
        """
        Initialize the provider.

        Args:
            api_key: Gemini API key.
            model: Model identifier (defaults to DEFAULT_GEMINI_MODEL).
            timeout_seconds: Timeout for one completion call.
            model_factory: Builds a model from (model_name, system_instruction);
                defaults to genai.GenerativeModel.
        """
        _require_key(self.name, api_key)
        self.api_key = api_key
        self.model = model or DEFAULT_GEMINI_MODEL
        self.timeout_seconds = timeout_seconds
        self._model_factory = model_factory or self._genai_model
        self._models: dict[str | None, Any] = {}

    def _genai_model(self, model_name: str, system_instruction: str | None):
        import google.generativeai as genai

        genai.configure(api_key=self.api_key)
        return genai.GenerativeModel(
            model_name=model_name,
            system_instruction=system_instruction,
        )

    def _client_for(self, system_instruction: str | None):
        # system instructions are fixed per GenerativeModel
        if system_instruction not in self._models:
            self._models[system_instruction] = self._model_factory(self.model, system_instruction)
        return self._models[system_instruction]

    async def close(self) -> None:
        self._models.clear()

    async def complete(self, prompt: str, settings: CompletionSettings) -> str:
        client = self._client_for(settings.system_prompt)

        logger.debug("[{}] Calling generate_content with model {}", self.name, self.model)
        try:
            response = await asyncio.to_thread(
                client.generate_content,
                prompt,
                generation_config={
                    "temperature": settings.temperature,
                    "max_output_tokens": settings.max_tokens,
                },
                request_options={"timeout": self.timeout_seconds},
            )
        except google.api_core.exceptions.DeadlineExceeded as e:
            logger.warning("[{}] Timed out after {}s", self.name, self.timeout_seconds)
            raise ProviderError(
                self.name,
                f"Request timed out after {self.timeout_seconds:g}s",
                {"model": self.model},
            ) from e
        except google.api_core.exceptions.GoogleAPICallError as e:
            status = int(e.code) if e.code is not None else None
            logger.error("[{}] API error {} for model {}", self.name, status, self.model)
            raise ProviderError(
                self.name,
                _status_reason(status),
                {"status_code": status, "model": self.model, "body": str(e.message)[:500]},
            ) from e
        except google.api_core.exceptions.GoogleAPIError as e:
            logger.error("[{}] Request error: {}", self.name, e)
            raise ProviderError(self.name, f"Request failed: {e}", {"model": self.model}) from e

        return self._extract_text(response)

    def _extract_text(self, response: Any) -> str:
        candidates = getattr(response, "candidates", None)
        if candidates is None:
            raise ProviderError(self.name, "Malformed response payload", {"model": self.model})
        if not candidates:
            reason = getattr(getattr(response, "prompt_feedback", None), "block_reason", None)
            reason = getattr(reason, "name", reason) or "unknown"
            raise ProviderError(self.name, f"No candidates returned (block reason: {reason})")

        parts = getattr(getattr(candidates[0], "content", None), "parts", None)
        if parts is None:
            raise ProviderError(self.name, "Malformed response payload", {"model": self.model})

        text = "".join(getattr(part, "text", None) or "" for part in parts)
        if not text.strip():
            finish_reason = getattr(candidates[0], "finish_reason", None)
            raise ProviderError(
                self.name,
                "Response contained no text",
                {"finish_reason": getattr(finish_reason, "name", finish_reason)},
            )
        return text


def create_ai_provider(settings: Settings | None = None) -> AIProvider:
    """
    Build the configured AI provider.

    Raises:
        ConfigError: The selected provider has no API key.
    """
    settings = settings or get_settings()
    if settings.ai_provider == "gemini":
        return GeminiProvider(
            api_key=settings.gemini_api_key or "",
            model=settings.ai_model,
            timeout_seconds=settings.ai_timeout_seconds,
        )
    return AnthropicProvider(
        api_key=settings.anthropic_api_key or "",
        model=settings.ai_model,
        base_url=settings.anthropic_base_url,
        timeout_seconds=settings.ai_timeout_seconds,
    )
