"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests:
in-process fakes for the engine's collaborators (AI provider, embedder,
idea store) and a small, fully-specified profile.
"""
import asyncio
import json
import sys
from pathlib import Path

import numpy as np
import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from ideaforge.core.errors import PersistenceError, ProviderError  # noqa: E402
from ideaforge.core.interfaces import CompletionSettings  # noqa: E402
from ideaforge.core.profile import InMemoryProfileProvider  # noqa: E402
from ideaforge.storage.memory_store import InMemoryIdeaStore  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: End-to-end engine tests (in-process fakes)")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


# =============================================================================
# Fakes
# =============================================================================


class FakeAIProvider:
    """AI provider returning canned responses (or raising) in call order."""

    name = "fake"

    def __init__(self, responses=None, gate: asyncio.Event | None = None):
        self.responses = list(responses or [])
        self.prompts: list[str] = []
        self.settings: list[CompletionSettings] = []
        self.gate = gate
        self.closed = False

    async def complete(self, prompt: str, settings: CompletionSettings) -> str:
        self.prompts.append(prompt)
        self.settings.append(settings)
        if self.gate is not None:
            await self.gate.wait()
        if not self.responses:
            raise ProviderError(self.name, "no canned response left")
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self) -> None:
        self.closed = True


class FakeEmbedder:
    """Embedder mapping known texts to fixed vectors; unknown text gets a default."""

    def __init__(self, vectors: dict[str, np.ndarray] | None = None, default=None):
        self.vectors = vectors or {}
        self.default = np.asarray(default if default is not None else [1.0, 0.0, 0.0])
        self.calls: list[str] = []

    async def embed(self, text: str) -> np.ndarray:
        self.calls.append(text)
        return np.asarray(self.vectors.get(text, self.default), dtype=np.float32)


class FailingStore(InMemoryIdeaStore):
    """Store that rejects every save."""

    async def save(self, idea):
        raise PersistenceError("disk full")


# =============================================================================
# Sample data
# =============================================================================


SAMPLE_PROFILE = {
    "name": "Test Profile",
    "criteria": [
        {"name": "Problem Severity", "weight": 40, "questions": ["How painful is it?"]},
        {"name": "Market Size", "weight": 40},
    ],
    "frameworks": [
        {"name": "Pain Point", "description": "Start from a frustration"},
        {"name": "X for Y"},
    ],
    "domains": [{"domain": "FinTech", "subdomain": "Invoicing"}, {"domain": "HealthTech"}],
    "problem_types": ["Manual work"],
    "solution_types": ["AI agent"],
    "monetization_models": ["Subscription"],
    "target_audiences": ["Freelancers"],
    "complexity": None,
}


def make_response(scores: dict[str, float] | None = None, **overrides) -> str:
    """Provider response text for the sample profile."""
    scores = scores or {"problemSeverity": 9, "marketSize": 7}
    payload = {
        "name": "Invoice Chaser",
        "domain": "FinTech → Invoicing",
        "problem": "Freelancers spend hours chasing unpaid invoices",
        "solution": "An agent that follows up politely until paid",
        "quickSummary": "Get paid without the awkward emails.",
        "concreteExample": {
            "currentState": "Manual reminders in Gmail",
            "yourSolution": "Connect invoices, agent sends reminders",
            "keyImprovement": "Days sales outstanding down 40%",
        },
        "evaluation": {
            key: {
                "score": score,
                "reasoning": f"{key} reasoning",
                "questions": [{"question": "Why?", "answer": "Because."}],
            }
            for key, score in scores.items()
        },
        "tags": ["fintech", "agents"],
    }
    payload.update(overrides)
    return json.dumps(payload, ensure_ascii=False)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def sample_profile():
    """Raw profile mapping (as a profile source would hand it over)."""
    return json.loads(json.dumps(SAMPLE_PROFILE))


@pytest.fixture
def profile_provider(sample_profile):
    return InMemoryProfileProvider({"default": sample_profile})


@pytest.fixture
def store():
    return InMemoryIdeaStore()


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def ai_response():
    return make_response()
