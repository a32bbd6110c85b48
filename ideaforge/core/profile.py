"""
Configuration profiles.

A profile bundles everything a generation needs from configuration: the
evaluation criteria (with weights and score ranges), the idea frameworks,
option pools sampled into the prompt, and generation settings. Profiles reach
the engine as plain mappings (already read from wherever they are stored) and
are validated here with Pydantic; a profile that fails validation is a
ConfigError for the session that asked for it.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any, Mapping

from loguru import logger
from pydantic import BaseModel, Field, ValidationError, model_validator

from ideaforge.core.errors import ConfigError


def to_camel_case(name: str) -> str:
    """Convert "Problem Severity" to "problemSeverity"."""
    words = name.split()
    if not words:
        return ""
    head, *rest = words
    return head.lower() + "".join(w[:1].upper() + w[1:].lower() for w in rest)


class Criterion(BaseModel):
    """One evaluation criterion the AI must score."""

    name: str
    key: str = ""
    description: str = ""
    weight: float = Field(1.0, ge=0)
    min_score: float = 0.0
    max_score: float = 10.0
    questions: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _fill_key_and_check_range(self) -> "Criterion":
        if not self.key:
            self.key = to_camel_case(self.name)
        if self.max_score <= self.min_score:
            raise ValueError(
                f"criterion {self.name!r}: max_score must exceed min_score"
            )
        return self


class Framework(BaseModel):
    """An idea-generation framework (e.g. "Unbundling", "X for Y")."""

    name: str
    description: str = ""
    template: str = ""
    example: str = ""


class DomainOption(BaseModel):
    domain: str
    subdomain: str | None = None

    def display(self) -> str:
        return f"{self.domain} → {self.subdomain}" if self.subdomain else self.domain


class ExtraFilter(BaseModel):
    """Optional prompt constraint, e.g. "Team size at most {value}"."""

    prompt_text: str
    enabled: bool = True
    value: Any = None

    def render(self) -> str:
        if self.value is None:
            return self.prompt_text
        return self.prompt_text.replace("{value}", str(self.value))


class GenerationSettings(BaseModel):
    prompt_template: str | None = None
    temperature: float | None = Field(None, ge=0, le=2)
    max_tokens: int | None = Field(None, ge=1)
    extra_filters: list[ExtraFilter] = Field(default_factory=list)
    options_per_category: int = Field(5, ge=1)


class ComplexityMapping(BaseModel):
    """Which criteria feed the derived complexity scores."""

    technical: str = "technicalFeasibility"
    regulatory: str = "timeToMarket"
    sales: list[str] = Field(default_factory=lambda: ["marketSize", "monetizationClarity"])
    regulatory_pattern: str = r"regulat|complia|licens|legal|permit|approval|certif"
    regulatory_default: float = 3.0


class ConfigProfile(BaseModel):
    """A validated configuration profile."""

    id: str
    name: str = ""
    criteria: list[Criterion] = Field(min_length=1)
    frameworks: list[Framework] = Field(min_length=1)
    domains: list[DomainOption] = Field(default_factory=list)
    problem_types: list[str] = Field(default_factory=list)
    solution_types: list[str] = Field(default_factory=list)
    monetization_models: list[str] = Field(default_factory=list)
    target_audiences: list[str] = Field(default_factory=list)
    generation: GenerationSettings = Field(default_factory=GenerationSettings)
    complexity: ComplexityMapping | None = Field(default_factory=ComplexityMapping)

    @model_validator(mode="after")
    def _unique_criterion_keys(self) -> "ConfigProfile":
        keys = [c.key for c in self.criteria]
        if len(keys) != len(set(keys)):
            raise ValueError(f"duplicate criterion keys in profile {self.id!r}")
        return self

    @property
    def weights(self) -> dict[str, float]:
        return {c.key: c.weight for c in self.criteria}

    @property
    def score_ranges(self) -> dict[str, tuple[float, float]]:
        return {c.key: (c.min_score, c.max_score) for c in self.criteria}

    @property
    def criterion_keys(self) -> list[str]:
        return [c.key for c in self.criteria]

    def get_framework(self, name: str) -> Framework:
        """Look up a framework by name (case-insensitive)."""
        for framework in self.frameworks:
            if framework.name.lower() == name.lower():
                return framework
        raise ConfigError(
            f"Framework {name!r} not found in profile {self.id!r}",
            {"available": [f.name for f in self.frameworks]},
        )


@dataclass
class ResolvedConfig:
    """
    Profile plus the per-session choices made while loading it.

    Built during CONFIG_LOAD; everything PROMPT_BUILD needs is here so that
    rendering stays a pure function.
    """

    profile: ConfigProfile
    framework: Framework
    domains: list[DomainOption] = field(default_factory=list)
    problem_types: list[str] = field(default_factory=list)
    solution_types: list[str] = field(default_factory=list)


def resolve_config(
    profile: ConfigProfile,
    framework_name: str | None = None,
    rng: random.Random | None = None,
) -> ResolvedConfig:
    """Pick the framework and sample option pools for one session."""
    rng = rng or random.Random()
    framework = (
        profile.get_framework(framework_name)
        if framework_name
        else rng.choice(profile.frameworks)
    )
    count = profile.generation.options_per_category

    def sample(pool: list) -> list:
        return rng.sample(pool, min(count, len(pool)))

    return ResolvedConfig(
        profile=profile,
        framework=framework,
        domains=sample(profile.domains),
        problem_types=sample(profile.problem_types),
        solution_types=sample(profile.solution_types),
    )


class InMemoryProfileProvider:
    """
    Profile provider over already-loaded profile mappings.

    Example:
        >>> provider = InMemoryProfileProvider({"default": {...}})
        >>> profile = await provider.resolve("default")
    """

    def __init__(self, profiles: Mapping[str, Mapping[str, Any]] | None = None):
        self._raw: dict[str, dict[str, Any]] = {}
        for profile_id, data in (profiles or {}).items():
            self.register(profile_id, data)

    def register(self, profile_id: str, data: Mapping[str, Any]) -> None:
        """Add or replace a profile. Validation happens on resolve."""
        self._raw[profile_id] = {"id": profile_id, **dict(data)}

    def list_profiles(self) -> list[str]:
        return sorted(self._raw)

    async def resolve(self, profile_id: str) -> ConfigProfile:
        data = self._raw.get(profile_id)
        if data is None:
            raise ConfigError(
                f"Configuration profile not found: {profile_id}",
                {"profile_id": profile_id, "available": self.list_profiles()},
            )
        try:
            return ConfigProfile.model_validate(data)
        except ValidationError as e:
            logger.warning("Profile {} failed validation: {}", profile_id, e)
            raise ConfigError(
                f"Configuration profile {profile_id!r} is malformed: "
                f"{e.error_count()} validation error(s)",
                {"profile_id": profile_id, "errors": e.errors(include_url=False)},
            ) from e
