"""
Domain records for the generation engine.

Slots and sessions are owned by the SlotManager and the pipelines it spawns;
log entries by the LogStream; candidate ideas by a single pipeline until they
are handed to the idea store as an Idea.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

import numpy as np


class GenerationStage(str, Enum):
    """Pipeline stages, in execution order."""

    INIT = "initialization"
    CONFIG_LOAD = "config_load"
    PROMPT_BUILD = "prompt_build"
    API_CALL = "api_call"
    RESPONSE_PARSE = "response_parse"
    DUPLICATE_CHECK = "duplicate_check"
    SCORING = "scoring"
    PERSIST = "persist"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (GenerationStage.COMPLETE, GenerationStage.FAILED)


# Order in which a healthy session walks the stages.
STAGE_ORDER: tuple[GenerationStage, ...] = (
    GenerationStage.INIT,
    GenerationStage.CONFIG_LOAD,
    GenerationStage.PROMPT_BUILD,
    GenerationStage.API_CALL,
    GenerationStage.RESPONSE_PARSE,
    GenerationStage.DUPLICATE_CHECK,
    GenerationStage.SCORING,
    GenerationStage.PERSIST,
    GenerationStage.COMPLETE,
)


class LogLevel(str, Enum):
    """Severity of a session log entry."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"


class SessionStatus(str, Enum):
    """Lifecycle of a generation session."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.FAILED)


class SlotState(str, Enum):
    """Occupancy of a generation slot."""

    IDLE = "idle"
    BUSY = "busy"


@dataclass(frozen=True)
class LogEntry:
    """One append-only progress event of a session."""

    id: int
    session_id: str
    stage: GenerationStage
    level: LogLevel
    message: str
    timestamp: datetime
    duration_ms: int | None = None
    metadata: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sessionId": self.session_id,
            "stage": self.stage.value,
            "level": self.level.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "durationMs": self.duration_ms,
            "metadata": self.metadata,
        }


@dataclass(frozen=True)
class DuplicateResult:
    """Outcome of comparing a candidate against its nearest stored ideas."""

    is_duplicate: bool
    similarity: float
    match_id: str | None = None


@dataclass(frozen=True)
class ComplexityScores:
    """Execution complexity derived from criterion scores (1-10 each)."""

    technical: float | None = None
    regulatory: float | None = None
    sales: float | None = None
    total: float | None = None

    def to_dict(self) -> dict[str, float]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True)
class ScoreBreakdown:
    """Weighted aggregate plus the per-criterion values it was built from."""

    total: float
    per_criterion: dict[str, float]


@dataclass
class GenerationRequest:
    """A caller's ask for one generated idea. Not persisted."""

    slot_number: int | None = None
    profile_id: str | None = None
    domain: str | None = None
    framework: str | None = None
    custom_prompt: str | None = None
    skip_duplicate_check: bool = False
    session_id: str | None = None
    parent_idea_id: str | None = None


@dataclass
class Session:
    """
    One end-to-end pipeline run.

    Created pending by the SlotManager, then mutated only by the owning
    pipeline until it reaches a terminal status.
    """

    session_id: str
    slot_number: int
    request: GenerationRequest
    status: SessionStatus = SessionStatus.PENDING
    current_stage: GenerationStage = GenerationStage.INIT
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: datetime | None = None
    error: dict[str, str] | None = None
    idea_id: str | None = None
    duplicate: DuplicateResult | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "slotNumber": self.slot_number,
            "status": self.status.value,
            "currentStage": self.current_stage.value,
            "startedAt": self.started_at.isoformat(),
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
            "error": self.error,
            "ideaId": self.idea_id,
            "duplicate": asdict(self.duplicate) if self.duplicate else None,
        }


@dataclass(frozen=True)
class SlotStatus:
    """Read-only snapshot of a slot for observers."""

    slot_number: int
    state: SlotState
    session_id: str | None
    profile_id: str | None
    enabled: bool
    auto_generate: bool = False
    interval_minutes: int | None = None
    next_run_at: datetime | None = None
    last_run_at: datetime | None = None


@dataclass
class EvaluationCriterion:
    """The AI's assessment of one criterion."""

    score: float
    reasoning: str = ""
    questions: list[dict[str, str]] = field(default_factory=list)


@dataclass
class CandidateIdea:
    """Parsed AI output, owned by one pipeline until persisted."""

    name: str
    domain: str
    problem: str
    solution: str
    quick_summary: str
    concrete_example: dict[str, str]
    evaluation: dict[str, EvaluationCriterion]
    subdomain: str | None = None
    idea_components: dict[str, Any] | None = None
    quick_notes: dict[str, list[str]] | None = None
    action_plan: dict[str, Any] | None = None
    tags: list[str] = field(default_factory=list)

    raw_ai_response: str | None = None
    ai_prompt: str | None = None
    embedding: np.ndarray | None = None
    duplicate_of_id: str | None = None
    duplicate_similarity: float | None = None

    @property
    def raw_scores(self) -> dict[str, float]:
        """Criterion key -> numeric score as returned by the provider."""
        return {key: criterion.score for key, criterion in self.evaluation.items()}

    def canonical_text(self) -> str:
        """Text embedded for duplicate detection (domain + problem + solution)."""
        domain = f"{self.domain} → {self.subdomain}" if self.subdomain else self.domain
        parts = [domain, self.problem, self.solution]
        return " | ".join(p.strip() for p in parts if p and p.strip())


@dataclass
class Idea:
    """Final persisted record handed to the idea store."""

    name: str
    folder_name: str
    domain: str
    problem: str
    solution: str
    score: int
    scores: dict[str, float]
    complexity_scores: ComplexityScores
    quick_summary: str
    concrete_example: dict[str, str]
    evaluation_details: dict[str, EvaluationCriterion]
    subdomain: str | None = None
    status: str = "draft"
    tags: list[str] = field(default_factory=list)
    idea_components: dict[str, Any] | None = None
    quick_notes: dict[str, list[str]] | None = None
    action_plan: dict[str, Any] | None = None
    generation_framework: str | None = None
    parent_idea_id: str | None = None
    duplicate_of_id: str | None = None
    duplicate_similarity: float | None = None
    raw_ai_response: str | None = None
    ai_prompt: str | None = None
    embedding: np.ndarray | None = None
    id: str | None = None
    created_at: datetime = field(default_factory=datetime.now)
