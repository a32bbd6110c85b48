"""Core records, profiles, collaborator interfaces and the error taxonomy."""

from ideaforge.core.errors import (
    AdmissionError,
    AllSlotsBusyError,
    ConfigError,
    GenerationError,
    IdeaForgeError,
    ParseError,
    PersistenceError,
    ProviderError,
    SessionNotFoundError,
    SlotBusyError,
    SlotDisabledError,
    SlotInUseError,
    SlotNotFoundError,
)
from ideaforge.core.models import (
    CandidateIdea,
    ComplexityScores,
    DuplicateResult,
    GenerationRequest,
    GenerationStage,
    Idea,
    LogEntry,
    LogLevel,
    ScoreBreakdown,
    Session,
    SessionStatus,
    SlotState,
    SlotStatus,
)

__all__ = [
    # Errors
    "IdeaForgeError",
    "GenerationError",
    "ConfigError",
    "ProviderError",
    "ParseError",
    "PersistenceError",
    "AdmissionError",
    "SlotBusyError",
    "SlotDisabledError",
    "AllSlotsBusyError",
    "SlotNotFoundError",
    "SlotInUseError",
    "SessionNotFoundError",
    # Records
    "CandidateIdea",
    "ComplexityScores",
    "DuplicateResult",
    "GenerationRequest",
    "GenerationStage",
    "Idea",
    "LogEntry",
    "LogLevel",
    "ScoreBreakdown",
    "Session",
    "SessionStatus",
    "SlotState",
    "SlotStatus",
]
