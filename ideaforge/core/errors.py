"""Error taxonomy for the generation engine."""

from __future__ import annotations

from typing import Any


class IdeaForgeError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


# =============================================================================
# Session-level errors (fatal to one generation session)
# =============================================================================


class GenerationError(IdeaForgeError):
    """An error that moves a session to FAILED."""

    kind = "InternalError"

    def to_dict(self) -> dict[str, Any]:
        """Serialize for status queries."""
        return {"kind": self.kind, "message": self.message}


class ConfigError(GenerationError):
    """Profile missing or malformed."""

    kind = "ConfigError"


class ProviderError(GenerationError):
    """AI or embedding provider call failed (timeout, non-2xx, bad payload)."""

    kind = "ProviderError"

    def __init__(
        self,
        provider: str,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(f"{provider}: {message}", details)
        self.provider = provider


class ParseError(GenerationError):
    """Provider text was not a well-formed idea."""

    kind = "ParseError"


class PersistenceError(GenerationError):
    """The idea store rejected a read or write."""

    kind = "PersistenceError"


# =============================================================================
# Admission-time errors (raised to the caller, never reach a session)
# =============================================================================


class AdmissionError(IdeaForgeError):
    """A generation request could not be admitted."""


class SlotBusyError(AdmissionError):
    """The requested slot already runs a session."""

    def __init__(self, slot_number: int, session_id: str | None = None):
        super().__init__(
            f"Slot {slot_number} is busy",
            {"slot_number": slot_number, "session_id": session_id},
        )
        self.slot_number = slot_number
        self.session_id = session_id


class SlotDisabledError(SlotBusyError):
    """The requested slot is disabled and accepts no sessions."""

    def __init__(self, slot_number: int):
        super().__init__(slot_number)
        self.message = f"Slot {slot_number} is disabled"
        self.args = (self.message,)


class AllSlotsBusyError(AdmissionError):
    """No idle slot was available for an unpinned request."""

    def __init__(self, slot_count: int):
        super().__init__(
            f"All {slot_count} slots are busy",
            {"slot_count": slot_count},
        )


class SlotNotFoundError(AdmissionError):
    """The slot number is outside the current pool."""

    def __init__(self, slot_number: int, slot_count: int):
        super().__init__(
            f"Slot {slot_number} does not exist (pool has {slot_count})",
            {"slot_number": slot_number, "slot_count": slot_count},
        )
        self.slot_number = slot_number


# =============================================================================
# Resize-time errors
# =============================================================================


class SlotInUseError(IdeaForgeError):
    """A resize would remove a busy slot."""

    def __init__(self, busy_slots: list[int]):
        super().__init__(
            f"Cannot remove busy slot(s): {', '.join(str(n) for n in busy_slots)}",
            {"busy_slots": busy_slots},
        )
        self.busy_slots = busy_slots


class SessionNotFoundError(IdeaForgeError):
    """No session (or no retained log) under this id."""

    def __init__(self, session_id: str):
        super().__init__(f"Generation session not found: {session_id}")
        self.session_id = session_id
