"""
Slot manager: a bounded pool of concurrent generation slots.

Each slot runs at most one session at a time. Admission is a check-and-set
under an asyncio.Lock with no await in between, so two callers racing for the
same slot cannot both win; the loser gets SlotBusyError immediately (requests
are never queued). A slot is busy for exactly the lifetime of one non-terminal
session: the pipeline's completion callback frees it whether the session
completed or failed.
"""

from __future__ import annotations

import asyncio
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from loguru import logger

from config import get_settings
from ideaforge.core.errors import (
    AdmissionError,
    AllSlotsBusyError,
    SessionNotFoundError,
    SlotBusyError,
    SlotDisabledError,
    SlotInUseError,
    SlotNotFoundError,
)
from ideaforge.core.models import GenerationRequest, Session, SlotState, SlotStatus
from ideaforge.generation.pipeline import GenerationPipeline

PipelineFactory = Callable[..., GenerationPipeline]

MIN_SLOTS = 1
MAX_SLOTS = 10

_UNSET = object()


@dataclass
class _Slot:
    number: int
    profile_id: str | None = None
    enabled: bool = True
    session: Session | None = None
    task: asyncio.Task | None = None
    auto_generate: bool = False
    interval_minutes: int | None = None
    next_run_at: datetime | None = None
    last_run_at: datetime | None = None

    @property
    def busy(self) -> bool:
        return self.session is not None

    def snapshot(self) -> SlotStatus:
        return SlotStatus(
            slot_number=self.number,
            state=SlotState.BUSY if self.busy else SlotState.IDLE,
            session_id=self.session.session_id if self.session else None,
            profile_id=self.profile_id,
            enabled=self.enabled,
            auto_generate=self.auto_generate,
            interval_minutes=self.interval_minutes,
            next_run_at=self.next_run_at,
            last_run_at=self.last_run_at,
        )


class SessionHandle:
    """Caller's handle on an admitted session."""

    def __init__(self, session: Session, task: asyncio.Task):
        self._session = session
        self._task = task

    @property
    def session_id(self) -> str:
        return self._session.session_id

    @property
    def slot_number(self) -> int:
        return self._session.slot_number

    @property
    def session(self) -> Session:
        return self._session

    async def wait(self) -> Session:
        """Wait for the session to reach a terminal status."""
        # shielded so a cancelled waiter never cancels the pipeline itself
        await asyncio.shield(self._task)
        return self._session


class SlotManager:
    """
    Own the slot pool and admit generation requests into it.

    Example:
        >>> manager = SlotManager(pipeline_factory, slot_count=3)
        >>> handle = await manager.admit(GenerationRequest(slot_number=2))
        >>> session = await handle.wait()
        >>> session.status
        <SessionStatus.COMPLETED: 'completed'>
    """

    FINISHED_SESSION_LIMIT = 500

    def __init__(
        self,
        pipeline_factory: PipelineFactory,
        slot_count: int | None = None,
        max_slots: int | None = None,
    ):
        """
        Args:
            pipeline_factory: Called as ``factory(session, slot_profile_id=...,
                on_complete=...)`` to build the pipeline for an admitted session.
            slot_count: Initial pool size (default from settings).
            max_slots: Upper bound for ``resize`` (never above 10).
        """
        settings = get_settings()
        self._pipeline_factory = pipeline_factory
        self.max_slots = min(max_slots or settings.max_slots, MAX_SLOTS)
        count = slot_count if slot_count is not None else settings.slot_count
        self._check_bounds(count)

        self._lock = asyncio.Lock()
        self._slots: list[_Slot] = [_Slot(number=n) for n in range(1, count + 1)]
        self._sessions: OrderedDict[str, Session] = OrderedDict()
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def slot_count(self) -> int:
        return len(self._slots)

    # ========================================================================
    # Admission
    # ========================================================================

    async def admit(self, request: GenerationRequest) -> SessionHandle:
        """
        Start a session for the request.

        Raises:
            SlotNotFoundError: The requested slot is outside the pool.
            SlotDisabledError: The requested slot is disabled.
            SlotBusyError: The requested slot already runs a session.
            AllSlotsBusyError: No slot requested and none is idle.
        """
        async with self._lock:
            if self._closed:
                raise AdmissionError("Slot manager is shutting down")

            slot = self._select_slot(request.slot_number)
            session_id = request.session_id or str(uuid.uuid4())
            existing = self._sessions.get(session_id)
            if existing is not None and not existing.is_terminal:
                raise AdmissionError(
                    f"Session {session_id} is already running",
                    {"session_id": session_id, "slot_number": existing.slot_number},
                )

            session = Session(
                session_id=session_id,
                slot_number=slot.number,
                request=request,
            )
            pipeline = self._pipeline_factory(
                session,
                slot_profile_id=slot.profile_id,
                on_complete=self._release,
            )

            slot.session = session
            slot.last_run_at = datetime.now()
            self._remember(session)

            task = asyncio.create_task(
                pipeline.run(), name=f"ideaforge-slot-{slot.number}-{session_id}"
            )
            slot.task = task
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        logger.info("Slot {} admitted session {}", slot.number, session_id)
        return SessionHandle(session, task)

    def _select_slot(self, slot_number: int | None) -> _Slot:
        if slot_number is not None:
            slot = self._get_slot(slot_number)
            if not slot.enabled:
                raise SlotDisabledError(slot_number)
            if slot.busy:
                raise SlotBusyError(slot_number, slot.session.session_id)
            return slot

        for slot in self._slots:
            if slot.enabled and not slot.busy:
                return slot
        raise AllSlotsBusyError(self.slot_count)

    def _release(self, session: Session) -> None:
        for slot in self._slots:
            if slot.session is session:
                slot.session = None
                slot.task = None
                logger.info(
                    "Slot {} released ({} {})",
                    slot.number,
                    session.session_id,
                    session.status.value,
                )
                return
        logger.warning("Session {} finished but held no slot", session.session_id)

    def _remember(self, session: Session) -> None:
        self._sessions[session.session_id] = session
        self._sessions.move_to_end(session.session_id)
        finished = [sid for sid, s in self._sessions.items() if s.is_terminal]
        for sid in finished[: max(len(finished) - self.FINISHED_SESSION_LIMIT, 0)]:
            del self._sessions[sid]

    # ========================================================================
    # Status
    # ========================================================================

    def status(self, slot_number: int) -> SlotStatus:
        return self._get_slot(slot_number).snapshot()

    def list_slots(self) -> list[SlotStatus]:
        return [slot.snapshot() for slot in self._slots]

    def get_session(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def active_sessions(self) -> list[Session]:
        return [slot.session for slot in self._slots if slot.session is not None]

    # ========================================================================
    # Administration
    # ========================================================================

    async def resize(self, new_count: int) -> None:
        """
        Grow or shrink the pool.

        Raises:
            ValueError: new_count outside 1..max_slots.
            SlotInUseError: Shrinking would remove a busy slot (nothing changes).
        """
        self._check_bounds(new_count)
        async with self._lock:
            current = self.slot_count
            if new_count < current:
                busy = [s.number for s in self._slots[new_count:] if s.busy]
                if busy:
                    raise SlotInUseError(busy)
                del self._slots[new_count:]
            else:
                self._slots.extend(_Slot(number=n) for n in range(current + 1, new_count + 1))
        logger.info("Slot pool resized: {} -> {}", current, new_count)

    async def configure_slot(
        self,
        slot_number: int,
        *,
        profile_id: str | None | object = _UNSET,
        enabled: bool | None = None,
        auto_generate: bool | None = None,
        interval_minutes: int | None = None,
    ) -> SlotStatus:
        """Bind a profile, enable/disable, or set auto-generation for a slot."""
        if interval_minutes is not None and interval_minutes < 1:
            raise ValueError("interval_minutes must be at least 1")

        async with self._lock:
            slot = self._get_slot(slot_number)
            auto = slot.auto_generate if auto_generate is None else auto_generate
            interval = interval_minutes or slot.interval_minutes
            if auto and interval is None:
                raise ValueError(f"Slot {slot_number}: auto-generation needs interval_minutes")

            if profile_id is not _UNSET:
                slot.profile_id = profile_id
            if enabled is not None:
                slot.enabled = enabled
            slot.interval_minutes = interval
            slot.auto_generate = auto
            if not slot.auto_generate:
                slot.next_run_at = None
            elif slot.next_run_at is None or interval_minutes is not None:
                slot.next_run_at = datetime.now() + timedelta(minutes=slot.interval_minutes)

            logger.info(
                "Slot {} configured: profile={} enabled={} auto={} every {} min",
                slot.number,
                slot.profile_id,
                slot.enabled,
                slot.auto_generate,
                slot.interval_minutes,
            )
            return slot.snapshot()

    async def advance_schedule(self, slot_number: int, now: datetime) -> datetime | None:
        """Move a slot's next auto-run one interval past ``now``."""
        async with self._lock:
            slot = self._get_slot(slot_number)
            if not slot.auto_generate or slot.interval_minutes is None:
                return None
            slot.next_run_at = now + timedelta(minutes=slot.interval_minutes)
            return slot.next_run_at

    async def shutdown(self) -> None:
        """Stop admitting and wait for running sessions to finish."""
        async with self._lock:
            self._closed = True
            tasks = list(self._tasks)
        if tasks:
            logger.info("Waiting for {} running session(s)", len(tasks))
            await asyncio.gather(*tasks, return_exceptions=True)

    # ========================================================================
    # Helpers
    # ========================================================================

    def _get_slot(self, slot_number: int) -> _Slot:
        if not 1 <= slot_number <= self.slot_count:
            raise SlotNotFoundError(slot_number, self.slot_count)
        return self._slots[slot_number - 1]

    def _check_bounds(self, count: int) -> None:
        if not MIN_SLOTS <= count <= self.max_slots:
            raise ValueError(f"slot count must be within {MIN_SLOTS}..{self.max_slots}, got {count}")
