"""
Auto-generation scheduler.

Periodically looks for slots whose auto-generation run is due and admits a
request into each. A due slot's next run is advanced before admission, so a
slot that is still busy simply skips this turn instead of queueing.

Usage:
    scheduler = AutoGenerationScheduler(slot_manager)
    scheduler.start()
    # ... service runs ...
    await scheduler.stop()
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from loguru import logger

from config import get_settings
from ideaforge.core.errors import AdmissionError
from ideaforge.core.models import GenerationRequest
from ideaforge.generation.slot_manager import SessionHandle, SlotManager


@dataclass
class SchedulerStatus:
    """Current scheduler status."""

    is_running: bool = False
    last_check_at: datetime | None = None
    total_checks: int = 0
    total_admitted: int = 0
    total_skipped: int = 0


class AutoGenerationScheduler:
    """Admit scheduled generation runs on an asyncio loop."""

    def __init__(
        self,
        slot_manager: SlotManager,
        check_seconds: float | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.slot_manager = slot_manager
        self.check_seconds = check_seconds or get_settings().auto_generate_check_seconds
        self._clock = clock
        self._status = SchedulerStatus()
        self._task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()

    @property
    def status(self) -> SchedulerStatus:
        return self._status

    def start(self) -> None:
        """Start the check loop on the running event loop."""
        if self._status.is_running:
            logger.warning("Auto-generation scheduler already running")
            return
        self._stop_event.clear()
        self._status.is_running = True
        self._task = asyncio.create_task(self._loop(), name="ideaforge-auto-generation")
        logger.info("Auto-generation scheduler started (every {}s)", self.check_seconds)

    async def stop(self) -> None:
        """Stop the loop. Sessions already admitted keep running."""
        if not self._status.is_running:
            return
        logger.info("Stopping auto-generation scheduler...")
        self._stop_event.set()
        if self._task is not None:
            await self._task
            self._task = None
        self._status.is_running = False
        logger.info("Auto-generation scheduler stopped")

    async def run_due(self) -> list[SessionHandle]:
        """Admit every due slot once. Returns handles for the admitted sessions."""
        now = self._clock()
        self._status.last_check_at = now
        self._status.total_checks += 1
        admitted: list[SessionHandle] = []

        for slot in self.slot_manager.list_slots():
            if not (slot.auto_generate and slot.enabled and slot.next_run_at):
                continue
            if slot.next_run_at > now:
                continue

            next_run = None
            try:
                next_run = await self.slot_manager.advance_schedule(slot.slot_number, now)
                handle = await self.slot_manager.admit(
                    GenerationRequest(slot_number=slot.slot_number)
                )
            except AdmissionError as e:
                self._status.total_skipped += 1
                logger.info(
                    "Skipping auto-generation on slot {}: {} (next run {})",
                    slot.slot_number,
                    e.message,
                    next_run,
                )
                continue

            self._status.total_admitted += 1
            admitted.append(handle)
            logger.info(
                "Auto-generation started on slot {} (session {}, next run {})",
                slot.slot_number,
                handle.session_id,
                next_run,
            )
        return admitted

    async def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.run_due()
            except Exception as e:
                logger.error("Auto-generation check failed: {}", e)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.check_seconds)
            except asyncio.TimeoutError:
                continue
