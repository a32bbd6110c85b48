"""
Per-session generation log.

Append-only, with ids that start at 1 and increase by one per session. Readers
either poll with ``since(session_id, last_seen_id)`` or hold a push
subscription; both are safe to use concurrently with the writing pipeline
because the stream owns all locking. Entries are mirrored to loguru so the
process log shows the same progress the observers see.
"""

from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, AsyncIterator, Callable

from loguru import logger

from ideaforge.core.errors import SessionNotFoundError
from ideaforge.core.models import GenerationStage, LogEntry, LogLevel

_CLOSED = object()

_LOGURU_LEVELS = {
    LogLevel.DEBUG: "DEBUG",
    LogLevel.INFO: "INFO",
    LogLevel.WARNING: "WARNING",
    LogLevel.ERROR: "ERROR",
    LogLevel.SUCCESS: "SUCCESS",
}


@dataclass
class SessionSummary:
    """Roll-up of one session's log."""

    session_id: str
    total_duration_ms: int
    stages: dict[str, int]
    success: bool
    error_count: int
    warning_count: int


@dataclass
class _SessionLog:
    entries: list[LogEntry] = field(default_factory=list)
    subscribers: list[tuple[asyncio.AbstractEventLoop, asyncio.Queue]] = field(
        default_factory=list
    )
    closed_at: float | None = None

    @property
    def next_id(self) -> int:
        return len(self.entries) + 1


class LogStream:
    """
    Append-only, monotonically-ID'd event log per session.

    Example:
        >>> stream = LogStream()
        >>> stream.open("s-1")
        >>> stream.append("s-1", GenerationStage.INIT, LogLevel.INFO, "Starting")
        >>> [e.id for e in stream.since("s-1", 0)]
        [1]
    """

    def __init__(
        self,
        retention_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            retention_seconds: How long a closed session stays queryable.
                None keeps closed sessions for the life of the stream.
            clock: Monotonic time source (injectable for tests).
        """
        self.retention_seconds = retention_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._logs: dict[str, _SessionLog] = {}

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def open(self, session_id: str) -> None:
        """Start a log for a session. Re-opening an open log is a no-op."""
        with self._lock:
            self._prune_locked()
            existing = self._logs.get(session_id)
            if existing is not None and existing.closed_at is None:
                return
            self._logs[session_id] = _SessionLog()

    def append(
        self,
        session_id: str,
        stage: GenerationStage,
        level: LogLevel,
        message: str,
        *,
        duration_ms: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> LogEntry:
        """Append an entry, assigning the next id for the session."""
        with self._lock:
            log = self._logs.get(session_id)
            if log is None:
                log = self._logs[session_id] = _SessionLog()
            entry = LogEntry(
                id=log.next_id,
                session_id=session_id,
                stage=stage,
                level=level,
                message=message,
                timestamp=datetime.now(),
                duration_ms=duration_ms,
                metadata=metadata,
            )
            log.entries.append(entry)
            for loop, queue in log.subscribers:
                loop.call_soon_threadsafe(queue.put_nowait, entry)

        logger.log(
            _LOGURU_LEVELS[level],
            "[{}] [{}] {}",
            session_id,
            stage.value.upper(),
            message,
        )
        return entry

    def close(self, session_id: str) -> None:
        """Mark the session finished; subscriptions end after draining."""
        with self._lock:
            log = self._logs.get(session_id)
            if log is None or log.closed_at is not None:
                return
            log.closed_at = self._clock()
            for loop, queue in log.subscribers:
                loop.call_soon_threadsafe(queue.put_nowait, _CLOSED)
            log.subscribers.clear()

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def since(self, session_id: str, last_seen_id: int = 0) -> list[LogEntry]:
        """Entries with id > last_seen_id, in id order."""
        with self._lock:
            log = self._get_locked(session_id)
            # ids are 1-based and dense, so the slice start is the last seen id
            start = max(last_seen_id, 0)
            return list(log.entries[start:])

    def has_session(self, session_id: str) -> bool:
        with self._lock:
            self._prune_locked()
            return session_id in self._logs

    def is_closed(self, session_id: str) -> bool:
        with self._lock:
            return self._get_locked(session_id).closed_at is not None

    async def subscribe(
        self, session_id: str, last_seen_id: int = 0
    ) -> AsyncIterator[LogEntry]:
        """
        Replay entries after ``last_seen_id`` then stream new ones live.

        The iterator ends once the session's log is closed and every entry
        appended before the close has been yielded.
        """
        queue: asyncio.Queue = asyncio.Queue()
        loop = asyncio.get_running_loop()
        subscriber = (loop, queue)

        with self._lock:
            log = self._get_locked(session_id)
            backlog = log.entries[max(last_seen_id, 0):]
            closed = log.closed_at is not None
            if not closed:
                log.subscribers.append(subscriber)

        last_id = last_seen_id
        try:
            for entry in backlog:
                last_id = entry.id
                yield entry
            if closed:
                return
            while True:
                item = await queue.get()
                if item is _CLOSED:
                    return
                if item.id <= last_id:
                    continue
                last_id = item.id
                yield item
        finally:
            with self._lock:
                current = self._logs.get(session_id)
                if current is not None and subscriber in current.subscribers:
                    current.subscribers.remove(subscriber)

    def summary(self, session_id: str) -> SessionSummary:
        """Durations per stage plus error/warning counts for one session."""
        with self._lock:
            entries = list(self._get_locked(session_id).entries)

        stages: dict[str, int] = {}
        errors = warnings = 0
        previous: datetime | None = entries[0].timestamp if entries else None
        for entry in entries:
            elapsed = int((entry.timestamp - previous).total_seconds() * 1000)
            stages[entry.stage.value] = stages.get(entry.stage.value, 0) + elapsed
            previous = entry.timestamp
            if entry.level is LogLevel.ERROR:
                errors += 1
            elif entry.level is LogLevel.WARNING:
                warnings += 1

        total = 0
        if entries:
            total = int((entries[-1].timestamp - entries[0].timestamp).total_seconds() * 1000)
        last = entries[-1] if entries else None
        success = (
            last is not None
            and last.stage is GenerationStage.COMPLETE
            and last.level is LogLevel.SUCCESS
        )
        return SessionSummary(
            session_id=session_id,
            total_duration_ms=total,
            stages=stages,
            success=success,
            error_count=errors,
            warning_count=warnings,
        )

    # ------------------------------------------------------------------
    # Internals (caller holds self._lock)
    # ------------------------------------------------------------------

    def _get_locked(self, session_id: str) -> _SessionLog:
        self._prune_locked()
        log = self._logs.get(session_id)
        if log is None:
            raise SessionNotFoundError(session_id)
        return log

    def _prune_locked(self) -> None:
        if self.retention_seconds is None:
            return
        cutoff = self._clock() - self.retention_seconds
        expired = [
            sid
            for sid, log in self._logs.items()
            if log.closed_at is not None and log.closed_at <= cutoff
        ]
        for sid in expired:
            del self._logs[sid]
        if expired:
            logger.debug("Pruned {} expired session log(s)", len(expired))
