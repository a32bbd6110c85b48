"""
Generation service: the observer and administrative surface of the engine.

Wires the slot pool, the session log and the auto-generation scheduler over a
set of collaborators (profile source, AI provider, embedder, idea store).
"""

from __future__ import annotations

import functools
import random
from typing import AsyncIterator

from loguru import logger

from config import Settings, get_settings
from ideaforge.core.default_profile import DEFAULT_PROFILE
from ideaforge.core.interfaces import AIProvider, EmbeddingProvider, IdeaStore, ProfileProvider
from ideaforge.core.models import GenerationRequest, LogEntry, Session, SlotStatus
from ideaforge.core.profile import InMemoryProfileProvider
from ideaforge.generation.pipeline import GenerationPipeline
from ideaforge.generation.prompts import PromptBuilder
from ideaforge.generation.scheduler import AutoGenerationScheduler
from ideaforge.generation.scoring import ScoringAggregator
from ideaforge.generation.slot_manager import SessionHandle, SlotManager
from ideaforge.logs.log_stream import LogStream, SessionSummary
from ideaforge.semantic.duplicate_detector import DuplicateDetector


class GenerationService:
    """
    Facade over the slot pool and session logs.

    Example:
        >>> service = GenerationService.from_settings()
        >>> handle = await service.generate(GenerationRequest(domain="FinTech"))
        >>> async for entry in service.subscribe(handle.session_id):
        ...     print(entry.stage.value, entry.message)
    """

    def __init__(
        self,
        *,
        profile_provider: ProfileProvider,
        ai_provider: AIProvider,
        embedder: EmbeddingProvider,
        store: IdeaStore,
        log_stream: LogStream | None = None,
        detector: DuplicateDetector | None = None,
        rng: random.Random | None = None,
        slot_count: int | None = None,
        settings: Settings | None = None,
    ):
        settings = settings or get_settings()
        self.settings = settings
        self.store = store
        self.ai_provider = ai_provider
        self.log_stream = log_stream or LogStream(
            retention_seconds=settings.log_retention_seconds
        )
        pipeline_factory = functools.partial(
            GenerationPipeline,
            profile_provider=profile_provider,
            ai_provider=ai_provider,
            embedder=embedder,
            store=store,
            log_stream=self.log_stream,
            detector=detector or DuplicateDetector(store),
            aggregator=ScoringAggregator(),
            prompt_builder=PromptBuilder(),
            rng=rng or random.Random(),
            default_profile_id=settings.default_profile_id,
        )
        self.slots = SlotManager(
            pipeline_factory,
            slot_count=slot_count or settings.slot_count,
            max_slots=settings.max_slots,
        )
        self.scheduler = AutoGenerationScheduler(
            self.slots, check_seconds=settings.auto_generate_check_seconds
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        profile_provider: ProfileProvider | None = None,
        store: IdeaStore | None = None,
    ) -> "GenerationService":
        """Build a service with the configured AI provider and local embeddings."""
        from ideaforge.integrations.ai_provider import create_ai_provider
        from ideaforge.semantic.embedding_service import EmbeddingService
        from ideaforge.storage.memory_store import InMemoryIdeaStore

        settings = settings or get_settings()
        if profile_provider is None:
            profile_provider = InMemoryProfileProvider(
                {settings.default_profile_id: DEFAULT_PROFILE}
            )
        return cls(
            profile_provider=profile_provider,
            ai_provider=create_ai_provider(settings),
            embedder=EmbeddingService(settings.embedding_model),
            store=store or InMemoryIdeaStore(),
            settings=settings,
        )

    # ========================================================================
    # Generation
    # ========================================================================

    async def generate(self, request: GenerationRequest | None = None) -> SessionHandle:
        """Admit a request; raises an AdmissionError subclass when it cannot run."""
        return await self.slots.admit(request or GenerationRequest())

    # ========================================================================
    # Observer surface
    # ========================================================================

    def get_status(self, session_id: str) -> Session:
        return self.slots.get_session(session_id)

    def get_logs_since(self, session_id: str, last_id: int = 0) -> list[LogEntry]:
        return self.log_stream.since(session_id, last_id)

    def subscribe(self, session_id: str, last_id: int = 0) -> AsyncIterator[LogEntry]:
        return self.log_stream.subscribe(session_id, last_id)

    def get_summary(self, session_id: str) -> SessionSummary:
        return self.log_stream.summary(session_id)

    # ========================================================================
    # Administrative surface
    # ========================================================================

    async def set_slot_count(self, count: int) -> list[SlotStatus]:
        await self.slots.resize(count)
        return self.slots.list_slots()

    def get_slot_statuses(self) -> list[SlotStatus]:
        return self.slots.list_slots()

    async def configure_slot(self, slot_number: int, **changes) -> SlotStatus:
        return await self.slots.configure_slot(slot_number, **changes)

    def start_scheduler(self) -> None:
        self.scheduler.start()

    async def shutdown(self) -> None:
        """Stop scheduling, wait for running sessions, release the AI client."""
        await self.scheduler.stop()
        await self.slots.shutdown()
        close = getattr(self.ai_provider, "close", None)
        if close is not None:
            await close()
        logger.info("Generation service stopped")
