"""
End-to-end generation through the service facade.

Everything runs in-process: the AI provider and embedder are fakes, the store
is the in-memory reference store.
"""

import asyncio
import random

import pytest
from conftest import FakeAIProvider, FakeEmbedder, make_response

from config import Settings
from ideaforge.core.errors import ProviderError, SlotInUseError
from ideaforge.core.models import GenerationRequest, GenerationStage, LogLevel, SessionStatus
from ideaforge.service import GenerationService


@pytest.fixture
def settings():
    return Settings(slot_count=2, log_file=None, auto_generate_check_seconds=0.01)


@pytest.fixture
def build_service(profile_provider, store, settings):
    def _build(ai, embedder=None):
        return GenerationService(
            profile_provider=profile_provider,
            ai_provider=ai,
            embedder=embedder or FakeEmbedder(),
            store=store,
            rng=random.Random(3),
            settings=settings,
        )

    return _build


class TestGenerationFlow:
    """Request to stored idea, observed through polling and subscription."""

    @pytest.mark.asyncio
    async def test_weighted_score_end_to_end(self, build_service, store):
        """Weights 40/40 with scores 9/7 persist an idea scored 80."""
        service = build_service(FakeAIProvider([make_response()]))

        handle = await service.generate(GenerationRequest(slot_number=1))
        entries = [entry async for entry in service.subscribe(handle.session_id)]
        session = await handle.wait()

        assert session.status is SessionStatus.COMPLETED
        assert store.get(session.idea_id).score == 80
        assert [e.id for e in entries] == list(range(1, len(entries) + 1))
        assert entries[-1].stage is GenerationStage.COMPLETE
        assert service.get_status(handle.session_id) is session
        summary = service.get_summary(handle.session_id)
        assert summary.success is True
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_polling_sees_every_entry_once(self, build_service):
        gate = asyncio.Event()
        service = build_service(FakeAIProvider([make_response()], gate=gate))

        handle = await service.generate()
        await asyncio.sleep(0.01)
        first = service.get_logs_since(handle.session_id, 0)
        gate.set()
        await handle.wait()
        rest = service.get_logs_since(handle.session_id, first[-1].id)

        ids = [e.id for e in first + rest]
        assert ids == sorted(set(ids))
        assert service.get_logs_since(handle.session_id, ids[-1]) == []
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_failed_session_visible_and_slot_freed(self, build_service, store):
        service = build_service(FakeAIProvider([ProviderError("fake", "503")]))

        handle = await service.generate(GenerationRequest(slot_number=2))
        session = await handle.wait()

        assert service.get_status(handle.session_id).error["kind"] == "ProviderError"
        assert len(store) == 0
        errors = [
            e for e in service.get_logs_since(handle.session_id) if e.level is LogLevel.ERROR
        ]
        assert len(errors) == 1
        assert all(s.session_id is None for s in service.get_slot_statuses())
        assert session.is_terminal
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_concurrent_sessions_and_resize(self, build_service, store):
        gate = asyncio.Event()
        service = build_service(FakeAIProvider([make_response()], gate=gate))

        handles = [await service.generate() for _ in range(2)]
        with pytest.raises(SlotInUseError):
            await service.set_slot_count(1)

        gate.set()
        sessions = await asyncio.gather(*(h.wait() for h in handles))

        assert {s.slot_number for s in sessions} == {1, 2}
        assert len(store) == 2
        statuses = await service.set_slot_count(1)
        assert len(statuses) == 1
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_second_identical_idea_flagged_duplicate(self, build_service, store):
        """Same embedding twice: the second session points at the first idea."""
        service = build_service(FakeAIProvider([make_response()]))

        first = await (await service.generate()).wait()
        second = await (await service.generate()).wait()

        assert first.duplicate.is_duplicate is False
        assert second.duplicate.is_duplicate is True
        assert second.duplicate.match_id == first.idea_id
        assert store.get(second.idea_id).duplicate_of_id == first.idea_id
        assert second.status is SessionStatus.COMPLETED
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_skipped_check_still_indexes_idea(self, build_service, store):
        """An idea stored without a duplicate check is still found by later checks."""
        service = build_service(FakeAIProvider([make_response()]))

        first = await (await service.generate(GenerationRequest(skip_duplicate_check=True))).wait()
        second = await (await service.generate()).wait()

        assert first.duplicate is None
        assert store.get(first.idea_id).embedding is not None
        assert second.duplicate.is_duplicate is True
        assert second.duplicate.match_id == first.idea_id
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_closes_ai_provider(self, build_service):
        ai = FakeAIProvider([make_response()])
        service = build_service(ai)
        await (await service.generate()).wait()

        await service.shutdown()

        assert ai.closed is True

    @pytest.mark.asyncio
    async def test_scheduler_generates_for_due_slot(self, build_service):
        service = build_service(FakeAIProvider([make_response()]))
        status = await service.configure_slot(1, auto_generate=True, interval_minutes=60)
        service.scheduler._clock = lambda: status.next_run_at

        handles = await service.scheduler.run_due()
        sessions = await asyncio.gather(*(h.wait() for h in handles))

        assert [s.slot_number for s in sessions] == [1]
        assert [s.status for s in sessions] == [SessionStatus.COMPLETED]
        await service.shutdown()
