"""
Unit tests for the auto-generation scheduler.
"""

import asyncio
import functools
import random
from datetime import datetime, timedelta

import pytest
from conftest import FakeAIProvider, make_response

from ideaforge.core.models import GenerationRequest, SessionStatus
from ideaforge.generation.pipeline import GenerationPipeline
from ideaforge.generation.scheduler import AutoGenerationScheduler
from ideaforge.generation.slot_manager import SlotManager
from ideaforge.logs.log_stream import LogStream


class FakeClock:
    def __init__(self):
        self.now = datetime(2025, 1, 1, 12, 0)

    def __call__(self):
        return self.now


@pytest.fixture
def gate():
    return asyncio.Event()


@pytest.fixture
def manager(profile_provider, store, embedder, gate):
    factory = functools.partial(
        GenerationPipeline,
        profile_provider=profile_provider,
        ai_provider=FakeAIProvider([make_response()], gate=gate),
        embedder=embedder,
        store=store,
        log_stream=LogStream(),
        rng=random.Random(0),
        default_profile_id="default",
    )
    return SlotManager(factory, slot_count=2)


@pytest.fixture
def clock():
    return FakeClock()


class TestRunDue:
    """Tests for AutoGenerationScheduler.run_due."""

    @pytest.mark.asyncio
    async def test_nothing_due_without_auto_generation(self, manager, clock):
        scheduler = AutoGenerationScheduler(manager, check_seconds=1, clock=clock)

        assert await scheduler.run_due() == []

    @pytest.mark.asyncio
    async def test_due_slot_is_admitted_and_schedule_advanced(self, manager, clock, gate):
        await manager.configure_slot(1, auto_generate=True, interval_minutes=15)
        scheduler = AutoGenerationScheduler(manager, check_seconds=1, clock=clock)
        clock.now = manager.status(1).next_run_at + timedelta(seconds=1)
        gate.set()

        handles = await scheduler.run_due()

        assert [h.slot_number for h in handles] == [1]
        assert manager.status(1).next_run_at == clock.now + timedelta(minutes=15)
        session = await handles[0].wait()
        assert session.status is SessionStatus.COMPLETED
        assert scheduler.status.total_admitted == 1

    @pytest.mark.asyncio
    async def test_not_yet_due(self, manager, clock):
        await manager.configure_slot(1, auto_generate=True, interval_minutes=15)
        scheduler = AutoGenerationScheduler(manager, check_seconds=1, clock=clock)
        clock.now = manager.status(1).next_run_at - timedelta(minutes=1)

        assert await scheduler.run_due() == []

    @pytest.mark.asyncio
    async def test_busy_slot_skipped_but_schedule_advanced(self, manager, clock, gate):
        await manager.configure_slot(1, auto_generate=True, interval_minutes=5)
        running = await manager.admit(GenerationRequest(slot_number=1))
        scheduler = AutoGenerationScheduler(manager, check_seconds=1, clock=clock)
        clock.now = manager.status(1).next_run_at + timedelta(seconds=1)

        handles = await scheduler.run_due()

        assert handles == []
        assert scheduler.status.total_skipped == 1
        assert manager.status(1).next_run_at == clock.now + timedelta(minutes=5)
        gate.set()
        await running.wait()

    @pytest.mark.asyncio
    async def test_auto_generation_needs_interval(self, manager):
        with pytest.raises(ValueError):
            await manager.configure_slot(1, auto_generate=True)


class TestLoop:
    """Tests for start/stop of the background loop."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self, manager):
        scheduler = AutoGenerationScheduler(manager, check_seconds=0.01)

        scheduler.start()
        await asyncio.sleep(0.05)
        await scheduler.stop()

        assert scheduler.status.is_running is False
        assert scheduler.status.total_checks >= 1
