"""
Unit tests for the generation pipeline state machine.
"""

import random
from datetime import datetime
from unittest.mock import Mock

import numpy as np
import pytest
from conftest import FailingStore, FakeAIProvider, FakeEmbedder, make_response

from ideaforge.core.errors import ProviderError
from ideaforge.core.models import (
    STAGE_ORDER,
    GenerationRequest,
    GenerationStage,
    LogLevel,
    Session,
    SessionStatus,
)
from ideaforge.core.profile import InMemoryProfileProvider
from ideaforge.generation.pipeline import GenerationPipeline, make_folder_name
from ideaforge.logs.log_stream import LogStream
from ideaforge.semantic.duplicate_detector import DuplicateDetector


@pytest.fixture
def log_stream():
    return LogStream()


@pytest.fixture
def build(profile_provider, store, embedder, log_stream):
    """Factory for a pipeline over the shared fakes."""

    def _build(request=None, ai=None, session_id="s-1", **overrides):
        session = Session(
            session_id=session_id,
            slot_number=1,
            request=request or GenerationRequest(),
        )
        options = {
            "profile_provider": profile_provider,
            "ai_provider": ai or FakeAIProvider([make_response()]),
            "embedder": embedder,
            "store": store,
            "log_stream": log_stream,
            "rng": random.Random(0),
            "default_profile_id": "default",
        }
        options.update(overrides)
        if "detector" not in options:
            options["detector"] = DuplicateDetector(options["store"], threshold=0.92)
        return GenerationPipeline(session, **options)

    return _build


def entries_for(log_stream, session_id="s-1"):
    return log_stream.since(session_id, 0)


class TestSuccessfulRun:
    """Tests for a session that reaches COMPLETE."""

    @pytest.mark.asyncio
    async def test_completes_and_persists(self, build, store):
        session = await build().run()

        assert session.status is SessionStatus.COMPLETED
        assert session.current_stage is GenerationStage.COMPLETE
        assert session.error is None
        assert session.completed_at is not None
        idea = store.get(session.idea_id)
        assert idea.name == "Invoice Chaser"
        assert idea.score == 80
        assert idea.scores == {"problemSeverity": 9.0, "marketSize": 7.0}

    @pytest.mark.asyncio
    async def test_one_info_entry_per_stage(self, build, log_stream):
        await build().run()

        info_stages = [
            e.stage for e in entries_for(log_stream) if e.level is LogLevel.INFO
        ]
        assert info_stages == list(STAGE_ORDER[:-1])

    @pytest.mark.asyncio
    async def test_log_ends_with_complete_success(self, build, log_stream):
        await build().run()

        last = entries_for(log_stream)[-1]
        assert last.stage is GenerationStage.COMPLETE
        assert last.level is LogLevel.SUCCESS
        assert log_stream.is_closed("s-1")

    @pytest.mark.asyncio
    async def test_api_call_success_carries_duration(self, build, log_stream):
        await build().run()

        api_success = [
            e for e in entries_for(log_stream)
            if e.stage is GenerationStage.API_CALL and e.level is LogLevel.SUCCESS
        ]
        assert len(api_success) == 1
        assert api_success[0].duration_ms is not None

    @pytest.mark.asyncio
    async def test_idea_enrichment(self, build, store):
        request = GenerationRequest(framework="X for Y", parent_idea_id="idea-parent")

        session = await build(request=request).run()

        idea = store.get(session.idea_id)
        assert idea.generation_framework == "X for Y"
        assert idea.parent_idea_id == "idea-parent"
        assert idea.folder_name.startswith("invoice-chaser-")
        assert idea.ai_prompt and "X for Y" in idea.ai_prompt
        assert idea.raw_ai_response == make_response()
        assert idea.embedding is not None

    @pytest.mark.asyncio
    async def test_profile_generation_settings_sent(self, build, profile_provider, sample_profile):
        sample_profile["generation"] = {"temperature": 0.4, "max_tokens": 2000}
        profile_provider.register("default", sample_profile)
        ai = FakeAIProvider([make_response()])

        await build(ai=ai).run()

        assert ai.settings[0].temperature == 0.4
        assert ai.settings[0].max_tokens == 2000

    @pytest.mark.asyncio
    async def test_completion_callback_called_once(self, build):
        callback = Mock()
        pipeline = build(on_complete=callback)

        session = await pipeline.run()

        callback.assert_called_once_with(session)


class TestProfileResolution:
    """Request profile, then slot profile, then the default."""

    @pytest.mark.asyncio
    async def test_slot_profile_used_when_request_has_none(self, build, sample_profile):
        provider = InMemoryProfileProvider({"slot-profile": sample_profile})

        session = await build(profile_provider=provider, slot_profile_id="slot-profile").run()

        assert session.status is SessionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_request_profile_wins(self, build, sample_profile):
        provider = InMemoryProfileProvider({"req": sample_profile})
        request = GenerationRequest(profile_id="req")

        session = await build(
            request=request, profile_provider=provider, slot_profile_id="missing"
        ).run()

        assert session.status is SessionStatus.COMPLETED


class TestFailures:
    """Tests for sessions that end in FAILED."""

    @pytest.mark.asyncio
    async def test_api_failure_never_persists(self, build, store, log_stream):
        ai = FakeAIProvider([ProviderError("fake", "timed out")])
        callback = Mock()

        session = await build(ai=ai, on_complete=callback).run()

        assert session.status is SessionStatus.FAILED
        assert session.error == {"kind": "ProviderError", "message": "fake: timed out"}
        assert session.idea_id is None
        assert len(store) == 0
        stages = {e.stage for e in entries_for(log_stream)}
        assert GenerationStage.PERSIST not in stages
        assert GenerationStage.RESPONSE_PARSE not in stages
        callback.assert_called_once_with(session)

    @pytest.mark.asyncio
    async def test_failure_writes_exactly_one_error_entry(self, build, log_stream):
        ai = FakeAIProvider([ProviderError("fake", "HTTP 500")])

        await build(ai=ai).run()

        errors = [e for e in entries_for(log_stream) if e.level is LogLevel.ERROR]
        assert len(errors) == 1
        assert errors[0].stage is GenerationStage.FAILED
        assert errors[0].metadata["kind"] == "ProviderError"
        assert errors[0].metadata["stage"] == "api_call"

    @pytest.mark.asyncio
    async def test_missing_profile_is_config_error(self, build):
        session = await build(request=GenerationRequest(profile_id="nope")).run()

        assert session.error["kind"] == "ConfigError"

    @pytest.mark.asyncio
    async def test_unknown_framework_is_config_error(self, build):
        session = await build(request=GenerationRequest(framework="Nope")).run()

        assert session.error["kind"] == "ConfigError"

    @pytest.mark.asyncio
    async def test_unparseable_response_is_parse_error(self, build, store):
        ai = FakeAIProvider(["I'd rather not."])

        session = await build(ai=ai).run()

        assert session.error["kind"] == "ParseError"
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_store_rejection_is_persistence_error(self, build):
        session = await build(store=FailingStore()).run()

        assert session.status is SessionStatus.FAILED
        assert session.error["kind"] == "PersistenceError"

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_internal_error(self, build):
        class BrokenEmbedder:
            async def embed(self, text):
                raise RuntimeError("segfault in disguise")

        session = await build(embedder=BrokenEmbedder()).run()

        assert session.error["kind"] == "InternalError"
        assert "segfault in disguise" in session.error["message"]

    @pytest.mark.asyncio
    async def test_completion_callback_runs_when_log_close_fails(self, build):
        """A broken log backend must not leave the slot busy."""

        class BrokenCloseLogStream(LogStream):
            def close(self, session_id):
                raise RuntimeError("log backend down")

        finished = []
        pipeline = build(log_stream=BrokenCloseLogStream(), on_complete=finished.append)

        with pytest.raises(RuntimeError):
            await pipeline.run()

        assert finished == [pipeline.session]


class TestDuplicateCheck:
    """Duplicates are annotated, never fatal."""

    @pytest.mark.asyncio
    async def test_duplicate_annotated_and_persisted(self, build, store, log_stream):
        await build(session_id="first").run()

        session = await build(session_id="second").run()

        assert session.status is SessionStatus.COMPLETED
        assert session.duplicate.is_duplicate is True
        first_id = store.all()[0].id
        idea = store.get(session.idea_id)
        assert idea.duplicate_of_id == first_id
        assert idea.duplicate_similarity == pytest.approx(1.0)
        warnings = [
            e for e in entries_for(log_stream, "second")
            if e.stage is GenerationStage.DUPLICATE_CHECK and e.level is LogLevel.WARNING
        ]
        assert len(warnings) == 1

    @pytest.mark.asyncio
    async def test_distinct_idea_not_flagged(self, build, store):
        embedder = FakeEmbedder(default=[1.0, 0.0, 0.0])
        await build(session_id="first", embedder=embedder).run()
        embedder.default = np.array([0.0, 1.0, 0.0])

        session = await build(session_id="second", embedder=embedder).run()

        assert session.duplicate.is_duplicate is False
        assert store.get(session.idea_id).duplicate_of_id is None

    @pytest.mark.asyncio
    async def test_skip_duplicate_check(self, build, store, embedder, log_stream):
        request = GenerationRequest(skip_duplicate_check=True)

        session = await build(request=request).run()

        assert session.status is SessionStatus.COMPLETED
        assert len(embedder.calls) == 1
        assert session.duplicate is None
        assert store.get(session.idea_id).embedding is not None
        skipped = [
            e for e in entries_for(log_stream)
            if e.stage is GenerationStage.DUPLICATE_CHECK and e.level is LogLevel.WARNING
        ]
        assert len(skipped) == 1

    @pytest.mark.asyncio
    async def test_skipped_idea_still_matched_by_later_check(self, build, store):
        """Skipping only skips the comparison; the stored idea keeps its vector."""
        first = await build(
            session_id="first", request=GenerationRequest(skip_duplicate_check=True)
        ).run()

        second = await build(session_id="second").run()

        assert second.duplicate.is_duplicate is True
        assert second.duplicate.match_id == first.idea_id

    @pytest.mark.asyncio
    async def test_canonical_text_embedded(self, build, embedder):
        await build().run()

        assert embedder.calls == [
            "FinTech → Invoicing | Freelancers spend hours chasing unpaid invoices"
            " | An agent that follows up politely until paid"
        ]


class TestFolderName:
    """Tests for make_folder_name."""

    def test_slug_and_month(self):
        assert make_folder_name("AI Invoice Chaser!", datetime(2025, 3, 1)) == (
            "ai-invoice-chaser-2025-03"
        )

    def test_collapses_dashes_and_truncates(self):
        name = "Idea -- with   gaps " + "x" * 80

        folder = make_folder_name(name, datetime(2024, 12, 5))

        assert "--" not in folder
        assert folder.endswith("-2024-12")
        assert len(folder) == 50 + len("-2024-12")
