"""
Generation pipeline: one session's walk through the generation stages.

    INIT -> CONFIG_LOAD -> PROMPT_BUILD -> API_CALL -> RESPONSE_PARSE
         -> DUPLICATE_CHECK -> SCORING -> PERSIST -> COMPLETE

Any stage may fail; the session then moves to FAILED and no later stage runs.
Entering a stage writes exactly one info entry to the session log; stages may
add debug, warning and success entries of their own. A failure writes exactly
one error entry carrying the error kind and message.

A duplicate idea is not a failure: it is annotated with the matching idea and
persisted like any other.
"""

from __future__ import annotations

import math
import random
import re
import time
from datetime import datetime
from typing import Any, Awaitable, Callable

from loguru import logger

from config import get_settings
from ideaforge.core.errors import GenerationError
from ideaforge.core.interfaces import (
    AIProvider,
    CompletionSettings,
    EmbeddingProvider,
    IdeaStore,
    ProfileProvider,
)
from ideaforge.core.models import (
    CandidateIdea,
    GenerationStage,
    Idea,
    LogLevel,
    Session,
    SessionStatus,
)
from ideaforge.core.profile import ResolvedConfig, resolve_config
from ideaforge.generation.prompts import SYSTEM_PROMPT, PromptBuilder
from ideaforge.generation.response_parser import ResponseParser
from ideaforge.generation.scoring import ScoringAggregator
from ideaforge.logs.log_stream import LogStream
from ideaforge.semantic.duplicate_detector import DuplicateDetector

CompletionCallback = Callable[[Session], None]

FOLDER_NAME_MAX_SLUG = 50


def make_folder_name(name: str, created_at: datetime) -> str:
    """
    Filesystem-friendly folder name: "<slug>-YYYY-MM".

    >>> make_folder_name("AI Invoice Chaser!", datetime(2025, 3, 1))
    'ai-invoice-chaser-2025-03'
    """
    slug = re.sub(r"[^a-z0-9\s-]", "", name.lower())
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    slug = slug[:FOLDER_NAME_MAX_SLUG]
    return f"{slug}-{created_at:%Y-%m}"


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class GenerationPipeline:
    """
    Drive one session from INIT to a terminal stage.

    The pipeline owns its Session until it is terminal; the completion
    callback runs exactly once, after the session is terminal and its log is
    closed, whether the session completed or failed.
    """

    def __init__(
        self,
        session: Session,
        *,
        profile_provider: ProfileProvider,
        ai_provider: AIProvider,
        embedder: EmbeddingProvider,
        store: IdeaStore,
        log_stream: LogStream,
        detector: DuplicateDetector | None = None,
        aggregator: ScoringAggregator | None = None,
        prompt_builder: PromptBuilder | None = None,
        rng: random.Random | None = None,
        slot_profile_id: str | None = None,
        default_profile_id: str | None = None,
        on_complete: CompletionCallback | None = None,
    ):
        settings = get_settings()
        self.session = session
        self.profile_provider = profile_provider
        self.ai_provider = ai_provider
        self.embedder = embedder
        self.store = store
        self.log_stream = log_stream
        self.detector = detector or DuplicateDetector(store)
        self.aggregator = aggregator or ScoringAggregator()
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.rng = rng or random.Random()
        self.slot_profile_id = slot_profile_id
        self.default_profile_id = default_profile_id or settings.default_profile_id
        self.on_complete = on_complete
        self._default_temperature = settings.default_temperature
        self._default_max_tokens = settings.default_max_tokens

        # per-run state handed from stage to stage
        self._resolved: ResolvedConfig | None = None
        self._prompt: str | None = None
        self._response: str | None = None
        self._candidate: CandidateIdea | None = None
        self._idea: Idea | None = None

        # observers may attach before the task gets scheduled
        self.log_stream.open(session.session_id)

    @property
    def stages(self) -> list[tuple[GenerationStage, Callable[[], Awaitable[None]]]]:
        return [
            (GenerationStage.INIT, self._initialize),
            (GenerationStage.CONFIG_LOAD, self._load_config),
            (GenerationStage.PROMPT_BUILD, self._build_prompt),
            (GenerationStage.API_CALL, self._call_ai),
            (GenerationStage.RESPONSE_PARSE, self._parse_response),
            (GenerationStage.DUPLICATE_CHECK, self._check_duplicate),
            (GenerationStage.SCORING, self._score),
            (GenerationStage.PERSIST, self._persist),
        ]

    async def run(self) -> Session:
        """Execute every stage in order. Never raises for stage failures."""
        session = self.session
        session.status = SessionStatus.PROCESSING
        stage = GenerationStage.INIT

        try:
            for stage, handler in self.stages:
                self._enter(stage)
                await handler()
        except GenerationError as e:
            self._fail(stage, e)
        except Exception as e:
            logger.exception("Unexpected error in stage {} of session {}", stage.value, session.session_id)
            self._fail(stage, GenerationError(f"Unexpected error during {stage.value}: {e}"))
        else:
            self._complete()
        finally:
            self._finish()

        return session

    # ========================================================================
    # Stages
    # ========================================================================

    async def _initialize(self) -> None:
        request = self.session.request
        self._log(
            GenerationStage.INIT,
            LogLevel.DEBUG,
            "Request accepted",
            metadata={
                "slotNumber": self.session.slot_number,
                "profileId": request.profile_id,
                "framework": request.framework,
                "domain": request.domain,
                "skipDuplicateCheck": request.skip_duplicate_check,
            },
        )

    async def _load_config(self) -> None:
        profile_id = (
            self.session.request.profile_id
            or self.slot_profile_id
            or self.default_profile_id
        )
        profile = await self.profile_provider.resolve(profile_id)
        self._resolved = resolve_config(profile, self.session.request.framework, self.rng)
        self._log(
            GenerationStage.CONFIG_LOAD,
            LogLevel.SUCCESS,
            f"Loaded profile '{profile.name or profile.id}'",
            metadata={
                "profileId": profile.id,
                "framework": self._resolved.framework.name,
                "criteria": len(profile.criteria),
            },
        )

    async def _build_prompt(self) -> None:
        request = self.session.request
        self._prompt = self.prompt_builder.build(
            self._resolved,
            domain=request.domain,
            custom_prompt=request.custom_prompt,
        )
        self._log(
            GenerationStage.PROMPT_BUILD,
            LogLevel.DEBUG,
            f"Prompt rendered ({len(self._prompt)} chars)",
            metadata={"customPrompt": bool(request.custom_prompt)},
        )

    async def _call_ai(self) -> None:
        generation = self._resolved.profile.generation
        settings = CompletionSettings(
            temperature=(
                generation.temperature
                if generation.temperature is not None
                else self._default_temperature
            ),
            max_tokens=generation.max_tokens or self._default_max_tokens,
            system_prompt=SYSTEM_PROMPT,
        )

        started = time.perf_counter()
        self._response = await self.ai_provider.complete(self._prompt, settings)
        duration_ms = int((time.perf_counter() - started) * 1000)

        self._log(
            GenerationStage.API_CALL,
            LogLevel.SUCCESS,
            f"Received response from {self.ai_provider.name} ({len(self._response)} chars)",
            duration_ms=duration_ms,
            metadata={
                "provider": self.ai_provider.name,
                "temperature": settings.temperature,
                "maxTokens": settings.max_tokens,
            },
        )

    async def _parse_response(self) -> None:
        parser = ResponseParser(
            self._resolved.profile.criteria,
            on_warning=lambda message: self._log(
                GenerationStage.RESPONSE_PARSE, LogLevel.WARNING, message
            ),
        )
        candidate = parser.parse(self._response)
        candidate.ai_prompt = self._prompt
        self._candidate = candidate
        self._log(
            GenerationStage.RESPONSE_PARSE,
            LogLevel.SUCCESS,
            f"Parsed idea '{candidate.name}'",
            metadata={"criteria": sorted(candidate.evaluation)},
        )

    async def _check_duplicate(self) -> None:
        candidate = self._candidate
        # stored ideas always carry a vector so later checks can match them
        candidate.embedding = await self.embedder.embed(candidate.canonical_text())
        if self.session.request.skip_duplicate_check:
            self._log(
                GenerationStage.DUPLICATE_CHECK,
                LogLevel.WARNING,
                "Duplicate check skipped by request",
            )
            return

        result = await self.detector.find(candidate.embedding)
        self.session.duplicate = result

        if result.is_duplicate:
            candidate.duplicate_of_id = result.match_id
            candidate.duplicate_similarity = result.similarity
            self._log(
                GenerationStage.DUPLICATE_CHECK,
                LogLevel.WARNING,
                f"Possible duplicate of idea {result.match_id} "
                f"(similarity {result.similarity:.3f})",
                metadata={"matchId": result.match_id, "similarity": result.similarity},
            )
        else:
            self._log(
                GenerationStage.DUPLICATE_CHECK,
                LogLevel.SUCCESS,
                "No duplicate found",
                metadata={"bestMatchId": result.match_id, "similarity": result.similarity},
            )

    async def _score(self) -> None:
        profile = self._resolved.profile
        candidate = self._candidate

        breakdown = self.aggregator.aggregate(
            candidate.raw_scores, profile.weights, profile.score_ranges
        )
        complexity = self.aggregator.complexity(
            breakdown.per_criterion, candidate.evaluation, profile.complexity
        )

        created_at = datetime.now()
        self._idea = Idea(
            name=candidate.name,
            folder_name=make_folder_name(candidate.name, created_at),
            domain=candidate.domain,
            subdomain=candidate.subdomain,
            problem=candidate.problem,
            solution=candidate.solution,
            score=round_half_up(breakdown.total),
            scores=breakdown.per_criterion,
            complexity_scores=complexity,
            quick_summary=candidate.quick_summary,
            concrete_example=candidate.concrete_example,
            evaluation_details=candidate.evaluation,
            tags=candidate.tags,
            idea_components=candidate.idea_components,
            quick_notes=candidate.quick_notes,
            action_plan=candidate.action_plan,
            generation_framework=self._resolved.framework.name,
            parent_idea_id=self.session.request.parent_idea_id,
            duplicate_of_id=candidate.duplicate_of_id,
            duplicate_similarity=candidate.duplicate_similarity,
            raw_ai_response=candidate.raw_ai_response,
            ai_prompt=candidate.ai_prompt,
            embedding=candidate.embedding,
            created_at=created_at,
        )
        self._log(
            GenerationStage.SCORING,
            LogLevel.SUCCESS,
            f"Weighted score {breakdown.total:.2f}",
            metadata={
                "score": self._idea.score,
                "scores": breakdown.per_criterion,
                "complexity": complexity.to_dict(),
            },
        )

    async def _persist(self) -> None:
        idea_id = await self.store.save(self._idea)
        self._idea.id = idea_id
        self.session.idea_id = idea_id
        self._log(
            GenerationStage.PERSIST,
            LogLevel.SUCCESS,
            f"Saved idea {idea_id}",
            metadata={"ideaId": idea_id, "folderName": self._idea.folder_name},
        )

    # ========================================================================
    # Transitions
    # ========================================================================

    def _enter(self, stage: GenerationStage) -> None:
        self.session.current_stage = stage
        self._log(stage, LogLevel.INFO, _STAGE_MESSAGES[stage])

    def _complete(self) -> None:
        session = self.session
        session.current_stage = GenerationStage.COMPLETE
        session.status = SessionStatus.COMPLETED
        idea = self._idea
        self._log(
            GenerationStage.COMPLETE,
            LogLevel.SUCCESS,
            f"Generated '{idea.name}' with score {idea.score}",
            metadata={"ideaId": idea.id, "score": idea.score},
        )

    def _fail(self, stage: GenerationStage, error: GenerationError) -> None:
        session = self.session
        session.current_stage = GenerationStage.FAILED
        session.status = SessionStatus.FAILED
        session.error = error.to_dict()
        self._log(
            GenerationStage.FAILED,
            LogLevel.ERROR,
            f"{error.kind}: {error.message}",
            metadata={"kind": error.kind, "message": error.message, "stage": stage.value},
        )

    def _finish(self) -> None:
        session = self.session
        session.completed_at = datetime.now()
        try:
            self.log_stream.close(session.session_id)
        finally:
            if self.on_complete is not None:
                self.on_complete(session)

    def _log(
        self,
        stage: GenerationStage,
        level: LogLevel,
        message: str,
        *,
        duration_ms: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self.log_stream.append(
            self.session.session_id,
            stage,
            level,
            message,
            duration_ms=duration_ms,
            metadata=metadata,
        )


_STAGE_MESSAGES = {
    GenerationStage.INIT: "Initializing generation session",
    GenerationStage.CONFIG_LOAD: "Loading configuration profile",
    GenerationStage.PROMPT_BUILD: "Building prompt",
    GenerationStage.API_CALL: "Calling AI provider",
    GenerationStage.RESPONSE_PARSE: "Parsing AI response",
    GenerationStage.DUPLICATE_CHECK: "Checking for duplicate ideas",
    GenerationStage.SCORING: "Scoring idea",
    GenerationStage.PERSIST: "Saving idea",
}
