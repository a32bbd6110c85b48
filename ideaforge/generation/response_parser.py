"""
Parse AI provider output into a CandidateIdea.

Providers are asked for a bare JSON object but regularly wrap it in markdown
fences, and long answers are sometimes cut off before the closing brackets.
Parsing strips fences, tries the JSON as-is, then retries once after appending
the missing closing brackets and braces.

Hard requirements (ParseError when violated):
    - name, quickSummary, concreteExample, evaluation present
    - concreteExample has currentState, yourSolution, keyImprovement
    - every criterion key of the profile present in evaluation with a
      numeric score inside the criterion's declared range

Soft requirements (warning only):
    - ideaComponents complete, quickNotes sections present as lists,
      question/answer pairs complete
"""

from __future__ import annotations

import json
import math
import re
from typing import Any, Callable, Iterable

from loguru import logger

from ideaforge.core.errors import ParseError
from ideaforge.core.models import CandidateIdea, EvaluationCriterion
from ideaforge.core.profile import Criterion

WarningSink = Callable[[str], None]

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?")
_DOMAIN_SEPARATORS = ("→", "->")

REQUIRED_FIELDS = ("name", "quickSummary", "concreteExample", "evaluation")
CONCRETE_EXAMPLE_FIELDS = ("currentState", "yourSolution", "keyImprovement")
IDEA_COMPONENT_FIELDS = ("monetization", "targetAudience", "technology", "marketSize")
QUICK_NOTE_SECTIONS = ("strengths", "weaknesses", "keyAssumptions", "nextSteps", "references")

PREVIEW_CHARS = 1000


def strip_fences(text: str) -> str:
    """Remove markdown code fences around a JSON payload."""
    text = text.strip()
    if text.startswith("```"):
        text = _FENCE_RE.sub("", text)
    return text.strip()


def repair_json(text: str) -> str:
    """Append closing brackets then braces until the counts balance."""
    missing_brackets = text.count("[") - text.count("]")
    missing_braces = text.count("{") - text.count("}")
    return text + "]" * max(missing_brackets, 0) + "}" * max(missing_braces, 0)


def split_domain(value: str) -> tuple[str, str | None]:
    """Split "Parent → Sub" into ("Parent", "Sub")."""
    for separator in _DOMAIN_SEPARATORS:
        if separator in value:
            parent, _, sub = value.partition(separator)
            return parent.strip(), sub.strip() or None
    return value.strip(), None


class ResponseParser:
    """
    Turn raw provider text into a validated CandidateIdea.

    Example:
        >>> parser = ResponseParser(profile.criteria)
        >>> candidate = parser.parse(response_text)
        >>> candidate.raw_scores
        {'problemSeverity': 9.0, 'marketSize': 7.0}
    """

    def __init__(self, criteria: Iterable[Criterion], on_warning: WarningSink | None = None):
        self.criteria = list(criteria)
        self._on_warning = on_warning

    def parse(self, text: str) -> CandidateIdea:
        """
        Parse and validate a provider response.

        Raises:
            ParseError: Response is not JSON (even after repair) or fails
                validation.
        """
        data = self._load(text)

        missing = [f for f in REQUIRED_FIELDS if not data.get(f)]
        if missing:
            raise ParseError(
                f"Missing required fields in AI response: {', '.join(missing)}",
                {"missing": missing},
            )

        concrete = data["concreteExample"]
        if not isinstance(concrete, dict) or any(
            not concrete.get(f) for f in CONCRETE_EXAMPLE_FIELDS
        ):
            raise ParseError("Concrete example missing required fields")

        evaluation = self._parse_evaluation(data["evaluation"])
        self._check_optional_sections(data)

        domain, subdomain = split_domain(str(data.get("domain") or "Unknown"))
        tags = data.get("tags") or []

        return CandidateIdea(
            name=str(data["name"]),
            domain=domain,
            subdomain=subdomain,
            problem=str(data.get("problem") or "Unknown"),
            solution=str(data.get("solution") or "Unknown"),
            quick_summary=str(data["quickSummary"]),
            concrete_example={k: str(concrete[k]) for k in CONCRETE_EXAMPLE_FIELDS},
            evaluation=evaluation,
            idea_components=data.get("ideaComponents"),
            quick_notes=data.get("quickNotes"),
            action_plan=data.get("actionPlan"),
            tags=[str(t) for t in tags] if isinstance(tags, list) else [],
            raw_ai_response=text,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load(self, text: str) -> dict[str, Any]:
        payload = strip_fences(text)
        if not payload:
            raise ParseError("AI response was empty")

        try:
            data = json.loads(payload)
        except json.JSONDecodeError as first_error:
            self._warn(f"Initial JSON parse failed: {first_error}. Attempting to repair...")
            try:
                data = json.loads(repair_json(payload))
            except json.JSONDecodeError:
                preview = payload[:PREVIEW_CHARS]
                if len(payload) > PREVIEW_CHARS:
                    preview += "... (truncated)"
                raise ParseError(
                    f"AI response is not valid JSON: {first_error}",
                    {"preview": preview},
                ) from first_error
            logger.debug("Repaired truncated JSON response")

        if not isinstance(data, dict):
            raise ParseError(f"Expected a JSON object, got {type(data).__name__}")
        return data

    def _parse_evaluation(self, raw: Any) -> dict[str, EvaluationCriterion]:
        if not isinstance(raw, dict):
            raise ParseError("evaluation must be an object keyed by criterion")

        missing = [c.key for c in self.criteria if c.key not in raw]
        if missing:
            raise ParseError(
                f"Evaluation missing criteria: {', '.join(missing)}",
                {"missing": missing, "expected": [c.key for c in self.criteria]},
            )

        evaluation: dict[str, EvaluationCriterion] = {}
        for criterion in self.criteria:
            evaluation[criterion.key] = self._parse_criterion(criterion, raw[criterion.key])

        # keys the profile does not know are kept but never scored
        for key, entry in raw.items():
            if key in evaluation:
                continue
            self._warn(f"Evaluation has unknown criterion '{key}'")
            if isinstance(entry, dict) and _is_number(entry.get("score")):
                evaluation[key] = EvaluationCriterion(
                    score=float(entry["score"]),
                    reasoning=str(entry.get("reasoning") or ""),
                    questions=self._parse_questions(key, entry.get("questions")),
                )
        return evaluation

    def _parse_criterion(self, criterion: Criterion, entry: Any) -> EvaluationCriterion:
        if not isinstance(entry, dict):
            raise ParseError(f"Evaluation for '{criterion.key}' must be an object")

        score = entry.get("score")
        if not _is_number(score):
            raise ParseError(
                f"Score for '{criterion.key}' is not numeric: {score!r}",
                {"criterion": criterion.key},
            )
        score = float(score)
        if not criterion.min_score <= score <= criterion.max_score:
            raise ParseError(
                f"Score for '{criterion.key}' out of range "
                f"[{criterion.min_score:g}, {criterion.max_score:g}]: {score:g}",
                {"criterion": criterion.key, "score": score},
            )

        return EvaluationCriterion(
            score=score,
            reasoning=str(entry.get("reasoning") or ""),
            questions=self._parse_questions(criterion.key, entry.get("questions")),
        )

    def _parse_questions(self, key: str, raw: Any) -> list[dict[str, str]]:
        if raw is None:
            return []
        if not isinstance(raw, list):
            self._warn(f"Evaluation questions for {key} is not an array")
            return []
        questions = []
        for item in raw:
            if not isinstance(item, dict) or not item.get("question") or not item.get("answer"):
                self._warn(f"Incomplete question/answer pair in {key}")
                continue
            questions.append({"question": str(item["question"]), "answer": str(item["answer"])})
        return questions

    def _check_optional_sections(self, data: dict[str, Any]) -> None:
        components = data.get("ideaComponents")
        if components is not None:
            if not isinstance(components, dict) or any(
                not components.get(f) for f in IDEA_COMPONENT_FIELDS
            ):
                self._warn("Idea components present but incomplete")

        notes = data.get("quickNotes")
        if notes is not None:
            for section in QUICK_NOTE_SECTIONS:
                if not isinstance(notes, dict) or not isinstance(notes.get(section), list):
                    self._warn(f"Quick notes section '{section}' missing or not an array")

    def _warn(self, message: str) -> None:
        if self._on_warning is not None:
            self._on_warning(message)
        else:
            logger.warning(message)


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)
