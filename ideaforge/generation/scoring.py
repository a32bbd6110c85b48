"""
Score aggregation for generated ideas.

Total score (0-100):
    sum(raw[k] * weight[k]) / sum(max[k] * weight[k]) * 100

Weights come from the active profile and need not sum to 100; the formula
always normalizes by the weight sum. Raw scores outside their declared range
are clamped into it, so a provider drifting to 11/10 cannot push the total
past 100.

Complexity scores (1-10 each, derived from criterion scores):
    technical  = 11 - technicalFeasibility
    regulatory = 11 - timeToMarket   (if time-to-market reasoning mentions
                                      regulation, else a flat 3)
    sales      = 11 - (marketSize + monetizationClarity) / 2
    total      = technical + regulatory + sales
"""

from __future__ import annotations

import re
from typing import Mapping

from loguru import logger

from ideaforge.core.models import ComplexityScores, EvaluationCriterion, ScoreBreakdown
from ideaforge.core.profile import ComplexityMapping

DEFAULT_SCORE_RANGE = (0.0, 10.0)


class ScoringAggregator:
    """Weighted multi-criteria scoring plus derived complexity metrics."""

    COMPLEXITY_CEILING = 11.0

    def aggregate(
        self,
        raw_scores: Mapping[str, float],
        weights: Mapping[str, float],
        ranges: Mapping[str, tuple[float, float]] | None = None,
    ) -> ScoreBreakdown:
        """
        Compute the weighted total.

        Only criteria present in both ``raw_scores`` and ``weights`` count.

        Args:
            raw_scores: Criterion key -> provider score.
            weights: Criterion key -> weight (any positive scale).
            ranges: Criterion key -> (min, max); defaults to 0-10.

        Returns:
            ScoreBreakdown with the total (0-100, two decimals) and the
            clamped raw score used for each counted criterion.
        """
        ranges = ranges or {}
        weighted = 0.0
        max_weighted = 0.0
        per_criterion: dict[str, float] = {}

        for key, weight in weights.items():
            if key not in raw_scores:
                continue
            low, high = ranges.get(key, DEFAULT_SCORE_RANGE)
            raw = float(raw_scores[key])
            score = min(max(raw, low), high)
            if score != raw:
                logger.warning(
                    "Score for {} out of range [{}, {}]: {} clamped to {}",
                    key, low, high, raw, score,
                )
            per_criterion[key] = score
            weighted += score * weight
            max_weighted += high * weight

        if max_weighted <= 0:
            return ScoreBreakdown(total=0.0, per_criterion=per_criterion)

        total = weighted * 100 / max_weighted
        total = min(max(total, 0.0), 100.0)
        return ScoreBreakdown(total=round(total, 2), per_criterion=per_criterion)

    def complexity(
        self,
        scores: Mapping[str, float],
        evaluation: Mapping[str, EvaluationCriterion] | None = None,
        mapping: ComplexityMapping | None = None,
    ) -> ComplexityScores:
        """
        Derive execution complexity from criterion scores.

        A component whose source criterion is missing stays None; ``total`` is
        only set when all three components are.
        """
        if mapping is None:
            return ComplexityScores()
        evaluation = evaluation or {}
        ceiling = self.COMPLEXITY_CEILING

        technical = None
        if mapping.technical in scores:
            technical = ceiling - scores[mapping.technical]

        regulatory = None
        if mapping.regulatory in scores:
            details = evaluation.get(mapping.regulatory)
            reasoning = details.reasoning if details else ""
            if re.search(mapping.regulatory_pattern, reasoning, re.IGNORECASE):
                regulatory = ceiling - scores[mapping.regulatory]
            else:
                regulatory = mapping.regulatory_default

        sales = None
        if mapping.sales and all(key in scores for key in mapping.sales):
            accessibility = sum(scores[key] for key in mapping.sales) / len(mapping.sales)
            sales = ceiling - accessibility

        technical, regulatory, sales = (
            _one_decimal(technical), _one_decimal(regulatory), _one_decimal(sales)
        )
        total = None
        if technical is not None and regulatory is not None and sales is not None:
            # summed after rounding so total always equals its components
            total = round(technical + regulatory + sales, 1)

        return ComplexityScores(
            technical=technical, regulatory=regulatory, sales=sales, total=total
        )


def _one_decimal(value: float | None) -> float | None:
    return None if value is None else round(value, 1)
