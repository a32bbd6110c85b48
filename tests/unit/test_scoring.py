"""
Unit tests for weighted scoring and complexity derivation.
"""

import pytest

from ideaforge.core.models import EvaluationCriterion
from ideaforge.core.profile import ComplexityMapping
from ideaforge.generation.scoring import ScoringAggregator


@pytest.fixture
def aggregator():
    return ScoringAggregator()


class TestAggregate:
    """Tests for ScoringAggregator.aggregate."""

    def test_equal_weights(self, aggregator):
        """8 and 6 out of 10 at equal weight is 70."""
        result = aggregator.aggregate({"a": 8, "b": 6}, {"a": 50, "b": 50})

        assert result.total == 70.0

    def test_weights_not_summing_to_100_are_normalized(self, aggregator):
        """Weights 40/40 (sum 80) with scores 9/7 give 80."""
        result = aggregator.aggregate(
            {"problemSeverity": 9, "marketSize": 7},
            {"problemSeverity": 40, "marketSize": 40},
        )

        assert result.total == 80.0

    def test_unequal_weights(self, aggregator):
        result = aggregator.aggregate({"a": 10, "b": 0}, {"a": 3, "b": 1})

        assert result.total == 75.0

    def test_out_of_range_scores_are_clamped(self, aggregator):
        """A provider score of 11/10 cannot push the total past 100."""
        result = aggregator.aggregate({"a": 11, "b": -2}, {"a": 1, "b": 1})

        assert result.per_criterion == {"a": 10.0, "b": 0.0}
        assert result.total == 50.0

    def test_custom_ranges(self, aggregator):
        result = aggregator.aggregate({"a": 4}, {"a": 1}, {"a": (1, 5)})

        assert result.total == 80.0

    def test_keys_missing_from_either_map_are_ignored(self, aggregator):
        result = aggregator.aggregate({"a": 10, "extra": 1}, {"a": 1, "b": 1})

        assert result.per_criterion == {"a": 10.0}
        assert result.total == 100.0

    def test_zero_weight_sum(self, aggregator):
        result = aggregator.aggregate({"a": 8}, {"a": 0})

        assert result.total == 0.0


class TestComplexity:
    """Tests for ScoringAggregator.complexity."""

    SCORES = {
        "technicalFeasibility": 8,
        "timeToMarket": 4,
        "marketSize": 7,
        "monetizationClarity": 6,
    }

    def test_regulatory_mention_uses_time_to_market(self, aggregator):
        evaluation = {
            "timeToMarket": EvaluationCriterion(score=4, reasoning="Needs HIPAA compliance review"),
        }

        result = aggregator.complexity(self.SCORES, evaluation, ComplexityMapping())

        assert result.technical == 3.0
        assert result.regulatory == 7.0
        assert result.sales == 4.5
        assert result.total == 14.5

    def test_no_regulatory_mention_defaults_to_three(self, aggregator):
        evaluation = {"timeToMarket": EvaluationCriterion(score=4, reasoning="Simple web app")}

        result = aggregator.complexity(self.SCORES, evaluation, ComplexityMapping())

        assert result.regulatory == 3.0
        assert result.total == 10.5

    def test_total_equals_sum_of_rounded_components(self, aggregator):
        scores = {**self.SCORES, "marketSize": 6.33, "monetizationClarity": 7.0}

        result = aggregator.complexity(scores, {}, ComplexityMapping())

        assert result.total == round(result.technical + result.regulatory + result.sales, 1)

    def test_missing_criterion_leaves_field_and_total_empty(self, aggregator):
        scores = {"technicalFeasibility": 8, "timeToMarket": 5}

        result = aggregator.complexity(scores, {}, ComplexityMapping())

        assert result.technical == 3.0
        assert result.sales is None
        assert result.total is None
        assert "sales" not in result.to_dict()

    def test_no_mapping_yields_empty_scores(self, aggregator):
        result = aggregator.complexity(self.SCORES, {}, None)

        assert result.to_dict() == {}
