"""
Tests for Demographic Parity

Tests parity ratio and difference, compliance tiers and the four-fifths
rule.
"""

import numpy as np
import pytest

from fairness_audit.metrics.base import ComplianceTier, MetricStatus, MetricType
from fairness_audit.metrics.demographic_parity import (
    DemographicParityCalculator,
    disparate_impact_severity,
)


@pytest.fixture
def calculator(test_config):
    return DemographicParityCalculator(test_config)


def test_biased_selection_requires_intervention(calculator, metric_inputs):
    """50/100 vs 20/100 selected gives ratio 0.4."""
    inputs = metric_inputs(
        [True] * 50 + [False] * 50 + [True] * 20 + [False] * 80,
        {"gender": ["A"] * 100 + ["B"] * 100},
    )

    result = calculator.run(inputs)
    gender = result.get_attribute("gender")

    assert result.metric == MetricType.DEMOGRAPHIC_PARITY
    assert gender.summary["parity_ratio"] == pytest.approx(0.4)
    assert gender.summary["parity_difference"] == pytest.approx(0.3)
    assert gender.compliance == ComplianceTier.REQUIRES_INTERVENTION
    assert result.compliance == ComplianceTier.REQUIRES_INTERVENTION
    assert gender.summary["significant"]


def test_equal_rates_are_compliant(calculator, metric_inputs):
    """Identical selection rates give ratio 1 and difference 0."""
    inputs = metric_inputs(
        [True] * 30 + [False] * 70 + [True] * 30 + [False] * 70,
        {"gender": ["A"] * 100 + ["B"] * 100},
    )

    result = calculator.run(inputs)
    gender = result.get_attribute("gender")

    assert gender.summary["parity_ratio"] == pytest.approx(1.0)
    assert gender.summary["parity_difference"] == pytest.approx(0.0)
    assert gender.compliance == ComplianceTier.COMPLIANT
    assert result.score == pytest.approx(1.0)


def test_four_fifths_violations(calculator, metric_inputs):
    """Groups below 80% of the highest rate are flagged."""
    inputs = metric_inputs(
        [True] * 50 + [False] * 50 + [True] * 20 + [False] * 80,
        {"gender": ["A"] * 100 + ["B"] * 100},
    )

    impact = calculator.run(inputs).get_attribute("gender").details["disparate_impact"]

    assert impact["reference_group"] == "A"
    assert impact["impact_ratios"]["B"] == pytest.approx(0.4)
    assert not impact["passes_four_fifths_rule"]
    assert impact["violations"] == [
        {"group": "B", "impact_ratio": pytest.approx(0.4), "severity": "critical"}
    ]


def test_single_group_attribute_fails(calculator, metric_inputs):
    """A single group makes the parity ratio undefined."""
    inputs = metric_inputs([True, False, True, False], {"gender": ["A"] * 4})

    result = calculator.run(inputs)

    assert result.status == MetricStatus.FAILED
    assert not result.is_ok
    assert result.score is None
    assert "only 1 group" in result.error
    assert result.interpretation == "Calculation failed - manual review required"


def test_one_failing_attribute_does_not_fail_metric(calculator, metric_inputs):
    """Other attributes still produce a score."""
    inputs = metric_inputs(
        [True, False] * 20,
        {"gender": ["A", "A", "B", "B"] * 10, "region": ["north"] * 40},
    )

    result = calculator.run(inputs)

    assert result.is_ok
    assert result.get_attribute("region").status == MetricStatus.FAILED
    assert result.get_attribute("gender").is_ok


def test_no_selections_fails(calculator, metric_inputs):
    """The ratio is undefined when nobody was selected."""
    result = calculator.run(metric_inputs([False] * 10, {"gender": ["A", "B"] * 5}))

    assert result.status == MetricStatus.FAILED
    assert "no candidate" in result.error


def test_ratio_within_unit_interval(calculator, metric_inputs, candidate_pool):
    """Parity ratio and score stay inside [0, 1]."""
    inputs = metric_inputs(
        candidate_pool["outcomes"],
        candidate_pool["protected_attributes"],
        candidates=candidate_pool["candidates"],
    )

    result = calculator.run(inputs)

    assert 0.0 <= result.score <= 1.0
    for attribute in result.attributes:
        assert 0.0 <= attribute.summary["parity_ratio"] <= 1.0
        for group in attribute.groups:
            low, high = group.confidence_interval
            assert 0.0 <= low <= group.selection_rate <= high <= 1.0
    assert result.duration_ms > 0


def test_group_stats(calculator, metric_inputs):
    """Group statistics carry size, selected count and rate."""
    inputs = metric_inputs([True, True, False, True, False, False], {"g": list("AAABBB")})

    groups = {g.key: g for g in calculator.run(inputs).get_attribute("g").groups}

    assert groups["A"].size == 3
    assert groups["A"].selected == 2
    assert groups["A"].selection_rate == pytest.approx(2 / 3)
    assert groups["B"].selected == 1


def test_to_dict(calculator, metric_inputs):
    """Serialized result uses plain values."""
    inputs = metric_inputs([True, False] * 20, {"gender": ["A", "A", "B", "B"] * 10})

    data = calculator.run(inputs).to_dict()

    assert data["metric"] == "demographic_parity"
    assert data["status"] == "ok"
    assert "gender" in data["attributes"]
    assert isinstance(data["attributes"]["gender"]["groups"], list)
    assert np.isfinite(data["score"])


def test_disparate_impact_severity():
    assert disparate_impact_severity(0.5) == "critical"
    assert disparate_impact_severity(0.65) == "major"
    assert disparate_impact_severity(0.75) == "moderate"
