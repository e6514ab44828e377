"""
Tests for Intersectional Fairness

Tests coefficient-of-variation scoring over intersectional groups.
"""

import pytest

from fairness_audit.metrics.base import ComplianceTier, MetricInputs, MetricStatus
from fairness_audit.metrics.intersectional_fairness import IntersectionalFairnessCalculator


def test_groups_cover_every_candidate(test_config, metric_inputs, candidate_pool):
    """Intersectional groups partition the whole pool."""
    inputs = metric_inputs(
        candidate_pool["outcomes"],
        candidate_pool["protected_attributes"],
        candidates=candidate_pool["candidates"],
    )

    result = IntersectionalFairnessCalculator(test_config).run(inputs)
    groups = result.attributes[0].groups

    assert sum(g.size for g in groups) == 200
    assert result.summary["group_count"] == len(groups)
    assert result.summary["attributes"] == ["gender", "age_band"]
    assert 0.0 <= result.score <= 1.0


def test_compound_bias(test_config, metric_inputs):
    """One disadvantaged combination lowers the score."""
    gender = (["F"] * 20 + ["M"] * 20) * 2
    region = ["north"] * 40 + ["south"] * 40
    # F in the south is selected at 10%, every other combination at 50%
    outcomes = (
        [True, False] * 10
        + [True, False] * 10
        + [True] * 2 + [False] * 18
        + [True, False] * 10
    )
    inputs = metric_inputs(outcomes, {"gender": gender, "region": region})

    result = IntersectionalFairnessCalculator(test_config).run(inputs)

    assert result.summary["lowest_rate_group"] == "gender:F|region:south"
    assert result.summary["intersectional_parity_ratio"] == pytest.approx(0.2)
    assert result.compliance == ComplianceTier.REQUIRES_MONITORING
    # rates 0.5, 0.5, 0.1, 0.5: mean 0.4, std sqrt(0.03)
    assert result.summary["coefficient_of_variation"] == pytest.approx(0.03**0.5 / 0.4)
    assert result.score == pytest.approx(1 - 0.03**0.5 / 0.4)


def test_builds_partition_when_missing(test_config, metric_inputs):
    """Without a precomputed partition, attributes are combined on demand."""
    inputs = metric_inputs([True, False] * 10, {"gender": list("FFMM") * 5, "region": list("NS") * 10})
    bare = MetricInputs(
        candidates=inputs.candidates,
        outcomes=inputs.outcomes,
        partitions=inputs.partitions,
    )

    result = IntersectionalFairnessCalculator(test_config).run(bare)

    assert result.is_ok
    assert result.attributes[0].attribute == "gender_x_region"


def test_single_group_fails(test_config, metric_inputs):
    result = IntersectionalFairnessCalculator(test_config).run(
        metric_inputs([True, False], {"gender": ["F", "F"]})
    )

    assert result.status == MetricStatus.FAILED
