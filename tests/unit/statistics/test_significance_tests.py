"""
Tests for Statistical Test Engine

Tests chi-square, the Fisher fallback, the permutation test and
Bonferroni correction.
"""

import threading

import numpy as np
import pytest

from fairness_audit.partitioning.group_partitioner import GroupPartitioner
from fairness_audit.statistics.significance_tests import (
    CHI_SQUARE,
    FISHER_EXACT,
    PERMUTATION,
    ResultStatus,
    StatisticalTestEngine,
    StatisticalTestPreconditionError,
    build_contingency_table,
    interpret_cramers_v,
)


@pytest.fixture
def engine(test_config):
    return StatisticalTestEngine(test_config)


@pytest.fixture
def biased_sample():
    """Two groups of 100 with selection rates 0.5 and 0.2."""
    outcomes = [True] * 50 + [False] * 50 + [True] * 20 + [False] * 80
    groups = ["A"] * 100 + ["B"] * 100
    return outcomes, groups


def test_contingency_table(test_config, biased_sample):
    """Rows are [selected, not selected] per group."""
    outcomes, groups = biased_sample
    partition = GroupPartitioner(test_config).partition_by_attribute("g", groups)

    table = build_contingency_table(partition, outcomes)

    assert table.tolist() == [[50, 50], [20, 80]]


def test_chi_square_large_table(engine):
    """Chi-square runs when expected counts are adequate."""
    result = engine.chi_square(np.array([[50, 50], [20, 80]]))

    assert result.test_name == CHI_SQUARE
    assert result.degrees_of_freedom == 1
    assert result.p_value < 0.001
    assert result.fallback_from is None
    assert 0.0 < result.effect_size < 1.0


def test_chi_square_rejects_small_expected_counts(engine):
    """Expected counts below five fail the precondition."""
    with pytest.raises(StatisticalTestPreconditionError) as exc_info:
        engine.chi_square(np.array([[3, 1], [1, 3]]))

    assert exc_info.value.test_name == CHI_SQUARE
    assert "expected cell count" in exc_info.value.reason


def test_small_table_falls_back_to_fisher(engine):
    """Independence test falls back to Fisher's exact test."""
    result = engine.independence_test(np.array([[3, 1], [1, 3]]))

    assert result.test_name == FISHER_EXACT
    assert result.fallback_from == CHI_SQUARE
    assert result.is_completed
    assert 0.0 <= result.p_value <= 1.0


def test_single_group_is_inconclusive(engine):
    """A one-group table cannot be tested and is reported, not raised."""
    result = engine.independence_test(np.array([[5, 5]]))

    assert result.status == ResultStatus.INCONCLUSIVE
    assert result.p_value is None
    assert not result.is_completed
    assert not result.is_significant(0.05)


def test_freeman_halton_k_by_two(engine):
    """Fisher's exact test extends to more than two groups."""
    result = engine.fisher_exact(np.array([[4, 1], [1, 4], [2, 3]]))

    assert result.degrees_of_freedom == 2
    assert 0.0 <= result.p_value <= 1.0
    assert "Freeman-Halton" in result.message


def test_freeman_halton_matches_scipy_on_two_groups(engine):
    """Enumeration agrees with scipy's two-sided 2 x 2 test."""
    table = np.array([[6, 2], [1, 7]])
    p_exact = engine.fisher_exact(table).p_value
    p_enumerated, _, _ = engine._freeman_halton(table.sum(axis=1), table[:, 0])

    assert p_enumerated == pytest.approx(p_exact, rel=1e-6)


def test_freeman_halton_table_limit(test_config):
    """Enumeration beyond the table ceiling is refused."""
    config = test_config.model_copy(
        update={"statistics": test_config.statistics.model_copy(update={"max_exact_tables": 3})}
    )
    engine = StatisticalTestEngine(config)

    with pytest.raises(StatisticalTestPreconditionError):
        engine.fisher_exact(np.array([[4, 1], [1, 4], [2, 3]]))


def test_permutation_p_value_in_unit_interval(engine):
    """Permutation p-values lie in [0, 1]."""
    np.random.seed(42)
    outcomes = np.random.rand(120) < 0.4
    codes = np.random.randint(0, 3, 120)

    result = engine.permutation_test(outcomes, codes, iterations=200)

    assert result.test_name == PERMUTATION
    assert result.iterations == 200
    assert 0.0 <= result.p_value <= 1.0


@pytest.mark.parametrize("iterations", [1000, 10000])
def test_permutation_strong_effect_significant(engine, biased_sample, iterations):
    """A strong effect is significant regardless of the iteration count."""
    outcomes, groups = biased_sample
    codes = [0 if g == "A" else 1 for g in groups]

    result = engine.permutation_test(outcomes, codes, iterations=iterations)

    assert result.statistic == pytest.approx(0.3)
    assert result.is_significant(0.05)


def test_permutation_is_reproducible(engine, biased_sample):
    """The same seed gives the same p-value."""
    outcomes, groups = biased_sample
    codes = [0 if g == "A" else 1 for g in groups]

    first = engine.permutation_test(outcomes, codes, iterations=300, seed=7)
    second = engine.permutation_test(outcomes, codes, iterations=300, seed=7)

    assert first.p_value == second.p_value


def test_permutation_cancelled_before_start(engine, biased_sample):
    """A pre-set cancel event yields an inconclusive result."""
    outcomes, groups = biased_sample
    codes = [0 if g == "A" else 1 for g in groups]
    cancel = threading.Event()
    cancel.set()

    result = engine.permutation_test(outcomes, codes, cancel_event=cancel)

    assert result.status == ResultStatus.INCONCLUSIVE
    assert result.iterations == 0
    assert "cancelled" in result.message


def test_permutation_deadline_gives_partial_estimate(engine, biased_sample, mocker):
    """A deadline reached mid-run yields a p-value from the completed shuffles."""
    outcomes, groups = biased_sample
    codes = [0 if g == "A" else 1 for g in groups]
    clock = mocker.patch("fairness_audit.statistics.significance_tests.time")
    # Deadline set at t=0; first batch starts at t=0, second check is past it
    clock.monotonic.side_effect = [0.0, 0.0, 100.0]

    result = engine.permutation_test(outcomes, codes, iterations=1000, timeout_seconds=1.0)

    assert result.status == ResultStatus.COMPLETED
    assert 0 < result.iterations < 1000
    assert result.iterations == engine.permutation_batch_size
    assert 0.0 <= result.p_value <= 1.0
    assert result.message == (
        f"deadline reached: estimate from {result.iterations} of 1000 shuffles"
    )


def test_permutation_cancelled_after_first_batch(engine, biased_sample, mocker):
    """Cancelling mid-run keeps the shuffles already completed."""
    outcomes, groups = biased_sample
    codes = [0 if g == "A" else 1 for g in groups]
    cancel = threading.Event()
    mocker.patch.object(cancel, "is_set", side_effect=[False, True])

    result = engine.permutation_test(outcomes, codes, iterations=1000, cancel_event=cancel)

    assert result.status == ResultStatus.COMPLETED
    assert 0 < result.iterations < 1000
    assert 0.0 <= result.p_value <= 1.0
    assert f"estimate from {result.iterations} of 1000 shuffles" in result.message
    assert result.message.startswith("cancelled")


def test_permutation_single_group(engine):
    """One group cannot be permuted."""
    result = engine.permutation_test([True, False, True], [0, 0, 0])

    assert result.status == ResultStatus.INCONCLUSIVE


def test_bonferroni(engine):
    """Alpha is divided by the number of tested attributes."""
    adjusted_alpha, adjusted, overall = engine.bonferroni(
        {"gender": 0.02, "age_band": 0.2, "region": None}
    )

    assert adjusted_alpha == pytest.approx(0.025)
    assert adjusted["gender"] == pytest.approx(0.04)
    assert adjusted["age_band"] == pytest.approx(0.4)
    assert adjusted["region"] is None
    assert overall


def test_bonferroni_not_significant_after_correction(engine):
    """A p-value below alpha can fail the corrected threshold."""
    adjusted_alpha, _, overall = engine.bonferroni({"a": 0.04, "b": 0.5, "c": 0.6})

    assert adjusted_alpha == pytest.approx(0.05 / 3)
    assert not overall


def test_run_suite(engine, test_config, biased_sample):
    """Suite tests every attribute and applies the correction."""
    outcomes, groups = biased_sample
    np.random.seed(42)
    partitioner = GroupPartitioner(test_config)
    partitions = {
        "gender": partitioner.partition_by_attribute("gender", groups),
        "region": partitioner.partition_by_attribute(
            "region", list(np.random.choice(["north", "south"], 200))
        ),
    }

    suite = engine.run_suite(partitions, outcomes)

    assert set(suite.attributes) == {"gender", "region"}
    assert suite.adjusted_alpha == pytest.approx(0.025)
    assert "gender" in suite.significant_attributes
    assert suite.overall_significant
    assert len(suite.results) == 4
    assert set(suite.to_dict()["tests"]) == {"gender", "region"}


def test_proportion_interval(engine):
    """Intervals contain the estimate and stay inside [0, 1]."""
    low, high = engine.proportion_interval(50, 100)
    assert low < 0.5 < high

    assert engine.proportion_interval(0, 10) == (0.0, 0.0)
    assert engine.proportion_interval(10, 10) == (1.0, 1.0)
    assert engine.proportion_interval(0, 0) == (0.0, 1.0)


def test_interpret_cramers_v():
    assert interpret_cramers_v(0.05) == "small"
    assert interpret_cramers_v(0.2) == "medium"
    assert interpret_cramers_v(0.5) == "large"


def test_fisher_not_run_when_chi_square_succeeds(engine, mocker):
    """The exact test only runs as a fallback."""
    spy = mocker.spy(engine, "fisher_exact")

    engine.independence_test(np.array([[50, 50], [20, 80]]))
    assert spy.call_count == 0

    engine.independence_test(np.array([[3, 1], [1, 3]]))
    assert spy.call_count == 1
