"""
Fairness Audit - Predictive Equality

Equality of false-positive rate across groups, together with the spread
of rejection rates. Shares the proxy limitation of equalized odds: without
ground truth the false-positive rate is approximated by the rejection rate.

Usage:
    calculator = PredictiveEqualityCalculator(config)
    result = calculator.run(inputs)
"""

from __future__ import annotations

import logging
from dataclasses import replace

import numpy as np

from fairness_audit.metrics.base import (
    AttributeMetric,
    MetricCalculator,
    MetricComputationError,
    MetricInputs,
    MetricResult,
    MetricType,
    classify_score,
    clip_unit,
    error_rate_table,
    max_defined,
    none_if_nan,
    ok_scores,
    rate_spread,
    worst_tier,
)
from fairness_audit.partitioning.group_partitioner import GroupPartition

logger = logging.getLogger(__name__)

PROXY_NOTE = (
    "No ground-truth outcome was supplied: rejection rate is used as a proxy for the "
    "false-positive rate. Treat these results as an approximation of predictive equality."
)


class PredictiveEqualityCalculator(MetricCalculator):
    """Predictive equality: score = 1 - max(FPR spread, rejection-rate spread)."""

    metric_type = MetricType.PREDICTIVE_EQUALITY
    description = "Measures whether false positive rates are equal across groups"

    def calculate(self, inputs: MetricInputs) -> MetricResult:
        proxy = not inputs.has_ground_truth
        attributes = self.per_attribute(
            inputs.partitions,
            lambda name, partition: self._attribute_equality(name, partition, inputs),
        )

        ok = [a for a in attributes if a.is_ok]
        score = float(np.mean(ok_scores(attributes)))

        return MetricResult(
            metric=self.metric_type,
            description=self.description,
            score=score,
            compliance=worst_tier(a.compliance for a in ok),
            interpretation=interpret_equality(max(a.summary["max_difference"] for a in ok)),
            summary={
                "average_score": score,
                "max_fpr_difference": max_defined(a.summary["fpr_difference"] for a in ok),
                "max_rejection_rate_difference": max(
                    a.summary["rejection_rate_difference"] for a in ok
                ),
                "proxy": proxy,
            },
            attributes=tuple(attributes),
            notes=(PROXY_NOTE,) if proxy else (),
        )

    # =========================================================================
    # Private Methods
    # =========================================================================

    def _attribute_equality(
        self,
        attribute: str,
        partition: GroupPartition,
        inputs: MetricInputs,
    ) -> AttributeMetric:
        if len(partition) < 2:
            raise MetricComputationError(
                self.metric_type, f"'{attribute}' has only {len(partition)} group"
            )

        groups = self.group_stats(partition, inputs.outcomes)
        rejection = [1.0 - g.selection_rate for g in groups]
        if inputs.has_ground_truth:
            table = error_rate_table(partition, inputs.outcomes, inputs.ground_truth)
            fpr = table["false_positive_rate"].tolist()
        else:
            fpr = rejection

        rejection_difference = rate_spread(rejection)
        fpr_difference = rate_spread(fpr)
        max_difference = max(d for d in (fpr_difference, rejection_difference) if d is not None)
        score = clip_unit(1.0 - max_difference)

        test = self.independence_test(partition, inputs.outcomes)
        tier = classify_score(
            score,
            self.thresholds.compliant,
            self.thresholds.monitoring,
            significant=self.is_significant(test),
        )

        groups = [
            replace(
                g,
                extra={"false_positive_rate": none_if_nan(f), "rejection_rate": r},
            )
            for g, f, r in zip(groups, fpr, rejection)
        ]

        return AttributeMetric(
            attribute=attribute,
            score=score,
            compliance=tier,
            interpretation=interpret_equality(max_difference),
            groups=tuple(groups),
            summary={
                "fpr_difference": fpr_difference,
                "rejection_rate_difference": rejection_difference,
                "max_difference": max_difference,
                "p_value": test.p_value,
                "proxy": not inputs.has_ground_truth,
            },
            test=test,
        )


def interpret_equality(max_difference: float) -> str:
    if max_difference <= 0.1:
        return "False positive rates are balanced across groups"
    elif max_difference <= 0.2:
        return "Moderate differences in false positive rates"
    return "Significant disparities in false positive rates"
