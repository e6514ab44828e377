"""
Fairness Audit - Equalized Odds

Equality of true-positive and false-positive rates across groups.

Without a ground-truth signal the selection decision is the only outcome
available, so selection rate stands in for the true-positive rate and
rejection rate for the false-positive rate. Every proxy result says so in
its summary (``proxy: True``) and notes. When ground truth is supplied the
real rates are computed with Fairlearn's MetricFrame.

Usage:
    calculator = EqualizedOddsCalculator(config)
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
    "No ground-truth outcome was supplied: selection rate is used as a proxy for the "
    "true-positive rate and rejection rate as a proxy for the false-positive rate. "
    "Treat these results as an approximation of equalized odds."
)


class EqualizedOddsCalculator(MetricCalculator):
    """Equalized odds per protected attribute: score = 1 - max(TPR spread, FPR spread)."""

    metric_type = MetricType.EQUALIZED_ODDS
    description = "Measures whether true and false positive rates are equal across groups"

    def calculate(self, inputs: MetricInputs) -> MetricResult:
        proxy = not inputs.has_ground_truth
        attributes = self.per_attribute(
            inputs.partitions,
            lambda name, partition: self._attribute_odds(name, partition, inputs),
        )

        ok = [a for a in attributes if a.is_ok]
        score = float(np.mean(ok_scores(attributes)))
        max_difference = max(a.summary["max_difference"] for a in ok)

        return MetricResult(
            metric=self.metric_type,
            description=self.description,
            score=score,
            compliance=worst_tier(a.compliance for a in ok),
            interpretation=interpret_odds(max_difference),
            summary={
                "average_score": score,
                "max_tpr_difference": max_defined(a.summary["tpr_difference"] for a in ok),
                "max_fpr_difference": max_defined(a.summary["fpr_difference"] for a in ok),
                "proxy": proxy,
            },
            attributes=tuple(attributes),
            notes=(PROXY_NOTE,) if proxy else (),
        )

    # =========================================================================
    # Private Methods
    # =========================================================================

    def _attribute_odds(
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
        if inputs.has_ground_truth:
            table = error_rate_table(partition, inputs.outcomes, inputs.ground_truth)
            tpr = table["true_positive_rate"].tolist()
            fpr = table["false_positive_rate"].tolist()
        else:
            tpr = [g.selection_rate for g in groups]
            fpr = [1.0 - g.selection_rate for g in groups]

        tpr_difference = rate_spread(tpr)
        fpr_difference = rate_spread(fpr)
        defined = [d for d in (tpr_difference, fpr_difference) if d is not None]
        if not defined:
            raise MetricComputationError(
                self.metric_type,
                f"error rates undefined for '{attribute}': fewer than two groups have "
                f"both positive and negative ground-truth outcomes",
            )

        max_difference = max(defined)
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
                extra={
                    "true_positive_rate": none_if_nan(t),
                    "false_positive_rate": none_if_nan(f),
                },
            )
            for g, t, f in zip(groups, tpr, fpr)
        ]

        return AttributeMetric(
            attribute=attribute,
            score=score,
            compliance=tier,
            interpretation=interpret_odds(max_difference),
            groups=tuple(groups),
            summary={
                "tpr_difference": tpr_difference,
                "fpr_difference": fpr_difference,
                "max_difference": max_difference,
                "p_value": test.p_value,
                "proxy": not inputs.has_ground_truth,
            },
            test=test,
        )


def interpret_odds(max_difference: float) -> str:
    if max_difference <= 0.1:
        return "Accuracy rates are well-balanced across groups"
    elif max_difference <= 0.2:
        return "Moderate differences in accuracy across groups"
    return "Significant accuracy disparities detected"

