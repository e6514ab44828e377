"""
Fairness Audit - Intersectional Fairness

Selection-rate balance across combinations of protected attributes
(e.g. gender x age band), where compound bias can hide from
single-attribute metrics. Score = 1 - coefficient of variation of the
intersectional group rates.

Usage:
    calculator = IntersectionalFairnessCalculator(config)
    result = calculator.run(inputs)  # uses inputs.intersectional
"""

from __future__ import annotations

import logging

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
)
from fairness_audit.partitioning.group_partitioner import GroupPartitioner

logger = logging.getLogger(__name__)


class IntersectionalFairnessCalculator(MetricCalculator):
    """Selection-rate dispersion across intersectional groups."""

    metric_type = MetricType.INTERSECTIONAL_FAIRNESS
    description = "Measures fairness across combinations of protected attributes"

    def calculate(self, inputs: MetricInputs) -> MetricResult:
        partition = inputs.intersectional
        if partition is None:
            if not inputs.partitions:
                raise MetricComputationError(self.metric_type, "no protected attributes supplied")
            partition = GroupPartitioner(self.config).partition_intersectional(
                {name: p.labels for name, p in inputs.partitions.items()}
            )

        if len(partition) < 2:
            raise MetricComputationError(
                self.metric_type,
                f"only {len(partition)} intersectional group present",
            )

        groups = self.group_stats(partition, inputs.outcomes)
        rates = np.array([g.selection_rate for g in groups])
        mean_rate = rates.mean()
        if mean_rate == 0:
            raise MetricComputationError(
                self.metric_type,
                "coefficient of variation undefined: no candidate in any intersectional group "
                "was selected",
            )

        max_rate = rates.max()
        parity_ratio = float(rates.min() / max_rate)
        parity_difference = float(max_rate - rates.min())
        coefficient_of_variation = float(rates.std() / mean_rate)
        score = clip_unit(1.0 - coefficient_of_variation)

        test = self.independence_test(partition, inputs.outcomes)
        tier = classify_score(
            score,
            self.thresholds.intersectional_compliant,
            self.thresholds.intersectional_monitoring,
        )

        lowest = min(groups, key=lambda g: g.selection_rate)
        highest = max(groups, key=lambda g: g.selection_rate)

        summary = {
            "intersectional_parity_ratio": parity_ratio,
            "intersectional_parity_difference": parity_difference,
            "coefficient_of_variation": coefficient_of_variation,
            "group_count": len(groups),
            "attributes": list(partition.attributes),
            "lowest_rate_group": lowest.key,
            "highest_rate_group": highest.key,
            "p_value": test.p_value,
        }

        logger.debug(
            f"Intersectional fairness over {len(groups)} groups: CV={coefficient_of_variation:.3f}",
            extra={"attributes": list(partition.attributes), "score": score},
        )

        return MetricResult(
            metric=self.metric_type,
            description=self.description,
            score=score,
            compliance=tier,
            interpretation=interpret_intersectional(score),
            summary=summary,
            attributes=(
                AttributeMetric(
                    attribute=partition.attribute,
                    score=score,
                    compliance=tier,
                    interpretation=interpret_intersectional(score),
                    groups=tuple(groups),
                    summary=summary,
                    test=test,
                ),
            ),
        )


def interpret_intersectional(score: float) -> str:
    if score >= 0.7:
        return "Intersectional groups show balanced outcomes"
    elif score >= 0.5:
        return "Some disparities across intersectional groups"
    return "Significant intersectional disparities detected"
