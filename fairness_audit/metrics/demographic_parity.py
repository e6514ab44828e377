"""
Fairness Audit - Demographic Parity

Equality of selection rate across the groups of each protected attribute:
- Parity ratio (min rate / max rate) and parity difference (max - min)
- Standard deviation of group rates
- Chi-square significance (Fisher's exact fallback)
- Disparate impact under the four-fifths rule

Usage:
    calculator = DemographicParityCalculator(config)
    result = calculator.run(inputs)

    gender = result.get_attribute("gender")
    print(gender.summary["parity_ratio"], gender.compliance)
"""

from __future__ import annotations

import logging
from typing import Any

import numpy as np

from fairness_audit.metrics.base import (
    AttributeMetric,
    ComplianceTier,
    GroupStats,
    MetricCalculator,
    MetricComputationError,
    MetricInputs,
    MetricResult,
    MetricType,
    ok_scores,
    worst_tier,
)
from fairness_audit.partitioning.group_partitioner import GroupPartition

logger = logging.getLogger(__name__)


class DemographicParityCalculator(MetricCalculator):
    """
    Demographic parity per protected attribute.

    An attribute is compliant when its parity ratio reaches the compliant
    threshold, its parity difference stays within the allowed maximum and
    the disparity is not statistically significant.
    """

    metric_type = MetricType.DEMOGRAPHIC_PARITY
    description = "Measures whether selection rates are equal across demographic groups"

    def calculate(self, inputs: MetricInputs) -> MetricResult:
        attributes = self.per_attribute(
            inputs.partitions,
            lambda name, partition: self._attribute_parity(name, partition, inputs.outcomes),
        )

        scores = ok_scores(attributes)
        score = float(np.mean(scores))
        tier = worst_tier(a.compliance for a in attributes if a.is_ok)

        return MetricResult(
            metric=self.metric_type,
            description=self.description,
            score=score,
            compliance=tier,
            interpretation=interpret_parity(min(scores)),
            summary={
                "average_parity_ratio": score,
                "min_parity_ratio": min(scores),
                "max_parity_difference": max(
                    a.summary["parity_difference"] for a in attributes if a.is_ok
                ),
                "four_fifths_violations": sum(
                    len(a.details["disparate_impact"]["violations"]) for a in attributes if a.is_ok
                ),
            },
            attributes=tuple(attributes),
        )

    # =========================================================================
    # Private Methods
    # =========================================================================

    def _attribute_parity(
        self,
        attribute: str,
        partition: GroupPartition,
        outcomes: np.ndarray,
    ) -> AttributeMetric:
        if len(partition) < 2:
            raise MetricComputationError(
                self.metric_type,
                f"parity ratio undefined: '{attribute}' has only {len(partition)} group",
            )

        groups = self.group_stats(partition, outcomes)
        rates = np.array([g.selection_rate for g in groups])
        max_rate = rates.max()
        if max_rate == 0:
            raise MetricComputationError(
                self.metric_type,
                f"parity ratio undefined: no candidate in any '{attribute}' group was selected",
            )

        parity_ratio = float(rates.min() / max_rate)
        parity_difference = float(max_rate - rates.min())
        rate_std = float(rates.std())

        test = self.independence_test(partition, outcomes)
        significant = self.is_significant(test)

        if (
            parity_ratio >= self.thresholds.compliant
            and parity_difference <= self.thresholds.parity_max_difference
            and not significant
        ):
            tier = ComplianceTier.COMPLIANT
        elif parity_ratio >= self.thresholds.monitoring:
            tier = ComplianceTier.REQUIRES_MONITORING
        else:
            tier = ComplianceTier.REQUIRES_INTERVENTION

        logger.debug(
            f"Demographic parity for '{attribute}': ratio={parity_ratio:.3f}, "
            f"difference={parity_difference:.3f}",
            extra={"attribute": attribute, "parity_ratio": parity_ratio, "tier": str(tier)},
        )

        return AttributeMetric(
            attribute=attribute,
            score=parity_ratio,
            compliance=tier,
            interpretation=interpret_parity(parity_ratio),
            groups=tuple(groups),
            summary={
                "parity_ratio": parity_ratio,
                "parity_difference": parity_difference,
                "selection_rate_std": rate_std,
                "p_value": test.p_value,
                "significant": significant,
            },
            test=test,
            details={"disparate_impact": self._disparate_impact(groups, max_rate)},
        )

    def _disparate_impact(self, groups: list[GroupStats], max_rate: float) -> dict[str, Any]:
        """Impact ratio of each group against the highest-rate group."""
        reference = max(groups, key=lambda g: g.selection_rate)
        impact_ratios = {g.key: g.selection_rate / max_rate for g in groups}

        violations = []
        for key, ratio in impact_ratios.items():
            if ratio < self.thresholds.four_fifths_ratio:
                violations.append(
                    {
                        "group": key,
                        "impact_ratio": ratio,
                        "severity": disparate_impact_severity(ratio),
                    }
                )

        return {
            "reference_group": reference.key,
            "impact_ratios": impact_ratios,
            "violations": violations,
            "passes_four_fifths_rule": not violations,
        }


def interpret_parity(parity_ratio: float) -> str:
    if parity_ratio >= 0.8:
        return "Selection rates are reasonably balanced across groups"
    elif parity_ratio >= 0.6:
        return "Moderate disparity in selection rates detected"
    return "Significant disparity in selection rates - intervention recommended"


def disparate_impact_severity(impact_ratio: float) -> str:
    if impact_ratio < 0.6:
        return "critical"
    elif impact_ratio < 0.7:
        return "major"
    return "moderate"
