"""
Fairness Audit - Aggregator / Compliance Classifier

Combine per-metric results into the audit verdict:
- Overall fairness score (mean of successfully computed metric scores)
- Compliance tier from the overall score and statistical significance
- Rule-based remediation recommendations
- Bias indicators (failing metrics, four-fifths violations, significant
  attributes, inconsistent candidate pairs)

Metrics in a failed state are excluded from the score, never counted as
zero.

Usage:
    aggregator = FairnessAggregator(config)
    verdict = aggregator.aggregate(metrics, statistical_tests)

    print(verdict.overall_fairness_score, verdict.compliance_status)
    for recommendation in verdict.recommendations:
        print(f"- {recommendation}")
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import numpy as np

from fairness_audit.metrics.base import (
    ComplianceTier,
    MetricResult,
    MetricType,
    classify_score,
)
from fairness_audit.shared.config import Settings, get_config
from fairness_audit.statistics.significance_tests import StatisticalTestSuite

logger = logging.getLogger(__name__)

SATISFACTORY = "Fairness metrics appear satisfactory - continue monitoring"
STANDING_RECOMMENDATIONS = (
    "Regular fairness audits recommended",
    "Consider implementing bias mitigation strategies",
)

# Metric -> remediation suggested when its score falls below the cut-off
METRIC_RECOMMENDATIONS = {
    MetricType.DEMOGRAPHIC_PARITY: (
        "Consider reviewing selection criteria to improve demographic parity"
    ),
    MetricType.EQUALIZED_ODDS: (
        "Evaluate assessment methods for potential bias in accuracy across groups"
    ),
    MetricType.PREDICTIVE_EQUALITY: (
        "Review rejection decisions for groups with elevated false positive rates"
    ),
    MetricType.CALIBRATION: (
        "Recalibrate match scores so that predicted scores track actual outcomes for every group"
    ),
    MetricType.INDIVIDUAL_FAIRNESS: "Review consistency of decisions for similar candidates",
    MetricType.COUNTERFACTUAL_FAIRNESS: (
        "Investigate decisions that differ between similar candidates from different groups"
    ),
    MetricType.INTERSECTIONAL_FAIRNESS: (
        "Analyze outcomes for intersectional groups to identify potential compound bias"
    ),
}


class IndicatorSeverity(StrEnum):
    """Bias indicator severity."""

    INFO = "info"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class BiasIndicator:
    """One human-readable sign of potential bias."""

    kind: str  # e.g., "metric_tier", "four_fifths_violation", "inconsistent_pair"
    severity: IndicatorSeverity
    message: str
    metric: MetricType | None = None
    attribute: str | None = None
    details: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "kind": self.kind,
            "severity": str(self.severity),
            "message": self.message,
            "metric": str(self.metric) if self.metric else None,
            "attribute": self.attribute,
            "details": dict(self.details),
        }


@dataclass(frozen=True)
class AggregateResult:
    """Verdict derived from all metric results."""

    overall_fairness_score: float | None
    compliance_status: ComplianceTier
    successful_metrics: tuple[MetricType, ...] = ()
    failed_metrics: tuple[MetricType, ...] = ()
    recommendations: tuple[str, ...] = ()
    bias_indicators: tuple[BiasIndicator, ...] = ()

    @property
    def is_compliant(self) -> bool:
        return self.compliance_status == ComplianceTier.COMPLIANT


class FairnessAggregator:
    """
    Aggregate metric results into a score, tier, and recommendations.

    Stateless: every call works only on its arguments.
    """

    def __init__(self, config: Settings | None = None):
        """
        Initialize aggregator.

        Args:
            config: Configuration object (uses default if not provided)
        """
        self.config = config or get_config()
        self.thresholds = self.config.thresholds
        self.max_evidence_items = self.config.reporting.max_evidence_items

    def aggregate(
        self,
        metrics: Mapping[MetricType, MetricResult],
        statistical_tests: StatisticalTestSuite,
    ) -> AggregateResult:
        """
        Aggregate metric results.

        Args:
            metrics: Metric type -> result (failed results included)
            statistical_tests: Significance tests for every attribute

        Returns:
            AggregateResult
        """
        successful = tuple(m for m, r in metrics.items() if r.is_ok)
        failed = tuple(m for m, r in metrics.items() if not r.is_ok)

        score = self.overall_score(metrics)
        compliance = self.classify(score, statistical_tests.overall_significant)

        result = AggregateResult(
            overall_fairness_score=score,
            compliance_status=compliance,
            successful_metrics=successful,
            failed_metrics=failed,
            recommendations=tuple(self.generate_recommendations(metrics, statistical_tests)),
            bias_indicators=tuple(self.detect_bias_indicators(metrics, statistical_tests)),
        )

        logger.info(
            f"Aggregated {len(successful)} metrics ({len(failed)} failed): "
            f"score={score if score is None else round(score, 4)}, compliance={compliance}",
            extra={
                "overall_fairness_score": score,
                "compliance_status": str(compliance),
                "failed_metrics": [str(m) for m in failed],
            },
        )

        return result

    def overall_score(self, metrics: Mapping[MetricType, MetricResult]) -> float | None:
        """Mean of the successfully computed metric scores, or None if there are none."""
        scores = [r.score for r in metrics.values() if r.is_ok]
        if not scores:
            return None
        return float(np.clip(np.mean(scores), 0.0, 1.0))

    def classify(self, score: float | None, significant: bool) -> ComplianceTier:
        """
        Compliance tier for an overall score.

        With no computable metric there is nothing to vouch for compliance,
        so the audit requires intervention (manual review).
        """
        if score is None:
            return ComplianceTier.REQUIRES_INTERVENTION
        return classify_score(
            score,
            self.thresholds.compliant,
            self.thresholds.monitoring,
            significant=significant,
        )

    def generate_recommendations(
        self,
        metrics: Mapping[MetricType, MetricResult],
        statistical_tests: StatisticalTestSuite,
    ) -> list[str]:
        """
        Rule-based recommendations.

        Each metric below its cut-off adds its remediation. When none does,
        a single "satisfactory" line is added. The standing recommendations
        always close the list.
        """
        recommendations = []

        for metric, result in metrics.items():
            if result.is_ok and result.score < self._recommendation_cutoff(metric):
                recommendations.append(METRIC_RECOMMENDATIONS[metric])

        if not recommendations:
            recommendations.append(SATISFACTORY)

        if statistical_tests.significant_attributes:
            attributes = ", ".join(statistical_tests.significant_attributes)
            recommendations.append(
                f"Investigate statistically significant outcome differences by {attributes}"
            )

        violating = self._four_fifths_groups(metrics.get(MetricType.DEMOGRAPHIC_PARITY))
        if violating:
            recommendations.append(
                "Address four-fifths rule violations for: "
                + ", ".join(f"{attribute}={group}" for attribute, group, _ in violating)
            )

        failed = [str(m) for m, r in metrics.items() if not r.is_ok]
        if failed:
            recommendations.append(
                f"Manual review required for metrics that could not be computed: {', '.join(failed)}"
            )

        recommendations.extend(STANDING_RECOMMENDATIONS)
        return recommendations

    def detect_bias_indicators(
        self,
        metrics: Mapping[MetricType, MetricResult],
        statistical_tests: StatisticalTestSuite,
    ) -> list[BiasIndicator]:
        """Collect bias indicators, most severe kinds first."""
        indicators = []

        for metric, result in metrics.items():
            if not result.is_ok:
                indicators.append(
                    BiasIndicator(
                        kind="metric_failed",
                        severity=IndicatorSeverity.INFO,
                        message=f"{metric} could not be computed: {result.error}",
                        metric=metric,
                    )
                )
            elif result.compliance != ComplianceTier.COMPLIANT:
                indicators.append(
                    BiasIndicator(
                        kind="metric_tier",
                        severity=IndicatorSeverity.HIGH
                        if result.compliance == ComplianceTier.REQUIRES_INTERVENTION
                        else IndicatorSeverity.MEDIUM,
                        message=f"{metric} {result.compliance} (score {result.score:.3f})",
                        metric=metric,
                        details={"score": result.score, "compliance": str(result.compliance)},
                    )
                )

        for attribute, group, violation in self._four_fifths_groups(
            metrics.get(MetricType.DEMOGRAPHIC_PARITY)
        ):
            indicators.append(
                BiasIndicator(
                    kind="four_fifths_violation",
                    severity=IndicatorSeverity(
                        {"critical": "critical", "major": "high"}.get(violation["severity"], "medium")
                    ),
                    message=(
                        f"{attribute}={group} selected at {violation['impact_ratio']:.0%} of the "
                        f"highest-rate group's rate"
                    ),
                    metric=MetricType.DEMOGRAPHIC_PARITY,
                    attribute=attribute,
                    details=violation,
                )
            )

        for attribute in statistical_tests.significant_attributes:
            test = statistical_tests.attributes[attribute]
            indicators.append(
                BiasIndicator(
                    kind="significant_difference",
                    severity=IndicatorSeverity.HIGH,
                    message=(
                        f"Outcome depends on {attribute} (p={test.combined_p_value:.4g}, "
                        f"adjusted alpha={statistical_tests.adjusted_alpha:.4g})"
                    ),
                    attribute=attribute,
                    details={
                        "p_value": test.combined_p_value,
                        "adjusted_p_value": test.adjusted_p_value,
                    },
                )
            )

        pairs = 0
        for metric in (MetricType.COUNTERFACTUAL_FAIRNESS, MetricType.INDIVIDUAL_FAIRNESS):
            result = metrics.get(metric)
            if result is None or not result.is_ok:
                continue
            for item in result.evidence:
                if pairs >= self.max_evidence_items:
                    break
                pairs += 1
                indicators.append(
                    BiasIndicator(
                        kind=item["type"],
                        severity=IndicatorSeverity.MEDIUM,
                        message=_describe_pair(item),
                        metric=metric,
                        attribute=item.get("attribute"),
                        details=item,
                    )
                )

        return indicators

    # =========================================================================
    # Private Methods
    # =========================================================================

    def _recommendation_cutoff(self, metric: MetricType) -> float:
        if metric == MetricType.INTERSECTIONAL_FAIRNESS:
            return self.thresholds.intersectional_recommendation
        return self.thresholds.recommendation

    def _four_fifths_groups(
        self, result: MetricResult | None
    ) -> list[tuple[str, str, dict[str, Any]]]:
        if result is None or not result.is_ok:
            return []
        groups = []
        for attribute in result.attributes:
            if not attribute.is_ok:
                continue
            for violation in attribute.details["disparate_impact"]["violations"]:
                groups.append((attribute.attribute, violation["group"], violation))
        return groups


def _describe_pair(item: Mapping[str, Any]) -> str:
    outcomes = f"{_outcome(item['outcome_a'])} vs {_outcome(item['outcome_b'])}"
    if "attribute" in item:
        return (
            f"Candidates {item['candidate_a']} ({item['attribute']}={item['group_a']}) and "
            f"{item['candidate_b']} ({item['attribute']}={item['group_b']}) are "
            f"{item['similarity']:.0%} similar but were {outcomes}"
        )
    return (
        f"Candidates {item['candidate_a']} and {item['candidate_b']} are "
        f"{item['similarity']:.0%} similar but were {outcomes}"
    )


def _outcome(selected: bool) -> str:
    return "selected" if selected else "rejected"
