"""
Fairness Audit - Metrics Module

The seven fairness metric calculators and their shared result types.
"""

from fairness_audit.metrics.base import (
    AttributeMetric,
    ComplianceTier,
    GroupStats,
    MetricCalculator,
    MetricComputationError,
    MetricInputs,
    MetricResult,
    MetricStatus,
    MetricType,
    classify_score,
    worst_tier,
)
from fairness_audit.metrics.calibration import CalibrationCalculator
from fairness_audit.metrics.counterfactual_fairness import CounterfactualFairnessCalculator
from fairness_audit.metrics.demographic_parity import DemographicParityCalculator
from fairness_audit.metrics.equalized_odds import EqualizedOddsCalculator
from fairness_audit.metrics.individual_fairness import IndividualFairnessCalculator
from fairness_audit.metrics.intersectional_fairness import IntersectionalFairnessCalculator
from fairness_audit.metrics.predictive_equality import PredictiveEqualityCalculator

# Calculation order in reports
CALCULATORS = (
    DemographicParityCalculator,
    EqualizedOddsCalculator,
    PredictiveEqualityCalculator,
    CalibrationCalculator,
    IndividualFairnessCalculator,
    CounterfactualFairnessCalculator,
    IntersectionalFairnessCalculator,
)

__all__ = [
    "CALCULATORS",
    "AttributeMetric",
    "CalibrationCalculator",
    "ComplianceTier",
    "CounterfactualFairnessCalculator",
    "DemographicParityCalculator",
    "EqualizedOddsCalculator",
    "GroupStats",
    "IndividualFairnessCalculator",
    "IntersectionalFairnessCalculator",
    "MetricCalculator",
    "MetricComputationError",
    "MetricInputs",
    "MetricResult",
    "MetricStatus",
    "MetricType",
    "PredictiveEqualityCalculator",
    "classify_score",
    "worst_tier",
]
