"""
Fairness Audit - Aggregation Module

Overall score, compliance tier, recommendations and bias indicators.
"""

from fairness_audit.aggregation.aggregator import (
    STANDING_RECOMMENDATIONS,
    AggregateResult,
    BiasIndicator,
    FairnessAggregator,
    IndicatorSeverity,
)

__all__ = [
    "STANDING_RECOMMENDATIONS",
    "AggregateResult",
    "BiasIndicator",
    "FairnessAggregator",
    "IndicatorSeverity",
]
