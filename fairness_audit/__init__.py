"""
Fairness Audit

Fairness-metrics engine for auditing hiring-pipeline outcomes across
protected attributes.
"""

from fairness_audit.engine import FairnessEngine, compute_fairness_report
from fairness_audit.metrics import ComplianceTier, MetricComputationError, MetricResult, MetricType
from fairness_audit.reporting import FairnessReport
from fairness_audit.shared import (
    EducationLevel,
    FairnessContext,
    FeatureRecord,
    ProcessType,
    Settings,
    TimePeriod,
    get_config,
)
from fairness_audit.statistics import StatisticalTestPreconditionError
from fairness_audit.validation import ValidationError

__version__ = "0.1.0"

__all__ = [
    "ComplianceTier",
    "EducationLevel",
    "FairnessContext",
    "FairnessEngine",
    "FairnessReport",
    "FeatureRecord",
    "MetricComputationError",
    "MetricResult",
    "MetricType",
    "ProcessType",
    "Settings",
    "StatisticalTestPreconditionError",
    "TimePeriod",
    "ValidationError",
    "compute_fairness_report",
    "get_config",
]
