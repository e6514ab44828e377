"""
Fairness Audit - Statistics Module

Significance testing of group membership vs. outcome.
"""

from fairness_audit.statistics.significance_tests import (
    AttributeSignificance,
    StatisticalTestEngine,
    StatisticalTestPreconditionError,
    StatisticalTestResult,
    StatisticalTestSuite,
    ResultStatus,
    build_contingency_table,
    interpret_cramers_v,
)

__all__ = [
    "AttributeSignificance",
    "StatisticalTestEngine",
    "StatisticalTestPreconditionError",
    "StatisticalTestResult",
    "StatisticalTestSuite",
    "ResultStatus",
    "build_contingency_table",
    "interpret_cramers_v",
]
