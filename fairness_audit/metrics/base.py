"""
Fairness Audit - Metric Base Types

Shared result types and the calculator base class for the seven fairness
metrics. Every calculator is pure: it receives read-only MetricInputs and
returns a new MetricResult. A calculator whose preconditions are unmet
raises MetricComputationError, which ``MetricCalculator.run`` turns into an
explicit failed result instead of propagating. Unexpected errors are logged
with their traceback and recorded as failed results the same way.

Usage:
    class MyCalculator(MetricCalculator):
        metric_type = MetricType.DEMOGRAPHIC_PARITY
        description = "..."

        def calculate(self, inputs: MetricInputs) -> MetricResult:
            ...

    result = MyCalculator(config).run(inputs)
    if not result.is_ok:
        print(result.error)
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import StrEnum
from functools import partial
from typing import Any

import numpy as np
import pandas as pd
from fairlearn.metrics import (
    MetricFrame,
    count,
    false_positive_rate,
    selection_rate,
    true_positive_rate,
)

from fairness_audit.partitioning.group_partitioner import GroupPartition
from fairness_audit.shared.config import Settings, get_config
from fairness_audit.shared.records import FeatureRecord
from fairness_audit.similarity.similarity_engine import SimilarityEngine, SimilarityMatrix
from fairness_audit.statistics.significance_tests import (
    StatisticalTestEngine,
    StatisticalTestResult,
    build_contingency_table,
)

logger = logging.getLogger(__name__)


class MetricType(StrEnum):
    """Fairness metric type."""

    DEMOGRAPHIC_PARITY = "demographic_parity"
    EQUALIZED_ODDS = "equalized_odds"
    PREDICTIVE_EQUALITY = "predictive_equality"
    CALIBRATION = "calibration"
    INDIVIDUAL_FAIRNESS = "individual_fairness"
    COUNTERFACTUAL_FAIRNESS = "counterfactual_fairness"
    INTERSECTIONAL_FAIRNESS = "intersectional_fairness"


class MetricStatus(StrEnum):
    """Whether a metric could be computed."""

    OK = "ok"
    FAILED = "failed"


class ComplianceTier(StrEnum):
    """Compliance tier, ordered from best to worst."""

    COMPLIANT = "compliant"
    REQUIRES_MONITORING = "requires_monitoring"
    REQUIRES_INTERVENTION = "requires_intervention"


_TIER_ORDER = {
    ComplianceTier.COMPLIANT: 0,
    ComplianceTier.REQUIRES_MONITORING: 1,
    ComplianceTier.REQUIRES_INTERVENTION: 2,
}


def classify_score(
    score: float,
    compliant: float,
    monitoring: float,
    significant: bool = False,
) -> ComplianceTier:
    """
    Map a score in [0, 1] to a compliance tier.

    A statistically significant disparity keeps a score out of the
    compliant tier.
    """
    if score >= compliant and not significant:
        return ComplianceTier.COMPLIANT
    elif score >= monitoring:
        return ComplianceTier.REQUIRES_MONITORING
    return ComplianceTier.REQUIRES_INTERVENTION


def worst_tier(tiers: Iterable[ComplianceTier]) -> ComplianceTier:
    """Most severe tier of several (compliant if none are given)."""
    return max(tiers, key=_TIER_ORDER.__getitem__, default=ComplianceTier.COMPLIANT)


def clip_unit(value: float) -> float:
    """Clip a score to [0, 1]."""
    return float(min(1.0, max(0.0, value)))


# =============================================================================
# Result Types
# =============================================================================


@dataclass(frozen=True)
class GroupStats:
    """Per-group statistics of one metric."""

    key: str
    size: int
    selected: int
    selection_rate: float
    confidence_interval: tuple[float, float] | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result = {
            "key": self.key,
            "size": self.size,
            "selected": self.selected,
            "selection_rate": self.selection_rate,
            "confidence_interval": list(self.confidence_interval)
            if self.confidence_interval is not None
            else None,
        }
        result.update(self.extra)
        return result


@dataclass(frozen=True)
class AttributeMetric:
    """Metric outcome for one protected attribute (or intersection)."""

    attribute: str
    status: MetricStatus = MetricStatus.OK
    score: float | None = None
    compliance: ComplianceTier | None = None
    interpretation: str = ""
    groups: tuple[GroupStats, ...] = ()
    summary: Mapping[str, Any] = field(default_factory=dict)
    test: StatisticalTestResult | None = None
    details: Mapping[str, Any] = field(default_factory=dict)
    error: str | None = None

    @property
    def is_ok(self) -> bool:
        return self.status == MetricStatus.OK

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "attribute": self.attribute,
            "status": str(self.status),
            "score": self.score,
            "compliance": str(self.compliance) if self.compliance else None,
            "interpretation": self.interpretation,
            "groups": [group.to_dict() for group in self.groups],
            "summary": dict(self.summary),
            "statistical_test": self.test.to_dict() if self.test else None,
            "details": dict(self.details),
            "error": self.error,
        }


@dataclass(frozen=True)
class MetricResult:
    """Result of one fairness metric."""

    metric: MetricType
    description: str
    status: MetricStatus = MetricStatus.OK
    score: float | None = None
    compliance: ComplianceTier | None = None
    interpretation: str = ""
    summary: Mapping[str, Any] = field(default_factory=dict)
    attributes: tuple[AttributeMetric, ...] = ()
    evidence: tuple[Mapping[str, Any], ...] = ()
    notes: tuple[str, ...] = ()
    error: str | None = None
    duration_ms: float = 0.0

    @property
    def is_ok(self) -> bool:
        return self.status == MetricStatus.OK and self.score is not None

    def get_attribute(self, name: str) -> AttributeMetric | None:
        """Get the per-attribute result for ``name``."""
        for attribute in self.attributes:
            if attribute.attribute == name:
                return attribute
        return None

    @classmethod
    def failed(
        cls,
        metric: MetricType,
        description: str,
        error: str,
        attributes: Sequence[AttributeMetric] = (),
        notes: Sequence[str] = (),
    ) -> MetricResult:
        """Build an explicit failed marker."""
        return cls(
            metric=metric,
            description=description,
            status=MetricStatus.FAILED,
            interpretation="Calculation failed - manual review required",
            attributes=tuple(attributes),
            notes=tuple(notes),
            error=error,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "metric": str(self.metric),
            "description": self.description,
            "status": str(self.status),
            "score": self.score,
            "compliance": str(self.compliance) if self.compliance else None,
            "interpretation": self.interpretation,
            "summary": dict(self.summary),
            "attributes": {a.attribute: a.to_dict() for a in self.attributes},
            "evidence": [dict(item) for item in self.evidence],
            "notes": list(self.notes),
            "error": self.error,
            "duration_ms": round(self.duration_ms, 3),
        }


@dataclass(frozen=True)
class MetricInputs:
    """Read-only inputs shared by every calculator of one invocation."""

    candidates: Sequence[FeatureRecord]
    outcomes: np.ndarray  # bool, one per candidate
    partitions: Mapping[str, GroupPartition]
    intersectional: GroupPartition | None = None
    similarity: SimilarityMatrix | None = None
    ground_truth: np.ndarray | None = None

    @property
    def n(self) -> int:
        return len(self.outcomes)

    @property
    def has_ground_truth(self) -> bool:
        return self.ground_truth is not None


# =============================================================================
# Calculator Base Class
# =============================================================================


class MetricCalculator(ABC):
    """
    Abstract base class for fairness metric calculators.

    Subclasses must set ``metric_type`` and ``description`` and implement
    ``calculate()``.
    """

    metric_type: MetricType
    description: str

    def __init__(
        self,
        config: Settings | None = None,
        statistics: StatisticalTestEngine | None = None,
        similarity: SimilarityEngine | None = None,
    ):
        """
        Initialize the calculator.

        Args:
            config: Configuration object (uses default if not provided)
            statistics: Shared statistical test engine
            similarity: Shared similarity engine
        """
        self.config = config or get_config()
        self.thresholds = self.config.thresholds
        self.significance_level = self.config.statistics.significance_level
        self.statistics = statistics or StatisticalTestEngine(self.config)
        self.similarity = similarity or SimilarityEngine(self.config)

    @abstractmethod
    def calculate(self, inputs: MetricInputs) -> MetricResult:
        """
        Compute the metric.

        Raises:
            MetricComputationError: If the metric's preconditions are unmet
        """
        pass

    def run(self, inputs: MetricInputs) -> MetricResult:
        """
        Compute the metric, converting any error raised by ``calculate()``
        into a failed result.
        """
        start_time = time.perf_counter()

        try:
            result = self.calculate(inputs)
        except MetricComputationError as e:
            logger.warning(
                f"{self.metric_type} could not be computed: {e.message}",
                extra={"metric": str(self.metric_type), "error": e.message},
            )
            result = MetricResult.failed(
                self.metric_type,
                self.description,
                e.message,
                attributes=e.attributes,
            )
        except Exception as e:
            logger.exception(
                f"{self.metric_type} raised an unexpected error: {e}",
                extra={"metric": str(self.metric_type), "error_type": type(e).__name__},
            )
            result = MetricResult.failed(
                self.metric_type,
                self.description,
                f"unexpected {type(e).__name__}: {e}",
            )

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(
            f"{self.metric_type} finished in {duration_ms:.1f}ms (status: {result.status})",
            extra={"metric": str(self.metric_type), "score": result.score},
        )

        return _with_duration(result, duration_ms)

    # =========================================================================
    # Shared helpers
    # =========================================================================

    def group_stats(self, partition: GroupPartition, outcomes: np.ndarray) -> list[GroupStats]:
        """Selection statistics per group, in partition order."""
        table = selection_table(partition, outcomes)
        stats = []
        for key, row in table.iterrows():
            size = int(row["count"])
            selected = int(round(row["selection_rate"] * size))
            stats.append(
                GroupStats(
                    key=str(key),
                    size=size,
                    selected=selected,
                    selection_rate=float(row["selection_rate"]),
                    confidence_interval=self.statistics.proportion_interval(selected, size),
                )
            )
        return stats

    def independence_test(self, partition: GroupPartition, outcomes: np.ndarray) -> StatisticalTestResult:
        """Chi-square (or Fisher fallback) test of group vs. outcome."""
        return self.statistics.independence_test(build_contingency_table(partition, outcomes))

    def is_significant(self, test: StatisticalTestResult | None) -> bool:
        return test is not None and test.is_completed and test.p_value <= self.significance_level

    def similarity_matrix(self, inputs: MetricInputs) -> SimilarityMatrix:
        """The shared similarity matrix, or a freshly built one."""
        if inputs.similarity is not None:
            return inputs.similarity
        return self.similarity.build_matrix(inputs.candidates)

    def per_attribute(
        self,
        partitions: Mapping[str, GroupPartition],
        compute: Callable[[str, GroupPartition], AttributeMetric],
    ) -> list[AttributeMetric]:
        """
        Apply ``compute`` to every attribute, recovering per-attribute failures.

        Raises:
            MetricComputationError: If no attribute could be computed
        """
        if not partitions:
            raise MetricComputationError(self.metric_type, "no protected attributes supplied")

        results = []
        for name, partition in partitions.items():
            try:
                results.append(compute(name, partition))
            except MetricComputationError as e:
                logger.debug(
                    f"{self.metric_type} skipped attribute '{name}': {e.message}",
                    extra={"metric": str(self.metric_type), "attribute": name},
                )
                results.append(
                    AttributeMetric(attribute=name, status=MetricStatus.FAILED, error=e.message)
                )

        if not any(result.is_ok for result in results):
            errors = "; ".join(f"{r.attribute}: {r.error}" for r in results)
            raise MetricComputationError(self.metric_type, errors, attributes=results)

        return results


# =============================================================================
# Exception Classes
# =============================================================================


class MetricComputationError(Exception):
    """Raised when a metric's preconditions are unmet."""

    def __init__(
        self,
        metric: MetricType,
        message: str,
        attributes: Sequence[AttributeMetric] = (),
    ):
        self.metric = metric
        self.message = message
        self.attributes = tuple(attributes)
        super().__init__(f"{metric} failed: {message}")


# =============================================================================
# Helpers
# =============================================================================


def selection_table(partition: GroupPartition, outcomes: np.ndarray) -> pd.DataFrame:
    """
    Per-group selection rate and count via Fairlearn's MetricFrame.

    Indexed by group key, in partition order.
    """
    y = np.asarray(outcomes, dtype=int)
    mf = MetricFrame(
        metrics={"selection_rate": selection_rate, "count": count},
        y_true=y,
        y_pred=y,  # Decision-level check, so y_true == y_pred
        sensitive_features=pd.Series(partition.labels, name=partition.attribute, dtype=object),
    )
    return mf.by_group.reindex(partition.keys)


def error_rate_table(
    partition: GroupPartition,
    outcomes: np.ndarray,
    ground_truth: np.ndarray,
) -> pd.DataFrame:
    """
    Per-group true / false positive rates of the selection decision against
    an independent ground-truth signal.

    Rates are NaN for groups with no actual positives (TPR) or no actual
    negatives (FPR).
    """
    y_pred = np.asarray(outcomes, dtype=int)
    y_true = np.asarray(ground_truth, dtype=int)
    sensitive = pd.Series(partition.labels, name=partition.attribute, dtype=object)

    mf = MetricFrame(
        metrics={
            "true_positive_rate": partial(true_positive_rate, pos_label=1),
            "false_positive_rate": partial(false_positive_rate, pos_label=1),
        },
        y_true=y_true,
        y_pred=y_pred,
        sensitive_features=sensitive,
    )
    table = mf.by_group.reindex(partition.keys).astype(float)

    support = pd.DataFrame({"positive": y_true, "group": sensitive.values}).groupby("group")["positive"]
    positives = support.sum().reindex(partition.keys)
    negatives = support.count().reindex(partition.keys) - positives

    table["positives"] = positives.values
    table["negatives"] = negatives.values
    table.loc[table["positives"] == 0, "true_positive_rate"] = np.nan
    table.loc[table["negatives"] == 0, "false_positive_rate"] = np.nan
    return table


def rate_spread(rates: Sequence[float]) -> float | None:
    """Max - min of the defined rates, or None with fewer than two."""
    values = np.asarray(rates, dtype=float)
    values = values[~np.isnan(values)]
    if len(values) < 2:
        return None
    return float(values.max() - values.min())


def ok_scores(attributes: Iterable[AttributeMetric]) -> list[float]:
    return [a.score for a in attributes if a.is_ok and a.score is not None]


def _with_duration(result: MetricResult, duration_ms: float) -> MetricResult:
    return replace(result, duration_ms=duration_ms)


def none_if_nan(value: float | None) -> float | None:
    """Map NaN to None so results stay JSON-serializable."""
    return None if value is None or np.isnan(value) else float(value)


def max_defined(values: Iterable[float | None]) -> float | None:
    defined = [v for v in values if v is not None]
    return max(defined) if defined else None


def upper_pairs(mask: np.ndarray, start: int) -> tuple[np.ndarray, np.ndarray]:
    """
    Candidate index pairs (i, j) with i < j set in a row-block mask.

    Each unordered pair is reported once, from the block holding its lower
    index.
    """
    rows, cols = np.nonzero(mask)
    rows = rows + start
    keep = rows < cols
    return rows[keep], cols[keep]
