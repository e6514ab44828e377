"""
Fairness Audit - Calibration

Agreement between the candidate match score and the observed selection
rate, per group. Scores are binned into fixed-width deciles; each
non-empty bin contributes |bin midpoint - actual selection rate|, weighted
by its population, to the group's calibration error.

Candidates without a match score are left out of the bins and counted in
the group's ``unscored`` total.

Usage:
    calculator = CalibrationCalculator(config)
    result = calculator.run(inputs)
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

import numpy as np
import pandas as pd

from fairness_audit.metrics.base import (
    AttributeMetric,
    MetricCalculator,
    MetricComputationError,
    MetricInputs,
    MetricResult,
    MetricType,
    classify_score,
    clip_unit,
    ok_scores,
    worst_tier,
)
from fairness_audit.partitioning.group_partitioner import GroupPartition

logger = logging.getLogger(__name__)

NUM_BINS = 10
BIN_WIDTH = 1.0 / NUM_BINS


def score_bins(scores: np.ndarray) -> np.ndarray:
    """Decile bin index of each score; a score of exactly 1.0 goes to the last bin."""
    bins = np.floor(np.asarray(scores, dtype=float) * NUM_BINS + 1e-9).astype(int)
    return np.clip(bins, 0, NUM_BINS - 1)


def calibration_error(bins: pd.DataFrame) -> float:
    """Population-weighted mean |midpoint - actual rate| over non-empty bins."""
    total = bins["count"].sum()
    if total == 0:
        return 0.0
    return float((bins["count"] * (bins["midpoint"] - bins["actual_rate"]).abs()).sum() / total)


class CalibrationCalculator(MetricCalculator):
    """Calibration per protected attribute: score = 1 - max group calibration error."""

    metric_type = MetricType.CALIBRATION
    description = "Measures whether predicted scores match actual outcomes across groups"

    def calculate(self, inputs: MetricInputs) -> MetricResult:
        scores = np.array(
            [np.nan if c.match_score is None else c.match_score for c in inputs.candidates],
            dtype=float,
        )
        scored = ~np.isnan(scores)
        if not scored.any():
            raise MetricComputationError(self.metric_type, "no candidate carries a match score")

        attributes = self.per_attribute(
            inputs.partitions,
            lambda name, partition: self._attribute_calibration(
                name, partition, inputs.outcomes, scores
            ),
        )

        ok = [a for a in attributes if a.is_ok]
        score = float(np.mean(ok_scores(attributes)))
        max_error = max(a.summary["max_calibration_error"] for a in ok)

        return MetricResult(
            metric=self.metric_type,
            description=self.description,
            score=score,
            compliance=worst_tier(a.compliance for a in ok),
            interpretation=interpret_calibration(max_error),
            summary={
                "average_score": score,
                "max_calibration_error": max_error,
                "scored_candidates": int(scored.sum()),
                "unscored_candidates": int((~scored).sum()),
            },
            attributes=tuple(attributes),
        )

    # =========================================================================
    # Private Methods
    # =========================================================================

    def _attribute_calibration(
        self,
        attribute: str,
        partition: GroupPartition,
        outcomes: np.ndarray,
        scores: np.ndarray,
    ) -> AttributeMetric:
        scored = ~np.isnan(scores)
        df = pd.DataFrame(
            {
                "group": np.asarray(partition.labels, dtype=object)[scored],
                "bin": score_bins(scores[scored]),
                "score": scores[scored],
                "selected": np.asarray(outcomes, dtype=bool)[scored],
            }
        )

        binned = (
            df.groupby(["group", "bin"])
            .agg(count=("selected", "size"), actual_rate=("selected", "mean"))
            .reset_index()
        )
        binned["lower"] = binned["bin"] * BIN_WIDTH
        binned["upper"] = binned["lower"] + BIN_WIDTH
        binned["midpoint"] = binned["lower"] + BIN_WIDTH / 2
        average_scores = df.groupby("group")["score"].mean()

        groups = []
        errors = {}
        for stats in self.group_stats(partition, outcomes):
            group_bins = binned[binned["group"] == stats.key]
            extra: dict[str, Any] = {"unscored": stats.size - int(group_bins["count"].sum())}
            if len(group_bins):
                errors[stats.key] = calibration_error(group_bins)
                extra.update(
                    {
                        "calibration_error": errors[stats.key],
                        "average_score": float(average_scores[stats.key]),
                        "bins": [_bin_to_dict(row) for _, row in group_bins.iterrows()],
                    }
                )
            groups.append(replace(stats, extra=extra))

        if not errors:
            raise MetricComputationError(
                self.metric_type, f"no '{attribute}' group has a scored candidate"
            )

        max_error = max(errors.values())
        score = clip_unit(1.0 - max_error)
        tier = classify_score(score, self.thresholds.compliant, self.thresholds.monitoring)

        return AttributeMetric(
            attribute=attribute,
            score=score,
            compliance=tier,
            interpretation=interpret_calibration(max_error),
            groups=tuple(groups),
            summary={
                "max_calibration_error": max_error,
                "calibration_difference": max_error - min(errors.values()),
                "calibrated_groups": len(errors),
            },
        )


def _bin_to_dict(row: pd.Series) -> dict[str, Any]:
    return {
        "range": [round(float(row["lower"]), 2), round(float(row["upper"]), 2)],
        "count": int(row["count"]),
        "midpoint": round(float(row["midpoint"]), 2),
        "actual_rate": float(row["actual_rate"]),
        "error": abs(float(row["midpoint"]) - float(row["actual_rate"])),
    }


def interpret_calibration(max_error: float) -> str:
    if max_error <= 0.1:
        return "Predictions are well-calibrated across groups"
    elif max_error <= 0.2:
        return "Moderate calibration differences detected"
    return "Significant calibration issues identified"
