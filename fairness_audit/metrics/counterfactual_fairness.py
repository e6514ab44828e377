"""
Fairness Audit - Counterfactual Fairness (similarity heuristic)

Would a candidate's outcome change if only their protected attribute
changed? This is approximated by nearest-neighbour substitution over the
empirical candidate pool: for each candidate and each category other than
their own, the similar candidates in that category stand in for the
counterfactual, and consistency is the fraction of them whose outcome
matches the candidate's. It is a heuristic, not a causal model, and every
result carries a note saying so.

Usage:
    calculator = CounterfactualFairnessCalculator(config)
    result = calculator.run(inputs)

    for pair in result.evidence:
        print(pair["attribute"], pair["candidate_a"], pair["candidate_b"])
"""

from __future__ import annotations

import logging
from typing import Any

import numpy as np

from fairness_audit.metrics.base import (
    AttributeMetric,
    MetricCalculator,
    MetricComputationError,
    MetricInputs,
    MetricResult,
    MetricType,
    classify_score,
    ok_scores,
    upper_pairs,
    worst_tier,
)
from fairness_audit.partitioning.group_partitioner import GroupPartition
from fairness_audit.similarity.similarity_engine import SimilarityMatrix

logger = logging.getLogger(__name__)

HEURISTIC_NOTE = (
    "Counterfactual fairness is estimated by comparing each candidate with similar "
    "candidates from other protected-attribute categories. It is a similarity-based "
    "heuristic, not causal inference."
)


class CounterfactualFairnessCalculator(MetricCalculator):
    """Outcome consistency against similar candidates from other categories."""

    metric_type = MetricType.COUNTERFACTUAL_FAIRNESS
    description = "Measures fairness in hypothetical scenarios with different protected attributes"

    def calculate(self, inputs: MetricInputs) -> MetricResult:
        matrix = self.similarity_matrix(inputs)
        evidence: list[dict[str, Any]] = []

        attributes = self.per_attribute(
            inputs.partitions,
            lambda name, partition: self._attribute_consistency(
                name, partition, inputs.outcomes, matrix, evidence
            ),
        )

        ok = [a for a in attributes if a.is_ok]
        score = float(np.mean(ok_scores(attributes)))

        return MetricResult(
            metric=self.metric_type,
            description=self.description,
            score=score,
            compliance=worst_tier(a.compliance for a in ok),
            interpretation=interpret_counterfactual(score),
            summary={
                "average_consistency": score,
                "similarity_threshold": self.similarity.threshold,
                "inconsistent_pairs": sum(a.summary["inconsistent_pairs"] for a in ok),
                "heuristic": True,
                "streamed": not matrix.is_materialized,
            },
            attributes=tuple(attributes),
            evidence=tuple(evidence),
            notes=(HEURISTIC_NOTE,),
        )

    # =========================================================================
    # Private Methods
    # =========================================================================

    def _attribute_consistency(
        self,
        attribute: str,
        partition: GroupPartition,
        outcomes: np.ndarray,
        matrix: SimilarityMatrix,
        evidence: list[dict[str, Any]],
    ) -> AttributeMetric:
        if len(partition) < 2:
            raise MetricComputationError(
                self.metric_type,
                f"'{attribute}' has only {len(partition)} category, so no alternate exists",
            )

        y = np.asarray(outcomes, dtype=bool)
        codes = partition.codes()
        keys = partition.keys
        k = len(partition)

        # One-hot membership, and membership restricted to selected candidates
        members = np.zeros((matrix.n, k))
        members[np.arange(matrix.n), codes] = 1.0
        selected_members = members * y[:, None]

        max_evidence = self.config.reporting.max_evidence_items
        fraction_sum = 0.0
        comparisons = 0
        with_counterparts = 0
        inconsistent_pairs = 0

        for start, block in matrix.row_blocks():
            stop = start + block.shape[0]
            mask = self.similarity.similar_mask(block, start)
            weights = mask.astype(float)

            alternates = weights @ members  # (b, k) similar candidates per category
            alternates_selected = weights @ selected_members
            own = y[start:stop, None]
            matches = np.where(own, alternates_selected, alternates - alternates_selected)

            valid = alternates > 0
            valid[np.arange(stop - start), codes[start:stop]] = False
            with np.errstate(divide="ignore", invalid="ignore"):
                fractions = np.where(valid, matches / alternates, 0.0)

            fraction_sum += float(fractions.sum())
            comparisons += int(valid.sum())
            with_counterparts += int(valid.any(axis=1).sum())

            flipped = mask & (codes[start:stop, None] != codes[None, :]) & (own != y[None, :])
            rows, cols = upper_pairs(flipped, start)
            inconsistent_pairs += len(rows)
            for i, j in zip(rows, cols):
                if len(evidence) >= max_evidence:
                    break
                evidence.append(
                    {
                        "type": "counterfactual_inconsistency",
                        "attribute": attribute,
                        "candidate_a": int(i),
                        "candidate_b": int(j),
                        "group_a": keys[codes[i]],
                        "group_b": keys[codes[j]],
                        "similarity": float(block[i - start, j]),
                        "outcome_a": bool(y[i]),
                        "outcome_b": bool(y[j]),
                    }
                )

        if comparisons == 0:
            raise MetricComputationError(
                self.metric_type,
                f"no candidate has a similar counterpart in another '{attribute}' category",
            )

        consistency = fraction_sum / comparisons
        tier = classify_score(consistency, self.thresholds.compliant, self.thresholds.monitoring)

        logger.debug(
            f"Counterfactual consistency for '{attribute}': {consistency:.3f}",
            extra={"attribute": attribute, "comparisons": comparisons},
        )

        return AttributeMetric(
            attribute=attribute,
            score=consistency,
            compliance=tier,
            interpretation=interpret_counterfactual(consistency),
            summary={
                "consistency": consistency,
                "comparisons": comparisons,
                "candidates_with_counterparts": with_counterparts,
                "inconsistent_pairs": inconsistent_pairs,
            },
        )


def interpret_counterfactual(score: float) -> str:
    if score >= 0.8:
        return "Decisions appear robust to counterfactual scenarios"
    elif score >= 0.6:
        return "Some sensitivity to protected attribute changes"
    return "High sensitivity to protected attribute changes"
