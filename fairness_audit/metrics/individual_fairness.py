"""
Fairness Audit - Individual Fairness

Similar candidates should receive similar outcomes. For each candidate,
every other candidate at or above the similarity threshold is a peer;
consistency is the fraction of peers sharing the candidate's outcome.
The score is the mean consistency over candidates with at least one peer.

Rows of the similarity matrix are consumed block by block, so the metric
works the same on a materialized or a streamed matrix.

Usage:
    calculator = IndividualFairnessCalculator(config)
    result = calculator.run(inputs)
    print(result.summary["candidates_without_peers"])
"""

from __future__ import annotations

import logging

import numpy as np

from fairness_audit.metrics.base import (
    MetricCalculator,
    MetricComputationError,
    MetricInputs,
    MetricResult,
    MetricType,
    classify_score,
    upper_pairs,
)

logger = logging.getLogger(__name__)


class IndividualFairnessCalculator(MetricCalculator):
    """Outcome consistency among similar candidates."""

    metric_type = MetricType.INDIVIDUAL_FAIRNESS
    description = "Measures whether similar individuals receive similar treatment"

    def calculate(self, inputs: MetricInputs) -> MetricResult:
        matrix = self.similarity_matrix(inputs)
        y = np.asarray(inputs.outcomes, dtype=bool)
        selected = y.astype(float)
        max_evidence = self.config.reporting.max_evidence_items

        consistency = np.full(matrix.n, np.nan)
        inconsistent_pairs = 0
        evidence = []

        for start, block in matrix.row_blocks():
            stop = start + block.shape[0]
            mask = self.similarity.similar_mask(block, start)
            own = y[start:stop]

            peers = mask.sum(axis=1)
            selected_peers = mask.astype(float) @ selected
            matches = np.where(own, selected_peers, peers - selected_peers)
            with np.errstate(divide="ignore", invalid="ignore"):
                consistency[start:stop] = np.where(peers > 0, matches / peers, np.nan)

            rows, cols = upper_pairs(mask & (own[:, None] != y[None, :]), start)
            inconsistent_pairs += len(rows)
            for i, j in zip(rows, cols):
                if len(evidence) >= max_evidence:
                    break
                evidence.append(
                    {
                        "type": "inconsistent_similar_pair",
                        "candidate_a": int(i),
                        "candidate_b": int(j),
                        "similarity": float(block[i - start, j]),
                        "outcome_a": bool(y[i]),
                        "outcome_b": bool(y[j]),
                    }
                )

        evaluated = ~np.isnan(consistency)
        if not evaluated.any():
            raise MetricComputationError(
                self.metric_type,
                f"no candidate has a similar peer at threshold {self.similarity.threshold}",
            )

        score = float(consistency[evaluated].mean())
        tier = classify_score(score, self.thresholds.compliant, self.thresholds.monitoring)

        logger.debug(
            f"Individual fairness: {int(evaluated.sum())} candidates with peers, "
            f"{inconsistent_pairs} inconsistent pairs",
            extra={"score": score, "streamed": not matrix.is_materialized},
        )

        return MetricResult(
            metric=self.metric_type,
            description=self.description,
            score=score,
            compliance=tier,
            interpretation=interpret_individual(score),
            summary={
                "average_consistency": score,
                "similarity_threshold": self.similarity.threshold,
                "evaluated_candidates": int(evaluated.sum()),
                "candidates_without_peers": int((~evaluated).sum()),
                "inconsistent_pairs": inconsistent_pairs,
                "streamed": not matrix.is_materialized,
            },
            evidence=tuple(evidence),
        )


def interpret_individual(score: float) -> str:
    if score >= 0.8:
        return "Similar individuals receive consistent treatment"
    elif score >= 0.6:
        return "Some inconsistency in treatment of similar individuals"
    return "Significant inconsistency in individual treatment"
