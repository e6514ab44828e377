"""
Fairness Audit - Similarity Engine

Pairwise candidate similarity for individual and counterfactual fairness:
- Jaccard similarity of skill sets
- Normalized distance on total experience
- Ordinal distance on education level

Pairwise similarity is the weighted average of the feature kinds present on
both candidates. The n x n matrix is stored as one flat array addressed as
``i * n + j``; rows are computed in independent blocks on a thread pool.
Above ``max_matrix_candidates`` the matrix is never materialized and rows are
streamed block by block instead, bounding memory to ``block_size * n``.

Usage:
    engine = SimilarityEngine(config)

    matrix = engine.build_matrix(candidates)
    matrix.at(0, 1)  # similarity of candidates 0 and 1

    for start, block in matrix.row_blocks():
        ...  # block[r, j] is the similarity of candidate start + r and j
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import numpy as np
from scipy import sparse

from fairness_audit.shared.config import Settings, get_config
from fairness_audit.shared.records import FeatureRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EncodedFeatures:
    """Candidate features encoded as arrays, one row per candidate."""

    skills: sparse.csr_matrix  # n x vocabulary membership
    skill_counts: np.ndarray
    has_skills: np.ndarray
    experience: np.ndarray  # NaN where missing
    education: np.ndarray  # NaN where missing

    @property
    def n(self) -> int:
        return len(self.experience)


class SimilarityMatrix:
    """
    Read-only n x n similarity matrix.

    Either materialized into a flat buffer, or streamed: rows are then
    recomputed on demand from the encoded features.
    """

    def __init__(
        self,
        engine: SimilarityEngine,
        features: EncodedFeatures,
        values: np.ndarray | None = None,
    ):
        self._engine = engine
        self._features = features
        self._values = values
        if values is not None:
            values.setflags(write=False)

    @property
    def n(self) -> int:
        return self._features.n

    @property
    def is_materialized(self) -> bool:
        return self._values is not None

    def at(self, i: int, j: int) -> float:
        """Similarity of candidates ``i`` and ``j``."""
        if self._values is not None:
            return float(self._values[i * self.n + j])
        return float(self._engine.compute_rows(self._features, i, i + 1)[0, j])

    def row(self, i: int) -> np.ndarray:
        """Similarities of candidate ``i`` to every candidate."""
        if self._values is not None:
            return self._values[i * self.n : (i + 1) * self.n]
        return self._engine.compute_rows(self._features, i, i + 1)[0]

    def row_blocks(self, block_size: int | None = None) -> Iterator[tuple[int, np.ndarray]]:
        """
        Iterate over consecutive row blocks.

        Yields:
            (start, block) where ``block`` has shape (rows, n)
        """
        n = self.n
        size = block_size or self._engine.row_block_size
        for start in range(0, n, size):
            stop = min(start + size, n)
            if self._values is not None:
                yield start, self._values[start * n : stop * n].reshape(stop - start, n)
            else:
                yield start, self._engine.compute_rows(self._features, start, stop)

    def to_array(self) -> np.ndarray:
        """Dense (n, n) view. Only for materialized matrices."""
        if self._values is None:
            raise ValueError("Similarity matrix is streamed; use row_blocks() instead")
        return self._values.reshape(self.n, self.n)


class SimilarityEngine:
    """
    Compute pairwise candidate similarity.

    Feature kinds missing on either candidate of a pair are left out of that
    pair's weighted average. A pair sharing no feature kind has similarity 0.
    """

    def __init__(self, config: Settings | None = None):
        """
        Initialize similarity engine.

        Args:
            config: Configuration object (uses default if not provided)
        """
        self.config = config or get_config()
        sim = self.config.similarity

        self.threshold = sim.threshold
        self.weights = (sim.weights.skills, sim.weights.experience, sim.weights.education)
        self.experience_scale = sim.experience_scale_years
        self.education_levels = sim.education_levels
        self.unknown_education_level = sim.unknown_education_level
        self.max_education_level = sim.max_education_level
        self.max_matrix_candidates = sim.max_matrix_candidates
        self.row_block_size = sim.row_block_size
        self.max_workers = self.config.engine.max_workers

    def encode(self, candidates: Sequence[FeatureRecord]) -> EncodedFeatures:
        """Encode candidate features into arrays."""
        n = len(candidates)
        vocabulary: dict[str, int] = {}
        rows: list[int] = []
        cols: list[int] = []
        has_skills = np.zeros(n, dtype=bool)
        experience = np.full(n, np.nan)
        education = np.full(n, np.nan)

        for i, record in enumerate(candidates):
            if record.skills is not None:
                has_skills[i] = True
                for skill in record.skills:
                    rows.append(i)
                    cols.append(vocabulary.setdefault(skill, len(vocabulary)))
            if record.total_experience is not None:
                experience[i] = record.total_experience
            if record.education_level is not None:
                education[i] = self.education_levels.get(
                    record.education_level, self.unknown_education_level
                )

        skills = sparse.csr_matrix(
            (np.ones(len(rows), dtype=np.float64), (rows, cols)),
            shape=(n, max(len(vocabulary), 1)),
        )
        skill_counts = np.asarray(skills.sum(axis=1)).ravel()

        return EncodedFeatures(
            skills=skills,
            skill_counts=skill_counts,
            has_skills=has_skills,
            experience=experience,
            education=education,
        )

    def compute_rows(self, features: EncodedFeatures, start: int, stop: int) -> np.ndarray:
        """
        Similarity of candidates ``start..stop-1`` to every candidate.

        Returns:
            Array of shape (stop - start, n)
        """
        w_skills, w_experience, w_education = self.weights
        numerator = np.zeros((stop - start, features.n))
        denominator = np.zeros_like(numerator)

        # Skills: Jaccard
        if w_skills > 0:
            intersection = (features.skills[start:stop] @ features.skills.T).toarray()
            union = (
                features.skill_counts[start:stop, None] + features.skill_counts[None, :] - intersection
            )
            with np.errstate(divide="ignore", invalid="ignore"):
                jaccard = np.where(union > 0, intersection / union, 1.0)
            present = features.has_skills[start:stop, None] & features.has_skills[None, :]
            numerator += np.where(present, w_skills * jaccard, 0.0)
            denominator += np.where(present, w_skills, 0.0)

        # Experience: 1 - |diff| / scale, floored at 0
        if w_experience > 0:
            diff = np.abs(features.experience[start:stop, None] - features.experience[None, :])
            present = ~np.isnan(diff)
            closeness = np.clip(1.0 - np.nan_to_num(diff) / self.experience_scale, 0.0, 1.0)
            numerator += np.where(present, w_experience * closeness, 0.0)
            denominator += np.where(present, w_experience, 0.0)

        # Education: ordinal distance
        if w_education > 0:
            diff = np.abs(features.education[start:stop, None] - features.education[None, :])
            present = ~np.isnan(diff)
            closeness = np.clip(1.0 - np.nan_to_num(diff) / self.max_education_level, 0.0, 1.0)
            numerator += np.where(present, w_education * closeness, 0.0)
            denominator += np.where(present, w_education, 0.0)

        with np.errstate(divide="ignore", invalid="ignore"):
            block = np.where(denominator > 0, numerator / denominator, 0.0)

        # Self-similarity
        rows = np.arange(stop - start)
        block[rows, rows + start] = 1.0

        return block

    def build_matrix(
        self,
        candidates: Sequence[FeatureRecord],
        materialize: bool | None = None,
    ) -> SimilarityMatrix:
        """
        Build the similarity matrix for a candidate pool.

        Args:
            candidates: Candidate feature records
            materialize: Force (or forbid) materializing the flat buffer.
                Defaults to materializing up to ``max_matrix_candidates``.

        Returns:
            SimilarityMatrix
        """
        features = self.encode(candidates)
        n = features.n

        if materialize is None:
            materialize = n <= self.max_matrix_candidates

        if not materialize:
            logger.info(
                f"Streaming similarity rows for {n} candidates "
                f"(ceiling {self.max_matrix_candidates})",
                extra={"candidate_count": n, "ceiling": self.max_matrix_candidates},
            )
            return SimilarityMatrix(self, features)

        values = np.empty(n * n)
        starts = list(range(0, n, self.row_block_size))

        def fill(start: int) -> None:
            stop = min(start + self.row_block_size, n)
            values[start * n : stop * n] = self.compute_rows(features, start, stop).ravel()

        if len(starts) > 1 and self.max_workers > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                list(executor.map(fill, starts))
        else:
            for start in starts:
                fill(start)

        logger.debug(
            f"Built {n}x{n} similarity matrix",
            extra={"candidate_count": n, "blocks": len(starts)},
        )

        return SimilarityMatrix(self, features, values)

    def pairwise_similarity(self, a: FeatureRecord, b: FeatureRecord) -> float:
        """Similarity of two candidates."""
        features = self.encode([a, b])
        return float(self.compute_rows(features, 0, 1)[0, 1])

    def similar_mask(self, block: np.ndarray, start: int) -> np.ndarray:
        """Boolean mask of pairs at or above the threshold, excluding self-pairs."""
        mask = block >= self.threshold - 1e-12
        rows = np.arange(block.shape[0])
        mask[rows, rows + start] = False
        return mask


# =============================================================================
# Convenience Functions
# =============================================================================


def build_similarity_matrix(
    candidates: Sequence[FeatureRecord],
    config: Settings | None = None,
) -> SimilarityMatrix:
    """Convenience function to build a similarity matrix."""
    return SimilarityEngine(config).build_matrix(candidates)
