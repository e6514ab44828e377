"""
Fairness Audit - Pytest Configuration and Fixtures

Shared fixtures for all tests:
- Configuration fixtures
- Synthetic candidate pools
"""

import os
from collections.abc import Generator
from pathlib import Path
from typing import Any

import numpy as np
import pytest

# Set test environment
os.environ["FA_ENVIRONMENT"] = "dev"

# =============================================================================
# Path Fixtures
# =============================================================================


@pytest.fixture
def project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def configs_dir(project_root: Path) -> Path:
    """Get the configs directory."""
    return project_root / "configs"


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def test_config() -> Any:
    """Get test configuration."""
    from fairness_audit.shared.config import get_config, reload_config

    # Ensure fresh config for tests
    reload_config("dev")
    return get_config("dev")


# =============================================================================
# Data Fixtures
# =============================================================================


@pytest.fixture
def candidate_pool() -> dict[str, Any]:
    """
    200 synthetic candidates with two protected attributes.

    Selection depends on skills and experience only, so groups differ in
    rate by chance alone.
    """
    from fairness_audit.shared.records import FeatureRecord

    rng = np.random.default_rng(42)
    skills_pool = ["python", "sql", "java", "go", "excel", "spark", "react", "docker"]
    degrees = ["high_school", "associate", "bachelor", "master", "phd"]

    candidates = []
    outcomes = []
    for _ in range(200):
        skills = frozenset(rng.choice(skills_pool, size=rng.integers(1, 5), replace=False))
        experience = float(rng.integers(0, 15))
        candidates.append(
            FeatureRecord(
                skills=skills,
                total_experience=experience,
                education_level=str(rng.choice(degrees)),
                match_score=float(rng.uniform(0, 1)),
            )
        )
        outcomes.append(bool(len(skills) >= 3 or experience >= 10))

    return {
        "candidates": candidates,
        "outcomes": outcomes,
        "protected_attributes": {
            "gender": list(rng.choice(["F", "M"], size=200)),
            "age_band": list(rng.choice(["<30", "30-49", "50+"], size=200)),
        },
    }


@pytest.fixture
def metric_inputs(test_config: Any) -> Any:
    """Factory building MetricInputs the way the engine does."""
    from fairness_audit.metrics.base import MetricInputs
    from fairness_audit.partitioning.group_partitioner import GroupPartitioner
    from fairness_audit.shared.records import FeatureRecord
    from fairness_audit.similarity.similarity_engine import SimilarityEngine

    def _build(
        outcomes: list[bool],
        protected_attributes: dict[str, list[Any]],
        candidates: list[Any] | None = None,
        ground_truth: list[bool] | None = None,
    ) -> MetricInputs:
        if candidates is None:
            candidates = [FeatureRecord() for _ in outcomes]
        partitioner = GroupPartitioner(test_config)
        return MetricInputs(
            candidates=candidates,
            outcomes=np.asarray(outcomes, dtype=bool),
            partitions=partitioner.partition_all(protected_attributes),
            intersectional=partitioner.partition_intersectional(protected_attributes)
            if protected_attributes
            else None,
            similarity=SimilarityEngine(test_config).build_matrix(candidates),
            ground_truth=np.asarray(ground_truth, dtype=bool) if ground_truth is not None else None,
        )

    return _build


# =============================================================================
# Cleanup Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def cleanup_env() -> Generator[None, None, None]:
    """Clean up environment variables after each test."""
    original_env = os.environ.copy()
    yield
    # Restore original environment
    os.environ.clear()
    os.environ.update(original_env)
