"""
Fairness Audit - Configuration Loader

Pydantic-based configuration management with:
- Environment-based configuration (dev/prod)
- YAML file loading with inheritance
- Environment variable overrides
- Type validation via Pydantic

Usage:
    from fairness_audit.shared.config import get_config

    config = get_config()  # Uses FA_ENVIRONMENT env var
    config = get_config("dev")  # Explicit environment

    # Access config values
    threshold = config.similarity.threshold
    alpha = config.statistics.significance_level
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# =============================================================================
# Configuration Models
# =============================================================================


class ProjectConfig(BaseModel):
    """Project metadata configuration."""

    name: str = "hiring-fairness-audit"
    version: str = "0.1.0"
    description: str = "Fairness metrics engine for hiring-pipeline audits"


class EngineConfig(BaseModel):
    """Engine-wide settings."""

    calculation_version: str = "1.0"
    max_workers: int = Field(default=4, ge=1)
    small_sample_threshold: int = 10
    adequate_sample_size: int = 30


class SimilarityWeightsConfig(BaseModel):
    """Relative weight of each feature kind in pairwise similarity."""

    skills: float = Field(default=1.0, ge=0.0)
    experience: float = Field(default=1.0, ge=0.0)
    education: float = Field(default=1.0, ge=0.0)


class SimilarityConfig(BaseModel):
    """Similarity engine configuration."""

    threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    weights: SimilarityWeightsConfig = Field(default_factory=SimilarityWeightsConfig)
    experience_scale_years: float = Field(default=10.0, gt=0.0)
    education_levels: dict[str, int] = Field(
        default_factory=lambda: {
            "high_school": 1,
            "associate": 2,
            "bachelor": 3,
            "master": 4,
            "doctorate": 5,
            "phd": 5,
        }
    )
    unknown_education_level: int = 2
    max_education_level: int = 5
    max_matrix_candidates: int = Field(default=5000, ge=2)
    row_block_size: int = Field(default=512, ge=1)


class StatisticsConfig(BaseModel):
    """Statistical test engine configuration."""

    significance_level: float = Field(default=0.05, gt=0.0, lt=1.0)
    permutation_iterations: int = Field(default=1000, ge=1)
    permutation_batch_size: int = Field(default=200, ge=1)
    permutation_timeout_seconds: float | None = None
    random_seed: int | None = 42
    min_expected_count: float = 5.0
    max_exact_tables: int = 200_000
    confidence_level: float = Field(default=0.95, gt=0.0, lt=1.0)


class ThresholdsConfig(BaseModel):
    """Compliance tier and recommendation cut-offs."""

    compliant: float = 0.8
    monitoring: float = 0.6
    parity_max_difference: float = 0.2
    intersectional_compliant: float = 0.7
    intersectional_monitoring: float = 0.5
    four_fifths_ratio: float = 0.8
    recommendation: float = 0.8
    intersectional_recommendation: float = 0.7


class ReportingConfig(BaseModel):
    """Report assembly configuration."""

    max_evidence_items: int = Field(default=50, ge=0)


# =============================================================================
# Main Settings Class
# =============================================================================


class Settings(BaseSettings):
    """
    Main configuration class for the fairness engine.

    Loads configuration from:
    1. YAML files in configs/environments/
    2. Environment variables

    Environment variables fill in any value the YAML files leave unset.
    """

    model_config = SettingsConfigDict(
        env_prefix="FA_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Environment
    environment: Literal["dev", "prod"] = "dev"

    # Configuration sections
    project: ProjectConfig = Field(default_factory=ProjectConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    similarity: SimilarityConfig = Field(default_factory=SimilarityConfig)
    statistics: StatisticsConfig = Field(default_factory=StatisticsConfig)
    thresholds: ThresholdsConfig = Field(default_factory=ThresholdsConfig)
    reporting: ReportingConfig = Field(default_factory=ReportingConfig)

    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        valid_envs = {"dev", "prod"}
        if v not in valid_envs:
            raise ValueError(f"Invalid environment: {v}. Must be one of: {valid_envs}")
        return v


# =============================================================================
# Configuration Loading Functions
# =============================================================================


def _get_config_dir() -> Path | None:
    """Get the configuration directory path, or None when none is present."""
    # Try relative path from the repository root
    config_dir = Path(__file__).parent.parent.parent / "configs"
    if config_dir.exists():
        return config_dir

    # Try from current working directory
    config_dir = Path.cwd() / "configs"
    if config_dir.exists():
        return config_dir

    return None


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents."""
    if not path.exists():
        return {}
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_config_for_environment(environment: str) -> dict[str, Any]:
    """Load and merge configuration for a specific environment."""
    config_dir = _get_config_dir()
    if config_dir is None:
        logger.debug("No configs directory found, using built-in defaults")
        return {"environment": environment}

    env_dir = config_dir / "environments"

    # Load base config
    base_config = _load_yaml_file(env_dir / "base.yaml")

    # Load environment-specific config
    env_config = _load_yaml_file(env_dir / f"{environment}.yaml")

    # Remove inheritance marker if present
    env_config.pop("_inherit", None)

    # Merge configs
    merged = _deep_merge(base_config, env_config)
    merged["environment"] = environment

    return merged


@lru_cache(maxsize=4)
def get_config(environment: str | None = None) -> Settings:
    """
    Get configuration for the specified environment.

    Args:
        environment: Environment name (dev, prod).
                    If None, uses FA_ENVIRONMENT env var, defaulting to "dev".

    Returns:
        Settings: Validated configuration object.

    Example:
        config = get_config()  # Uses FA_ENVIRONMENT or defaults to dev
        config = get_config("prod")  # Explicit production config
    """
    if environment is None:
        environment = os.getenv("FA_ENVIRONMENT", "dev")

    # Load YAML configuration
    yaml_config = _load_config_for_environment(environment)

    # Create Settings object (also loads env vars)
    return Settings(**yaml_config)


def reload_config(environment: str | None = None) -> Settings:
    """
    Reload configuration, clearing the cache.

    Useful for testing or when config files have changed.
    """
    get_config.cache_clear()
    return get_config(environment)
