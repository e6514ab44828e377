"""
Tests for Configuration Loader

Tests YAML loading, environment overrides and defaults.
"""

import pytest

from fairness_audit.shared.config import (
    Settings,
    _deep_merge,
    get_config,
    reload_config,
)


def test_dev_config_loads(test_config):
    """Dev config merges base.yaml with dev.yaml."""
    assert test_config.environment == "dev"
    assert test_config.engine.calculation_version == "1.0"
    assert test_config.engine.max_workers == 2
    assert test_config.similarity.threshold == 0.8
    assert test_config.statistics.permutation_iterations == 1000


def test_prod_config_overrides():
    """Prod config overrides workers and sets a permutation deadline."""
    config = reload_config("prod")

    assert config.environment == "prod"
    assert config.engine.max_workers == 8
    assert config.statistics.permutation_timeout_seconds == 30


def test_get_config_is_cached():
    """Repeated calls return the same object."""
    reload_config("dev")
    assert get_config("dev") is get_config("dev")


def test_environment_variable_selects_environment(monkeypatch):
    """FA_ENVIRONMENT picks the environment when none is given."""
    monkeypatch.setenv("FA_ENVIRONMENT", "prod")
    config = reload_config()

    assert config.environment == "prod"
    reload_config("dev")


def test_invalid_environment_rejected():
    """Only dev and prod are valid environments."""
    with pytest.raises(ValueError):
        Settings(environment="staging")


def test_defaults_without_yaml():
    """Model defaults mirror the documented thresholds."""
    settings = Settings()

    assert settings.thresholds.compliant == 0.8
    assert settings.thresholds.monitoring == 0.6
    assert settings.thresholds.parity_max_difference == 0.2
    assert settings.thresholds.intersectional_compliant == 0.7
    assert settings.thresholds.intersectional_monitoring == 0.5
    assert settings.statistics.significance_level == 0.05
    assert settings.statistics.min_expected_count == 5
    assert settings.similarity.education_levels["phd"] == 5
    assert settings.engine.small_sample_threshold == 10


def test_deep_merge():
    """Nested dictionaries merge; scalars are overridden."""
    base = {"engine": {"max_workers": 4, "calculation_version": "1.0"}, "flag": True}
    override = {"engine": {"max_workers": 8}, "flag": False}

    merged = _deep_merge(base, override)

    assert merged == {"engine": {"max_workers": 8, "calculation_version": "1.0"}, "flag": False}
    assert base["engine"]["max_workers"] == 4
