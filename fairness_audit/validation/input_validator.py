"""
Fairness Audit - Input Validator

Checks that an audit request is well formed before any metric runs:
- Candidates, outcomes, ground truth and every protected attribute
  are index-aligned
- At least one candidate is present
- Small samples are flagged (non-fatal)

Length mismatches and empty input raise ValidationError; a small sample
only adds a warning that is carried into the report metadata.

Usage:
    validator = InputValidator(config)

    result = validator.validate(candidates, outcomes, protected_attributes)
    for warning in result.warnings:
        print(warning)
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from fairness_audit.shared.config import Settings, get_config

logger = logging.getLogger(__name__)


class ValidationLevel(StrEnum):
    """Validation issue severity."""

    WARNING = "warning"
    ERROR = "error"


@dataclass
class ValidationIssue:
    """Individual validation issue."""

    level: ValidationLevel
    check: str  # Name of the check that produced the issue
    message: str
    attribute: str | None = None


@dataclass
class InputValidationResult:
    """Result of input validation."""

    candidate_count: int
    attribute_names: list[str] = field(default_factory=list)
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def errors(self) -> list[str]:
        """Get list of error messages."""
        return [issue.message for issue in self.issues if issue.level == ValidationLevel.ERROR]

    @property
    def warnings(self) -> list[str]:
        """Get list of warning messages."""
        return [issue.message for issue in self.issues if issue.level == ValidationLevel.WARNING]

    @property
    def is_valid(self) -> bool:
        """Check that no error-level issue was found."""
        return not self.errors

    @property
    def is_small_sample(self) -> bool:
        return any(issue.check == "sample_size" for issue in self.issues)


class InputValidator:
    """
    Validate audit inputs.

    Fatal checks:
    - Non-empty candidate list
    - Outcomes / ground truth / protected attributes aligned with candidates

    Non-fatal checks:
    - Candidate count below the small-sample threshold
    """

    def __init__(self, config: Settings | None = None):
        """
        Initialize input validator.

        Args:
            config: Configuration object (uses default if not provided)
        """
        self.config = config or get_config()
        self.small_sample_threshold = self.config.engine.small_sample_threshold

    def validate(
        self,
        candidates: Sequence[Any],
        outcomes: Sequence[bool],
        protected_attributes: Mapping[str, Sequence[Any]],
        ground_truth: Sequence[bool] | None = None,
    ) -> InputValidationResult:
        """
        Validate inputs and raise on fatal problems.

        Args:
            candidates: Candidate feature records
            outcomes: Selected / not-selected flag per candidate
            protected_attributes: Attribute name -> per-candidate category
            ground_truth: Optional independent outcome signal per candidate

        Returns:
            InputValidationResult with any warnings

        Raises:
            ValidationError: If any array is misaligned or the input is empty
        """
        n = len(candidates)
        result = InputValidationResult(
            candidate_count=n,
            attribute_names=list(protected_attributes),
        )

        if n == 0:
            result.issues.append(
                ValidationIssue(
                    level=ValidationLevel.ERROR,
                    check="non_empty",
                    message="At least one candidate is required",
                )
            )

        if len(outcomes) != n:
            result.issues.append(
                ValidationIssue(
                    level=ValidationLevel.ERROR,
                    check="length",
                    message=(
                        f"Candidates and outcomes must have the same length "
                        f"({n} candidates, {len(outcomes)} outcomes)"
                    ),
                )
            )

        if ground_truth is not None and len(ground_truth) != n:
            result.issues.append(
                ValidationIssue(
                    level=ValidationLevel.ERROR,
                    check="length",
                    message=(
                        f"Ground truth must have the same length as candidates "
                        f"({n} candidates, {len(ground_truth)} labels)"
                    ),
                )
            )

        for name, values in protected_attributes.items():
            if len(values) != n:
                result.issues.append(
                    ValidationIssue(
                        level=ValidationLevel.ERROR,
                        check="length",
                        message=(
                            f"Protected attribute {name} must have the same length as "
                            f"candidates ({n} candidates, {len(values)} values)"
                        ),
                        attribute=name,
                    )
                )

        if result.errors:
            logger.error(
                f"Input validation failed: {len(result.errors)} errors",
                extra={"candidate_count": n, "errors": result.errors},
            )
            raise ValidationError(result)

        if n < self.small_sample_threshold:
            message = (
                f"Small sample size ({n} < {self.small_sample_threshold}) may affect "
                f"statistical significance of fairness metrics"
            )
            result.issues.append(
                ValidationIssue(
                    level=ValidationLevel.WARNING,
                    check="sample_size",
                    message=message,
                )
            )
            logger.warning(message, extra={"candidate_count": n})

        return result


# =============================================================================
# Exception Classes
# =============================================================================


class ValidationError(Exception):
    """Raised when audit inputs are malformed."""

    def __init__(self, result: InputValidationResult):
        self.result = result
        error_msg = "\n".join([f"  - {error}" for error in result.errors])
        super().__init__(f"Fairness input validation failed:\n{error_msg}")


# =============================================================================
# Convenience Functions
# =============================================================================


def validate_inputs(
    candidates: Sequence[Any],
    outcomes: Sequence[bool],
    protected_attributes: Mapping[str, Sequence[Any]],
    ground_truth: Sequence[bool] | None = None,
    config: Settings | None = None,
) -> InputValidationResult:
    """
    Convenience function to validate audit inputs.

    Raises:
        ValidationError: If inputs are misaligned or empty
    """
    return InputValidator(config).validate(candidates, outcomes, protected_attributes, ground_truth)
