"""
Fairness Audit - Input Validation

Components:
    - InputValidator: Length alignment, empty input, small-sample warning
"""

from fairness_audit.validation.input_validator import (
    InputValidationResult,
    InputValidator,
    ValidationError,
    ValidationIssue,
    ValidationLevel,
    validate_inputs,
)

__all__ = [
    "InputValidator",
    "InputValidationResult",
    "ValidationError",
    "ValidationIssue",
    "ValidationLevel",
    "validate_inputs",
]
