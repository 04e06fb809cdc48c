"""Validators for visitor submissions."""

from allmax.validation.blueprint import SaveBlueprintRequest, validate_blueprint
from allmax.validation.problem import (
    ProblemDomain,
    ProblemTextPolicy,
    ValidationResult,
    validate_problem_input,
    validate_problem_text,
)

__all__ = [
    "ProblemDomain",
    "ProblemTextPolicy",
    "SaveBlueprintRequest",
    "ValidationResult",
    "validate_blueprint",
    "validate_problem_input",
    "validate_problem_text",
]
