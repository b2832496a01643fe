"""
Validation Result Models

The MovementValidator never raises while checking. It collects issues
into a ValidationResult, and the caller decides whether to reject.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from household_ledger.models.movement import utc_now


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Machine-readable code (e.g., 'missing', 'invalid_percentage_sum')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """
    Result of validating a movement input.

    Stage 1: Structural validation (errors reject the input)
    Stage 2: Semantic validation (warnings only)
    """

    validated_at: datetime = Field(default_factory=utc_now)

    structural_valid: bool = Field(
        ...,
        description="Did structural validation pass?"
    )
    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "error"]

    @property
    def warnings(self) -> list[str]:
        return [
            issue.message for issue in self.issues
            if issue.severity == "warning"
        ]

    def first_error(self) -> Optional[ValidationIssue]:
        errors = self.errors
        return errors[0] if errors else None

    def raise_for_errors(self) -> None:
        """Raise MovementValidationError if any error-level issue exists."""
        if self.has_errors:
            # Imported here, the error type lives with the validator
            from household_ledger.validation.validator import MovementValidationError
            raise MovementValidationError(self)
