"""
Result Models

Every engine decision is returned as a value. A refused mutation is a
MutationResult with accepted=False, never an exception.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class LedgerErrorKind(str, Enum):
    """Why a mutation was refused."""
    INVALID_INPUT = "invalid_input"
    VALIDATION_REJECTED = "validation_rejected"
    REFERENTIAL_CONFLICT = "referential_conflict"


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'negative_balance')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class BalanceViolation(BaseModel):
    """The first point in chronological replay where an account dipped below zero."""

    entry_id: int
    date: dt.date
    account: str
    balance: Decimal


class ValidationResult(BaseModel):
    """
    Result of validating a candidate record set.

    is_valid is the authoritative answer. The same result backs
    form-level pre-flight checks and the commit-time check.
    """

    is_valid: bool = Field(
        ...,
        description="Overall validation result"
    )
    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )
    violation: Optional[BalanceViolation] = Field(
        default=None,
        description="First negative dip in chronological order, if any"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def message(self) -> str:
        errors = [i.message for i in self.issues if i.severity == "error"]
        return "; ".join(errors)


class MutationResult(BaseModel):
    """
    Outcome of a mutation intent.

    On refusal the ledger is unchanged and `message` says why.
    """

    accepted: bool
    error_kind: Optional[LedgerErrorKind] = None
    message: str = ""
    issues: list[ValidationIssue] = Field(default_factory=list)
    entry_ids: list[int] = Field(
        default_factory=list,
        description="Ids created or removed by an accepted mutation"
    )

    @classmethod
    def ok(cls, entry_ids: Optional[list[int]] = None, message: str = "") -> "MutationResult":
        return cls(accepted=True, entry_ids=entry_ids or [], message=message)

    @classmethod
    def refused(
        cls,
        error_kind: LedgerErrorKind,
        message: str,
        issues: Optional[list[ValidationIssue]] = None,
    ) -> "MutationResult":
        return cls(
            accepted=False,
            error_kind=error_kind,
            message=message,
            issues=issues or [],
        )
