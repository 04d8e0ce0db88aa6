"""
Ledger Exceptions

These are raised inside the engine and converted to MutationResult
values at the session boundary. Callers of LedgerSession never see them.
"""

from typing import Optional

from finledger.models.results import ValidationIssue


class LedgerError(Exception):
    """Base exception for ledger operations."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        issues: Optional[list[ValidationIssue]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.field = field
        self.issues = issues or []

    def to_issues(self, issue_type: str) -> list[ValidationIssue]:
        if self.issues:
            return self.issues
        return [ValidationIssue(
            field=self.field or "ledger",
            issue_type=issue_type,
            message=self.message,
            severity="error",
        )]


class InvalidInputError(LedgerError):
    """Non-positive amount, empty description, missing date or account."""
    pass


class ValidationRejectedError(LedgerError):
    """The candidate record set would break history validity or a reference."""
    pass


class ReferentialConflictError(LedgerError):
    """An account or category is still referenced by at least one entry."""
    pass


class MalformedPersistedDataError(LedgerError):
    """A stored blob does not match any recognized shape."""
    pass
