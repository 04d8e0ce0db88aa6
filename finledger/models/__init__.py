"""
Data Models Package

This package contains all Pydantic models used in Finledger.
All data flowing through the ledger engine must conform to these schemas.
"""

from finledger.models.entry import (
    CASH_KEY,
    AccountRef,
    Entry,
    EntryKind,
    ExpenseEntry,
    IncomeEntry,
    LedgerEntry,
    PaymentChannel,
    RenderableEntry,
    RenderableTransaction,
    Transfer,
    TransferLink,
)
from finledger.models.registry import (
    DEFAULT_CATEGORIES,
    DEFAULT_COUNTRIES,
    Account,
    Category,
    Country,
    FixedExpense,
)
from finledger.models.results import (
    BalanceViolation,
    LedgerErrorKind,
    MutationResult,
    ValidationIssue,
    ValidationResult,
)
from finledger.models.state import LedgerState
from finledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Entry models
    "CASH_KEY",
    "AccountRef",
    "Entry",
    "EntryKind",
    "ExpenseEntry",
    "IncomeEntry",
    "LedgerEntry",
    "PaymentChannel",
    "RenderableEntry",
    "RenderableTransaction",
    "Transfer",
    "TransferLink",
    # Registry models
    "DEFAULT_CATEGORIES",
    "DEFAULT_COUNTRIES",
    "Account",
    "Category",
    "Country",
    "FixedExpense",
    # Results
    "BalanceViolation",
    "LedgerErrorKind",
    "MutationResult",
    "ValidationIssue",
    "ValidationResult",
    # State
    "LedgerState",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
