"""
Two-Stage Validation Pipeline

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - INPUT VALIDATION:
- Positive, finite amount
- Non-empty description
- Date present
- Card entries name an account, and that account exists
- Named categories exist
- This rejects a proposal before it is ever combined with the ledger

STAGE 2 - HISTORY VALIDATION:
- Replay the candidate record set (current entries plus the pending
  addition, or minus the pending removal) in chronological order
- After every single step, the affected account must not sit below
  -epsilon
- The first dip anywhere fails the whole set; a later income does not
  excuse an earlier negative balance

WHY THE FULL REPLAY:
Comparing final balances is not enough. An expense back-dated before the
income that covers it leaves the final total looking fine while the
account was negative on that day.

IMPORTANT: Pre-flight checks in a form and the commit-time check use the
same HistoryValidator. There is exactly one rule.
"""

import datetime as dt
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional, Sequence

from finledger.config import get_settings
from finledger.errors import InvalidInputError, ValidationRejectedError
from finledger.ledger.balances import replay
from finledger.models.entry import (
    CASH_KEY,
    AccountRef,
    ExpenseEntry,
    IncomeEntry,
    LedgerEntry,
    PaymentChannel,
)
from finledger.models.results import BalanceViolation, ValidationIssue, ValidationResult
from finledger.models.state import LedgerState


# =============================================================================
# STAGE 1 - INPUT
# =============================================================================

def parse_amount(value) -> Decimal:
    """Accept Decimal, int, float or numeric string; must be finite and > 0."""
    if value is None or isinstance(value, bool):
        raise InvalidInputError("Amount is required", field="amount")
    try:
        amount = Decimal(str(value).strip()) if not isinstance(value, Decimal) else value
    except (InvalidOperation, ValueError):
        raise InvalidInputError(f"Amount '{value}' is not a number", field="amount")
    if not amount.is_finite():
        raise InvalidInputError("Amount must be a finite number", field="amount")
    if amount <= 0:
        raise InvalidInputError("Amount must be greater than zero", field="amount")
    return amount


def parse_date(value) -> dt.date:
    """Accept a date or an ISO YYYY-MM-DD string."""
    if value is None or value == "":
        raise InvalidInputError("Date is required", field="date")
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    try:
        return dt.date.fromisoformat(str(value).strip())
    except ValueError:
        raise InvalidInputError(f"Date '{value}' is not YYYY-MM-DD", field="date")


def parse_description(value) -> str:
    text = (value or "").strip() if isinstance(value, str) or value is None else str(value).strip()
    if not text:
        raise InvalidInputError("Description cannot be empty", field="description")
    return text


def resolve_account(account: Optional[AccountRef], state: LedgerState) -> AccountRef:
    """
    Check an account reference against the registry.

    Returns the reference with the registered spelling of the bank name.
    A missing selection is bad input; an unknown bank is a rejection.
    """
    if account is None:
        raise InvalidInputError("An account must be selected", field="account")
    if account.channel == PaymentChannel.CASH:
        return AccountRef.cash()
    if not account.bank:
        raise InvalidInputError("Card entries need an account", field="account")

    registered = state.find_account(account.bank)
    if registered is None:
        raise ValidationRejectedError(
            f"Account '{account.bank}' does not exist",
            field="account",
        )
    return AccountRef.card(registered.name)


def resolve_category(category: Optional[str], state: LedgerState) -> str:
    """Named categories must exist; no category means the sentinel default."""
    default = get_settings().ledger.default_category
    if category is None or not category.strip():
        return default
    name = category.strip()
    registered = state.find_category(name)
    if registered is not None:
        return registered.name
    if name.lower() == default.lower():
        return default
    raise ValidationRejectedError(f"Category '{name}' does not exist", field="category")


# =============================================================================
# STAGE 2 - HISTORY
# =============================================================================

class HistoryValidator:
    """
    Decides whether a candidate record set is a valid history.

    Pure: it reads the lists it is given and nothing else.
    """

    def __init__(self, epsilon: Optional[Decimal] = None):
        if epsilon is None:
            epsilon = Decimal(str(get_settings().ledger.balance_epsilon))
        self._floor = -epsilon

    def validate(
        self,
        incomes: Iterable[LedgerEntry],
        expenses: Iterable[LedgerEntry],
    ) -> ValidationResult:
        """
        Replay the candidate set and stop at the first negative dip.

        Returns a ValidationResult; is_valid is the authoritative answer.
        """
        for step in replay(incomes, expenses):
            if step.balance < self._floor:
                account = "Cash" if step.account_key == CASH_KEY else step.account_key
                violation = BalanceViolation(
                    entry_id=step.entry.id,
                    date=step.entry.date,
                    account=account,
                    balance=step.balance,
                )
                return ValidationResult(
                    is_valid=False,
                    violation=violation,
                    issues=[ValidationIssue(
                        field="amount",
                        issue_type="negative_balance",
                        message=(
                            f"{account} would drop to {step.balance:,.2f} "
                            f"on {step.entry.date.isoformat()}"
                        ),
                        severity="error",
                        suggested_fix="Use a later date, a smaller amount, or another account",
                    )],
                )
        return ValidationResult(is_valid=True)

    def is_valid(
        self,
        incomes: Iterable[LedgerEntry],
        expenses: Iterable[LedgerEntry],
    ) -> bool:
        return self.validate(incomes, expenses).is_valid

    def validate_addition(
        self,
        incomes: Sequence[IncomeEntry],
        expenses: Sequence[ExpenseEntry],
        new_incomes: Sequence[IncomeEntry] = (),
        new_expenses: Sequence[ExpenseEntry] = (),
    ) -> ValidationResult:
        """
        Validate the current set plus pending entries.

        An expense dated before the first income on record is refused
        up front: no history can cover it. This early exit never disagrees
        with the replay, which would fail at the same entry.
        """
        first_income = min((e.date for e in incomes), default=None)
        if first_income is not None:
            for expense in new_expenses:
                if expense.date < first_income:
                    return ValidationResult(
                        is_valid=False,
                        issues=[ValidationIssue(
                            field="date",
                            issue_type="before_first_income",
                            message=(
                                f"Expense dated {expense.date.isoformat()} is before "
                                f"the first income ({first_income.isoformat()})"
                            ),
                            severity="error",
                            suggested_fix="Choose a date on or after the first income",
                        )],
                    )

        return self.validate([*incomes, *new_incomes], [*expenses, *new_expenses])

    def validate_removal(
        self,
        incomes: Sequence[IncomeEntry],
        expenses: Sequence[ExpenseEntry],
        income_ids: Iterable[int] = (),
        expense_ids: Iterable[int] = (),
    ) -> ValidationResult:
        """Validate the current set minus the given entries."""
        drop_incomes = set(income_ids)
        drop_expenses = set(expense_ids)
        return self.validate(
            [e for e in incomes if e.id not in drop_incomes],
            [e for e in expenses if e.id not in drop_expenses],
        )

    def require(self, result: ValidationResult) -> None:
        """Raise when a result is not valid."""
        if not result.is_valid:
            raise ValidationRejectedError(result.message, field="amount", issues=result.issues)


def get_user_friendly_summary(result: ValidationResult) -> str:
    """
    Generate a user-friendly summary of validation results.
    """
    if result.is_valid:
        return "All checks passed."

    lines = ["This change was refused:"]
    for issue in result.issues:
        if issue.severity == "error":
            lines.append(f"   • {issue.message}")
            if issue.suggested_fix:
                lines.append(f"     {issue.suggested_fix}")
    return "\n".join(lines)
