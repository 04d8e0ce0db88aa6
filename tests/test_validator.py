"""Tests for input validation and the history validator."""

from datetime import date
from decimal import Decimal

import pytest

from conftest import day
from finledger.errors import InvalidInputError, ValidationRejectedError
from finledger.models import (
    Account,
    AccountRef,
    Category,
    ExpenseEntry,
    IncomeEntry,
    LedgerState,
    PaymentChannel,
)
from finledger.validation import (
    HistoryValidator,
    get_user_friendly_summary,
    parse_amount,
    parse_date,
    parse_description,
    resolve_account,
    resolve_category,
)


def income(entry_id, amount, on, bank=None):
    return IncomeEntry(
        id=entry_id, description="Income", amount=amount, date=on,
        payment_method=PaymentChannel.CARD if bank else PaymentChannel.CASH, bank=bank,
    )


def expense(entry_id, amount, on, bank=None):
    return ExpenseEntry(
        id=entry_id, description="Expense", amount=amount, date=on,
        payment_method=PaymentChannel.CARD if bank else PaymentChannel.CASH, bank=bank,
    )


@pytest.fixture
def registry():
    return LedgerState(
        accounts=[Account(name="BBVA")],
        categories=[Category(name="Food", icon="Food")],
    )


class TestInputValidation:
    """Stage 1: input checks."""

    @pytest.mark.parametrize("value,expected", [
        ("12.50", Decimal("12.50")),
        (3, Decimal("3")),
        (0.1, Decimal("0.1")),
        (Decimal("7"), Decimal("7")),
    ])
    def test_parse_amount_accepts_numbers(self, value, expected):
        """Test numeric inputs become Decimals."""
        assert parse_amount(value) == expected

    @pytest.mark.parametrize("value", [None, "", "abc", 0, -1, "NaN", "Infinity", True])
    def test_parse_amount_rejects_bad_input(self, value):
        """Test non-positive and non-numeric amounts are invalid input."""
        with pytest.raises(InvalidInputError):
            parse_amount(value)

    def test_parse_date(self):
        """Test dates and ISO strings are accepted."""
        assert parse_date("2024-03-01") == date(2024, 3, 1)
        assert parse_date(date(2024, 3, 1)) == date(2024, 3, 1)
        with pytest.raises(InvalidInputError):
            parse_date(None)
        with pytest.raises(InvalidInputError):
            parse_date("01/03/2024")

    def test_parse_description(self):
        """Test descriptions are stripped and must not be empty."""
        assert parse_description("  Lunch ") == "Lunch"
        with pytest.raises(InvalidInputError):
            parse_description("   ")

    def test_resolve_account_canonical_name(self, registry):
        """Test the registered spelling of the bank is used."""
        assert resolve_account(AccountRef.card("bbva"), registry) == AccountRef.card("BBVA")
        assert resolve_account(AccountRef.cash(), registry).is_cash

    def test_resolve_account_missing_selection(self, registry):
        """Test card entries need a bank."""
        with pytest.raises(InvalidInputError):
            resolve_account(None, registry)
        with pytest.raises(InvalidInputError):
            resolve_account(AccountRef(channel=PaymentChannel.CARD), registry)

    def test_resolve_account_unknown_bank(self, registry):
        """Test an unknown bank is a rejection, not bad input."""
        with pytest.raises(ValidationRejectedError):
            resolve_account(AccountRef.card("ING"), registry)

    def test_resolve_category(self, registry):
        """Test categories must exist; the sentinel always does."""
        assert resolve_category("Food", registry) == "Food"
        assert resolve_category(None, registry) == "General"
        assert resolve_category("General", registry) == "General"
        with pytest.raises(ValidationRejectedError):
            resolve_category("Travel", registry)


class TestHistoryValidator:
    """Stage 2: chronological replay."""

    def test_valid_history(self):
        """Test a covered expense is valid."""
        validator = HistoryValidator()
        assert validator.is_valid([income(1, 100, day(1))], [expense(2, 50, day(1))])

    def test_final_balance_is_not_enough(self):
        """Test an early dip fails even when later income covers it."""
        validator = HistoryValidator()
        result = validator.validate(
            [income(1, 10, day(1)), income(4, 100, day(5))],
            [expense(3, 50, day(2))],
        )
        assert not result.is_valid
        assert result.violation.entry_id == 3
        assert result.violation.date == day(2)
        assert result.violation.account == "Cash"
        assert result.violation.balance == Decimal("-40")

    def test_accounts_are_independent(self):
        """Test cash cannot cover a card expense."""
        validator = HistoryValidator()
        result = validator.validate([income(1, 100, day(1))], [expense(2, 1, day(1), bank="BBVA")])
        assert not result.is_valid
        assert result.violation.account == "BBVA"

    def test_epsilon_tolerance(self):
        """Test dips within 0.001 are tolerated."""
        validator = HistoryValidator()
        assert validator.is_valid([income(1, Decimal("10"), day(1))], [expense(2, Decimal("10.001"), day(1))])
        assert not validator.is_valid([income(1, Decimal("10"), day(1))], [expense(2, Decimal("10.002"), day(1))])

    def test_custom_epsilon(self):
        """Test the tolerance can be injected."""
        validator = HistoryValidator(epsilon=Decimal("0"))
        assert not validator.is_valid([income(1, Decimal("10"), day(1))], [expense(2, Decimal("10.001"), day(1))])

    def test_expense_before_first_income_is_refused_up_front(self):
        """Test the pre-check names the first income date."""
        validator = HistoryValidator()
        result = validator.validate_addition(
            [income(1, 100, day(5))], [], new_expenses=[expense(2, 1, day(1))]
        )
        assert not result.is_valid
        assert result.issues[0].issue_type == "before_first_income"
        assert result.violation is None

    def test_pre_check_agrees_with_replay(self):
        """Test every pre-check refusal is also a replay refusal."""
        validator = HistoryValidator()
        incomes = [income(1, 100, day(5)), income(2, 100, day(6), bank="BBVA")]
        for bank in (None, "BBVA"):
            candidate = expense(3, 1, day(4), bank=bank)
            assert not validator.validate_addition(incomes, [], new_expenses=[candidate]).is_valid
            assert not validator.validate(incomes, [candidate]).is_valid

    def test_validate_removal(self):
        """Test removing an income that funds a later expense is refused."""
        validator = HistoryValidator()
        incomes = [income(1, 100, day(1))]
        expenses = [expense(2, 60, day(2))]
        assert not validator.validate_removal(incomes, expenses, income_ids=[1]).is_valid
        assert validator.validate_removal(incomes, expenses, expense_ids=[2]).is_valid

    def test_require_raises_on_invalid(self):
        """Test require() turns a refusal into ValidationRejectedError."""
        validator = HistoryValidator()
        result = validator.validate([], [expense(1, 5, day(1))])
        with pytest.raises(ValidationRejectedError, match="Cash would drop"):
            validator.require(result)

    def test_user_friendly_summary(self):
        """Test the summary lists error messages and fixes."""
        validator = HistoryValidator()
        assert get_user_friendly_summary(validator.validate([], [])) == "All checks passed."

        summary = get_user_friendly_summary(validator.validate([], [expense(1, 5, day(1))]))
        assert "Cash would drop to -5.00" in summary
        assert "later date" in summary
