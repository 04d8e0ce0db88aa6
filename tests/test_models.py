"""
Tests for Finledger models

Test strategy:
1. Unit tests for individual components (models, ledger core, validators)
2. Integration tests for sessions (with in-memory storage)
3. No real storage backend in tests
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from finledger.models import (
    CASH_KEY,
    AccountRef,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    Category,
    Country,
    ExpenseEntry,
    FixedExpense,
    IncomeEntry,
    LedgerErrorKind,
    LedgerState,
    MutationResult,
    PaymentChannel,
    ValidationIssue,
    ValidationResult,
    Account,
)


class TestEntryModels:
    """Tests for ledger entry Pydantic models."""

    def test_income_creation(self):
        """Test IncomeEntry model creation."""
        income = IncomeEntry(
            id=1,
            description="Salary",
            amount=Decimal("1500.00"),
            date=date(2024, 3, 1),
            payment_method=PaymentChannel.CARD,
            bank="BBVA",
        )
        assert income.amount == Decimal("1500.00")
        assert income.account == AccountRef.card("BBVA")
        assert income.account_key == "BBVA"

    def test_description_strips_whitespace(self):
        """Test that whitespace is stripped from descriptions."""
        income = IncomeEntry(id=1, description="  Salary  ", amount=10, date=date(2024, 3, 1))
        assert income.description == "Salary"

    def test_rejects_zero_amount(self):
        """Test that zero amounts are rejected."""
        with pytest.raises(ValueError):
            IncomeEntry(id=1, description="Nothing", amount=0, date=date(2024, 3, 1))

    def test_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValueError):
            ExpenseEntry(id=1, description="Refund", amount=Decimal("-5"), date=date(2024, 3, 1))

    def test_rejects_empty_description(self):
        """Test that empty descriptions are rejected."""
        with pytest.raises(ValueError):
            ExpenseEntry(id=1, description="   ", amount=5, date=date(2024, 3, 1))

    def test_long_text_is_accepted(self):
        """Test descriptions and names carry no length cap."""
        text = "x" * 2000
        assert IncomeEntry(id=1, description=text, amount=5, date=date(2024, 3, 1)).description == text
        assert Account(name=text).name == text

    def test_float_amount_keeps_its_decimal_text(self):
        """Test floats are converted through their string form."""
        income = IncomeEntry(id=1, description="Gift", amount=0.1, date=date(2024, 3, 1))
        assert income.amount == Decimal("0.1")

    def test_expense_defaults_to_general_category(self):
        """Test that expenses without a category get the sentinel."""
        expense = ExpenseEntry(id=1, description="Misc", amount=5, date=date(2024, 3, 1))
        assert expense.category == "General"

    def test_transfer_leg_has_no_default_category(self):
        """Test that transfer legs are not categorised."""
        leg = ExpenseEntry(
            id=1, description="Transfer", amount=5, date=date(2024, 3, 1),
            is_transfer=True, transfer_id=1,
        )
        assert leg.category is None

    def test_transfer_flag_requires_transfer_id(self):
        """Test transfer_id must be present exactly when is_transfer."""
        with pytest.raises(ValueError, match="transfer id"):
            IncomeEntry(id=1, description="Leg", amount=5, date=date(2024, 3, 1), is_transfer=True)
        with pytest.raises(ValueError, match="transfer id"):
            IncomeEntry(id=1, description="Leg", amount=5, date=date(2024, 3, 1), transfer_id=3)

    def test_card_without_bank_replays_into_cash(self):
        """Test a card entry with no bank falls in the cash bucket."""
        income = IncomeEntry(
            id=1, description="Odd", amount=5, date=date(2024, 3, 1),
            payment_method=PaymentChannel.CARD, bank="  ",
        )
        assert income.bank is None
        assert income.account_key == CASH_KEY

    def test_storage_dict_uses_camel_case(self):
        """Test the persisted shape."""
        expense = ExpenseEntry(
            id=7, description="Rent", amount=Decimal("700.50"), date=date(2024, 3, 2),
            payment_method=PaymentChannel.CARD, bank="BBVA", category="Bills",
            fixed_expense_id=3,
        )
        data = expense.to_storage_dict()
        assert data == {
            "id": 7,
            "description": "Rent",
            "amount": 700.5,
            "date": "2024-03-02",
            "paymentMethod": "card",
            "bank": "BBVA",
            "isTransfer": False,
            "category": "Bills",
            "fixedExpenseId": 3,
        }

    def test_loads_persisted_shape(self):
        """Test that camelCase storage data validates back."""
        data = {
            "id": 9, "description": "Leg", "amount": 25, "date": "2024-03-05",
            "paymentMethod": "cash", "isTransfer": True, "transferId": 8,
        }
        income = IncomeEntry.model_validate(data)
        assert income.is_transfer is True
        assert income.transfer_id == 8
        assert income.account.is_cash


class TestRegistryModels:
    """Tests for accounts, categories, templates and countries."""

    def test_account_matches_case_insensitively(self):
        """Test account name lookups ignore case."""
        assert Account(name="BBVA").matches(" bbva ")
        assert not Account(name="BBVA").matches("ING")

    def test_category_matches_case_insensitively(self):
        """Test category lookups ignore case."""
        state = LedgerState(categories=[Category(name="Bills", icon="Receipt")])
        assert Category(name="Bills").matches(" BILLS ")
        assert state.find_category("bills").name == "Bills"
        assert state.find_category("Food") is None

    def test_country_locale_default(self):
        """Test that locale defaults to es-<CODE>."""
        country = Country(code="MX", name="Mexico", currency="MXN")
        assert country.locale == "es-MX"

    def test_country_code_pattern(self):
        """Test that country and currency codes are validated."""
        with pytest.raises(ValueError):
            Country(code="mex", name="Mexico", currency="MXN")
        with pytest.raises(ValueError):
            Country(code="MX", name="Mexico", currency="pesos")

    def test_fixed_expense_storage_dict(self):
        """Test template amounts are stored as numbers."""
        template = FixedExpense(id=1, description="Gym", amount=Decimal("29.90"), category="Health")
        assert template.to_storage_dict()["amount"] == 29.9

    def test_state_lookups(self):
        """Test LedgerState helpers."""
        state = LedgerState(
            accounts=[Account(name="BBVA")],
            fixed_expenses=[FixedExpense(id=50, description="Gym", amount=30, category="Health")],
            incomes=[IncomeEntry(id=10, description="Pay", amount=5, date=date(2024, 3, 1))],
        )
        assert state.find_account("bbva").name == "BBVA"
        assert state.find_account(None) is None
        assert state.find_fixed_expense(50).description == "Gym"
        assert state.max_entry_id == 50


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.ENTRY_ADDED,
            description="Income added",
        )
        assert event.event_type == AuditEventType.ENTRY_ADDED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.ACCOUNT_ADDED,
            description="Account added",
            details={"name": "BBVA", "color": "#004481"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "account_added"
        assert log_dict["details"]["name"] == "BBVA"

    def test_audit_event_builder_entry_added(self):
        """Test AuditEventBuilder.entry_added."""
        correlation_id = uuid4()
        event = AuditEventBuilder.entry_added(
            kind="expense",
            entry_id=17,
            description="Lunch",
            amount="12.50",
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.ENTRY_ADDED
        assert event.entity_id == "17"
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True

    def test_audit_event_builder_mutation_rejected(self):
        """Test AuditEventBuilder.mutation_rejected."""
        event = AuditEventBuilder.mutation_rejected(
            operation="add_expense",
            error_kind="validation_rejected",
            reason="Cash would drop to -10.00",
        )
        assert event.severity == AuditSeverity.WARNING
        assert event.error_code == "validation_rejected"
        assert event.error_message == "Cash would drop to -10.00"


class TestResultModels:
    """Tests for ValidationResult and MutationResult."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="negative_balance",
                    message="Cash would drop to -10.00 on 2024-03-01",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1
        assert "Cash" in result.message

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="transfer_id",
                    issue_type="unbalanced_transfer",
                    message="Transfer 3 has 0 income and 1 expense legs",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0

    def test_mutation_result_constructors(self):
        """Test ok() and refused()."""
        ok = MutationResult.ok([1, 2])
        assert ok.accepted and ok.entry_ids == [1, 2] and ok.error_kind is None

        refused = MutationResult.refused(LedgerErrorKind.INVALID_INPUT, "Amount must be greater than zero")
        assert not refused.accepted
        assert refused.error_kind == LedgerErrorKind.INVALID_INPUT
        assert refused.entry_ids == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
