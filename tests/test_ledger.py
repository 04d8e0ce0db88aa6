"""Tests for the ledger core: ids, transfer codec, record store, replay."""

import itertools
import random
from decimal import Decimal

import pytest

from conftest import day
from finledger.ledger import (
    IdGenerator,
    RecordStore,
    chronological,
    compute_balances,
    index_transfers,
    integrity_issues,
    make_deposit,
    make_transfer,
    make_withdrawal,
    reconstruct,
    replay,
)
from finledger.models import (
    AccountRef,
    Account,
    EntryKind,
    ExpenseEntry,
    IncomeEntry,
    PaymentChannel,
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


class TestIdGenerator:
    """Tests for timestamp-based ids."""

    def test_ids_are_strictly_increasing(self):
        """Test ids issued in the same millisecond still increase."""
        ids = IdGenerator(clock=lambda: 1000.0)
        assert [ids.next_id() for _ in range(3)] == [1000000, 1000001, 1000002]

    def test_starts_after_existing_ids(self):
        """Test ids sort after loaded data even if the clock is behind."""
        ids = IdGenerator(start_after=5_000_000, clock=lambda: 1.0)
        assert ids.next_id() == 5_000_001

    def test_observe(self):
        """Test observe() moves the floor up."""
        ids = IdGenerator(clock=lambda: 0)
        ids.observe(41)
        assert ids.next_id() == 42


class TestTransferCodec:
    """Tests for building and reconstructing transfers."""

    def test_make_transfer_legs(self):
        """Test both legs share id, amount, date and flag."""
        ids = IdGenerator(clock=lambda: 0)
        expense_leg, income_leg = make_transfer(
            AccountRef.card("BBVA"), AccountRef.cash(), Decimal("50"), day(2), ids
        )
        assert expense_leg.is_transfer and income_leg.is_transfer
        assert expense_leg.transfer_id == income_leg.transfer_id == expense_leg.id
        assert income_leg.id > expense_leg.id
        assert expense_leg.amount == income_leg.amount == Decimal("50")
        assert expense_leg.date == income_leg.date == day(2)
        assert expense_leg.account == AccountRef.card("BBVA")
        assert income_leg.account.is_cash
        assert expense_leg.category is None

    def test_withdrawal_and_deposit_directions(self):
        """Test withdrawal is card -> cash and deposit is cash -> card."""
        ids = IdGenerator(clock=lambda: 0)
        out_leg, in_leg = make_withdrawal("BBVA", Decimal("5"), day(1), ids)
        assert out_leg.bank == "BBVA" and in_leg.account.is_cash

        out_leg, in_leg = make_deposit("BBVA", Decimal("5"), day(1), ids)
        assert out_leg.account.is_cash and in_leg.bank == "BBVA"

    def test_reconstruct_pairs_legs(self):
        """Test a complete pair becomes one logical transfer."""
        ids = IdGenerator(clock=lambda: 0)
        expense_leg, income_leg = make_withdrawal("BBVA", Decimal("50"), day(2), ids)
        transfers, unpaired = reconstruct([expense_leg], [income_leg])
        assert unpaired == []
        assert len(transfers) == 1
        transfer = transfers[0]
        assert transfer.id == expense_leg.id
        assert transfer.from_account == AccountRef.card("BBVA")
        assert transfer.to_account.is_cash
        assert transfer.amount == Decimal("50")

    def test_reconstruct_is_fail_soft(self):
        """Test legs without a partner are reported, not raised."""
        ids = IdGenerator(clock=lambda: 0)
        expense_leg, _ = make_withdrawal("BBVA", Decimal("50"), day(2), ids)
        transfers, unpaired = reconstruct([expense_leg], [])
        assert transfers == []
        assert unpaired == [expense_leg]

    def test_index_transfers_side_table(self):
        """Test transfer_id -> (expense id, income id)."""
        ids = IdGenerator(clock=lambda: 0)
        expense_leg, income_leg = make_deposit("BBVA", Decimal("5"), day(1), ids)
        links = index_transfers([income_leg], [expense_leg])
        link = links[expense_leg.transfer_id]
        assert (link.expense_id, link.income_id) == (expense_leg.id, income_leg.id)
        assert link.is_complete

    def test_integrity_issues_flag_unbalanced_transfers(self):
        """Test a lone leg is reported as a warning."""
        ids = IdGenerator(clock=lambda: 0)
        expense_leg, income_leg = make_withdrawal("BBVA", Decimal("50"), day(2), ids)
        assert integrity_issues([income_leg], [expense_leg]) == []

        issues = integrity_issues([], [expense_leg])
        assert len(issues) == 1
        assert issues[0].issue_type == "unbalanced_transfer"
        assert issues[0].severity == "warning"

    def test_integrity_issues_flag_mismatched_amounts(self):
        """Test legs that disagree on amount are reported."""
        ids = IdGenerator(clock=lambda: 0)
        expense_leg, income_leg = make_withdrawal("BBVA", Decimal("50"), day(2), ids)
        tampered = income_leg.model_copy(update={"amount": Decimal("49")})
        issues = integrity_issues([tampered], [expense_leg])
        assert [i.issue_type for i in issues] == ["mismatched_legs"]


class TestRecordStore:
    """Tests for the record store and its transfer side table."""

    def test_add_and_remove(self):
        """Test add/remove by kind and id."""
        store = RecordStore()
        store.add(EntryKind.INCOME, income(1, 10, day(1)))
        store.add(EntryKind.EXPENSE, expense(2, 5, day(1)))
        assert len(store) == 2
        assert store.find(2).description == "Expense"

        removed = store.remove(EntryKind.EXPENSE, 2)
        assert removed.id == 2
        assert store.remove(EntryKind.EXPENSE, 2) is None
        assert len(store) == 1

    def test_returned_lists_are_copies(self):
        """Test callers cannot mutate the store through a returned list."""
        store = RecordStore(incomes=[income(1, 10, day(1))])
        store.incomes.clear()
        assert len(store.incomes) == 1

    def test_side_table_tracks_transfers(self):
        """Test the side table follows adds and removes."""
        ids = IdGenerator(clock=lambda: 0)
        expense_leg, income_leg = make_withdrawal("BBVA", Decimal("5"), day(1), ids)
        store = RecordStore()
        store.add(EntryKind.EXPENSE, expense_leg)
        store.add(EntryKind.INCOME, income_leg)
        link = store.transfer_link(expense_leg.transfer_id)
        assert link.is_complete

        store.remove(EntryKind.EXPENSE, expense_leg.id)
        store.remove(EntryKind.INCOME, income_leg.id)
        assert store.transfer_link(expense_leg.transfer_id) is None


class TestBalanceCalculator:
    """Tests for chronological replay."""

    def test_chronological_order(self):
        """Test (date, id) ordering across both collections."""
        stream = chronological(
            [income(5, 10, day(2)), income(1, 10, day(1))],
            [expense(3, 5, day(1))],
        )
        assert [entry.id for _, entry in stream] == [1, 3, 5]

    def test_replay_running_balances(self):
        """Test each step reports the affected account's balance."""
        steps = list(replay(
            [income(1, 100, day(1)), income(4, 20, day(3), bank="BBVA")],
            [expense(2, 30, day(2))],
        ))
        assert [(s.account_key, s.balance) for s in steps] == [
            ("__cash__", Decimal("100")),
            ("__cash__", Decimal("70")),
            ("BBVA", Decimal("20")),
        ]

    def test_registered_accounts_start_at_zero(self):
        """Test every registry account appears in the snapshot."""
        snapshot = compute_balances([], [], [Account(name="BBVA"), Account(name="ING")])
        assert snapshot.cards == {"BBVA": Decimal("0"), "ING": Decimal("0")}
        assert snapshot.cash == Decimal("0")

    def test_unregistered_banks_are_still_counted(self):
        """Test entries naming an unknown bank keep their money."""
        snapshot = compute_balances([income(1, 10, day(1), bank="Ghost")], [])
        assert snapshot.cards["Ghost"] == Decimal("10")
        assert snapshot.card_total == Decimal("10")

    def test_available_pair(self):
        """Test the {card, cash} split and total."""
        snapshot = compute_balances(
            [income(1, 100, day(1)), income(2, 40, day(1), bank="BBVA")],
            [expense(3, 15, day(2), bank="BBVA")],
            [Account(name="BBVA")],
        )
        assert snapshot.available == {"card": Decimal("25"), "cash": Decimal("100")}
        assert snapshot.total == Decimal("125")
        assert snapshot.balance_of(AccountRef.card("BBVA")) == Decimal("25")
        assert snapshot.balance_of(AccountRef.cash()) == Decimal("100")

    @pytest.mark.parametrize("seed", [1, 2, 3])
    def test_final_balance_ignores_insertion_order(self, seed):
        """Test final totals depend only on the record set."""
        incomes = [income(i, 10 + i, day(i)) for i in range(1, 6)]
        expenses = [expense(10 + i, i, day(i), bank="BBVA") for i in range(1, 4)]
        expected = compute_balances(incomes, expenses)

        rng = random.Random(seed)
        shuffled_incomes = incomes[:]
        shuffled_expenses = expenses[:]
        rng.shuffle(shuffled_incomes)
        rng.shuffle(shuffled_expenses)
        assert compute_balances(shuffled_incomes, shuffled_expenses) == expected

    def test_same_day_tie_break_is_by_id(self):
        """Test an expense created before the income on the same day replays first."""
        steps = list(replay([income(2, 10, day(1))], [expense(1, 10, day(1))]))
        assert [s.balance for s in steps] == [Decimal("-10"), Decimal("0")]

    def test_every_permutation_gives_the_same_replay(self):
        """Test replay order is fixed by (date, id), not list order."""
        entries = [income(1, 10, day(1)), income(3, 5, day(2)), income(2, 1, day(2))]
        orders = {
            tuple(s.entry.id for s in replay(list(p), []))
            for p in itertools.permutations(entries)
        }
        assert orders == {(1, 2, 3)}
