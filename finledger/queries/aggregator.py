"""
Aggregator

DESIGN DECISION: Aggregates are DETERMINISTIC read projections.
They are recomputed from the record set on every call, against an
explicit as-of date. Nothing here reads the wall clock.

Two kinds of sums live side by side:
- "Real" totals exclude transfer legs. Moving money between your own
  accounts is not income and not spending.
- Per-channel flows include transfer legs, because a withdrawal really
  does move money from card to cash.
"""

import datetime as dt
from decimal import Decimal
from typing import Iterable

from pydantic import BaseModel

from finledger.ledger.balances import ZERO, BalanceSnapshot, compute_balances
from finledger.models.entry import EntryKind, LedgerEntry, PaymentChannel
from finledger.models.state import LedgerState


def in_month(day: dt.date, as_of: dt.date) -> bool:
    """Same calendar month, compared on the stored year and month."""
    return day.year == as_of.year and day.month == as_of.month


class EntrySummary(BaseModel):
    """Scoped totals for one collection (incomes or expenses)."""

    total: Decimal = ZERO
    this_month: Decimal = ZERO
    today: Decimal = ZERO

    card_total: Decimal = ZERO
    cash_total: Decimal = ZERO
    card_this_month: Decimal = ZERO
    cash_this_month: Decimal = ZERO
    card_today: Decimal = ZERO
    cash_today: Decimal = ZERO

    # Transfer legs included
    card_flow: Decimal = ZERO
    cash_flow: Decimal = ZERO
    card_this_month_flow: Decimal = ZERO
    cash_this_month_flow: Decimal = ZERO


def summarize(entries: Iterable[LedgerEntry], as_of: dt.date) -> EntrySummary:
    """
    Fold one collection into an EntrySummary.

    Channel is taken from payment_method alone, so a card entry with
    no bank still counts as card here even though it replays into cash.
    """
    summary = EntrySummary()
    for entry in entries:
        is_card = entry.payment_method == PaymentChannel.CARD
        this_month = in_month(entry.date, as_of)
        amount = entry.amount

        if is_card:
            summary.card_flow += amount
            if this_month:
                summary.card_this_month_flow += amount
        else:
            summary.cash_flow += amount
            if this_month:
                summary.cash_this_month_flow += amount

        if entry.is_transfer:
            continue

        summary.total += amount
        if is_card:
            summary.card_total += amount
        else:
            summary.cash_total += amount

        if this_month:
            summary.this_month += amount
            if is_card:
                summary.card_this_month += amount
            else:
                summary.cash_this_month += amount

        if entry.date == as_of:
            summary.today += amount
            if is_card:
                summary.card_today += amount
            else:
                summary.cash_today += amount
    return summary


class LedgerSummary(BaseModel):
    """Everything a dashboard needs for one as-of date."""

    as_of: dt.date
    balances: BalanceSnapshot
    incomes: EntrySummary
    expenses: EntrySummary

    @property
    def net_this_month(self) -> Decimal:
        return self.incomes.this_month - self.expenses.this_month

    @property
    def net_total(self) -> Decimal:
        return self.incomes.total - self.expenses.total


class Aggregator:
    """Scoped rollups over a LedgerState snapshot."""

    def __init__(self, state: LedgerState):
        self._state = state

    def balances(self) -> BalanceSnapshot:
        return compute_balances(
            self._state.incomes,
            self._state.expenses,
            self._state.accounts,
        )

    def summary(self, kind: EntryKind, as_of: dt.date) -> EntrySummary:
        return summarize(self._state.entries(kind), as_of)

    def ledger_summary(self, as_of: dt.date) -> LedgerSummary:
        return LedgerSummary(
            as_of=as_of,
            balances=self.balances(),
            incomes=self.summary(EntryKind.INCOME, as_of),
            expenses=self.summary(EntryKind.EXPENSE, as_of),
        )

    def entries_in_month(self, kind: EntryKind, as_of: dt.date) -> list[LedgerEntry]:
        """Non-transfer entries of one kind in the as-of month, newest first."""
        entries = [
            e for e in self._state.entries(kind)
            if not e.is_transfer and in_month(e.date, as_of)
        ]
        entries.sort(key=lambda e: (e.date, e.id), reverse=True)
        return entries
