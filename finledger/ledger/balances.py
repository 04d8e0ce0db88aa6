"""
Balance Calculator

Chronological replay: merge both collections into one stream, sort by
(date, id) and fold from zero. Incomes add to their account, expenses
subtract.

DESIGN DECISION: Balances are a pure function of the record set.
Nothing is cached and nothing is patched incrementally; any change to
the records means a fresh replay.
"""

from decimal import Decimal
from typing import Iterable, Iterator, NamedTuple, Optional

from pydantic import BaseModel, Field

from finledger.models.entry import (
    CASH_KEY,
    AccountRef,
    EntryKind,
    LedgerEntry,
)
from finledger.models.registry import Account


ZERO = Decimal("0")


class ReplayStep(NamedTuple):
    kind: EntryKind
    entry: LedgerEntry
    account_key: str
    balance: Decimal


class BalanceSnapshot(BaseModel):
    """
    Present-day balances.

    Cash and card accounts are kept apart because available balance is
    reported as a {card, cash} pair.
    """

    cash: Decimal = ZERO
    cards: dict[str, Decimal] = Field(default_factory=dict)

    @property
    def card_total(self) -> Decimal:
        return sum(self.cards.values(), ZERO)

    @property
    def total(self) -> Decimal:
        return self.cash + self.card_total

    @property
    def available(self) -> dict[str, Decimal]:
        return {"card": self.card_total, "cash": self.cash}

    def balance_of(self, account: AccountRef) -> Decimal:
        if account.key == CASH_KEY:
            return self.cash
        return self.cards.get(account.key, ZERO)


def chronological(
    incomes: Iterable[LedgerEntry],
    expenses: Iterable[LedgerEntry],
) -> list[tuple[EntryKind, LedgerEntry]]:
    """Merge both collections tagged by direction, oldest first, id as tie-break."""
    stream = [(EntryKind.INCOME, e) for e in incomes]
    stream += [(EntryKind.EXPENSE, e) for e in expenses]
    stream.sort(key=lambda item: (item[1].date, item[1].id))
    return stream


def replay(
    incomes: Iterable[LedgerEntry],
    expenses: Iterable[LedgerEntry],
    balances: Optional[dict[str, Decimal]] = None,
) -> Iterator[ReplayStep]:
    """
    Yield the running balance of the affected account after every entry.

    `balances` is updated in place, so after exhausting the iterator it
    holds the final balance of every account touched.
    """
    if balances is None:
        balances = {}
    balances.setdefault(CASH_KEY, ZERO)

    for kind, entry in chronological(incomes, expenses):
        key = entry.account_key
        current = balances.get(key, ZERO)
        if kind == EntryKind.INCOME:
            current += entry.amount
        else:
            current -= entry.amount
        balances[key] = current
        yield ReplayStep(kind, entry, key, current)


def compute_balances(
    incomes: Iterable[LedgerEntry],
    expenses: Iterable[LedgerEntry],
    accounts: Iterable[Account] = (),
) -> BalanceSnapshot:
    """
    Replay every record and report the final balance per account.

    Every registered account appears, at zero when it has no entries.
    Entries naming an unregistered account are still counted.
    """
    balances: dict[str, Decimal] = {CASH_KEY: ZERO}
    for account in accounts:
        balances[account.name] = ZERO

    for _ in replay(incomes, expenses, balances):
        pass

    cash = balances.pop(CASH_KEY)
    return BalanceSnapshot(cash=cash, cards=balances)
