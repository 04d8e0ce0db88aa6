"""
Transaction History

Builds the renderable list the history view and the export consume:
regular entries plus reconstructed transfers, newest first.
"""

import datetime as dt
from typing import Iterable, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from finledger.ledger.transfers import reconstruct
from finledger.models.entry import (
    ExpenseEntry,
    IncomeEntry,
    PaymentChannel,
    RenderableEntry,
    RenderableTransaction,
    Transfer,
    TransferLink,
)


def build_history(
    incomes: list[IncomeEntry],
    expenses: list[ExpenseEntry],
    links: Optional[Iterable[TransferLink]] = None,
) -> list[RenderableTransaction]:
    """
    Merge regular entries and logical transfers, sorted by
    (date desc, id desc).

    A transfer leg whose partner is missing is shown as an ordinary entry.
    `links` is the record store's transfer side table when available.
    """
    rows: list[RenderableTransaction] = []
    rows += [RenderableEntry(type="income", entry=e) for e in incomes if not e.is_transfer]
    rows += [RenderableEntry(type="expense", entry=e) for e in expenses if not e.is_transfer]

    transfers, unpaired = reconstruct(expenses, incomes, links)
    rows += transfers
    for leg in unpaired:
        rows.append(RenderableEntry(
            type="income" if isinstance(leg, IncomeEntry) else "expense",
            entry=leg,
        ))

    rows.sort(key=lambda row: (row.date, row.id), reverse=True)
    return rows


class TransactionFilter(BaseModel):
    """History view filter. Empty fields do not filter."""

    type: Literal["all", "income", "expense", "transfer"] = "all"
    channel: Literal["all", "card", "cash"] = "all"
    banks: list[str] = Field(default_factory=list)
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None

    @model_validator(mode='after')
    def validate_date_range(self) -> 'TransactionFilter':
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date")
        return self

    @property
    def is_active(self) -> bool:
        return (
            self.type != "all"
            or self.channel != "all"
            or bool(self.banks)
            or self.start_date is not None
            or self.end_date is not None
        )

    def matches(self, row: RenderableTransaction) -> bool:
        if self.start_date and row.date < self.start_date:
            return False
        if self.end_date and row.date > self.end_date:
            return False
        if self.type != "all" and row.type != self.type:
            return False

        if self.channel != "all":
            wanted = PaymentChannel(self.channel)
            if isinstance(row, Transfer):
                if wanted not in (row.from_account.channel, row.to_account.channel):
                    return False
            elif row.entry.payment_method != wanted:
                return False

        # Bank selection is ignored when only cash is shown
        if self.banks and self.channel != "cash":
            if isinstance(row, Transfer):
                return self._transfer_touches_banks(row)
            entry = row.entry
            if entry.payment_method != PaymentChannel.CARD or (entry.bank or "") not in self.banks:
                return False
        return True

    def _transfer_touches_banks(self, transfer: Transfer) -> bool:
        source, target = transfer.from_account, transfer.to_account
        from_card = source.channel == PaymentChannel.CARD
        to_card = target.channel == PaymentChannel.CARD
        if from_card and to_card:
            return (source.bank or "") in self.banks or (target.bank or "") in self.banks
        if from_card:
            return (source.bank or "") in self.banks
        if to_card:
            return (target.bank or "") in self.banks
        return False


def apply_filter(
    rows: list[RenderableTransaction],
    flt: Optional[TransactionFilter],
) -> list[RenderableTransaction]:
    if flt is None or not flt.is_active:
        return list(rows)
    return [row for row in rows if flt.matches(row)]


def week_start(day: dt.date) -> dt.date:
    """Monday of the week containing `day`."""
    return day - dt.timedelta(days=day.weekday())


def group_by_week(rows: list[RenderableTransaction]) -> dict[dt.date, list[RenderableTransaction]]:
    """Group rows by the Monday of their week, keeping input order within and across groups."""
    groups: dict[dt.date, list[RenderableTransaction]] = {}
    for row in rows:
        groups.setdefault(week_start(row.date), []).append(row)
    return groups
