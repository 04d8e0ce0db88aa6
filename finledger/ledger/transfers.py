"""
Transfer Codec

A transfer is stored as two records: an expense leg on the source
account and an income leg on the destination, sharing a transfer id.
This module builds that pair and turns stored legs back into logical
transfers.

Reconstruction is fail-soft. A leg whose partner is missing is not a
transfer; it is shown as an ordinary entry instead of raising.
"""

import datetime as dt
from decimal import Decimal
from typing import Iterable, NamedTuple, Optional

from finledger.config import get_settings
from finledger.ledger.ids import IdGenerator
from finledger.models.entry import (
    AccountRef,
    ExpenseEntry,
    IncomeEntry,
    LedgerEntry,
    Transfer,
    TransferLink,
)
from finledger.models.results import ValidationIssue


class Reconstruction(NamedTuple):
    transfers: list[Transfer]
    unpaired: list[LedgerEntry]


def make_transfer(
    from_account: AccountRef,
    to_account: AccountRef,
    amount: Decimal,
    on: dt.date,
    ids: IdGenerator,
    description: Optional[str] = None,
) -> tuple[ExpenseEntry, IncomeEntry]:
    """
    Build both legs of one transfer.

    The expense leg gets the lower id so it replays first on the same day,
    and its id doubles as the transfer id.
    """
    description = description or get_settings().ledger.transfer_description
    expense_id = ids.next_id()
    income_id = ids.next_id()

    expense_leg = ExpenseEntry(
        id=expense_id,
        description=description,
        amount=amount,
        date=on,
        payment_method=from_account.channel,
        bank=from_account.bank,
        is_transfer=True,
        transfer_id=expense_id,
    )
    income_leg = IncomeEntry(
        id=income_id,
        description=description,
        amount=amount,
        date=on,
        payment_method=to_account.channel,
        bank=to_account.bank,
        is_transfer=True,
        transfer_id=expense_id,
    )
    return expense_leg, income_leg


def make_withdrawal(
    bank: str,
    amount: Decimal,
    on: dt.date,
    ids: IdGenerator,
) -> tuple[ExpenseEntry, IncomeEntry]:
    """Card account -> cash."""
    return make_transfer(AccountRef.card(bank), AccountRef.cash(), amount, on, ids)


def make_deposit(
    bank: str,
    amount: Decimal,
    on: dt.date,
    ids: IdGenerator,
) -> tuple[ExpenseEntry, IncomeEntry]:
    """Cash -> card account."""
    return make_transfer(AccountRef.cash(), AccountRef.card(bank), amount, on, ids)


def index_transfers(
    incomes: Iterable[LedgerEntry],
    expenses: Iterable[LedgerEntry],
) -> dict[int, TransferLink]:
    """
    Build the transfer_id -> (income id, expense id) side table.

    When damaged data holds more than one leg per side, the first one wins.
    """
    links: dict[int, TransferLink] = {}
    for entry in expenses:
        if not entry.is_transfer or entry.transfer_id is None:
            continue
        link = links.setdefault(entry.transfer_id, TransferLink(transfer_id=entry.transfer_id))
        if link.expense_id is None:
            link.expense_id = entry.id
    for entry in incomes:
        if not entry.is_transfer or entry.transfer_id is None:
            continue
        link = links.setdefault(entry.transfer_id, TransferLink(transfer_id=entry.transfer_id))
        if link.income_id is None:
            link.income_id = entry.id
    return links


def reconstruct(
    expenses: list[ExpenseEntry],
    incomes: list[IncomeEntry],
    links: Optional[Iterable[TransferLink]] = None,
) -> Reconstruction:
    """
    Pair transfer legs into logical transfers; report legs left without a partner.

    `links` is the record store's side table; without it the pairing is
    rebuilt from the legs.
    """
    if links is None:
        links = index_transfers(incomes, expenses).values()
    expenses_by_id = {e.id: e for e in expenses}
    incomes_by_id = {e.id: e for e in incomes}

    transfers: list[Transfer] = []
    paired_ids: set[int] = set()
    for link in links:
        if not link.is_complete:
            continue
        expense_leg = expenses_by_id.get(link.expense_id)
        income_leg = incomes_by_id.get(link.income_id)
        if expense_leg is None or income_leg is None:
            continue
        transfers.append(Transfer(
            transfer_id=link.transfer_id,
            expense_id=expense_leg.id,
            income_id=income_leg.id,
            amount=expense_leg.amount,
            date=expense_leg.date,
            from_account=expense_leg.account,
            to_account=income_leg.account,
        ))
        paired_ids.add(expense_leg.id)
        paired_ids.add(income_leg.id)

    unpaired = [
        e for e in [*expenses, *incomes]
        if e.is_transfer and e.id not in paired_ids
    ]
    return Reconstruction(transfers=transfers, unpaired=unpaired)


def integrity_issues(
    incomes: list[IncomeEntry],
    expenses: list[ExpenseEntry],
) -> list[ValidationIssue]:
    """
    Check that every transfer id has exactly one leg per side and that
    the legs agree on amount and date.
    """
    issues: list[ValidationIssue] = []
    counts: dict[int, list[int]] = {}
    for entry in incomes:
        if entry.is_transfer:
            counts.setdefault(entry.transfer_id, [0, 0])[0] += 1
    for entry in expenses:
        if entry.is_transfer:
            counts.setdefault(entry.transfer_id, [0, 0])[1] += 1

    for transfer_id, (income_legs, expense_legs) in counts.items():
        if income_legs != 1 or expense_legs != 1:
            issues.append(ValidationIssue(
                field="transfer_id",
                issue_type="unbalanced_transfer",
                message=(
                    f"Transfer {transfer_id} has {income_legs} income and "
                    f"{expense_legs} expense legs"
                ),
                severity="warning",
            ))

    for transfer in reconstruct(expenses, incomes).transfers:
        income_leg = next(e for e in incomes if e.id == transfer.income_id)
        if income_leg.amount != transfer.amount or income_leg.date != transfer.date:
            issues.append(ValidationIssue(
                field="transfer_id",
                issue_type="mismatched_legs",
                message=f"Transfer {transfer.transfer_id} legs disagree on amount or date",
                severity="warning",
            ))
    return issues
