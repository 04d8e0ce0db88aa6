"""
Record Store

Owns the two entry collections and the transfer side table.

IMPORTANT: The store does not validate. It is only ever mutated after
the history validator has approved the resulting record set, so it is
never handed out as a public mutation path.
"""

from typing import Iterable, Optional

from finledger.ledger.transfers import index_transfers
from finledger.models.entry import (
    EntryKind,
    ExpenseEntry,
    IncomeEntry,
    LedgerEntry,
    TransferLink,
)


class RecordStore:
    """
    Income and expense records, unordered.

    Callers sort for anything chronology-dependent.
    """

    def __init__(
        self,
        incomes: Optional[Iterable[IncomeEntry]] = None,
        expenses: Optional[Iterable[ExpenseEntry]] = None,
    ):
        self._entries: dict[EntryKind, list[LedgerEntry]] = {
            EntryKind.INCOME: list(incomes or []),
            EntryKind.EXPENSE: list(expenses or []),
        }
        self._transfers: dict[int, TransferLink] = {}
        self._reindex()

    def _reindex(self) -> None:
        self._transfers = index_transfers(
            self._entries[EntryKind.INCOME],
            self._entries[EntryKind.EXPENSE],
        )

    @property
    def incomes(self) -> list[IncomeEntry]:
        return list(self._entries[EntryKind.INCOME])

    @property
    def expenses(self) -> list[ExpenseEntry]:
        return list(self._entries[EntryKind.EXPENSE])

    def entries(self, kind: EntryKind) -> list[LedgerEntry]:
        return list(self._entries[kind])

    def get(self, kind: EntryKind, entry_id: int) -> Optional[LedgerEntry]:
        for entry in self._entries[kind]:
            if entry.id == entry_id:
                return entry
        return None

    def find(self, entry_id: int) -> Optional[LedgerEntry]:
        """Look an id up in either collection."""
        return self.get(EntryKind.EXPENSE, entry_id) or self.get(EntryKind.INCOME, entry_id)

    def add(self, kind: EntryKind, entry: LedgerEntry) -> None:
        self._entries[kind].append(entry)
        if entry.is_transfer and entry.transfer_id is not None:
            link = self._transfers.setdefault(
                entry.transfer_id, TransferLink(transfer_id=entry.transfer_id)
            )
            if kind == EntryKind.INCOME and link.income_id is None:
                link.income_id = entry.id
            elif kind == EntryKind.EXPENSE and link.expense_id is None:
                link.expense_id = entry.id

    def remove(self, kind: EntryKind, entry_id: int) -> Optional[LedgerEntry]:
        """Remove one entry by id. Returns it, or None when absent."""
        entries = self._entries[kind]
        for index, entry in enumerate(entries):
            if entry.id == entry_id:
                del entries[index]
                if entry.is_transfer:
                    self._reindex()
                return entry
        return None

    def replace(
        self,
        incomes: Iterable[IncomeEntry],
        expenses: Iterable[ExpenseEntry],
    ) -> None:
        """Swap in a whole approved record set (bulk renames)."""
        self._entries[EntryKind.INCOME] = list(incomes)
        self._entries[EntryKind.EXPENSE] = list(expenses)
        self._reindex()

    def transfer_link(self, transfer_id: int) -> Optional[TransferLink]:
        return self._transfers.get(transfer_id)

    def transfer_links(self) -> list[TransferLink]:
        return list(self._transfers.values())

    def __len__(self) -> int:
        return len(self._entries[EntryKind.INCOME]) + len(self._entries[EntryKind.EXPENSE])
