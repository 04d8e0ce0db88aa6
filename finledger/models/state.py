"""
LedgerState - the owned aggregate every engine operation reads.

A snapshot of one country's ledger: accounts, categories, recurring
templates and both entry collections. Engine algorithms are pure
functions of a snapshot; nothing reads half-updated shared state.
"""

from typing import Optional

from pydantic import BaseModel, Field

from finledger.models.entry import EntryKind, ExpenseEntry, IncomeEntry, LedgerEntry
from finledger.models.registry import Account, Category, FixedExpense


class LedgerState(BaseModel):
    """Snapshot of a single ledger scope."""

    accounts: list[Account] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    fixed_expenses: list[FixedExpense] = Field(default_factory=list)
    incomes: list[IncomeEntry] = Field(default_factory=list)
    expenses: list[ExpenseEntry] = Field(default_factory=list)

    def entries(self, kind: EntryKind) -> list[LedgerEntry]:
        return list(self.incomes if kind == EntryKind.INCOME else self.expenses)

    def find_account(self, name: Optional[str]) -> Optional[Account]:
        """Case-insensitive account lookup."""
        if not name:
            return None
        for account in self.accounts:
            if account.matches(name):
                return account
        return None

    def find_category(self, name: Optional[str]) -> Optional[Category]:
        """Case-insensitive category lookup."""
        if not name:
            return None
        for category in self.categories:
            if category.matches(name):
                return category
        return None

    def find_fixed_expense(self, template_id: int) -> Optional[FixedExpense]:
        for template in self.fixed_expenses:
            if template.id == template_id:
                return template
        return None

    @property
    def account_names(self) -> list[str]:
        return [account.name for account in self.accounts]

    @property
    def max_entry_id(self) -> int:
        ids = [e.id for e in self.incomes] + [e.id for e in self.expenses]
        ids += [t.id for t in self.fixed_expenses]
        return max(ids, default=0)
