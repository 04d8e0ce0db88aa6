"""
Main Orchestrator for Finledger

This module ties together all the components and defines the
end-to-end flows for one country's ledger:
1. Mutation intents (add / delete entries, transfers, registry changes)
   -> input validation -> history validation -> commit -> audit -> persist
2. Read projections (balances, summaries, history, export)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches the record store without HistoryValidator approval
- A refused mutation leaves the ledger exactly as it was
- No exception crosses the session boundary for a refused mutation;
  callers get a MutationResult
- Every step is audited

This is the "glue" that keeps the ledger consistent even when callers
send bad input.
"""

import datetime as dt
from decimal import Decimal
from typing import Callable, Optional

from pydantic import ValidationError

from finledger.audit import AuditLogger, create_correlation_id
from finledger.errors import (
    InvalidInputError,
    LedgerError,
    ReferentialConflictError,
    ValidationRejectedError,
)
from finledger.export import build_report_rows, render_csv, report_filename
from finledger.ledger import (
    BalanceSnapshot,
    IdGenerator,
    RecordStore,
    integrity_issues,
    make_transfer,
)
from finledger.models.audit import AuditEventType
from finledger.models.entry import (
    AccountRef,
    EntryKind,
    ExpenseEntry,
    IncomeEntry,
    LedgerEntry,
    RenderableTransaction,
)
from finledger.models.registry import Account, Category, Country, FixedExpense
from finledger.models.results import (
    LedgerErrorKind,
    MutationResult,
    ValidationIssue,
    ValidationResult,
)
from finledger.models.state import LedgerState
from finledger.queries import (
    Aggregator,
    EntrySummary,
    LedgerSummary,
    TransactionFilter,
    apply_filter,
    build_history,
    group_by_week,
)
from finledger.services.storage import (
    BlobAuditStorage,
    BlobStorageInterface,
    LedgerRepository,
    create_blob_storage,
)
from finledger.services.storage.repository import (
    BANKS,
    CATEGORIES,
    EXPENSES,
    FIXED_EXPENSES,
    INCOMES,
)
from finledger.validation import (
    HistoryValidator,
    parse_amount,
    parse_date,
    parse_description,
    resolve_account,
    resolve_category,
)


ENTRIES = (INCOMES, EXPENSES)

_ERROR_KINDS = (
    (InvalidInputError, LedgerErrorKind.INVALID_INPUT),
    (ValidationRejectedError, LedgerErrorKind.VALIDATION_REJECTED),
    (ReferentialConflictError, LedgerErrorKind.REFERENTIAL_CONFLICT),
)


def error_kind_for(error: LedgerError) -> LedgerErrorKind:
    for error_type, kind in _ERROR_KINDS:
        if isinstance(error, error_type):
            return kind
    return LedgerErrorKind.INVALID_INPUT


def issues_from_pydantic(error: ValidationError) -> list[ValidationIssue]:
    return [
        ValidationIssue(
            field=".".join(str(part) for part in err["loc"]) or "input",
            issue_type=err["type"],
            message=err["msg"],
        )
        for err in error.errors()
    ]


def _refusal_result(error: Exception) -> ValidationResult:
    """Input errors seen by a pre-flight check, in ValidationResult form."""
    if isinstance(error, LedgerError):
        return ValidationResult(is_valid=False, issues=error.to_issues(error_kind_for(error).value))
    return ValidationResult(is_valid=False, issues=issues_from_pydantic(error))


class LedgerSession:
    """
    One country's ledger, loaded into memory.

    Flow for every mutation:
    1. Parse and check the input (InvalidInput)
    2. Resolve account / category references (ValidationRejected)
    3. Build the candidate record set and replay it (ValidationRejected)
    4. Commit to the record store
    5. Audit and write through to storage

    Switching country means opening a new session.
    """

    def __init__(
        self,
        country: Country,
        state: Optional[LedgerState] = None,
        repository: Optional[LedgerRepository] = None,
        audit_logger: Optional[AuditLogger] = None,
        today: Callable[[], dt.date] = dt.date.today,
        id_generator: Optional[IdGenerator] = None,
    ):
        state = state or LedgerState()
        self._country = country
        self._repository = repository
        self._store = RecordStore(state.incomes, state.expenses)
        self._registry = LedgerState(
            accounts=list(state.accounts),
            categories=list(state.categories),
            fixed_expenses=list(state.fixed_expenses),
        )
        self._ids = id_generator or IdGenerator(start_after=state.max_entry_id)
        self._validator = HistoryValidator()
        self._audit = audit_logger or AuditLogger(correlation_id=create_correlation_id())
        self._today = today

    @classmethod
    def open(
        cls,
        repository: LedgerRepository,
        country: Country,
        audit_logger: Optional[AuditLogger] = None,
        today: Callable[[], dt.date] = dt.date.today,
    ) -> "LedgerSession":
        """Load a country's ledger from storage. Never fails on bad data."""
        audit_logger = audit_logger or AuditLogger(correlation_id=create_correlation_id())
        loaded = repository.load_state(country.code)
        for fallback in loaded.fallbacks:
            audit_logger.log_storage_fallback(fallback.key, fallback.reason)
        audit_logger.log_ledger_loaded(
            country.code,
            len(loaded.state.incomes),
            len(loaded.state.expenses),
        )
        return cls(
            country,
            state=loaded.state,
            repository=repository,
            audit_logger=audit_logger,
            today=today,
        )

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def country(self) -> Country:
        return self._country

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit

    @property
    def state(self) -> LedgerState:
        """A snapshot; changing it does not change the ledger."""
        return LedgerState(
            accounts=list(self._registry.accounts),
            categories=list(self._registry.categories),
            fixed_expenses=list(self._registry.fixed_expenses),
            incomes=self._store.incomes,
            expenses=self._store.expenses,
        )

    @property
    def accounts(self) -> list[Account]:
        return list(self._registry.accounts)

    @property
    def categories(self) -> list[Category]:
        return list(self._registry.categories)

    @property
    def fixed_expenses(self) -> list[FixedExpense]:
        return list(self._registry.fixed_expenses)

    @property
    def incomes(self) -> list[IncomeEntry]:
        return self._store.incomes

    @property
    def expenses(self) -> list[ExpenseEntry]:
        return self._store.expenses

    def today(self) -> dt.date:
        return self._today()

    # =========================================================================
    # READS
    # =========================================================================

    def _aggregator(self) -> Aggregator:
        return Aggregator(self.state)

    def balances(self) -> BalanceSnapshot:
        return self._aggregator().balances()

    def summary(self, as_of: Optional[dt.date] = None) -> LedgerSummary:
        return self._aggregator().ledger_summary(as_of or self.today())

    def entry_summary(self, kind: EntryKind, as_of: Optional[dt.date] = None) -> EntrySummary:
        return self._aggregator().summary(kind, as_of or self.today())

    def monthly_detail(self, kind: EntryKind, as_of: Optional[dt.date] = None) -> list[LedgerEntry]:
        return self._aggregator().entries_in_month(kind, as_of or self.today())

    def history(self, flt: Optional[TransactionFilter] = None) -> list[RenderableTransaction]:
        rows = build_history(self._store.incomes, self._store.expenses, self._store.transfer_links())
        return apply_filter(rows, flt)

    def history_by_week(
        self,
        flt: Optional[TransactionFilter] = None,
    ) -> dict[dt.date, list[RenderableTransaction]]:
        return group_by_week(self.history(flt))

    def accounts_with_funds(self) -> list[Account]:
        """Card accounts with a positive balance."""
        cards = self.balances().cards
        return [a for a in self._registry.accounts if cards.get(a.name, Decimal("0")) > 0]

    def first_income_date(self) -> Optional[dt.date]:
        return min((e.date for e in self._store.incomes), default=None)

    def integrity_issues(self) -> list[ValidationIssue]:
        """Warnings about damaged transfer pairs in the loaded data."""
        return integrity_issues(self._store.incomes, self._store.expenses)

    def validate_history(self) -> ValidationResult:
        return self._validator.validate(self._store.incomes, self._store.expenses)

    # =========================================================================
    # PRE-FLIGHT CHECKS
    # =========================================================================

    def _preview_ids(self) -> IdGenerator:
        """Ids that sort after every existing entry, like real ones would."""
        return IdGenerator(start_after=self.state.max_entry_id, clock=lambda: 0)

    def can_add_expense(
        self,
        amount,
        on,
        account: Optional[AccountRef],
        category: Optional[str] = None,
    ) -> ValidationResult:
        """Same answer add_expense would give, without committing."""
        try:
            entry = self._build_expense("Pending expense", amount, on, account, category, ids=self._preview_ids())
        except (LedgerError, ValidationError) as e:
            return _refusal_result(e)
        return self._check_addition(new_expenses=[entry])

    def can_add_income(self, amount, on, account: Optional[AccountRef]) -> ValidationResult:
        try:
            entry = self._build_income("Pending income", amount, on, account, ids=self._preview_ids())
        except (LedgerError, ValidationError) as e:
            return _refusal_result(e)
        return self._check_addition(new_incomes=[entry])

    def can_transfer(
        self,
        from_account: Optional[AccountRef],
        to_account: Optional[AccountRef],
        amount,
        on,
    ) -> ValidationResult:
        """Same answer transfer would give, without committing."""
        try:
            expense_leg, income_leg = self._build_transfer(
                from_account, to_account, amount, on, ids=self._preview_ids()
            )
        except (LedgerError, ValidationError) as e:
            return _refusal_result(e)
        return self._check_addition(new_incomes=[income_leg], new_expenses=[expense_leg])

    # =========================================================================
    # BUILDERS
    # =========================================================================

    def _check_addition(
        self,
        new_incomes: tuple = (),
        new_expenses: tuple = (),
    ) -> ValidationResult:
        return self._validator.validate_addition(
            self._store.incomes,
            self._store.expenses,
            new_incomes=new_incomes,
            new_expenses=new_expenses,
        )

    def _build_income(self, description, amount, on, account, ids: IdGenerator) -> IncomeEntry:
        description = parse_description(description)
        amount = parse_amount(amount)
        on = parse_date(on)
        account = resolve_account(account, self._registry)
        return IncomeEntry(
            id=ids.next_id(),
            description=description,
            amount=amount,
            date=on,
            payment_method=account.channel,
            bank=account.bank,
        )

    def _build_expense(
        self,
        description,
        amount,
        on,
        account,
        category,
        ids: IdGenerator,
        fixed_expense_id: Optional[int] = None,
    ) -> ExpenseEntry:
        description = parse_description(description)
        amount = parse_amount(amount)
        on = parse_date(on)
        account = resolve_account(account, self._registry)
        category = resolve_category(category, self._registry)
        return ExpenseEntry(
            id=ids.next_id(),
            description=description,
            amount=amount,
            date=on,
            payment_method=account.channel,
            bank=account.bank,
            category=category,
            fixed_expense_id=fixed_expense_id,
        )

    def _build_transfer(
        self,
        from_account,
        to_account,
        amount,
        on,
        ids: IdGenerator,
        description: Optional[str] = None,
    ) -> tuple[ExpenseEntry, IncomeEntry]:
        amount = parse_amount(amount)
        on = parse_date(on)
        source = resolve_account(from_account, self._registry)
        target = resolve_account(to_account, self._registry)
        if source.key == target.key:
            raise InvalidInputError("Origin and destination accounts must differ", field="account")
        return make_transfer(source, target, amount, on, ids, description)

    # =========================================================================
    # MUTATION PLUMBING
    # =========================================================================

    def _run(
        self,
        operation: str,
        action: Callable[[], MutationResult],
        collections: tuple[str, ...],
    ) -> MutationResult:
        """
        Execute one mutation intent.

        Ledger and input errors become a refused MutationResult; only an
        accepted mutation is written through to storage.
        """
        try:
            result = action()
        except LedgerError as e:
            kind = error_kind_for(e)
            self._audit.log_mutation_rejected(operation, kind.value, e.message)
            return MutationResult.refused(kind, e.message, e.to_issues(kind.value))
        except ValidationError as e:
            issues = issues_from_pydantic(e)
            message = "; ".join(issue.message for issue in issues)
            self._audit.log_mutation_rejected(operation, LedgerErrorKind.INVALID_INPUT.value, message)
            return MutationResult.refused(LedgerErrorKind.INVALID_INPUT, message, issues)

        self._persist(collections)
        return result

    def _persist(self, collections: tuple[str, ...]) -> None:
        """Write-through; failures are audited and otherwise ignored."""
        if self._repository is None:
            return
        failures = self._repository.save_state(self._country.code, self.state, collections)
        for failure in failures:
            self._audit.log_persist_failed(failure.key, failure.reason)

    def _commit_entries(self, incomes: list[IncomeEntry], expenses: list[ExpenseEntry]) -> list[int]:
        for entry in expenses:
            self._store.add(EntryKind.EXPENSE, entry)
        for entry in incomes:
            self._store.add(EntryKind.INCOME, entry)
        return [e.id for e in expenses] + [e.id for e in incomes]

    # =========================================================================
    # ENTRIES
    # =========================================================================

    def add_income(self, description, amount, on, account: Optional[AccountRef]) -> MutationResult:
        def action():
            entry = self._build_income(description, amount, on, account, ids=self._ids)
            self._validator.require(self._check_addition(new_incomes=[entry]))
            ids = self._commit_entries([entry], [])
            self._audit.log_entry_added("income", entry.id, entry.description, entry.amount)
            return MutationResult.ok(ids)

        return self._run("add_income", action, ENTRIES)

    def add_expense(
        self,
        description,
        amount,
        on,
        account: Optional[AccountRef],
        category: Optional[str] = None,
    ) -> MutationResult:
        def action():
            entry = self._build_expense(description, amount, on, account, category, ids=self._ids)
            self._validator.require(self._check_addition(new_expenses=[entry]))
            ids = self._commit_entries([], [entry])
            self._audit.log_entry_added("expense", entry.id, entry.description, entry.amount)
            return MutationResult.ok(ids)

        return self._run("add_expense", action, ENTRIES)

    def add_fixed_expense_instance(
        self,
        template_id: int,
        on,
        account: Optional[AccountRef],
    ) -> MutationResult:
        """Record one occurrence of a recurring expense template."""
        def action():
            template = self._registry.find_fixed_expense(template_id)
            if template is None:
                raise ValidationRejectedError(
                    f"Fixed expense {template_id} does not exist",
                    field="fixed_expense_id",
                )
            entry = self._build_expense(
                template.description,
                template.amount,
                on,
                account,
                template.category,
                ids=self._ids,
                fixed_expense_id=template.id,
            )
            self._validator.require(self._check_addition(new_expenses=[entry]))
            ids = self._commit_entries([], [entry])
            self._audit.log_entry_added("expense", entry.id, entry.description, entry.amount)
            return MutationResult.ok(ids)

        return self._run("add_fixed_expense_instance", action, ENTRIES)

    def transfer(
        self,
        from_account: Optional[AccountRef],
        to_account: Optional[AccountRef],
        amount,
        on,
        description: Optional[str] = None,
    ) -> MutationResult:
        """Move money between two accounts as one expense leg and one income leg."""
        def action():
            expense_leg, income_leg = self._build_transfer(
                from_account, to_account, amount, on, ids=self._ids, description=description
            )
            self._validator.require(
                self._check_addition(new_incomes=[income_leg], new_expenses=[expense_leg])
            )
            ids = self._commit_entries([income_leg], [expense_leg])
            self._audit.log_transfer_added(
                expense_leg.transfer_id,
                expense_leg.account.label,
                income_leg.account.label,
                expense_leg.amount,
            )
            return MutationResult.ok(ids)

        return self._run("transfer", action, ENTRIES)

    def withdraw(self, bank: str, amount, on) -> MutationResult:
        """Card account -> cash."""
        return self.transfer(AccountRef.card(bank), AccountRef.cash(), amount, on)

    def deposit(self, bank: str, amount, on) -> MutationResult:
        """Cash -> card account."""
        return self.transfer(AccountRef.cash(), AccountRef.card(bank), amount, on)

    def delete_transaction(self, entry_id: int, kind: Optional[EntryKind] = None) -> MutationResult:
        """
        Delete one entry. Deleting either leg of a transfer deletes the
        whole transfer.
        """
        entry = self._store.get(kind, entry_id) if kind else self._store.find(entry_id)
        if entry is not None and entry.is_transfer:
            link = self._store.transfer_link(entry.transfer_id)
            if link is not None and entry.id in (link.income_id, link.expense_id):
                return self.delete_transfer(entry.transfer_id)

        def action():
            if entry is None:
                raise InvalidInputError(f"No transaction with id {entry_id}", field="id")
            is_income = isinstance(entry, IncomeEntry)
            result = self._validator.validate_removal(
                self._store.incomes,
                self._store.expenses,
                income_ids=[entry.id] if is_income else [],
                expense_ids=[] if is_income else [entry.id],
            )
            self._validator.require(result)
            self._store.remove(entry.kind, entry.id)
            self._audit.log_entry_deleted(entry.kind.value, entry.id)
            return MutationResult.ok([entry.id])

        return self._run("delete_transaction", action, ENTRIES)

    def delete_transfer(self, transfer_id: int) -> MutationResult:
        """Remove both legs the side table pairs under this transfer id, or nothing."""
        def action():
            link = self._store.transfer_link(transfer_id)
            if link is None:
                raise InvalidInputError(f"No transfer with id {transfer_id}", field="transfer_id")
            income_ids = [link.income_id] if link.income_id is not None else []
            expense_ids = [link.expense_id] if link.expense_id is not None else []
            result = self._validator.validate_removal(
                self._store.incomes,
                self._store.expenses,
                income_ids=income_ids,
                expense_ids=expense_ids,
            )
            self._validator.require(result)
            for entry_id in expense_ids:
                self._store.remove(EntryKind.EXPENSE, entry_id)
            for entry_id in income_ids:
                self._store.remove(EntryKind.INCOME, entry_id)
            leg_ids = expense_ids + income_ids
            self._audit.log_transfer_deleted(transfer_id, leg_ids)
            return MutationResult.ok(leg_ids)

        return self._run("delete_transfer", action, ENTRIES)

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    def add_account(self, name: str, color: Optional[str] = None) -> MutationResult:
        def action():
            account_name = (name or "").strip()
            if not account_name:
                raise InvalidInputError("Account name cannot be empty", field="name")
            if self._registry.find_account(account_name) is not None:
                raise InvalidInputError(f"Account '{account_name}' already exists", field="name")
            account = Account(name=account_name, color=color) if color else Account(name=account_name)
            self._registry.accounts.append(account)
            self._audit.log_registry_changed(
                AuditEventType.ACCOUNT_ADDED, "account", account.name, {"color": account.color}
            )
            return MutationResult.ok()

        return self._run("add_account", action, (BANKS,))

    def update_account(
        self,
        name: str,
        new_name: Optional[str] = None,
        color: Optional[str] = None,
    ) -> MutationResult:
        """Rename and/or recolor. A rename is rewritten onto every entry."""
        def action():
            account = self._registry.find_account(name)
            if account is None:
                raise ValidationRejectedError(f"Account '{name}' does not exist", field="account")
            target_name = account.name if new_name is None else new_name.strip()
            if not target_name:
                raise InvalidInputError("Account name cannot be empty", field="name")
            clash = self._registry.find_account(target_name)
            if clash is not None and clash is not account:
                raise InvalidInputError(f"Account '{target_name}' already exists", field="name")

            updated = Account(name=target_name, color=color or account.color)
            if updated.name != account.name:
                def rebank(entry):
                    if entry.bank and account.matches(entry.bank):
                        return entry.model_copy(update={"bank": updated.name})
                    return entry

                incomes = [rebank(e) for e in self._store.incomes]
                expenses = [rebank(e) for e in self._store.expenses]
                self._validator.require(self._validator.validate(incomes, expenses))
                self._store.replace(incomes, expenses)

            index = self._registry.accounts.index(account)
            self._registry.accounts[index] = updated
            self._audit.log_registry_changed(
                AuditEventType.ACCOUNT_UPDATED,
                "account",
                updated.name,
                {"old_name": account.name, "color": updated.color},
            )
            return MutationResult.ok()

        return self._run("update_account", action, (BANKS,) + ENTRIES)

    def delete_account(self, name: str) -> MutationResult:
        def action():
            account = self._registry.find_account(name)
            if account is None:
                raise ValidationRejectedError(f"Account '{name}' does not exist", field="account")
            in_use = sum(
                1 for e in [*self._store.incomes, *self._store.expenses]
                if e.bank and account.matches(e.bank)
            )
            if in_use:
                raise ReferentialConflictError(
                    f"Account '{account.name}' is used by {in_use} transaction(s)",
                    field="account",
                )
            self._registry.accounts.remove(account)
            self._audit.log_registry_changed(AuditEventType.ACCOUNT_DELETED, "account", account.name)
            return MutationResult.ok()

        return self._run("delete_account", action, (BANKS,))

    # =========================================================================
    # CATEGORIES
    # =========================================================================

    def add_category(self, name: str, icon: Optional[str] = None) -> MutationResult:
        def action():
            category_name = (name or "").strip()
            if not category_name:
                raise InvalidInputError("Category name cannot be empty", field="name")
            if self._registry.find_category(category_name) is not None:
                raise InvalidInputError(f"Category '{category_name}' already exists", field="name")
            category = Category(name=category_name, icon=icon) if icon else Category(name=category_name)
            self._registry.categories.append(category)
            self._audit.log_registry_changed(
                AuditEventType.CATEGORY_ADDED, "category", category.name, {"icon": category.icon}
            )
            return MutationResult.ok()

        return self._run("add_category", action, (CATEGORIES,))

    def update_category(
        self,
        name: str,
        new_name: Optional[str] = None,
        icon: Optional[str] = None,
    ) -> MutationResult:
        """Rename and/or change icon. A rename is rewritten onto expenses and templates."""
        def action():
            category = self._registry.find_category(name)
            if category is None:
                raise ValidationRejectedError(f"Category '{name}' does not exist", field="category")
            target_name = category.name if new_name is None else new_name.strip()
            if not target_name:
                raise InvalidInputError("Category name cannot be empty", field="name")
            clash = self._registry.find_category(target_name)
            if clash is not None and clash is not category:
                raise InvalidInputError(f"Category '{target_name}' already exists", field="name")

            updated = Category(name=target_name, icon=icon or category.icon)
            if updated.name != category.name:
                expenses = [
                    e.model_copy(update={"category": updated.name})
                    if e.category and category.matches(e.category) else e
                    for e in self._store.expenses
                ]
                self._store.replace(self._store.incomes, expenses)
                self._registry.fixed_expenses = [
                    t.model_copy(update={"category": updated.name}) if category.matches(t.category) else t
                    for t in self._registry.fixed_expenses
                ]

            index = self._registry.categories.index(category)
            self._registry.categories[index] = updated
            self._audit.log_registry_changed(
                AuditEventType.CATEGORY_UPDATED,
                "category",
                updated.name,
                {"old_name": category.name, "icon": updated.icon},
            )
            return MutationResult.ok()

        return self._run("update_category", action, (CATEGORIES, EXPENSES, FIXED_EXPENSES))

    def delete_category(self, name: str) -> MutationResult:
        def action():
            category = self._registry.find_category(name)
            if category is None:
                raise ValidationRejectedError(f"Category '{name}' does not exist", field="category")
            in_use = sum(
                1 for e in self._store.expenses
                if not e.is_transfer and e.category and category.matches(e.category)
            )
            templates = sum(1 for t in self._registry.fixed_expenses if category.matches(t.category))
            if in_use or templates:
                raise ReferentialConflictError(
                    f"Category '{category.name}' is used by {in_use} expense(s) "
                    f"and {templates} fixed expense(s)",
                    field="category",
                )
            self._registry.categories.remove(category)
            self._audit.log_registry_changed(AuditEventType.CATEGORY_DELETED, "category", category.name)
            return MutationResult.ok()

        return self._run("delete_category", action, (CATEGORIES,))

    # =========================================================================
    # FIXED EXPENSES
    # =========================================================================

    def _sort_fixed_expenses(self) -> None:
        self._registry.fixed_expenses.sort(key=lambda t: t.description.casefold())

    def add_fixed_expense(self, description, amount, category: Optional[str] = None) -> MutationResult:
        def action():
            template = FixedExpense(
                id=self._ids.next_id(),
                description=parse_description(description),
                amount=parse_amount(amount),
                category=resolve_category(category, self._registry),
            )
            self._registry.fixed_expenses.append(template)
            self._sort_fixed_expenses()
            self._audit.log_registry_changed(
                AuditEventType.FIXED_EXPENSE_ADDED,
                "fixed_expense",
                str(template.id),
                {"description": template.description, "amount": str(template.amount)},
            )
            return MutationResult.ok([template.id])

        return self._run("add_fixed_expense", action, (FIXED_EXPENSES,))

    def update_fixed_expense(
        self,
        template_id: int,
        description,
        amount,
        category: Optional[str] = None,
    ) -> MutationResult:
        """Replace a template. Entries already generated from it are left alone."""
        def action():
            template = self._registry.find_fixed_expense(template_id)
            if template is None:
                raise ValidationRejectedError(
                    f"Fixed expense {template_id} does not exist",
                    field="fixed_expense_id",
                )
            updated = FixedExpense(
                id=template.id,
                description=parse_description(description),
                amount=parse_amount(amount),
                category=resolve_category(category, self._registry),
            )
            index = self._registry.fixed_expenses.index(template)
            self._registry.fixed_expenses[index] = updated
            self._sort_fixed_expenses()
            self._audit.log_registry_changed(
                AuditEventType.FIXED_EXPENSE_UPDATED,
                "fixed_expense",
                str(updated.id),
                {"description": updated.description, "amount": str(updated.amount)},
            )
            return MutationResult.ok([updated.id])

        return self._run("update_fixed_expense", action, (FIXED_EXPENSES,))

    def delete_fixed_expense(self, template_id: int) -> MutationResult:
        def action():
            template = self._registry.find_fixed_expense(template_id)
            if template is None:
                raise ValidationRejectedError(
                    f"Fixed expense {template_id} does not exist",
                    field="fixed_expense_id",
                )
            self._registry.fixed_expenses.remove(template)
            self._audit.log_registry_changed(
                AuditEventType.FIXED_EXPENSE_DELETED, "fixed_expense", str(template.id)
            )
            return MutationResult.ok([template.id])

        return self._run("delete_fixed_expense", action, (FIXED_EXPENSES,))

    # =========================================================================
    # EXPORT
    # =========================================================================

    def export_report(self, as_of: Optional[dt.date] = None, bom: bool = True) -> tuple[str, str]:
        """
        Build the CSV report.

        Returns:
            (filename, csv_text)
        """
        as_of = as_of or self.today()
        rows = build_report_rows(
            self._country,
            self.summary(as_of),
            self._registry.accounts,
            self.history(),
        )
        return report_filename(self._country.code, as_of), render_csv(rows, bom=bom)


class CountryDirectory:
    """
    The list of ledger scopes and the active one.

    Each country owns its own accounts, categories, templates and entries.
    """

    def __init__(
        self,
        repository: LedgerRepository,
        audit_logger: Optional[AuditLogger] = None,
        today: Callable[[], dt.date] = dt.date.today,
    ):
        self._repository = repository
        self._audit = audit_logger or AuditLogger(correlation_id=create_correlation_id())
        self._today = today
        self._countries, fallbacks = repository.load_countries()
        for fallback in fallbacks:
            self._audit.log_storage_fallback(fallback.key, fallback.reason)

    @property
    def countries(self) -> list[Country]:
        return list(self._countries)

    def get(self, code: str) -> Optional[Country]:
        code = (code or "").strip().upper()
        for country in self._countries:
            if country.code == code:
                return country
        return None

    def active_code(self) -> Optional[str]:
        code = self._repository.active_country()
        return code if code and self.get(code) else None

    def _save(self) -> None:
        for failure in self._repository.save_countries(self._countries):
            self._audit.log_persist_failed(failure.key, failure.reason)

    def add_country(
        self,
        name: str,
        code: str,
        currency: str,
        flag: str = "",
        locale: Optional[str] = None,
    ) -> MutationResult:
        try:
            country = Country(
                name=name,
                code=(code or "").strip().upper(),
                currency=(currency or "").strip().upper(),
                flag=flag,
                locale=locale or "",
            )
            if any(c.name.lower() == country.name.lower() for c in self._countries):
                raise InvalidInputError(f"Country '{country.name}' already exists", field="name")
            if self.get(country.code) is not None:
                raise InvalidInputError(f"Country code '{country.code}' already exists", field="code")
        except InvalidInputError as e:
            self._audit.log_mutation_rejected("add_country", LedgerErrorKind.INVALID_INPUT.value, e.message)
            return MutationResult.refused(LedgerErrorKind.INVALID_INPUT, e.message, e.to_issues("invalid_input"))
        except ValidationError as e:
            issues = issues_from_pydantic(e)
            message = "; ".join(issue.message for issue in issues)
            self._audit.log_mutation_rejected("add_country", LedgerErrorKind.INVALID_INPUT.value, message)
            return MutationResult.refused(LedgerErrorKind.INVALID_INPUT, message, issues)

        self._countries.append(country)
        self._save()
        self._audit.log_registry_changed(
            AuditEventType.COUNTRY_ADDED,
            "country",
            country.code,
            {"name": country.name, "currency": country.currency},
        )
        return MutationResult.ok()

    def delete_country(self, code: str) -> MutationResult:
        """Remove a country and every key scoped to it."""
        country = self.get(code)
        if country is None:
            message = f"Country '{code}' does not exist"
            self._audit.log_mutation_rejected(
                "delete_country", LedgerErrorKind.VALIDATION_REJECTED.value, message
            )
            return MutationResult.refused(LedgerErrorKind.VALIDATION_REJECTED, message)

        self._countries.remove(country)
        self._save()
        removed = self._repository.delete_country_data(country.code)
        if self._repository.active_country() == country.code:
            self._repository.set_active_country(None)
        self._audit.log_registry_changed(
            AuditEventType.COUNTRY_DELETED, "country", country.code, {"removed_keys": removed}
        )
        return MutationResult.ok()

    def open_session(self, code: str) -> Optional[LedgerSession]:
        """Make a country active and load its ledger. None for an unknown code."""
        country = self.get(code)
        if country is None:
            self._audit.log_mutation_rejected(
                "open_session",
                LedgerErrorKind.VALIDATION_REJECTED.value,
                f"Country '{code}' does not exist",
            )
            return None
        for failure in self._repository.set_active_country(country.code):
            self._audit.log_persist_failed(failure.key, failure.reason)
        return LedgerSession.open(self._repository, country, audit_logger=self._audit, today=self._today)


def create_session(
    country_code: Optional[str] = None,
    storage: Optional[BlobStorageInterface] = None,
    persist_audit: bool = False,
) -> tuple[CountryDirectory, Optional[LedgerSession]]:
    """
    Factory function to create the application components.

    Args:
        country_code: Country to open. Defaults to the remembered one.
        storage: Blob store. Defaults to the backend named in settings.
        persist_audit: Also keep audit events in the blob store.

    Returns:
        (country_directory, session) - session is None when no country
        is given and none is remembered, or the code is unknown.
    """
    storage = storage or create_blob_storage()
    repository = LedgerRepository(storage)
    audit_logger = AuditLogger(
        BlobAuditStorage(storage) if persist_audit else None,
        correlation_id=create_correlation_id(),
    )
    directory = CountryDirectory(repository, audit_logger)
    code = country_code or directory.active_code()
    if code is None:
        return directory, None
    return directory, directory.open_session(code)
