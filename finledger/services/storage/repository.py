"""
Ledger Repository

Maps a country's LedgerState to and from the blob store.

DESIGN DECISION: Loading NEVER fails.
Persisted data is checked only loosely:
- A collection that is not a list is replaced by its default
- A single item that does not validate is skipped
- Legacy bare-string accounts are upgraded to {name, color}
- Entries with inconsistent transfer flags are kept as ordinary entries

Every substitution is reported back to the caller so it can be audited,
but the ledger always opens.

Saving is write-through and fire-and-forget: failures are collected and
returned, never raised.
"""

from typing import Any, Callable, NamedTuple, Optional

import structlog
from pydantic import BaseModel, ValidationError

from finledger.config import get_settings
from finledger.errors import MalformedPersistedDataError
from finledger.models.entry import ExpenseEntry, IncomeEntry
from finledger.models.registry import (
    DEFAULT_CATEGORIES,
    DEFAULT_COUNTRIES,
    Account,
    Category,
    Country,
    FixedExpense,
)
from finledger.models.state import LedgerState
from finledger.services.storage.interface import BlobStorageInterface, StorageError


logger = structlog.get_logger(__name__)

INCOMES = "incomes"
EXPENSES = "expenses"
FIXED_EXPENSES = "fixedExpenses"
BANKS = "banks"
CATEGORIES = "categories"
COUNTRY_SCOPED = (INCOMES, EXPENSES, FIXED_EXPENSES, BANKS, CATEGORIES)

COUNTRIES_KEY = "countries"
ACTIVE_COUNTRY_KEY = "country"


def scoped_key(collection: str, country_code: str) -> str:
    return f"{collection}_{country_code}"


class StorageFallback(NamedTuple):
    key: str
    reason: str


class LoadedLedger(NamedTuple):
    state: LedgerState
    fallbacks: list[StorageFallback]


def default_accounts() -> list[Account]:
    settings = get_settings().ledger
    return [Account(name=settings.default_account_name, color=settings.default_account_color)]


def default_categories() -> list[Category]:
    return [c.model_copy() for c in DEFAULT_CATEGORIES]


# =============================================================================
# SHAPE CHECKS
# =============================================================================

def _require_list(raw: Any, key: str) -> list:
    if not isinstance(raw, list):
        raise MalformedPersistedDataError(
            f"Expected a list at '{key}', got {type(raw).__name__}",
            field=key,
        )
    return raw


def _parse_items(
    raw: list,
    key: str,
    model: type[BaseModel],
    fallbacks: list[StorageFallback],
) -> list:
    items = []
    for index, item in enumerate(raw):
        try:
            items.append(model.model_validate(item))
        except ValidationError as e:
            reason = f"item {index} skipped: {e.error_count()} validation error(s)"
            logger.warning("malformed_item_skipped", key=key, index=index, error_count=e.error_count())
            fallbacks.append(StorageFallback(key, reason))
    return items


def _repair_transfer_flags(item: Any) -> tuple[Any, Optional[str]]:
    """
    A leg flagged as a transfer without an id, or an id on a non-transfer,
    is kept as an ordinary entry so its money stays on the books.
    """
    if not isinstance(item, dict):
        return item, None
    flag_key = "isTransfer" if "isTransfer" in item else "is_transfer"
    id_key = "transferId" if "transferId" in item else "transfer_id"
    is_transfer = bool(item.get(flag_key))
    has_id = item.get(id_key) is not None
    if is_transfer == has_id:
        return item, None
    repaired = dict(item)
    repaired.pop(flag_key, None)
    repaired.pop(id_key, None)
    reason = "transfer flag without transfer id" if is_transfer else "transfer id on a non-transfer entry"
    return repaired, reason


def parse_entries(raw: Any, key: str, model: type[BaseModel], fallbacks: list[StorageFallback]) -> list:
    items = []
    for index, item in enumerate(_require_list(raw, key)):
        item, reason = _repair_transfer_flags(item)
        if reason is not None:
            logger.warning("transfer_flags_repaired", key=key, index=index, reason=reason)
            fallbacks.append(StorageFallback(key, f"item {index} kept as ordinary entry: {reason}"))
        items.append(item)
    return _parse_items(items, key, model, fallbacks)


def parse_accounts(raw: Any, key: str, fallbacks: list[StorageFallback]) -> list[Account]:
    """
    Accounts are a list of {name, color}, or in legacy data a list of
    bare names. An empty list means a fresh ledger.
    """
    items = _require_list(raw, key)
    if not items:
        return default_accounts()

    if isinstance(items[0], str):
        palette = get_settings().ledger.legacy_colors_list
        upgraded = []
        for index, name in enumerate(items):
            if not isinstance(name, str) or not name.strip():
                fallbacks.append(StorageFallback(key, f"item {index} skipped: not a name"))
                continue
            try:
                upgraded.append(Account(name=name, color=palette[index % len(palette)]))
            except ValidationError as e:
                logger.warning("malformed_item_skipped", key=key, index=index, error_count=e.error_count())
                fallbacks.append(StorageFallback(
                    key, f"item {index} skipped: {e.error_count()} validation error(s)"
                ))
        return upgraded

    if isinstance(items[0], dict) and "name" in items[0]:
        return _parse_items(items, key, Account, fallbacks)

    raise MalformedPersistedDataError(f"Unrecognized account shape at '{key}'", field=key)


def parse_categories(raw: Any, key: str) -> list[Category]:
    items = _require_list(raw, key)
    first = items[0] if items else None
    if not isinstance(first, dict) or not first.get("name") or not first.get("icon"):
        raise MalformedPersistedDataError(f"Unrecognized category shape at '{key}'", field=key)
    try:
        return [Category.model_validate(item) for item in items]
    except ValidationError as e:
        raise MalformedPersistedDataError(f"Invalid category at '{key}': {e.error_count()} error(s)", field=key)


# =============================================================================
# REPOSITORY
# =============================================================================

class LedgerRepository:
    """
    Reads and writes every persisted collection.

    Country-scoped keys are `<collection>_<CODE>`; `countries` and
    `country` are global.
    """

    def __init__(self, storage: BlobStorageInterface):
        self._storage = storage

    @property
    def storage(self) -> BlobStorageInterface:
        return self._storage

    def _load_or_default(
        self,
        key: str,
        parse: Callable[[Any], Any],
        default: Callable[[], Any],
        fallbacks: list[StorageFallback],
    ):
        try:
            raw = self._storage.load(key)
        except StorageError as e:
            logger.warning("storage_read_failed", key=key, error=str(e))
            fallbacks.append(StorageFallback(key, str(e)))
            return default()

        if raw is None:
            return default()

        try:
            return parse(raw)
        except MalformedPersistedDataError as e:
            logger.warning("malformed_collection_replaced", key=key, reason=e.message)
            fallbacks.append(StorageFallback(key, e.message))
            return default()

    def load_state(self, country_code: str) -> LoadedLedger:
        """Load one country's ledger, substituting defaults where needed."""
        fallbacks: list[StorageFallback] = []

        def load(collection: str, parse, default):
            key = scoped_key(collection, country_code)
            return self._load_or_default(key, lambda raw: parse(raw, key), default, fallbacks)

        state = LedgerState(
            incomes=load(INCOMES, lambda raw, key: parse_entries(raw, key, IncomeEntry, fallbacks), list),
            expenses=load(EXPENSES, lambda raw, key: parse_entries(raw, key, ExpenseEntry, fallbacks), list),
            fixed_expenses=load(
                FIXED_EXPENSES,
                lambda raw, key: parse_entries(raw, key, FixedExpense, fallbacks),
                list,
            ),
            accounts=load(BANKS, lambda raw, key: parse_accounts(raw, key, fallbacks), default_accounts),
            categories=load(CATEGORIES, parse_categories, default_categories),
        )
        return LoadedLedger(state=state, fallbacks=fallbacks)

    def serialize(self, state: LedgerState) -> dict[str, list]:
        """The persisted shape of every country-scoped collection."""
        return {
            INCOMES: [e.to_storage_dict() for e in state.incomes],
            EXPENSES: [e.to_storage_dict() for e in state.expenses],
            FIXED_EXPENSES: [t.to_storage_dict() for t in state.fixed_expenses],
            BANKS: [a.model_dump(mode="json") for a in state.accounts],
            CATEGORIES: [c.model_dump(mode="json") for c in state.categories],
        }

    def save_state(
        self,
        country_code: str,
        state: LedgerState,
        collections: Optional[tuple[str, ...]] = None,
    ) -> list[StorageFallback]:
        """
        Write collections through to storage.

        Returns the keys that failed; nothing is raised.
        """
        failures: list[StorageFallback] = []
        payload = self.serialize(state)
        for collection in collections or COUNTRY_SCOPED:
            key = scoped_key(collection, country_code)
            try:
                self._storage.save(key, payload[collection])
            except StorageError as e:
                logger.error("persist_failed", key=key, error=str(e))
                failures.append(StorageFallback(key, str(e)))
        return failures

    def delete_country_data(self, country_code: str) -> list[str]:
        """Remove every country-scoped key. Returns the keys that existed."""
        removed = []
        for collection in COUNTRY_SCOPED:
            key = scoped_key(collection, country_code)
            try:
                if self._storage.delete(key):
                    removed.append(key)
            except StorageError as e:
                logger.error("delete_failed", key=key, error=str(e))
        return removed

    # =========================================================================
    # COUNTRIES
    # =========================================================================

    def load_countries(self) -> tuple[list[Country], list[StorageFallback]]:
        fallbacks: list[StorageFallback] = []

        def parse(raw):
            countries = _parse_items(_require_list(raw, COUNTRIES_KEY), COUNTRIES_KEY, Country, fallbacks)
            if raw and not countries:
                raise MalformedPersistedDataError("No valid country in storage", field=COUNTRIES_KEY)
            return countries

        countries = self._load_or_default(
            COUNTRIES_KEY,
            parse,
            lambda: [c.model_copy() for c in DEFAULT_COUNTRIES],
            fallbacks,
        )
        return countries, fallbacks

    def save_countries(self, countries: list[Country]) -> list[StorageFallback]:
        try:
            self._storage.save(COUNTRIES_KEY, [c.model_dump(mode="json") for c in countries])
        except StorageError as e:
            logger.error("persist_failed", key=COUNTRIES_KEY, error=str(e))
            return [StorageFallback(COUNTRIES_KEY, str(e))]
        return []

    def active_country(self) -> Optional[str]:
        try:
            code = self._storage.load(ACTIVE_COUNTRY_KEY)
        except StorageError as e:
            logger.warning("storage_read_failed", key=ACTIVE_COUNTRY_KEY, error=str(e))
            return None
        return code if isinstance(code, str) and code else None

    def set_active_country(self, country_code: Optional[str]) -> list[StorageFallback]:
        try:
            if country_code:
                self._storage.save(ACTIVE_COUNTRY_KEY, country_code)
            else:
                self._storage.delete(ACTIVE_COUNTRY_KEY)
        except StorageError as e:
            logger.error("persist_failed", key=ACTIVE_COUNTRY_KEY, error=str(e))
            return [StorageFallback(ACTIVE_COUNTRY_KEY, str(e))]
        return []
