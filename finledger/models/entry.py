"""
Core Ledger Entry Models for Finledger

These models define the strict schemas for every money movement.
They are designed to:
1. Enforce positive amounts and non-empty descriptions at runtime
2. Keep direction out of the sign (income vs expense is the type)
3. Serialize to the persisted camelCase shape for storage
4. Carry the transfer linkage explicitly

DESIGN DECISION: Income and expense are distinct types sharing a base.
A transfer is not a third entry type: it is one IncomeEntry and one
ExpenseEntry carrying the same transfer_id.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

from finledger.config import get_settings


CASH_KEY = "__cash__"


# =============================================================================
# ENUMS
# =============================================================================

class EntryKind(str, Enum):
    """Which collection an entry belongs to."""
    INCOME = "income"
    EXPENSE = "expense"


class PaymentChannel(str, Enum):
    """Money container type."""
    CARD = "card"
    CASH = "cash"


def to_decimal(v):
    """Floats go through str() so 0.1 stays 0.1."""
    if isinstance(v, float):
        return Decimal(str(v))
    return v


# =============================================================================
# ACCOUNT REFERENCE
# =============================================================================

class AccountRef(BaseModel):
    """
    A lookup key for a money container: cash, or a named card account.

    This is a weak reference. The account itself lives in the registry.
    """
    model_config = ConfigDict(frozen=True)

    channel: PaymentChannel
    bank: Optional[str] = None

    @classmethod
    def cash(cls) -> "AccountRef":
        return cls(channel=PaymentChannel.CASH)

    @classmethod
    def card(cls, bank: str) -> "AccountRef":
        return cls(channel=PaymentChannel.CARD, bank=bank)

    @property
    def is_cash(self) -> bool:
        return self.channel == PaymentChannel.CASH

    @property
    def key(self) -> str:
        """
        Balance bucket for this reference.

        A card reference without a bank name lands in the cash bucket,
        the same way legacy records were always replayed.
        """
        if self.channel == PaymentChannel.CARD and self.bank:
            return self.bank
        return CASH_KEY

    @property
    def label(self) -> str:
        return "Cash" if self.key == CASH_KEY else self.key


# =============================================================================
# LEDGER ENTRIES
# =============================================================================

class LedgerEntry(BaseModel):
    """
    The atomic record.

    Identity is the integer id, issued in creation order. It doubles as
    the tie-break key for entries on the same date.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
    )

    kind: ClassVar[EntryKind]

    id: int = Field(
        ...,
        ge=0,
        description="Creation-ordered identifier"
    )
    description: str = Field(
        ...,
        min_length=1,
        description="Free text, never empty"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Always positive; direction comes from the entry type"
    )
    date: dt.date = Field(
        ...,
        description="Calendar day of the movement"
    )
    payment_method: PaymentChannel = Field(
        default=PaymentChannel.CASH,
        alias="paymentMethod",
    )
    bank: Optional[str] = Field(
        default=None,
        description="Card account name when payment_method is card"
    )
    is_transfer: bool = Field(
        default=False,
        alias="isTransfer",
    )
    transfer_id: Optional[int] = Field(
        default=None,
        alias="transferId",
    )

    @field_validator('amount', mode='before')
    @classmethod
    def coerce_amount(cls, v):
        return to_decimal(v)

    @field_validator('bank', mode='before')
    @classmethod
    def blank_bank_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode='after')
    def validate_transfer_link(self) -> 'LedgerEntry':
        """transfer_id is present exactly when the entry is a transfer leg."""
        if self.is_transfer and self.transfer_id is None:
            raise ValueError("Transfer legs must carry a transfer id")
        if not self.is_transfer and self.transfer_id is not None:
            raise ValueError("Only transfer legs may carry a transfer id")
        return self

    @field_serializer('amount', when_used='json')
    def serialize_amount(self, amount: Decimal) -> float:
        return float(amount)

    @property
    def account(self) -> AccountRef:
        return AccountRef(channel=self.payment_method, bank=self.bank)

    @property
    def account_key(self) -> str:
        return self.account.key

    def to_storage_dict(self) -> dict:
        """Convert to the persisted shape (camelCase keys, no nulls)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class IncomeEntry(LedgerEntry):
    """Money entering an account."""
    kind: ClassVar[EntryKind] = EntryKind.INCOME


class ExpenseEntry(LedgerEntry):
    """Money leaving an account."""
    kind: ClassVar[EntryKind] = EntryKind.EXPENSE

    category: Optional[str] = Field(
        default=None,
        description="Category name; the sentinel default when unset"
    )
    fixed_expense_id: Optional[int] = Field(
        default=None,
        alias="fixedExpenseId",
        description="Recurring template this entry was generated from"
    )

    @field_validator('category', mode='before')
    @classmethod
    def blank_category_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode='after')
    def default_category(self) -> 'ExpenseEntry':
        """Transfer legs carry no category; every other expense has one."""
        if self.category is None and not self.is_transfer:
            self.category = get_settings().ledger.default_category
        return self


Entry = Union[IncomeEntry, ExpenseEntry]


def entry_class(kind: EntryKind) -> type[LedgerEntry]:
    return IncomeEntry if kind == EntryKind.INCOME else ExpenseEntry


# =============================================================================
# TRANSFERS
# =============================================================================

class TransferLink(BaseModel):
    """
    Side-table row pairing the two legs of one transfer.

    Either side may be missing when persisted data was damaged.
    """

    transfer_id: int
    expense_id: Optional[int] = None
    income_id: Optional[int] = None

    @property
    def is_complete(self) -> bool:
        return self.expense_id is not None and self.income_id is not None


class Transfer(BaseModel):
    """
    One logical transfer, reconstructed from its two legs.

    `id` is the expense leg id so a transfer sorts and deletes like
    an ordinary row in the history view.
    """

    type: Literal["transfer"] = "transfer"
    transfer_id: int
    expense_id: int
    income_id: int
    amount: Decimal
    date: dt.date
    from_account: AccountRef
    to_account: AccountRef

    @property
    def id(self) -> int:
        return self.expense_id


class RenderableEntry(BaseModel):
    """A regular income or expense row in the history view."""

    type: Literal["income", "expense"]
    entry: Entry

    @property
    def id(self) -> int:
        return self.entry.id

    @property
    def date(self) -> dt.date:
        return self.entry.date

    @property
    def amount(self) -> Decimal:
        return self.entry.amount


RenderableTransaction = Union[RenderableEntry, Transfer]
