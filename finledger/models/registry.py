"""
Registry Models

Accounts, categories, recurring expense templates and countries.
Entries refer to accounts and categories by name only.
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from finledger.models.entry import to_decimal


class Account(BaseModel):
    """
    A named card account.

    Names are unique case-insensitively. The color is display-only.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(
        ...,
        min_length=1,
        description="Account name, also the lookup key on entries"
    )
    color: str = Field(
        default="#424242",
        description="Display color (#RRGGBB)"
    )

    def matches(self, name: str) -> bool:
        return self.name.lower() == name.strip().lower()


class Category(BaseModel):
    """Expense category. The icon is a display key."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1)
    icon: str = Field(default="CreditCard", min_length=1)

    def matches(self, name: str) -> bool:
        return self.name.lower() == name.strip().lower()


class FixedExpense(BaseModel):
    """
    Recurring expense template.

    Instances created from it keep a back-reference; deleting the
    template leaves those entries alone.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: int = Field(..., ge=0)
    description: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    category: str = Field(..., min_length=1)

    @field_validator('amount', mode='before')
    @classmethod
    def coerce_amount(cls, v):
        return to_decimal(v)

    def to_storage_dict(self) -> dict:
        data = self.model_dump(mode="json")
        data["amount"] = float(self.amount)
        return data


class Country(BaseModel):
    """
    A ledger scope. Each country has its own accounts, categories,
    templates and entries.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    code: str = Field(
        ...,
        pattern="^[A-Z]{2}$",
        description="ISO 3166-1 alpha-2 code"
    )
    name: str = Field(..., min_length=1)
    currency: str = Field(
        ...,
        pattern="^[A-Z]{3}$",
        description="ISO 4217 currency code"
    )
    locale: str = Field(default="")
    flag: str = Field(default="")

    def model_post_init(self, __context) -> None:
        if not self.locale:
            self.locale = f"es-{self.code}"


DEFAULT_CATEGORIES: tuple[Category, ...] = (
    Category(name="Food", icon="Food"),
    Category(name="Transport", icon="Transport"),
    Category(name="Shopping", icon="Shopping"),
    Category(name="Bills", icon="Bills"),
    Category(name="Entertainment", icon="Entertainment"),
    Category(name="Health", icon="Health"),
    Category(name="General", icon="CreditCard"),
)

DEFAULT_COUNTRIES: tuple[Country, ...] = (
    Country(code="ES", name="Espana", currency="EUR", locale="es-ES", flag="🇪🇸"),
    Country(code="CO", name="Colombia", currency="COP", locale="es-CO", flag="🇨🇴"),
)
