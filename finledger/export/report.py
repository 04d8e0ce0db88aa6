"""
Financial Report Export

Formats the history list and the balance/aggregate snapshots as a
delimited text report. No new numbers are computed here; every figure
comes from the Aggregator.

Sections, separated by a blank row:
1. Report info
2. Balance summary
3. Monthly summary (as-of month)
4. Global summary
5. Transaction history
"""

import csv
import datetime as dt
import io
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from finledger.models.entry import PaymentChannel, RenderableTransaction, Transfer
from finledger.models.registry import Account, Country
from finledger.queries.aggregator import LedgerSummary


BOM = "\ufeff"

HISTORY_HEADERS = [
    "Date",
    "Type",
    "Description",
    "Amount",
    "Payment method",
    "Origin account",
    "Destination account",
    "Category",
]

CENTS = Decimal("0.01")


def fmt_amount(amount: Decimal) -> str:
    return str(amount.quantize(CENTS, rounding=ROUND_HALF_UP))


def _channel_label(channel: PaymentChannel) -> str:
    return "Card" if channel == PaymentChannel.CARD else "Cash"


def _history_row(row: RenderableTransaction) -> list[str]:
    if isinstance(row, Transfer):
        return [
            row.date.isoformat(),
            "Transfer",
            "Transfer between accounts",
            fmt_amount(row.amount),
            "Transfer",
            row.from_account.label,
            row.to_account.label,
            "",
        ]

    entry = row.entry
    if entry.payment_method == PaymentChannel.CARD:
        account = entry.bank or "Card"
    else:
        account = "Cash"

    if row.type == "income":
        amount, origin, destination, category = entry.amount, "", account, ""
    else:
        amount, origin, destination = -entry.amount, account, ""
        category = getattr(entry, "category", None) or ""

    return [
        entry.date.isoformat(),
        "Income" if row.type == "income" else "Expense",
        entry.description,
        fmt_amount(amount),
        _channel_label(entry.payment_method),
        origin,
        destination,
        category,
    ]


def build_report_rows(
    country: Country,
    summary: LedgerSummary,
    accounts: Iterable[Account],
    history: Iterable[RenderableTransaction],
) -> list[list[str]]:
    """Assemble every section of the report as rows of cells."""
    balances = summary.balances
    rows: list[list[str]] = [
        ["Financial report", country.name],
        ["Export date", summary.as_of.isoformat()],
        [],
        ["Balance summary"],
        ["Account", "Balance"],
        ["Current balance", fmt_amount(balances.total)],
        ["Cash", fmt_amount(balances.cash)],
    ]
    for account in accounts:
        rows.append([account.name, fmt_amount(balances.cards.get(account.name, Decimal("0")))])

    rows += [
        [],
        ["Monthly summary (current month)"],
        ["Concept", "Amount"],
        ["Income", fmt_amount(summary.incomes.this_month)],
        ["Expenses", fmt_amount(summary.expenses.this_month)],
        [],
        ["Global summary"],
        ["Concept", "Amount"],
        ["Total income", fmt_amount(summary.incomes.total)],
        ["Total expenses", fmt_amount(summary.expenses.total)],
        [],
        ["Transaction history"],
        list(HISTORY_HEADERS),
    ]
    rows += [_history_row(row) for row in history]
    return rows


def render_csv(rows: list[list[str]], bom: bool = True) -> str:
    """Comma-separated, minimal quoting, `\\n` line endings."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    for row in rows:
        writer.writerow([str(cell).strip() for cell in row])
    text = buffer.getvalue()
    return BOM + text if bom else text


def report_filename(country_code: str, as_of: dt.date) -> str:
    return f"financial_data_{country_code.lower()}_{as_of.isoformat()}.csv"
