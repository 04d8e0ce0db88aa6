"""Read projections: aggregates and transaction history."""

from finledger.queries.aggregator import (
    Aggregator,
    EntrySummary,
    LedgerSummary,
    in_month,
    summarize,
)
from finledger.queries.history import (
    TransactionFilter,
    apply_filter,
    build_history,
    group_by_week,
    week_start,
)

__all__ = [
    "Aggregator",
    "EntrySummary",
    "LedgerSummary",
    "TransactionFilter",
    "apply_filter",
    "build_history",
    "group_by_week",
    "in_month",
    "summarize",
    "week_start",
]
