"""Input and history validation."""

from finledger.validation.validator import (
    HistoryValidator,
    get_user_friendly_summary,
    parse_amount,
    parse_date,
    parse_description,
    resolve_account,
    resolve_category,
)

__all__ = [
    "HistoryValidator",
    "get_user_friendly_summary",
    "parse_amount",
    "parse_date",
    "parse_description",
    "resolve_account",
    "resolve_category",
]
