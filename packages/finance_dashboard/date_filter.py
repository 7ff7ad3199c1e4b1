"""Date predicates and enumeration helpers over transaction dates.

All functions here are pure and synchronous. An unparseable transaction date
never raises out of this module: predicates treat it as non-matching and the
enumeration helpers skip it, logging a warning either way.
"""

from __future__ import annotations

import calendar
from collections.abc import Iterable
from datetime import datetime

from .errors import DateParseError
from .logging_setup import get_logger
from .models import DATE_FORMAT, CustomFilter, DateFilter, MonthFilter, Transaction, YearFilter

# Years outside this window are treated as data-entry noise.
MIN_YEAR = 2000
MAX_YEAR = 2100

_logger = get_logger("finance_dashboard.date_filter")


def parse_transaction_date(value: str) -> datetime:
    """Parse ``YYYY-MM-DD HH:MM:SS`` (ISO ``T`` separator and bare dates accepted).

    Raises :class:`DateParseError` for anything else.
    """

    s = value.strip() if isinstance(value, str) else ""
    try:
        return datetime.strptime(s, DATE_FORMAT)
    except ValueError:
        pass
    try:
        parsed = datetime.fromisoformat(s)
    except ValueError as e:
        raise DateParseError(value) from e
    # Compare naive against naive; an explicit offset is dropped, not converted.
    return parsed.replace(tzinfo=None)


def try_parse_transaction_date(transaction: Transaction) -> datetime | None:
    try:
        return parse_transaction_date(transaction.date)
    except DateParseError:
        _logger.warning(
            "date_filter:unparseable_date date=%r item=%r", transaction.date, transaction.item_name
        )
        return None


def matches(transaction: Transaction, date_filter: DateFilter) -> bool:
    """Return whether ``transaction`` falls inside ``date_filter`` (bounds inclusive).

    A filter with unset parameters matches everything.
    """

    if isinstance(date_filter, YearFilter):
        if date_filter.year is None:
            return True
        when = try_parse_transaction_date(transaction)
        return when is not None and when.year == date_filter.year

    if isinstance(date_filter, MonthFilter):
        if date_filter.year is None or date_filter.month is None:
            return True
        if not 1 <= date_filter.month <= 12:
            return False
        when = try_parse_transaction_date(transaction)
        # Field comparison; no datetime is built from the filter's year.
        return (
            when is not None
            and when.year == date_filter.year
            and when.month == date_filter.month
        )

    if isinstance(date_filter, CustomFilter):
        if date_filter.start is None or date_filter.end is None:
            return True
        when = try_parse_transaction_date(transaction)
        return when is not None and _naive(date_filter.start) <= when <= _naive(date_filter.end)

    return True


def _naive(value: datetime) -> datetime:
    return value.replace(tzinfo=None)


def filter_transactions(
    transactions: Iterable[Transaction], date_filter: DateFilter
) -> list[Transaction]:
    return [t for t in transactions if matches(t, date_filter)]


def available_years(transactions: Iterable[Transaction]) -> list[int]:
    """Distinct years present (``MIN_YEAR``..``MAX_YEAR``), newest first."""

    years: set[int] = set()
    for t in transactions:
        when = try_parse_transaction_date(t)
        if when is not None and MIN_YEAR <= when.year <= MAX_YEAR:
            years.add(when.year)
    return sorted(years, reverse=True)


def available_months(transactions: Iterable[Transaction], year: int) -> list[int]:
    """Distinct months (1-12) with at least one transaction in ``year``, ascending."""

    months: set[int] = set()
    for t in transactions:
        when = try_parse_transaction_date(t)
        if when is not None and when.year == year:
            months.add(when.month)
    return sorted(months)


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


__all__ = [
    "MAX_YEAR",
    "MIN_YEAR",
    "available_months",
    "available_years",
    "days_in_month",
    "filter_transactions",
    "matches",
    "parse_transaction_date",
    "try_parse_transaction_date",
]
