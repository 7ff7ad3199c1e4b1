"""Derived aggregates: totals, category breakdown, and chart time series.

Everything here is a pure function of its inputs and is recomputed on every
call; callers must not cache results across changes to transactions, rates,
or filters.

Rules (``final_amount`` sign convention from ``models``):

- Income: ``sum(|final_amount|)`` of income-classified rows whose category is
  in the income allow-list.
- Expense: ``sum(final_amount > 0)`` minus ``sum(|final_amount|)`` of
  negative rows outside the income allow-list (refunds/offsets).
- Category breakdown: the same expense rule restricted to each category;
  percentage of total expense (0 when total expense is not positive).
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence

from .categories import DEFAULT_CATEGORY_CONFIG, CategoryConfig
from .date_filter import days_in_month, try_parse_transaction_date
from .models import (
    CategoryBreakdown,
    ChartPoint,
    DateFilter,
    MonthFilter,
    Overview,
    Transaction,
    YearFilter,
    get_transaction_type,
)

MONTH_LABELS: tuple[str, ...] = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)  # fmt: skip


def _is_true_income(t: Transaction, config: CategoryConfig) -> bool:
    return get_transaction_type(t) == "income" and config.is_income_category(t.category)


def _is_offset(t: Transaction, config: CategoryConfig) -> bool:
    return get_transaction_type(t) == "income" and not config.is_income_category(t.category)


def calculate_income(
    transactions: Iterable[Transaction], *, config: CategoryConfig = DEFAULT_CATEGORY_CONFIG
) -> float:
    return sum(abs(t.final_amount) for t in transactions if _is_true_income(t, config))


def calculate_expense(
    transactions: Iterable[Transaction], *, config: CategoryConfig = DEFAULT_CATEGORY_CONFIG
) -> float:
    positive = 0.0
    offsets = 0.0
    for t in transactions:
        if get_transaction_type(t) == "expense":
            positive += t.final_amount
        elif _is_offset(t, config):
            offsets += abs(t.final_amount)
    return positive - offsets


def calculate_overview(
    transactions: Sequence[Transaction],
    all_transactions: Iterable[Transaction] | None = None,
    *,
    config: CategoryConfig = DEFAULT_CATEGORY_CONFIG,
) -> Overview:
    """Compute the overview for ``transactions`` (already filtered/converted).

    ``all_transactions`` only widens the set of categories listed: every
    non-income category seen there appears in the breakdown, with 0 when it
    has no activity in ``transactions``.
    """

    total_income = calculate_income(transactions, config=config)
    total_expense = calculate_expense(transactions, config=config)

    net_by_category: dict[str, float] = defaultdict(float)
    for t in transactions:
        # Seed every category of the filtered set, even income-only ones.
        net_by_category[t.category] += 0.0
        if get_transaction_type(t) == "expense":
            net_by_category[t.category] += t.final_amount
        elif _is_offset(t, config):
            net_by_category[t.category] -= abs(t.final_amount)

    if all_transactions is not None:
        for t in all_transactions:
            if not config.is_income_category(t.category):
                net_by_category.setdefault(t.category, 0.0)

    breakdown = tuple(
        CategoryBreakdown(
            category=category,
            amount=net_by_category[category],
            percentage=(
                net_by_category[category] / total_expense * 100 if total_expense > 0 else 0.0
            ),
        )
        for category in config.sort(net_by_category)
    )
    return Overview(
        total_income=total_income,
        total_expense=total_expense,
        category_breakdown=breakdown,
    )


def net_amount(overview: Overview) -> float:
    return overview.total_income - overview.total_expense


def net_percentage(overview: Overview) -> float:
    """Net as a percentage of income; 0 when there is no income."""

    if overview.total_income <= 0:
        return 0.0
    return net_amount(overview) / overview.total_income * 100


# ---------------------------------------------------------------------------
# Chart time series
# ---------------------------------------------------------------------------


def aggregate_by_month(
    transactions: Iterable[Transaction],
    year: int,
    *,
    config: CategoryConfig = DEFAULT_CATEGORY_CONFIG,
) -> list[ChartPoint]:
    """Twelve points (Jan..Dec) of income and expense for ``year``."""

    buckets: dict[int, list[Transaction]] = {m: [] for m in range(1, 13)}
    for t in transactions:
        when = try_parse_transaction_date(t)
        if when is not None and when.year == year:
            buckets[when.month].append(t)

    return [
        ChartPoint(
            period=MONTH_LABELS[month - 1],
            income=calculate_income(rows, config=config),
            expense=calculate_expense(rows, config=config),
        )
        for month, rows in buckets.items()
    ]


def aggregate_by_day(
    transactions: Iterable[Transaction],
    year: int,
    month: int,
    *,
    config: CategoryConfig = DEFAULT_CATEGORY_CONFIG,
) -> list[ChartPoint]:
    """One point per day of the month; expense only (income is always 0)."""

    buckets: dict[int, list[Transaction]] = {
        d: [] for d in range(1, days_in_month(year, month) + 1)
    }
    for t in transactions:
        when = try_parse_transaction_date(t)
        if when is not None and when.year == year and when.month == month:
            buckets[when.day].append(t)

    return [
        ChartPoint(period=str(day), income=0.0, expense=calculate_expense(rows, config=config))
        for day, rows in buckets.items()
    ]


def chart_series(
    transactions: Iterable[Transaction],
    date_filter: DateFilter,
    *,
    config: CategoryConfig = DEFAULT_CATEGORY_CONFIG,
) -> list[ChartPoint]:
    """Monthly series for a year filter, daily for a month filter, else empty."""

    if isinstance(date_filter, YearFilter) and date_filter.year:
        return aggregate_by_month(transactions, date_filter.year, config=config)
    if (
        isinstance(date_filter, MonthFilter)
        and date_filter.year
        and date_filter.month
        and 1 <= date_filter.month <= 12
    ):
        return aggregate_by_day(transactions, date_filter.year, date_filter.month, config=config)
    return []


__all__ = [
    "MONTH_LABELS",
    "aggregate_by_day",
    "aggregate_by_month",
    "calculate_expense",
    "calculate_income",
    "calculate_overview",
    "chart_series",
    "net_amount",
    "net_percentage",
]
