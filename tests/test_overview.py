from __future__ import annotations

import pytest

from finance_dashboard.categories import CATEGORY_ORDER, CategoryConfig, sort_categories
from finance_dashboard.models import CustomFilter, MonthFilter, YearFilter, get_transaction_type
from finance_dashboard.overview import (
    aggregate_by_day,
    aggregate_by_month,
    calculate_expense,
    calculate_income,
    calculate_overview,
    chart_series,
    net_amount,
    net_percentage,
)
from tests.helpers.factories import make_transaction


def tx(category: str, final_amount: float, date: str = "2024-03-15 12:00:00"):
    return make_transaction(category=category, final_amount=final_amount, date=date)


def test_classification_depends_only_on_final_amount_sign():
    assert get_transaction_type(tx("Salary", 10.0)) == "expense"
    assert get_transaction_type(tx("Rent", -10.0)) == "income"
    assert get_transaction_type(make_transaction(original_amount=50.0, final_amount=0.0)) == (
        "transfer"
    )


def test_salary_rent_refund_example():
    txs = [tx("Salary", -100.0), tx("Rent", 80.0), tx("Rent", -20.0)]

    overview = calculate_overview(txs)

    assert overview.total_income == 100.0
    assert overview.total_expense == 60.0
    rent = next(c for c in overview.category_breakdown if c.category == "Rent")
    assert rent.amount == 60.0
    assert rent.percentage == pytest.approx(100.0)


def test_negative_non_income_category_offsets_expense_instead_of_counting_as_income():
    txs = [tx("Shopping", 50.0), tx("Shopping", -30.0), tx("OtherIncomes", -5.0)]

    assert calculate_income(txs) == 5.0
    assert calculate_expense(txs) == 20.0


def test_percentages_are_zero_when_expense_is_not_positive():
    txs = [tx("Groceries", -10.0), tx("Salary", -100.0)]

    overview = calculate_overview(txs)

    assert overview.total_expense == -10.0
    assert all(c.percentage == 0.0 for c in overview.category_breakdown)


def test_full_set_widens_categories_except_income_ones():
    march = [tx("Groceries", 30.0)]
    everything = march + [
        tx("Rent", 900.0, date="2024-01-01 00:00:00"),
        tx("Salary", -2000.0, date="2024-01-01 00:00:00"),
        tx("Vet", 40.0, date="2024-02-01 00:00:00"),
    ]

    overview = calculate_overview(march, everything)

    categories = [c.category for c in overview.category_breakdown]
    assert categories == ["Rent", "Groceries", "Vet"]
    amounts = {c.category: c.amount for c in overview.category_breakdown}
    assert amounts == {"Rent": 0.0, "Groceries": 30.0, "Vet": 0.0}


def test_breakdown_follows_configured_order_then_alphabetical():
    txs = [
        tx("zoo", 1.0),
        tx("Groceries", 1.0),
        tx("Aquarium", 1.0),
        tx("Rent", 1.0),
        tx("Others", 1.0),
    ]

    overview = calculate_overview(txs)

    assert [c.category for c in overview.category_breakdown] == [
        "Rent",
        "Groceries",
        "Others",
        "Aquarium",
        "zoo",
    ]


def test_category_order_is_configuration():
    config = CategoryConfig(order=("Groceries", "Rent"), income=frozenset({"Bonus"}))
    txs = [tx("Rent", 10.0), tx("Groceries", 10.0), tx("Bonus", -50.0), tx("Salary", -5.0)]

    overview = calculate_overview(txs, config=config)

    assert overview.total_income == 50.0
    # Salary is not income under this config, so it offsets expense.
    assert overview.total_expense == 15.0
    assert [c.category for c in overview.category_breakdown][:2] == ["Groceries", "Rent"]


def test_sort_categories_uses_shared_order():
    assert sort_categories(["Groceries", "Rent", "Others"]) == ["Rent", "Groceries", "Others"]
    assert CATEGORY_ORDER[0] == "Rent"


def test_net_helpers():
    overview = calculate_overview([tx("Salary", -200.0), tx("Rent", 50.0)])

    assert net_amount(overview) == 150.0
    assert net_percentage(overview) == pytest.approx(75.0)
    assert net_percentage(calculate_overview([tx("Rent", 50.0)])) == 0.0


def test_empty_input():
    overview = calculate_overview([])
    assert overview.total_income == 0.0
    assert overview.total_expense == 0.0
    assert overview.category_breakdown == ()


def test_aggregate_by_month_has_twelve_labelled_points():
    txs = [
        tx("Salary", -1000.0, date="2024-01-31 09:00:00"),
        tx("Rent", 500.0, date="2024-01-02 09:00:00"),
        tx("Groceries", 40.0, date="2024-03-05 09:00:00"),
        tx("Groceries", 99.0, date="2023-03-05 09:00:00"),
    ]

    points = aggregate_by_month(txs, 2024)

    assert [p.period for p in points][:3] == ["Jan", "Feb", "Mar"]
    assert len(points) == 12
    assert (points[0].income, points[0].expense) == (1000.0, 500.0)
    assert (points[1].income, points[1].expense) == (0.0, 0.0)
    assert points[2].expense == 40.0


def test_aggregate_by_day_covers_the_month_with_zero_income():
    txs = [
        tx("Salary", -1000.0, date="2024-02-01 09:00:00"),
        tx("Groceries", 12.0, date="2024-02-29 18:00:00"),
        tx("Groceries", 8.0, date="2024-02-29 19:00:00"),
    ]

    points = aggregate_by_day(txs, 2024, 2)

    assert len(points) == 29
    assert points[0].period == "1"
    assert points[0].income == 0.0
    assert points[-1].period == "29"
    assert points[-1].expense == 20.0


def test_chart_series_dispatches_on_filter():
    txs = [tx("Groceries", 10.0)]

    assert len(chart_series(txs, YearFilter(2024))) == 12
    assert len(chart_series(txs, MonthFilter(2024, 3))) == 31
    assert chart_series(txs, YearFilter()) == []
    assert chart_series(txs, MonthFilter(year=2024)) == []
    assert chart_series(txs, CustomFilter()) == []
