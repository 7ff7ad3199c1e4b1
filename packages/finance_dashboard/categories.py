"""Category configuration shared by aggregation and presentation.

One ordered list drives every place categories are displayed (overview
breakdown, CLI tables, charts) so orderings cannot drift apart.

- ``CATEGORY_ORDER``: preferred display order, bills first, then daily
  expenses, then the catch-all. Categories not listed sort after, A-Z.
- ``INCOME_CATEGORIES``: the only categories whose negative amounts count as
  income. Negative amounts in any other category offset expenses instead.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

# Rent & bills
BILL_CATEGORIES: tuple[str, ...] = (
    "Rent",
    "Wi-Fi",
    "Energy",
    "Council Tax",
    "Water",
    "Council",
)

# Daily expense
DAILY_CATEGORIES: tuple[str, ...] = (
    "Eating Out",
    "Groceries",
    "Transportation",
    "Shopping",
    "Necessity",
    "Entertainment",
    "Exercise",
    "Learning",
    "Subscription",
    "Subscription Service",
)

CATEGORY_ORDER: tuple[str, ...] = (*BILL_CATEGORIES, *DAILY_CATEGORIES, "Others")

INCOME_CATEGORIES: frozenset[str] = frozenset({"Salary", "OtherIncomes"})


@dataclass(frozen=True, slots=True)
class CategoryConfig:
    """Ordering and income allow-list; pass a custom one to override defaults."""

    order: Sequence[str] = CATEGORY_ORDER
    income: frozenset[str] = INCOME_CATEGORIES

    def is_income_category(self, category: str) -> bool:
        return category in self.income

    def sort_key(self, category: str) -> tuple[int, int, str, str]:
        """Listed categories by list position; the rest after, case-insensitive A-Z."""

        try:
            return (0, list(self.order).index(category), "", "")
        except ValueError:
            return (1, 0, category.casefold(), category)

    def sort(self, categories: Iterable[str]) -> list[str]:
        return sorted(categories, key=self.sort_key)


DEFAULT_CATEGORY_CONFIG = CategoryConfig()


def is_income_category(category: str) -> bool:
    return DEFAULT_CATEGORY_CONFIG.is_income_category(category)


def sort_categories(categories: Iterable[str]) -> list[str]:
    return DEFAULT_CATEGORY_CONFIG.sort(categories)


__all__ = [
    "BILL_CATEGORIES",
    "CATEGORY_ORDER",
    "DAILY_CATEGORIES",
    "DEFAULT_CATEGORY_CONFIG",
    "INCOME_CATEGORIES",
    "CategoryConfig",
    "is_income_category",
    "sort_categories",
]
