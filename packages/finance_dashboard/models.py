"""Data models and type aliases for ``finance_dashboard``.

Two families live here:

- pydantic models for anything that crosses a boundary and must be validated
  (the canonical :class:`Transaction`, the raw import shapes, the on-disk
  cache payload, exchange-rate API responses);
- frozen dataclasses for purely derived values (date filters, the overview,
  chart points) that are built in-process and never parsed.

Field names are snake_case in Python. Raw import rows keep their original
PascalCase keys through aliases.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Canonical transaction
# ---------------------------------------------------------------------------

# Canonical timestamp layout for ``Transaction.date``.
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

type TransactionType = Literal["income", "expense", "transfer"]


class Transaction(BaseModel):
    """A single validated transaction.

    Sign convention for ``final_amount``: positive is an expense, negative is
    income (or a refund, see ``overview``), zero is a transfer.

    ``exclude`` and ``girl_friend_percentage`` are carried for contract
    stability only; nothing in the aggregation path reads them. ``gf`` and
    ``trip`` only drive display annotations.
    """

    model_config = ConfigDict(strict=True, frozen=True, extra="forbid", allow_inf_nan=False)

    date: str
    item_name: str
    category: str
    original_amount: float
    final_amount: float
    currency: str
    share: float
    exclude: float
    gf: float
    girl_friend_percentage: float
    trip: bool


def get_transaction_type(transaction: Transaction) -> TransactionType:
    """Classify by the sign of ``final_amount`` and nothing else."""

    if transaction.final_amount > 0:
        return "expense"
    if transaction.final_amount < 0:
        return "income"
    return "transfer"


# ---------------------------------------------------------------------------
# Raw import file (nested JSON export)
# ---------------------------------------------------------------------------


class RawRow(BaseModel):
    """One row of a group's ``Data`` array in the JSON export.

    ``Share``, ``Exclude`` and ``Gf`` may be booleans or numbers; the
    transform normalizes them once. ``Currency`` is optional in the export.
    """

    model_config = ConfigDict(strict=True, extra="ignore", allow_inf_nan=False)

    date: str = Field(alias="Date")
    item_name: str = Field(alias="ItemName")
    category: str = Field(alias="Category")
    original_amount: float = Field(alias="OriginalAmount")
    share: bool | float = Field(alias="Share")
    final_amount: float = Field(alias="FinalAmount")
    exclude: bool | float = Field(alias="Exclude")
    gf: bool | float = Field(alias="Gf")
    girl_friend_percentage: float = Field(alias="girlFriendPercentage")
    trip: bool = Field(alias="Trip")
    currency: str | None = Field(default=None, alias="Currency")


class AccountingGroup(BaseModel):
    """A keyed group (typically one month) of the export: ``{Columns, RowCount, Data}``."""

    model_config = ConfigDict(strict=True, extra="ignore", allow_inf_nan=False)

    columns: list[str] = Field(alias="Columns")
    row_count: int = Field(alias="RowCount")
    data: list[RawRow] = Field(alias="Data")


# ---------------------------------------------------------------------------
# DTOs for typed cache / HTTP I/O
# ---------------------------------------------------------------------------


class CacheEntry(BaseModel):
    """On-disk payload of the single-slot transaction cache."""

    model_config = ConfigDict(strict=True, extra="forbid")

    transactions: list[Transaction]
    # Epoch milliseconds at write time.
    timestamp: int


class RateQuote(BaseModel):
    """The part of a rate API response we rely on: ``{"rates": {CODE: rate}}``.

    Both supported providers add other keys (``base``, ``date`` ...); those
    are ignored.
    """

    model_config = ConfigDict(strict=True, extra="ignore", allow_inf_nan=False)

    rates: dict[str, float]

    @field_validator("rates")
    @classmethod
    def _normalize_codes(cls, v: dict[str, float]) -> dict[str, float]:
        return {str(k).strip().upper(): float(r) for k, r in v.items()}


# ---------------------------------------------------------------------------
# Date filters (transient, UI-driven)
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class YearFilter:
    """Calendar year. ``year=None`` matches everything."""

    year: int | None = None
    type: ClassVar[Literal["year"]] = "year"


@dataclass(frozen=True, slots=True)
class MonthFilter:
    """Calendar month (1-12) of a year. Either part unset matches everything."""

    year: int | None = None
    month: int | None = None
    type: ClassVar[Literal["month"]] = "month"


@dataclass(frozen=True, slots=True)
class CustomFilter:
    """Inclusive ``[start, end]`` range. Either bound unset matches everything."""

    start: datetime | None = None
    end: datetime | None = None
    type: ClassVar[Literal["custom"]] = "custom"


type DateFilter = YearFilter | MonthFilter | CustomFilter


# ---------------------------------------------------------------------------
# Derived aggregates
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CategoryBreakdown:
    category: str
    amount: float
    percentage: float


@dataclass(frozen=True, slots=True)
class Overview:
    """Totals for one filtered view. Recomputed on every call, never cached."""

    total_income: float
    total_expense: float
    category_breakdown: tuple[CategoryBreakdown, ...]


@dataclass(frozen=True, slots=True)
class ChartPoint:
    """One bar of the income/expense time series (``period`` is a display label)."""

    period: str
    income: float
    expense: float


__all__ = [
    "DATE_FORMAT",
    "AccountingGroup",
    "CacheEntry",
    "CategoryBreakdown",
    "ChartPoint",
    "CustomFilter",
    "DateFilter",
    "MonthFilter",
    "Overview",
    "RateQuote",
    "RawRow",
    "Transaction",
    "TransactionType",
    "YearFilter",
    "get_transaction_type",
]
