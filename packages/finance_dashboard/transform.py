"""Validation and flattening of the nested JSON export into canonical rows.

Export shape::

    {
      "<group key>": {"Columns": [...], "RowCount": 12, "Data": [RawRow, ...]},
      ...
    }

Output order follows the groups' iteration order, then each group's ``Data``
order. Rows are not sorted by date.

Validation is all-or-nothing: one bad row fails the whole import with
:class:`~finance_dashboard.errors.TransactionValidationError`.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from os import PathLike
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter, ValidationError

from .config import DEFAULT_SOURCE_CURRENCY
from .errors import TransactionValidationError
from .logging_setup import get_logger
from .models import AccountingGroup, RawRow, Transaction

_logger = get_logger("finance_dashboard.transform")

_ACCOUNTING_ADAPTER: TypeAdapter[dict[str, AccountingGroup]] = TypeAdapter(
    dict[str, AccountingGroup]
)


def to_number(value: bool | float) -> float:
    """Normalize a boolean-or-number flag: ``True -> 1``, ``False -> 0``."""

    if isinstance(value, bool):
        return 1.0 if value else 0.0
    return float(value)


def parse_accounting_json(data: Any) -> dict[str, AccountingGroup]:
    """Validate an already-decoded export mapping against the raw schema."""

    try:
        return _ACCOUNTING_ADAPTER.validate_python(data)
    except ValidationError as e:
        raise TransactionValidationError(
            f"import data failed schema validation ({e.error_count()} error(s))",
            errors=[dict(err) for err in e.errors(include_url=False)],
        ) from e


def transform_row(row: RawRow) -> Transaction:
    return Transaction(
        date=row.date,
        item_name=row.item_name,
        category=row.category,
        original_amount=row.original_amount,
        final_amount=row.final_amount,
        currency=(row.currency or "").strip().upper() or DEFAULT_SOURCE_CURRENCY,
        share=to_number(row.share),
        exclude=to_number(row.exclude),
        gf=to_number(row.gf),
        girl_friend_percentage=row.girl_friend_percentage,
        trip=row.trip,
    )


def transform_accounting_data(groups: Mapping[str, AccountingGroup]) -> list[Transaction]:
    """Flatten validated groups into canonical transactions (input order kept)."""

    transactions: list[Transaction] = []
    for group in groups.values():
        transactions.extend(transform_row(row) for row in group.data)
    return transactions


def load_transactions_from_data(data: Any) -> list[Transaction]:
    """Validate and transform a decoded export in one step."""

    groups = parse_accounting_json(data)
    transactions = transform_accounting_data(groups)
    _logger.debug(
        "transform: groups=%d transactions=%d", len(groups), len(transactions)
    )
    return transactions


def load_accounting_file(path: str | PathLike[str]) -> list[Transaction]:
    """Read a JSON export from disk and return canonical transactions.

    ``OSError`` and ``json.JSONDecodeError`` propagate unchanged; schema
    failures raise :class:`TransactionValidationError`.
    """

    p = Path(path)
    with p.open(encoding="utf-8") as f:
        data = json.load(f)
    return load_transactions_from_data(data)


__all__ = [
    "load_accounting_file",
    "load_transactions_from_data",
    "parse_accounting_json",
    "to_number",
    "transform_accounting_data",
    "transform_row",
]
