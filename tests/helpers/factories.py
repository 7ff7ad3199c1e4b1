"""Small builders for canonical transactions and raw export rows."""

from __future__ import annotations

from typing import Any

from finance_dashboard.models import Transaction


def make_transaction(**overrides: Any) -> Transaction:
    """A valid GBP expense unless fields are overridden.

    ``final_amount`` follows ``original_amount`` when only the latter is given.
    """

    fields: dict[str, Any] = {
        "date": "2024-03-15 12:00:00",
        "item_name": "Coffee",
        "category": "Eating Out",
        "original_amount": 10.0,
        "currency": "GBP",
        "share": 0.0,
        "exclude": 0.0,
        "gf": 0.0,
        "girl_friend_percentage": 0.0,
        "trip": False,
    }
    fields.update(overrides)
    fields.setdefault("final_amount", fields["original_amount"])
    return Transaction(**fields)


def raw_row(**overrides: Any) -> dict[str, Any]:
    """One row of the nested JSON export with its original PascalCase keys."""

    row: dict[str, Any] = {
        "Date": "2024-01-05 09:30:00",
        "ItemName": "Groceries run",
        "Category": "Groceries",
        "OriginalAmount": 42.5,
        "Share": False,
        "FinalAmount": 42.5,
        "Exclude": False,
        "Gf": 0.0,
        "girlFriendPercentage": 0.0,
        "Trip": False,
    }
    row.update(overrides)
    return row


def export_of(*groups: list[dict[str, Any]]) -> dict[str, Any]:
    """Wrap row lists into ``{"<key>": {"Columns", "RowCount", "Data"}}`` groups."""

    out: dict[str, Any] = {}
    for i, rows in enumerate(groups, start=1):
        out[f"2024-{i:02d}"] = {
            "Columns": list(rows[0].keys()) if rows else [],
            "RowCount": len(rows),
            "Data": rows,
        }
    return out
