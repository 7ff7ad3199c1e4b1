"""Import-side writes into the remote ``transactions`` table.

Transactions are inserted in batches (default 500 rows). When a batch insert
fails, that batch is retried row by row so one bad row does not sink its
neighbours; per-row failures are counted and logged. Nothing here updates or
deduplicates existing rows: re-running an import appends again.

Field names written are exactly the remote contract
(``db.models.finance.TransactionRow``).
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from sqlalchemy import insert
from sqlalchemy.exc import SQLAlchemyError

from db.client import session_scope
from db.models.finance import TransactionRow

from .config import DEFAULT_IMPORT_BATCH_SIZE
from .logging_setup import get_logger
from .models import DATE_FORMAT, Transaction

_logger = get_logger("finance_dashboard.persistence")


def _to_decimal_2(raw: float) -> Decimal:
    try:
        d = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        return Decimal("0.00")
    return d.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _to_decimal(raw: float) -> Decimal:
    try:
        return Decimal(str(raw))
    except (InvalidOperation, ValueError):
        return Decimal(0)


def _to_datetime(raw: str) -> datetime:
    """Parse ``YYYY-MM-DD HH:MM:SS``; a bare ``YYYY-MM-DD`` means midnight.

    Raises ``ValueError`` for anything else so the row is reported as failed.
    """

    s = raw.strip()
    if " " not in s and "T" not in s:
        s = f"{s} 00:00:00"
    return datetime.strptime(s.replace("T", " ", 1), DATE_FORMAT)


def to_remote_row(transaction: Transaction) -> dict[str, Any]:
    """Map a canonical transaction to the remote row contract."""

    return {
        "date": _to_datetime(transaction.date),
        "item_name": transaction.item_name,
        "category": transaction.category or "Other",
        "original_amount": _to_decimal_2(transaction.original_amount),
        "final_amount": _to_decimal_2(transaction.final_amount),
        "currency": transaction.currency,
        "share": _to_decimal(transaction.share),
        "exclude": _to_decimal(transaction.exclude),
        "gf": _to_decimal(transaction.gf),
        "girl_friend_percentage": _to_decimal(transaction.girl_friend_percentage),
        "trip": transaction.trip,
    }


@dataclass(slots=True)
class ImportResult:
    """Outcome counters for one import run."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    batches: int = 0
    errors: list[str] = field(default_factory=list)


def insert_transactions(
    transactions: Sequence[Transaction],
    *,
    database_url: str | None = None,
    batch_size: int = DEFAULT_IMPORT_BATCH_SIZE,
    on_progress: Callable[[ImportResult], None] | None = None,
) -> ImportResult:
    """Insert ``transactions`` into the remote store and return counters.

    Each batch commits in its own short transaction. ``on_progress`` is called
    after every batch with the running totals.
    """

    if not isinstance(batch_size, int) or batch_size < 1:
        raise ValueError("batch_size must be a positive integer")

    result = ImportResult(total=len(transactions))
    for start in range(0, len(transactions), batch_size):
        batch = transactions[start : start + batch_size]
        result.batches += 1
        batch_no = result.batches
        try:
            payloads = [to_remote_row(t) for t in batch]
            with session_scope(database_url=database_url) as session:
                session.execute(insert(TransactionRow), payloads)
            result.succeeded += len(batch)
        except (SQLAlchemyError, ValueError) as e:
            _logger.warning(
                "import:batch_failed batch=%d size=%d error=%s; retrying row by row",
                batch_no,
                len(batch),
                e,
            )
            _insert_one_by_one(batch, database_url=database_url, result=result)

        _logger.info(
            "import:progress done=%d/%d succeeded=%d failed=%d batch=%d",
            min(start + len(batch), result.total),
            result.total,
            result.succeeded,
            result.failed,
            batch_no,
        )
        if on_progress is not None:
            on_progress(result)

    return result


def _insert_one_by_one(
    batch: Sequence[Transaction], *, database_url: str | None, result: ImportResult
) -> None:
    for t in batch:
        try:
            payload = to_remote_row(t)
            with session_scope(database_url=database_url) as session:
                session.execute(insert(TransactionRow), [payload])
        except (SQLAlchemyError, ValueError) as e:
            result.failed += 1
            message = f'failed to insert "{t.item_name}" ({t.date}): {e}'
            result.errors.append(message)
            _logger.error("import:row_failed %s", message)
        else:
            result.succeeded += 1


__all__ = ["ImportResult", "insert_transactions", "to_remote_row"]
