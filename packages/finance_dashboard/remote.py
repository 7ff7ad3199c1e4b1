"""Paginated load of the full transaction set from the remote store.

The remote store is the hosted ``transactions`` table (``db.models.finance``),
read through SQLAlchemy. The query contract is::

    SELECT * FROM transactions ORDER BY date ASC LIMIT :page_size OFFSET :offset

Pages are requested in ascending order until one returns fewer rows than the
page size. A whole load runs under one deduplication key, so concurrent
callers share the same multi-page fetch. Any page failure aborts the load for
every waiter; partial results are never returned or cached.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import Mapping, Sequence
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol

from sqlalchemy import select

from db.client import session_scope
from db.models.finance import TransactionRow

from .config import DEFAULT_PAGE_SIZE, DEFAULT_SOURCE_CURRENCY
from .dedup import RequestDeduplicator
from .errors import RemoteFetchError
from .local_cache import TransactionCache
from .logging_setup import get_logger
from .models import DATE_FORMAT, Transaction

LOAD_ALL_KEY = "load_transactions_from_remote"

# Columns of the remote row contract, in table order.
REMOTE_FIELDS: tuple[str, ...] = (
    "date",
    "item_name",
    "category",
    "original_amount",
    "final_amount",
    "currency",
    "share",
    "exclude",
    "gf",
    "girl_friend_percentage",
    "trip",
)

_logger = get_logger("finance_dashboard.remote")


# ----------------------------------------------------------------------------
# Row normalization
# ----------------------------------------------------------------------------


def _parse_number(raw: Any, default: float = 0.0) -> float:
    """Parse a numeric cell defensively; anything unparseable becomes ``default``."""

    if isinstance(raw, bool):
        return 1.0 if raw else 0.0
    if raw is None:
        return default
    try:
        value = float(Decimal(str(raw).strip()))
    except (InvalidOperation, ValueError):
        return default
    return value if math.isfinite(value) else default


def _normalize_date(raw: Any) -> str:
    """Render a remote date as ``YYYY-MM-DD HH:MM:SS``.

    ``datetime`` values are formatted directly. ISO strings with a ``T``
    separator are rewritten and truncated to seconds; other strings pass
    through unchanged (the date filter treats them as unparseable).
    """

    if isinstance(raw, datetime):
        return raw.strftime(DATE_FORMAT)
    s = "" if raw is None else str(raw).strip()
    if "T" in s:
        s = s.replace("T", " ", 1)[:19]
    return s


def normalize_remote_row(row: Mapping[str, Any]) -> Transaction:
    """Map one remote row (snake_case contract) to a canonical transaction.

    A missing ``final_amount`` falls back to ``original_amount``.
    """

    original = _parse_number(row.get("original_amount"))
    final_raw = row.get("final_amount")
    final = original if final_raw is None else _parse_number(final_raw, default=original)
    currency = str(row.get("currency") or "").strip().upper() or DEFAULT_SOURCE_CURRENCY
    return Transaction(
        date=_normalize_date(row.get("date")),
        item_name=str(row.get("item_name") or ""),
        category=str(row.get("category") or ""),
        original_amount=original,
        final_amount=final,
        currency=currency,
        share=_parse_number(row.get("share")),
        exclude=_parse_number(row.get("exclude")),
        gf=_parse_number(row.get("gf")),
        girl_friend_percentage=_parse_number(row.get("girl_friend_percentage")),
        trip=bool(row.get("trip") or False),
    )


# ----------------------------------------------------------------------------
# Sources
# ----------------------------------------------------------------------------


class TransactionSource(Protocol):
    """Returns raw rows for ``[offset, offset + limit)`` in ascending date order."""

    async def fetch_page(self, offset: int, limit: int) -> Sequence[Mapping[str, Any]]: ...


class SqlTransactionSource:
    """Reads pages from the ``transactions`` table via SQLAlchemy.

    The synchronous session work runs in a worker thread so the event loop
    keeps serving rate fetches while a page is in flight.
    """

    def __init__(self, *, database_url: str | None = None) -> None:
        self.database_url = database_url

    async def fetch_page(self, offset: int, limit: int) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._fetch_page_sync, offset, limit)

    def _fetch_page_sync(self, offset: int, limit: int) -> list[dict[str, Any]]:
        stmt = (
            select(TransactionRow)
            .order_by(TransactionRow.date.asc(), TransactionRow.id.asc())
            .limit(limit)
            .offset(offset)
        )
        with session_scope(database_url=self.database_url) as session:
            rows = session.execute(stmt).scalars().all()
            return [{name: getattr(r, name) for name in REMOTE_FIELDS} for r in rows]


# ----------------------------------------------------------------------------
# Loader
# ----------------------------------------------------------------------------


class RemoteLoader:
    """Deduplicated, all-or-nothing paginated loader."""

    def __init__(
        self,
        source: TransactionSource,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        deduplicator: RequestDeduplicator | None = None,
    ) -> None:
        if not isinstance(page_size, int) or page_size < 1:
            raise ValueError("page_size must be a positive integer")
        self.source = source
        self.page_size = page_size
        self._dedup = deduplicator if deduplicator is not None else RequestDeduplicator()

    async def load_all(self) -> list[Transaction]:
        """Return every remote transaction, sharing any load already running."""

        return await self._dedup.execute(LOAD_ALL_KEY, self._load_all_pages)

    async def _load_all_pages(self) -> list[Transaction]:
        transactions: list[Transaction] = []
        page = 0
        while True:
            offset = page * self.page_size
            try:
                rows = await self.source.fetch_page(offset, self.page_size)
            except Exception as e:
                _logger.error("remote:page_failed page=%d offset=%d error=%s", page, offset, e)
                raise RemoteFetchError(
                    f"failed to fetch transactions page {page}: {e}", page=page
                ) from e

            transactions.extend(normalize_remote_row(row) for row in rows)
            _logger.debug("remote:page page=%d rows=%d", page, len(rows))
            if len(rows) < self.page_size:
                break
            page += 1

        _logger.info("remote:loaded transactions=%d pages=%d", len(transactions), page + 1)
        return transactions


async def load_transactions(
    cache: TransactionCache,
    loader: RemoteLoader,
    *,
    use_cache: bool = True,
) -> list[Transaction]:
    """Cache-first load: fresh cache wins, otherwise remote then cache write.

    A failed cache write is logged by the cache and does not affect the
    returned data. Remote failures propagate.
    """

    if use_cache:
        cached = cache.get()
        if cached is not None:
            return cached

    transactions = await loader.load_all()
    cache.set(transactions)
    return transactions


__all__ = [
    "LOAD_ALL_KEY",
    "REMOTE_FIELDS",
    "RemoteLoader",
    "SqlTransactionSource",
    "TransactionSource",
    "load_transactions",
    "normalize_remote_row",
]
