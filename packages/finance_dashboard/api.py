"""Public orchestration for the ``finance_dashboard`` package.

Wires the pieces in data-flow order::

    remote store -> (local cache <-> remote loader) -> date filter
        -> currency conversion -> overview / chart series

:class:`DashboardServices` owns the long-lived collaborators (cache, loader,
rate store) built from :class:`~finance_dashboard.config.Settings`;
:func:`build_dashboard` is the per-view computation and is cheap to re-run
whenever the filter or the rates change.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from .categories import DEFAULT_CATEGORY_CONFIG, CategoryConfig
from .config import Settings
from .conversion import CurrencyConversion
from .date_filter import available_years, filter_transactions
from .local_cache import FileKeyValueStore, TransactionCache
from .models import ChartPoint, DateFilter, Overview, Transaction, YearFilter
from .overview import calculate_overview, chart_series
from .rates import ExchangeRateStore
from .remote import RemoteLoader, SqlTransactionSource, load_transactions


@dataclass(frozen=True, slots=True)
class Dashboard:
    """One rendered view.

    ``transactions`` are the filtered rows with ``final_amount`` already
    converted to the target currency and split when shared.
    ``rates_loading`` is true while an initial (non-polling) rate fetch is
    still running, meaning some amounts may be unconverted.
    """

    date_filter: DateFilter
    target_currency: str
    transactions: tuple[Transaction, ...]
    overview: Overview
    chart: tuple[ChartPoint, ...]
    rates_loading: bool


def default_date_filter(transactions: Sequence[Transaction]) -> YearFilter:
    """The most recent year with data; an unset year when there is none."""

    years = available_years(transactions)
    return YearFilter(year=years[0] if years else None)


async def build_dashboard(
    transactions: Sequence[Transaction],
    store: ExchangeRateStore,
    date_filter: DateFilter,
    *,
    config: CategoryConfig = DEFAULT_CATEGORY_CONFIG,
    fetch_rates: bool = True,
) -> Dashboard:
    """Filter, convert, and aggregate ``transactions`` for ``date_filter``.

    The full ``transactions`` collection is also the category universe, so
    categories with no activity in the window still appear with 0.
    """

    filtered = filter_transactions(transactions, date_filter)
    conversion = CurrencyConversion(store, filtered)
    if fetch_rates:
        await conversion.ensure_rates()
    effective = conversion.effective_transactions()

    return Dashboard(
        date_filter=date_filter,
        target_currency=store.target_currency,
        transactions=tuple(effective),
        overview=calculate_overview(effective, transactions, config=config),
        chart=tuple(chart_series(effective, date_filter, config=config)),
        rates_loading=conversion.is_loading,
    )


def cache_from_settings(settings: Settings) -> TransactionCache:
    """The file-backed transaction cache under ``settings.cache_dir``."""

    root = settings.cache_dir / "local_storage" if settings.cache_dir is not None else None
    return TransactionCache(
        FileKeyValueStore(root), duration_seconds=settings.cache_duration_seconds
    )


class DashboardServices:
    """Long-lived collaborators for one process (or one test)."""

    def __init__(
        self,
        *,
        cache: TransactionCache,
        loader: RemoteLoader,
        store: ExchangeRateStore,
    ) -> None:
        self.cache = cache
        self.loader = loader
        self.store = store

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> DashboardServices:
        cache = overrides.pop("cache", None) or cache_from_settings(settings)
        loader = overrides.pop("loader", None) or RemoteLoader(
            SqlTransactionSource(database_url=settings.database_url),
            page_size=settings.page_size,
        )
        store = overrides.pop("store", None) or ExchangeRateStore(
            target_currency=settings.target_currency,
            poll_interval=settings.poll_interval_seconds,
            timeout=settings.http_timeout_seconds,
        )
        if overrides:
            raise TypeError(f"unexpected overrides: {', '.join(sorted(overrides))}")
        return cls(cache=cache, loader=loader, store=store)

    async def load_transactions(self, *, use_cache: bool = True) -> list[Transaction]:
        return await load_transactions(self.cache, self.loader, use_cache=use_cache)

    async def dashboard(
        self,
        date_filter: DateFilter | None = None,
        *,
        use_cache: bool = True,
        config: CategoryConfig = DEFAULT_CATEGORY_CONFIG,
    ) -> Dashboard:
        transactions = await self.load_transactions(use_cache=use_cache)
        if date_filter is None:
            date_filter = default_date_filter(transactions)
        return await build_dashboard(transactions, self.store, date_filter, config=config)

    async def aclose(self) -> None:
        await self.store.aclose()

    async def __aenter__(self) -> DashboardServices:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


__all__ = [
    "Dashboard",
    "DashboardServices",
    "build_dashboard",
    "cache_from_settings",
    "default_date_filter",
]
