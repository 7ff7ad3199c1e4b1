"""Public interface for the ``finance_dashboard`` package.

This module exposes the package's orchestration entry points, services and
public models/types as the stable import surface. There is no runtime logic
here, only symbol re-exports.
"""

from .api import (
    Dashboard,
    DashboardServices,
    build_dashboard,
    cache_from_settings,
    default_date_filter,
)
from .config import Settings
from .conversion import CurrencyConversion
from .date_filter import available_months, available_years, filter_transactions
from .dedup import RequestDeduplicator, with_deduplication
from .errors import (
    CacheWriteError,
    DateParseError,
    FinanceDashboardError,
    RateFetchError,
    RemoteFetchError,
    TransactionValidationError,
)
from .local_cache import TransactionCache
from .models import (
    CategoryBreakdown,
    ChartPoint,
    CustomFilter,
    DateFilter,
    MonthFilter,
    Overview,
    Transaction,
    YearFilter,
    get_transaction_type,
)
from .overview import calculate_overview, chart_series
from .rates import ExchangeRateStore
from .remote import RemoteLoader, SqlTransactionSource, load_transactions
from .transform import load_accounting_file, transform_accounting_data

__all__ = [
    # API
    "build_dashboard",
    "cache_from_settings",
    "default_date_filter",
    "load_transactions",
    "load_accounting_file",
    "transform_accounting_data",
    "filter_transactions",
    "available_years",
    "available_months",
    "calculate_overview",
    "chart_series",
    "get_transaction_type",
    "with_deduplication",
    # Services
    "Dashboard",
    "DashboardServices",
    "CurrencyConversion",
    "ExchangeRateStore",
    "RemoteLoader",
    "RequestDeduplicator",
    "Settings",
    "SqlTransactionSource",
    "TransactionCache",
    # Models / types
    "Transaction",
    "YearFilter",
    "MonthFilter",
    "CustomFilter",
    "DateFilter",
    "Overview",
    "CategoryBreakdown",
    "ChartPoint",
    # Errors
    "FinanceDashboardError",
    "TransactionValidationError",
    "RemoteFetchError",
    "RateFetchError",
    "CacheWriteError",
    "DateParseError",
]
