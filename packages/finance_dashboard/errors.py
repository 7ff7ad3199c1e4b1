"""Exception types raised across ``finance_dashboard``.

Whole-operation failures (import validation, a remote page) propagate to the
caller. Per-item failures (one currency, one date, one cache write) are
raised internally, logged, and absorbed by the component that owns the item.
"""

from __future__ import annotations

from typing import Any


class FinanceDashboardError(RuntimeError):
    """Base class for package errors that are not plain value errors."""


class TransactionValidationError(ValueError):
    """Raw import data does not conform to the canonical schema.

    ``errors`` carries pydantic's structured error list when available.
    """

    def __init__(self, message: str, *, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class RemoteFetchError(FinanceDashboardError):
    """A page request against the remote store failed; the whole load aborts."""

    def __init__(self, message: str, *, page: int | None = None) -> None:
        super().__init__(message)
        self.page = page


class RateFetchError(FinanceDashboardError):
    """A single provider could not quote ``currency`` in the target currency."""

    def __init__(self, message: str, *, currency: str, provider: str | None = None) -> None:
        super().__init__(message)
        self.currency = currency
        self.provider = provider


class CacheWriteError(FinanceDashboardError):
    """The local transaction cache could not be written."""


class DateParseError(ValueError):
    """A transaction date string is not in a recognized format."""

    def __init__(self, value: object) -> None:
        super().__init__(f"unparseable transaction date: {value!r}")
        self.value = value


__all__ = [
    "CacheWriteError",
    "DateParseError",
    "FinanceDashboardError",
    "RateFetchError",
    "RemoteFetchError",
    "TransactionValidationError",
]
