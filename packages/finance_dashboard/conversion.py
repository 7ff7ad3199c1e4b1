"""Glue between a transaction collection and an :class:`ExchangeRateStore`.

Conversion reads the store's snapshot at call time, so results always
reflect the latest rates; nothing is memoized across rate changes.

The per-transaction key is ``date|item_name|original_amount|currency``. It is
a heuristic identity: two rows with identical values share a key (and
necessarily the same converted amount).
"""

from __future__ import annotations

from collections.abc import Sequence

from .models import Transaction
from .rates import ExchangeRateStore, normalize_code


def transaction_key(transaction: Transaction) -> str:
    return (
        f"{transaction.date}|{transaction.item_name}|"
        f"{transaction.original_amount}|{transaction.currency}"
    )


def distinct_currencies(transactions: Sequence[Transaction]) -> list[str]:
    """Currencies present, first-seen order."""

    return list(dict.fromkeys(normalize_code(t.currency) for t in transactions))


def split_share(amount: float, share: float) -> float:
    """Halve ``amount`` when the cost is shared with a second party."""

    return amount / 2 if share else amount


class CurrencyConversion:
    """Converted amounts for one transaction collection.

    Call :meth:`ensure_rates` to request any missing rates; until they
    arrive, conversions fall back to the unconverted amount.
    """

    def __init__(self, store: ExchangeRateStore, transactions: Sequence[Transaction]) -> None:
        self.store = store
        self.transactions = list(transactions)
        self.currencies = distinct_currencies(self.transactions)

    @property
    def is_loading(self) -> bool:
        return self.store.is_loading

    async def ensure_rates(self) -> None:
        """Request rates for this collection's currencies (already known ones are skipped)."""

        if self.currencies:
            await self.store.fetch_rates(self.currencies)

    def converted_amounts(self) -> dict[str, float]:
        """``transaction_key -> original_amount`` converted to the target currency."""

        return {
            transaction_key(t): self.store.convert_to_target(t.original_amount, t.currency)
            for t in self.transactions
        }

    def converted_amount(self, transaction: Transaction) -> float:
        return self.store.convert_to_target(transaction.original_amount, transaction.currency)

    def effective_amount(self, transaction: Transaction) -> float:
        """Converted amount after the cost-splitting rule."""

        return split_share(self.converted_amount(transaction), transaction.share)

    def effective_transactions(self) -> list[Transaction]:
        """Copies whose ``final_amount`` is the effective amount in the target currency.

        ``original_amount`` and ``currency`` keep their source values.
        """

        return [
            t.model_copy(update={"final_amount": self.effective_amount(t)})
            for t in self.transactions
        ]


__all__ = [
    "CurrencyConversion",
    "distinct_currencies",
    "split_share",
    "transaction_key",
]
