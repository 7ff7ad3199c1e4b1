"""Exchange-rate providers and the in-process rate store.

The store keeps one snapshot per instance::

    {currency_code: rate}   # amount_in_target = amount_in_source * rate

seeded with ``{target: 1.0}``. Entries are added or refreshed by fetches and
never removed.

Fetch rules
-----------
- The target currency is never fetched.
- A currency already in the snapshot is skipped unless the fetch is forced
  (polling).
- At most one HTTP request per currency is in flight at any instant: a user
  fetch and a polling refresh for the same code share one request through a
  per-currency :class:`~finance_dashboard.dedup.RequestDeduplicator`.
- Providers are tried in order; the first quote wins. When every provider
  fails the previous rate (if any) stays and the failure is logged only.

Polling
-------
Every :meth:`ExchangeRateStore.fetch_rates` call (re)starts one background
task that force-refreshes every currency ever requested by this store, once
per ``poll_interval`` seconds. Restarting cancels the previous task.

``is_loading`` reflects non-forced fetches only, so background refreshes do
not make a UI flicker.
"""

from __future__ import annotations

import asyncio
import contextlib
import functools
import time
from collections.abc import Callable, Iterable, Sequence
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from .config import (
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_TARGET_CURRENCY,
)
from .dedup import RequestDeduplicator
from .errors import RateFetchError
from .logging_setup import get_logger
from .models import RateQuote

_logger = get_logger("finance_dashboard.rates")

FRANKFURTER_API = "https://api.frankfurter.dev"
EXCHANGERATE_API = "https://api.exchangerate-api.com/v4/latest"


def normalize_code(code: str) -> str:
    return code.strip().upper()


# ----------------------------------------------------------------------------
# Providers
# ----------------------------------------------------------------------------


class RateProvider(Protocol):
    """Quote "1 ``source`` in ``target``" or raise :class:`RateFetchError`."""

    name: str

    async def fetch_rate(self, client: httpx.AsyncClient, source: str, target: str) -> float: ...


async def _get_quote(
    client: httpx.AsyncClient,
    url: str,
    *,
    provider: str,
    source: str,
    target: str,
    params: dict[str, str] | None = None,
) -> float:
    response = await client.get(url, params=params, headers={"accept": "application/json"})
    if response.status_code in (400, 404, 422):
        raise RateFetchError(
            f"{provider} does not quote {source}->{target} (HTTP {response.status_code})",
            currency=source,
            provider=provider,
        )
    if response.is_error:
        raise RateFetchError(
            f"{provider} returned HTTP {response.status_code} for {source}",
            currency=source,
            provider=provider,
        )
    try:
        quote = RateQuote.model_validate_json(response.content)
    except ValidationError as e:
        raise RateFetchError(
            f"{provider} returned an unexpected payload for {source}: {e.error_count()} error(s)",
            currency=source,
            provider=provider,
        ) from e

    rate = quote.rates.get(target)
    if rate is None or rate <= 0:
        raise RateFetchError(
            f"{provider} response has no {target} rate for {source}",
            currency=source,
            provider=provider,
        )
    return rate


class FrankfurterProvider:
    """ECB-backed rates; no API key. Does not cover every currency (e.g. TWD)."""

    name = "frankfurter"

    def __init__(self, base_url: str = FRANKFURTER_API) -> None:
        self.base_url = base_url.rstrip("/")

    async def fetch_rate(self, client: httpx.AsyncClient, source: str, target: str) -> float:
        return await _get_quote(
            client,
            f"{self.base_url}/latest",
            params={"from": source, "to": target},
            provider=self.name,
            source=source,
            target=target,
        )


class ExchangeRateApiProvider:
    """exchangerate-api.com free tier; broader currency coverage."""

    name = "exchangerate-api"

    def __init__(self, base_url: str = EXCHANGERATE_API) -> None:
        self.base_url = base_url.rstrip("/")

    async def fetch_rate(self, client: httpx.AsyncClient, source: str, target: str) -> float:
        return await _get_quote(
            client,
            f"{self.base_url}/{source}",
            provider=self.name,
            source=source,
            target=target,
        )


def default_providers() -> list[RateProvider]:
    """Primary provider first, broader fallback second."""

    return [FrankfurterProvider(), ExchangeRateApiProvider()]


# ----------------------------------------------------------------------------
# Store
# ----------------------------------------------------------------------------


class ExchangeRateStore:
    """Rate snapshot, fetch/poll lifecycle, and conversion queries.

    Use as an async context manager (or call :meth:`aclose`) so the polling
    task and an owned HTTP client are released.
    """

    def __init__(
        self,
        *,
        target_currency: str = DEFAULT_TARGET_CURRENCY,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        providers: Sequence[RateProvider] | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self.target_currency = normalize_code(target_currency)
        self.poll_interval = poll_interval
        self._providers: list[RateProvider] = (
            list(providers) if providers is not None else default_providers()
        )
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout
        self._clock = clock

        self._rates: dict[str, float] = {self.target_currency: 1.0}
        # Insertion-ordered set; grows for the lifetime of the store.
        self._requested: dict[str, None] = {}
        self._inflight = RequestDeduplicator()
        self._loading_depth = 0
        self._poll_task: asyncio.Task[None] | None = None

        self.last_updated: float | None = None
        self.error: str | None = None

    # ---- queries ------------------------------------------------------------

    @property
    def rates(self) -> dict[str, float]:
        """A copy of the current snapshot."""

        return dict(self._rates)

    @property
    def requested_currencies(self) -> tuple[str, ...]:
        return tuple(self._requested)

    @property
    def is_loading(self) -> bool:
        return self._loading_depth > 0

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def get_rate(self, currency: str) -> float | None:
        return self._rates.get(normalize_code(currency))

    def convert_to_target(self, amount: float, from_currency: str) -> float:
        """Convert ``amount``; an unknown rate returns ``amount`` unchanged."""

        code = normalize_code(from_currency)
        if code == self.target_currency:
            return amount
        rate = self._rates.get(code)
        if not rate:
            return amount
        return amount * rate

    # ---- fetching -----------------------------------------------------------

    async def fetch_rates(self, currencies: Iterable[str]) -> None:
        """Fetch missing rates for ``currencies`` and (re)start polling."""

        await self._fetch(currencies, force=False)
        self.start_polling()

    async def refresh(self) -> None:
        """Force-refresh every currency requested so far (one polling tick)."""

        await self._fetch(list(self._requested), force=True)

    async def _fetch(self, currencies: Iterable[str], *, force: bool) -> None:
        unique = list(
            dict.fromkeys(
                code
                for code in (normalize_code(c) for c in currencies)
                if code and code != self.target_currency
            )
        )
        if not unique:
            if not force:
                self.error = None
            return

        for code in unique:
            self._requested.setdefault(code, None)

        to_fetch = [c for c in unique if force or c not in self._rates]
        if not to_fetch:
            return

        starts_new = any(not self._inflight.has_pending(c) for c in to_fetch)
        track_loading = not force and starts_new
        if track_loading:
            self._loading_depth += 1
        try:
            results = await asyncio.gather(
                *(
                    self._inflight.execute(c, functools.partial(self._fetch_one, c))
                    for c in to_fetch
                )
            )
        finally:
            if track_loading:
                self._loading_depth -= 1

        failed = [c for c, rate in zip(to_fetch, results, strict=True) if rate is None]
        if len(failed) < len(to_fetch):
            self.last_updated = self._clock()
        self.error = f"rates unavailable for: {', '.join(failed)}" if failed else None

    async def _fetch_one(self, currency: str) -> float | None:
        client = self._ensure_client()
        for provider in self._providers:
            try:
                rate = await provider.fetch_rate(client, currency, self.target_currency)
            except RateFetchError as e:
                _logger.warning("rates:provider_failed provider=%s %s", provider.name, e)
                continue
            except httpx.HTTPError as e:
                _logger.warning(
                    "rates:provider_unreachable provider=%s currency=%s error=%s",
                    provider.name,
                    currency,
                    e,
                )
                continue
            self._rates[currency] = rate
            _logger.debug(
                "rates:updated currency=%s target=%s rate=%s provider=%s",
                currency,
                self.target_currency,
                rate,
                provider.name,
            )
            return rate

        _logger.warning(
            "rates:unavailable currency=%s target=%s; keeping previous=%s",
            currency,
            self.target_currency,
            self._rates.get(currency),
        )
        return None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_client = True
        return self._client

    # ---- polling lifecycle --------------------------------------------------

    def start_polling(self) -> None:
        """Replace the polling task; no-op when nothing has been requested."""

        self._cancel_poll()
        if not self._requested:
            return
        loop = asyncio.get_running_loop()
        self._poll_task = loop.create_task(self._poll_loop(), name="exchange-rate-poll")

    async def stop_polling(self) -> None:
        task = self._poll_task
        self._cancel_poll()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def _cancel_poll(self) -> None:
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            try:
                await self.refresh()
            except Exception:  # noqa: BLE001
                # Keep polling; the next tick retries every currency.
                _logger.exception("rates:poll_failed")

    async def aclose(self) -> None:
        await self.stop_polling()
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> ExchangeRateStore:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


__all__ = [
    "EXCHANGERATE_API",
    "FRANKFURTER_API",
    "ExchangeRateApiProvider",
    "ExchangeRateStore",
    "FrankfurterProvider",
    "RateProvider",
    "default_providers",
    "normalize_code",
]
