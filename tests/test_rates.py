from __future__ import annotations

import asyncio
from collections.abc import Callable

import httpx
import pytest

from finance_dashboard.rates import (
    ExchangeRateApiProvider,
    ExchangeRateStore,
    FrankfurterProvider,
)

FRANKFURTER_HOST = "api.frankfurter.dev"
EXCHANGERATE_HOST = "api.exchangerate-api.com"


class RateServer:
    """Routes requests by host and records them; rates are per-host dicts."""

    def __init__(
        self,
        *,
        frankfurter: dict[str, float] | None = None,
        exchangerate: dict[str, float] | None = None,
    ) -> None:
        self.frankfurter = frankfurter or {}
        self.exchangerate = exchangerate or {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == FRANKFURTER_HOST:
            source = request.url.params["from"]
            target = request.url.params["to"]
            rate = self.frankfurter.get(source)
            if rate is None:
                return httpx.Response(404, json={"message": "not found"})
            payload = {"amount": 1.0, "base": source, "date": "2024-03-15", "rates": {target: rate}}
            return httpx.Response(200, json=payload)
        if request.url.host == EXCHANGERATE_HOST:
            source = request.url.path.rsplit("/", 1)[-1]
            rate = self.exchangerate.get(source)
            if rate is None:
                return httpx.Response(404, json={"result": "error"})
            return httpx.Response(200, json={"base": source, "rates": {"GBP": rate, source: 1.0}})
        return httpx.Response(500)

    def count(self, host: str) -> int:
        return sum(1 for r in self.requests if r.url.host == host)


def _run(server: Callable[[httpx.Request], httpx.Response], body, **store_kwargs):
    """Run ``body(store)`` with a store whose HTTP goes through ``server``."""

    async def main():
        async with httpx.AsyncClient(transport=httpx.MockTransport(server)) as client:
            async with ExchangeRateStore(client=client, **store_kwargs) as store:
                return await body(store)

    return asyncio.run(main())


def test_fetch_uses_primary_provider_and_converts():
    server = RateServer(frankfurter={"USD": 0.8})

    async def body(store: ExchangeRateStore):
        await store.fetch_rates(["usd"])
        return store

    store = _run(server, body)

    assert store.get_rate("USD") == 0.8
    assert store.convert_to_target(100.0, "USD") == pytest.approx(80.0)
    assert store.convert_to_target(100.0, "GBP") == 100.0
    assert store.rates == {"GBP": 1.0, "USD": 0.8}
    assert store.error is None
    assert store.last_updated is not None
    assert server.count(EXCHANGERATE_HOST) == 0


def test_falls_back_to_secondary_provider():
    server = RateServer(frankfurter={}, exchangerate={"TWD": 0.025})

    async def body(store: ExchangeRateStore):
        await store.fetch_rates(["TWD"])
        return store.get_rate("TWD")

    assert _run(server, body) == 0.025
    assert server.count(FRANKFURTER_HOST) == 1
    assert server.count(EXCHANGERATE_HOST) == 1


def test_invalid_payload_falls_through_to_next_provider():
    def server(request: httpx.Request) -> httpx.Response:
        if request.url.host == FRANKFURTER_HOST:
            return httpx.Response(200, json={"unexpected": True})
        return httpx.Response(200, json={"rates": {"GBP": 0.9}})

    async def body(store: ExchangeRateStore):
        await store.fetch_rates(["EUR"])
        return store.get_rate("EUR")

    assert _run(server, body) == 0.9


def test_total_failure_is_absorbed_and_amounts_pass_through():
    server = RateServer()

    async def body(store: ExchangeRateStore):
        await store.fetch_rates(["JPY"])
        return store

    store = _run(server, body)

    assert store.get_rate("JPY") is None
    assert store.convert_to_target(1000.0, "JPY") == 1000.0
    assert store.error is not None and "JPY" in store.error
    assert store.is_loading is False


def test_network_error_is_absorbed():
    def server(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    async def body(store: ExchangeRateStore):
        await store.fetch_rates(["USD"])
        return store.get_rate("USD")

    assert _run(server, body) is None


def test_known_rates_and_target_are_not_refetched():
    server = RateServer(frankfurter={"USD": 0.8})

    async def body(store: ExchangeRateStore):
        await store.fetch_rates(["USD", "GBP"])
        await store.fetch_rates(["USD"])
        await store.fetch_rates(["GBP"])
        return store.requested_currencies

    assert _run(server, body) == ("USD",)
    assert server.count(FRANKFURTER_HOST) == 1


def test_target_only_request_does_not_start_polling():
    server = RateServer()

    async def body(store: ExchangeRateStore):
        await store.fetch_rates(["gbp"])
        return store.is_polling

    assert _run(server, body) is False
    assert server.requests == []


def test_concurrent_fetches_share_one_request_per_currency():
    server = RateServer(frankfurter={"USD": 0.8, "EUR": 0.85})

    async def body(store: ExchangeRateStore):
        await asyncio.gather(
            store.fetch_rates(["USD", "EUR"]),
            store.fetch_rates(["USD"]),
            store.fetch_rates(["EUR", "USD"]),
        )
        return store.rates

    rates = _run(server, body)

    assert rates == {"GBP": 1.0, "USD": 0.8, "EUR": 0.85}
    assert server.count(FRANKFURTER_HOST) == 2


def test_is_loading_tracks_an_initial_fetch():
    async def main() -> tuple[bool, bool]:
        gate = asyncio.Event()

        async def server(request: httpx.Request) -> httpx.Response:
            await gate.wait()
            return httpx.Response(200, json={"rates": {"GBP": 0.8}})

        async with httpx.AsyncClient(transport=httpx.MockTransport(server)) as client:
            async with ExchangeRateStore(client=client) as store:
                pending = asyncio.ensure_future(store.fetch_rates(["USD"]))
                await asyncio.sleep(0.01)
                during = store.is_loading
                gate.set()
                await pending
                return during, store.is_loading

    assert asyncio.run(main()) == (True, False)


def test_polling_refreshes_requested_currencies():
    quotes = iter([0.8, 0.81, 0.82, 0.83, 0.84, 0.85, 0.86, 0.87, 0.88, 0.89])
    calls = 0

    def server(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(200, json={"rates": {"GBP": next(quotes, 0.9)}})

    async def body(store: ExchangeRateStore):
        await store.fetch_rates(["USD"])
        assert store.is_polling
        first = store.get_rate("USD")
        await asyncio.sleep(0.1)
        loading_during_poll = store.is_loading
        await store.stop_polling()
        return first, store.get_rate("USD"), loading_during_poll, store.is_polling

    first, later, loading_during_poll, polling = _run(server, body, poll_interval=0.02)

    assert first == 0.8
    assert later is not None and later > first
    assert calls >= 2
    assert loading_during_poll is False
    assert polling is False


def test_refresh_keeps_previous_rate_on_failure():
    state = {"fail": False}

    def server(request: httpx.Request) -> httpx.Response:
        if state["fail"]:
            return httpx.Response(503)
        return httpx.Response(200, json={"rates": {"GBP": 0.8}})

    async def body(store: ExchangeRateStore):
        await store.fetch_rates(["USD"])
        state["fail"] = True
        await store.refresh()
        return store.get_rate("USD"), store.error

    rate, error = _run(server, body)

    assert rate == 0.8
    assert error is not None


def test_restarting_polling_replaces_the_task():
    server = RateServer(frankfurter={"USD": 0.8, "EUR": 0.85})

    async def body(store: ExchangeRateStore):
        await store.fetch_rates(["USD"])
        first_task = store._poll_task
        await store.fetch_rates(["EUR"])
        second_task = store._poll_task
        await asyncio.sleep(0.01)
        return first_task, second_task, store.requested_currencies

    first_task, second_task, requested = _run(server, body)

    assert first_task is not second_task
    assert first_task.cancelled()
    assert requested == ("USD", "EUR")


def test_non_positive_poll_interval_is_rejected():
    with pytest.raises(ValueError):
        ExchangeRateStore(poll_interval=0)


def test_provider_request_shapes():
    server = RateServer(frankfurter={"USD": 0.8}, exchangerate={"USD": 0.79})

    async def main() -> tuple[float, float]:
        async with httpx.AsyncClient(transport=httpx.MockTransport(server)) as client:
            a = await FrankfurterProvider().fetch_rate(client, "USD", "GBP")
            b = await ExchangeRateApiProvider().fetch_rate(client, "USD", "GBP")
            return a, b

    assert asyncio.run(main()) == (0.8, 0.79)
    frank, era = server.requests
    assert frank.url.path == "/latest"
    assert dict(frank.url.params) == {"from": "USD", "to": "GBP"}
    assert era.url.path == "/v4/latest/USD"


def test_user_fetch_joins_an_in_flight_poll_refresh():
    async def main() -> tuple[int, bool, float | None]:
        gate = asyncio.Event()
        state = {"up": False}
        hits: list[httpx.Request] = []

        async def server(request: httpx.Request) -> httpx.Response:
            if not state["up"]:
                return httpx.Response(503)
            hits.append(request)
            await gate.wait()
            return httpx.Response(200, json={"rates": {"GBP": 0.8}})

        async with httpx.AsyncClient(transport=httpx.MockTransport(server)) as client:
            async with ExchangeRateStore(client=client) as store:
                # Both providers down: USD is requested but has no rate yet.
                await store.fetch_rates(["USD"])
                assert store.get_rate("USD") is None

                state["up"] = True
                tick = asyncio.ensure_future(store.refresh())
                await asyncio.sleep(0.01)
                user = asyncio.ensure_future(store.fetch_rates(["USD"]))
                await asyncio.sleep(0.01)
                loading = store.is_loading
                gate.set()
                await asyncio.gather(tick, user)
                return len(hits), loading, store.get_rate("USD")

    assert asyncio.run(main()) == (1, False, 0.8)


@pytest.mark.parametrize("body", ['{"rates": {"GBP": NaN}}', '{"rates": {"GBP": Infinity}}'])
def test_non_finite_rate_is_rejected(body: str):
    def server(request: httpx.Request) -> httpx.Response:
        if request.url.host == FRANKFURTER_HOST:
            return httpx.Response(200, content=body, headers={"content-type": "application/json"})
        return httpx.Response(200, json={"rates": {"GBP": 0.8}})

    async def body_fn(store: ExchangeRateStore):
        await store.fetch_rates(["USD"])
        return store.get_rate("USD")

    assert _run(server, body_fn) == 0.8
