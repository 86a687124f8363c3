from __future__ import annotations

import json

import httpx
import pytest

from compliance_migration.core.errors import ErrorCode
from compliance_migration.core.exceptions import BubbleFetchError
from compliance_migration.services.bubble.client import BubbleClient


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def time(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _page(results: list[dict], remaining: int) -> httpx.Response:
    return httpx.Response(200, json={"response": {"results": results, "remaining": remaining, "cursor": 0}})


def _client(handler, clock: FakeClock | None = None, **kwargs) -> BubbleClient:
    clock = clock or FakeClock()
    return BubbleClient(
        "https://legacy.example.com/",
        "secret-token",
        transport=httpx.MockTransport(handler),
        sleep=clock.sleep,
        clock=clock.time,
        **kwargs,
    )


def test_fetch_all_pages_through_cursor():
    seen: list[httpx.Request] = []
    pages = {
        0: _page([{"_id": "a"}, {"_id": "b"}], remaining=1),
        2: _page([{"_id": "c"}], remaining=0),
    }

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return pages[int(request.url.params["cursor"])]

    with _client(handler) as client:
        records = client.fetch_all("company")

    assert [record["_id"] for record in records] == ["a", "b", "c"]
    assert [request.url.params["cursor"] for request in seen] == ["0", "2"]
    assert seen[0].url.path == "/api/1.1/obj/company"
    assert seen[0].url.params["limit"] == "100"
    assert seen[0].headers["Authorization"] == "Bearer secret-token"


def test_empty_page_stops_iteration():
    def handler(request: httpx.Request) -> httpx.Response:
        return _page([], remaining=5)

    with _client(handler) as client:
        assert client.fetch_all("tag") == []


def test_constraints_are_sent_as_json():
    captured: dict[str, str] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured.update(request.url.params)
        return _page([], remaining=0)

    constraints = [{"key": "Sheet", "constraint_type": "equals", "value": "s1"}]
    with _client(handler) as client:
        client.fetch_page("answer", 0, constraints)

    assert json.loads(captured["constraints"]) == constraints


def test_requests_are_spaced_by_the_rate_limit():
    clock = FakeClock()

    def handler(request: httpx.Request) -> httpx.Response:
        return _page([{"_id": request.url.params["cursor"]}], remaining=1 if request.url.params["cursor"] == "0" else 0)

    with _client(handler, clock=clock, requests_per_minute=100) as client:
        client.fetch_all("section")

    assert clock.sleeps == [pytest.approx(0.6)]


def test_server_errors_are_retried_with_linear_backoff():
    clock = FakeClock()
    responses = iter([httpx.Response(500), httpx.Response(429), _page([{"_id": "a"}], remaining=0)])

    def handler(request: httpx.Request) -> httpx.Response:
        return next(responses)

    with _client(handler, clock=clock, requests_per_minute=6000) as client:
        page = client.fetch_page("question", 0)

    assert page.results == [{"_id": "a"}]
    backoff = [seconds for seconds in clock.sleeps if seconds >= 1]
    assert backoff == [30, 60]


def test_network_errors_are_retried():
    clock = FakeClock()
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return _page([], remaining=0)

    with _client(handler, clock=clock, requests_per_minute=6000) as client:
        page = client.fetch_page("choice", 0)

    assert page.results == []
    assert calls["count"] == 2
    assert 30 in clock.sleeps


def test_exhausted_retries_raise_fatal_error():
    clock = FakeClock()

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    with _client(handler, clock=clock, requests_per_minute=6000) as client:
        with pytest.raises(BubbleFetchError) as excinfo:
            client.fetch_page("sheet", 0)

    assert excinfo.value.error_code is ErrorCode.BUBBLE_RETRIES_EXHAUSTED
    assert excinfo.value.status_code == 500
    assert [seconds for seconds in clock.sleeps if seconds >= 1] == [30, 60, 90, 120]


def test_other_client_errors_are_not_retried():
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(404, text="not found")

    with _client(handler) as client:
        with pytest.raises(BubbleFetchError) as excinfo:
            client.fetch_page("unknown", 0)

    assert calls["count"] == 1
    assert excinfo.value.error_code is ErrorCode.BUBBLE_FETCH_FAILED
    assert excinfo.value.status_code == 404
