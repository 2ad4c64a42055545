import threading
import httpx
import pytest

from ctroots import acquire
from ctroots.acquire import FetchStatus, fetch_all, fetch_roots, get_roots_url
from ctroots.endpoints import Endpoint

LOG_ID = bytes(32)
BODY = b'{"certificates":["QQ=="]}'


@pytest.mark.parametrize("base, expected", [
    ("https://ct.example.com/2025h1/", "https://ct.example.com/2025h1/ct/v1/get-roots"),
    ("https://ct.example.com/2025h1", "https://ct.example.com/2025h1/ct/v1/get-roots"),
    ("https://ct.example.com/", "https://ct.example.com/ct/v1/get-roots"),
])
def test_get_roots_url(base, expected):
    assert get_roots_url(base) == expected


def test_success_on_first_attempt(fake_logs, no_sleep):
    fake_logs.add("a.example", BODY)
    with fake_logs.client() as client:
        r = fetch_roots(client, Endpoint("https://a.example/", LOG_ID), retry_delay=0, sleep=no_sleep)
    assert r.status is FetchStatus.OK
    assert r.ok
    assert r.body == BODY
    assert r.attempts == 1
    assert no_sleep.calls == []


def test_requests_get_roots_path(no_sleep):
    seen = []
    def handler(request):
        seen.append(str(request.url))
        return httpx.Response(200, content=BODY)
    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        fetch_roots(client, Endpoint("https://a.example/log/", LOG_ID), retry_delay=0, sleep=no_sleep)
    assert seen == ["https://a.example/log/ct/v1/get-roots"]


def test_transient_failures_are_retried(fake_logs, no_sleep):
    fake_logs.add("a.example", httpx.ConnectError, 503, httpx.ReadError, BODY)
    with fake_logs.client() as client:
        r = fetch_roots(client, Endpoint("https://a.example/", LOG_ID), retry_delay=10, sleep=no_sleep)
    assert r.ok
    assert r.attempts == 4
    assert fake_logs.calls["a.example"] == 4
    assert no_sleep.calls == [10, 10, 10]


def test_retry_exhaustion_yields_failed_result(fake_logs, no_sleep):
    fake_logs.add("dead.example", 500)
    with fake_logs.client() as client:
        r = fetch_roots(client, Endpoint("https://dead.example/", LOG_ID), retry_delay=0, sleep=no_sleep)
    assert r.status is FetchStatus.FAILED
    assert r.body is None
    assert r.attempts == 5
    assert r.error
    assert fake_logs.calls["dead.example"] == 5
    # no sleep after the final attempt
    assert len(no_sleep.calls) == 4


def test_max_attempts_is_configurable(fake_logs, no_sleep):
    fake_logs.add("dead.example", httpx.ConnectTimeout)
    with fake_logs.client() as client:
        r = fetch_roots(client, Endpoint("https://dead.example/", LOG_ID),
                        max_attempts=2, retry_delay=0, sleep=no_sleep)
    assert not r.ok
    assert fake_logs.calls["dead.example"] == 2


def test_defaults_come_from_config(fake_logs, no_sleep, monkeypatch):
    monkeypatch.setattr(acquire.utils, "MAX_ATTEMPTS", 3)
    monkeypatch.setattr(acquire.utils, "RETRY_DELAY", 1.5)
    fake_logs.add("dead.example", 502)
    with fake_logs.client() as client:
        fetch_roots(client, Endpoint("https://dead.example/", LOG_ID), sleep=no_sleep)
    assert fake_logs.calls["dead.example"] == 3
    assert no_sleep.calls == [1.5, 1.5]


def test_fetch_all_isolates_failing_endpoint(fake_logs, no_sleep):
    fake_logs.add("good1.example", BODY)
    fake_logs.add("dead.example", httpx.ConnectError)
    fake_logs.add("good2.example", b'{"certificates":[]}')
    endpoints = [
        Endpoint("https://good1.example/", bytes([1]) * 32),
        Endpoint("https://dead.example/", bytes([2]) * 32),
        Endpoint("https://good2.example/", bytes([3]) * 32),
    ]
    with fake_logs.client() as client:
        results = fetch_all(endpoints, max_workers=3, client=client, retry_delay=0, sleep=no_sleep)

    assert set(results) == {ep.url for ep in endpoints}
    assert results["https://good1.example/"].body == BODY
    assert results["https://good2.example/"].body == b'{"certificates":[]}'
    dead = results["https://dead.example/"]
    assert dead.status is FetchStatus.FAILED
    assert dead.endpoint.log_id == bytes([2]) * 32


def test_fetch_all_respects_worker_limit(no_sleep):
    lock = threading.Lock()
    state = {"active": 0, "peak": 0}
    gate = threading.Event()

    def handler(request):
        with lock:
            state["active"] += 1
            state["peak"] = max(state["peak"], state["active"])
        gate.wait(0.05)
        with lock:
            state["active"] -= 1
        return httpx.Response(200, content=BODY)

    endpoints = [Endpoint(f"https://log{i}.example/", bytes([i]) * 32) for i in range(8)]
    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        results = fetch_all(endpoints, max_workers=2, client=client, retry_delay=0, sleep=no_sleep)
    assert len(results) == 8
    assert all(r.ok for r in results.values())
    assert state["peak"] <= 2


def test_fetch_all_with_no_endpoints():
    assert fetch_all([], client=httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200)))) == {}
