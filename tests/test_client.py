from __future__ import annotations

import asyncio
from typing import Callable

import httpx
import pytest

from loadmon.config import ClientConfig
from loadmon.loadgen.client import classify_status, create_client, send_request
from loadmon.metrics import Classification

URL = "http://target.test/get"


def _client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return create_client(ClientConfig(), concurrency=4, transport=httpx.MockTransport(handler))


def _raiser(exc_type: type[Exception]) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        if issubclass(exc_type, httpx.RequestError):
            raise exc_type("boom", request=request)
        raise exc_type("boom")

    return handler


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (200, Classification.SUCCESS),
        (204, Classification.SUCCESS),
        (302, Classification.SUCCESS),
        (399, Classification.SUCCESS),
        (400, Classification.HTTP_ERROR),
        (404, Classification.HTTP_ERROR),
        (503, Classification.HTTP_ERROR),
    ],
)
def test_classify_status(status: int, expected: Classification) -> None:
    assert classify_status(status) is expected


@pytest.mark.asyncio
async def test_success_records_status_and_latency() -> None:
    async with _client(lambda request: httpx.Response(200, text="hello")) as client:
        outcome = await send_request(client, URL)
    assert outcome.classification is Classification.SUCCESS
    assert outcome.status_code == 200
    assert outcome.latency_ms >= 0
    assert outcome.success


@pytest.mark.asyncio
async def test_redirect_is_not_followed() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(301, headers={"Location": "http://elsewhere.test/"})

    async with _client(handler) as client:
        outcome = await send_request(client, URL)
    assert outcome.classification is Classification.SUCCESS
    assert outcome.status_code == 301
    assert seen == [URL]


@pytest.mark.asyncio
async def test_server_error_is_http_error() -> None:
    async with _client(lambda request: httpx.Response(500)) as client:
        outcome = await send_request(client, URL)
    assert outcome.classification is Classification.HTTP_ERROR
    assert outcome.status_code == 500


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("exc_type", "expected"),
    [
        (httpx.ConnectError, Classification.CONNECTION_ERROR),
        (httpx.ConnectTimeout, Classification.CONNECTION_ERROR),
        (httpx.ReadTimeout, Classification.TIMEOUT_ERROR),
        (httpx.WriteTimeout, Classification.TIMEOUT_ERROR),
        (httpx.PoolTimeout, Classification.TIMEOUT_ERROR),
        (httpx.RemoteProtocolError, Classification.OTHER_ERROR),
        (httpx.ReadError, Classification.OTHER_ERROR),
        (RuntimeError, Classification.OTHER_ERROR),
    ],
)
async def test_failures_are_classified_not_raised(
    exc_type: type[Exception], expected: Classification
) -> None:
    async with _client(_raiser(exc_type)) as client:
        outcome = await send_request(client, URL)
    assert outcome.classification is expected
    assert outcome.status_code is None
    assert not outcome.success


@pytest.mark.asyncio
async def test_method_is_configurable() -> None:
    methods: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        methods.append(request.method)
        return httpx.Response(200)

    async with _client(handler) as client:
        await send_request(client, URL, method="HEAD")
        await send_request(client, URL)
    assert methods == ["HEAD", "GET"]


@pytest.mark.asyncio
async def test_client_disables_compression() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200)

    config = ClientConfig(headers={"X-Probe": "1"})
    async with create_client(config, concurrency=2, transport=httpx.MockTransport(handler)) as client:
        await send_request(client, URL, timeout_sec=0.5)
    assert captured[0].headers["accept-encoding"] == "identity"
    assert captured[0].headers["x-probe"] == "1"


@pytest.mark.asyncio
async def test_slow_response_is_bounded_by_timeout() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(1.0)
        return httpx.Response(200)

    async with create_client(ClientConfig(), 1, httpx.MockTransport(handler)) as client:
        outcome = await send_request(client, URL, timeout_sec=0.05)
    assert outcome.classification is Classification.TIMEOUT_ERROR
    assert outcome.latency_ms < 500


@pytest.mark.asyncio
async def test_stalled_connect_is_connection_error() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(request.extensions["timeout"]["connect"])
        raise httpx.ConnectTimeout("connect timed out", request=request)

    async with create_client(ClientConfig(), 1, httpx.MockTransport(handler)) as client:
        outcome = await send_request(client, URL, timeout_sec=0.1, connect_timeout_sec=0.3)
    assert outcome.classification is Classification.CONNECTION_ERROR
    assert outcome.latency_ms >= 250


@pytest.mark.asyncio
async def test_total_timeout_bounds_the_whole_exchange() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(1.0)
        return httpx.Response(200)

    async with create_client(ClientConfig(), 1, httpx.MockTransport(handler)) as client:
        outcome = await send_request(
            client, URL, timeout_sec=5.0, connect_timeout_sec=5.0, total_timeout_sec=0.05
        )
    assert outcome.classification is Classification.TIMEOUT_ERROR
    assert outcome.latency_ms < 500
