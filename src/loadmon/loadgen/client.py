from __future__ import annotations

import asyncio
import logging
import time

import httpx

from loadmon.config import ClientConfig
from loadmon.metrics import Classification, RequestOutcome

logger = logging.getLogger(__name__)


def create_client(
    config: ClientConfig,
    concurrency: int,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Build the single client shared by every worker of a run."""
    limits = httpx.Limits(
        max_connections=concurrency,
        max_keepalive_connections=concurrency,
        keepalive_expiry=config.keepalive_expiry_sec,
    )
    timeout = httpx.Timeout(config.timeout_sec, connect=config.connect_timeout_sec)
    headers = {"Accept-Encoding": "identity", **dict(config.headers)}
    return httpx.AsyncClient(
        limits=limits,
        timeout=timeout,
        headers=headers,
        follow_redirects=False,
        transport=transport,
    )


def classify_status(status_code: int) -> Classification:
    if status_code >= 400:
        return Classification.HTTP_ERROR
    return Classification.SUCCESS


async def send_request(
    client: httpx.AsyncClient,
    url: str,
    method: str = "GET",
    timeout_sec: float | None = None,
    connect_timeout_sec: float | None = None,
    total_timeout_sec: float | None = None,
) -> RequestOutcome:
    """Issue one request and classify it. Failures are returned, never raised.

    The exchange as a whole is bounded by the connect timeout plus the request
    timeout, or by ``total_timeout_sec`` when that is tighter.
    """
    kwargs: dict[str, httpx.Timeout] = {}
    overall: float | None = None
    if timeout_sec is not None:
        connect = timeout_sec if connect_timeout_sec is None else connect_timeout_sec
        kwargs["timeout"] = httpx.Timeout(timeout_sec, connect=connect)
        # httpx timeouts are per network operation; a stalled connect must
        # still surface as ConnectTimeout
        overall = connect + timeout_sec
    if total_timeout_sec is not None:
        overall = total_timeout_sec if overall is None else min(overall, total_timeout_sec)
    start = time.perf_counter()
    try:
        resp = await asyncio.wait_for(client.request(method, url, **kwargs), timeout=overall)
        latency_ms = (time.perf_counter() - start) * 1000.0
        return RequestOutcome(
            latency_ms=latency_ms,
            classification=classify_status(resp.status_code),
            status_code=resp.status_code,
        )
    except httpx.ConnectTimeout:
        err = Classification.CONNECTION_ERROR
    except httpx.TimeoutException:
        err = Classification.TIMEOUT_ERROR
    except httpx.ConnectError:
        err = Classification.CONNECTION_ERROR
    except asyncio.TimeoutError:
        err = Classification.TIMEOUT_ERROR
    except httpx.HTTPError as exc:
        logger.debug("request to %s failed: %r", url, exc)
        err = Classification.OTHER_ERROR
    except Exception as exc:  # noqa: BLE001
        logger.debug("unexpected failure requesting %s: %r", url, exc)
        err = Classification.OTHER_ERROR
    latency_ms = (time.perf_counter() - start) * 1000.0
    return RequestOutcome(latency_ms=latency_ms, classification=err)
