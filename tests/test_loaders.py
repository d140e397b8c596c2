"""Tests for load-on-miss collaborators."""

from __future__ import annotations

from email.utils import format_datetime
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from filru.errors import CacheIOError
from filru.loaders import HttpLoader, call_loader, get_retry_delay


@pytest.mark.asyncio()
async def test_http_loader_fetches_quoted_key() -> None:
    captured: list[httpx.Request] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, content=b"payload", request=request)

    transport = httpx.MockTransport(handler)
    async with HttpLoader(
        "https://origin.test/blobs/", transport=transport, headers={"X-Token": "t"}
    ) as loader:
        data = await loader.load("a/b c")

    assert data == b"payload"
    assert captured[0].url.raw_path == b"/blobs/a%2Fb%20c"
    assert captured[0].headers.get("X-Token") == "t"


@pytest.mark.asyncio()
async def test_http_loader_treats_404_as_miss() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, request=request)

    async with HttpLoader("https://origin.test", transport=httpx.MockTransport(handler)) as loader:
        assert await loader.load("missing") is None


@pytest.mark.asyncio()
async def test_http_loader_retries_after_throttle(monkeypatch: pytest.MonkeyPatch) -> None:
    call_count = 0

    async def handler(request: httpx.Request) -> httpx.Response:
        nonlocal call_count
        call_count += 1
        if call_count == 1:
            return httpx.Response(429, headers={"Retry-After": "0.05"}, request=request)
        return httpx.Response(200, content=b"ok", request=request)

    sleep_calls: list[float] = []

    async def stub_sleep(delay: float) -> None:
        sleep_calls.append(delay)

    monkeypatch.setattr("filru.loaders.asyncio.sleep", stub_sleep)

    async with HttpLoader("https://origin.test", transport=httpx.MockTransport(handler)) as loader:
        assert await loader.load("k") == b"ok"
    assert call_count == 2
    assert sleep_calls == [0.05]


@pytest.mark.asyncio()
async def test_http_loader_gives_up_after_max_retries(monkeypatch: pytest.MonkeyPatch) -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, headers={"Retry-After": "0"}, request=request)

    async def stub_sleep(delay: float) -> None:
        return None

    monkeypatch.setattr("filru.loaders.asyncio.sleep", stub_sleep)

    loader = HttpLoader(
        "https://origin.test", transport=httpx.MockTransport(handler), max_retries=2
    )
    with pytest.raises(CacheIOError, match="503"):
        await loader.load("k")
    await loader.aclose()


@pytest.mark.asyncio()
async def test_http_loader_wraps_transport_errors() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    async with HttpLoader("https://origin.test", transport=httpx.MockTransport(handler)) as loader:
        with pytest.raises(CacheIOError, match="Origin request"):
            await loader.load("k")


def test_get_retry_delay_parses_http_date() -> None:
    when = datetime.now(timezone.utc) + timedelta(seconds=120)
    response = httpx.Response(429, headers={"Retry-After": format_datetime(when, usegmt=True)})
    delay = get_retry_delay(response)
    assert delay is not None and 100 < delay <= 120
    assert get_retry_delay(httpx.Response(429)) is None
    assert get_retry_delay(httpx.Response(429, headers={"Retry-After": "soon"})) is None


@pytest.mark.asyncio()
async def test_call_loader_accepts_sync_and_async_callables() -> None:
    async def async_loader(key: str) -> bytes:
        return b"async-" + key.encode()

    assert await call_loader(lambda key: key.encode(), "k") == b"k"
    assert await call_loader(async_loader, "k") == b"async-k"
