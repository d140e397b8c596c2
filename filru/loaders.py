"""Load-on-miss collaborators for :class:`filru.cache.Filru`."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Protocol, Union, runtime_checkable
from urllib.parse import quote

import httpx

from filru.errors import CacheIOError

__all__ = ["HttpLoader", "Loader", "LoaderLike", "call_loader", "get_retry_delay"]

logger = logging.getLogger(__name__)

_RETRY_STATUSES = frozenset({429, 500, 503})


@runtime_checkable
class Loader(Protocol):
    """Object that produces the payload for a key the cache does not hold."""

    def load(self, key: str) -> Awaitable[bytes | None] | bytes | None: ...


LoaderLike = Union[
    Loader,
    Callable[[str], Union[Awaitable[Union[bytes, None]], bytes, None]],
]


async def call_loader(loader: LoaderLike, key: str) -> bytes | None:
    """Invoke a sync or async loader (callable or ``load`` method)."""
    func = loader.load if isinstance(loader, Loader) else loader
    result = func(key)
    if inspect.isawaitable(result):
        result = await result
    return result


def get_retry_delay(response: httpx.Response) -> float | None:
    """Return the delay (seconds) a ``Retry-After`` header asks for.

    The header may be a number of seconds or an HTTP-date.
    """
    retry_after = response.headers.get("Retry-After")
    if not retry_after:
        return None
    try:
        return max(float(retry_after), 0.0)
    except ValueError:
        pass
    try:
        dt = parsedate_to_datetime(retry_after)
    except (TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    delta = (dt - datetime.now(timezone.utc)).total_seconds()
    return max(delta, 0.0)


class HttpLoader:
    """Fetch missing entries from an HTTP origin.

    ``GET {base_url}/{key}`` with the key percent-encoded as one path
    segment. A 404 is a miss (``None``); throttling and transient server
    errors carrying ``Retry-After`` are retried up to ``max_retries`` times.
    """

    def __init__(
        self,
        base_url: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        headers: Mapping[str, str] | None = None,
        concurrency: int = 4,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._transport = transport
        self._timeout = timeout
        self._max_retries = max(0, max_retries)
        self._headers = dict(headers or {})
        self._client: httpx.AsyncClient | None = None
        self._semaphore = asyncio.Semaphore(max(1, concurrency))

    async def __aenter__(self) -> HttpLoader:
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def url_for(self, key: str) -> str:
        return f"{self._base_url}/{quote(key, safe='')}"

    async def load(self, key: str) -> bytes | None:
        client = self._ensure_client()
        url = self.url_for(key)
        attempt = 0
        while True:
            try:
                async with self._semaphore:
                    response = await client.get(url)
            except httpx.HTTPError as exc:
                raise CacheIOError(f"Origin request for {key!r} failed: {exc}") from exc

            if response.status_code == 404:
                logger.debug("origin miss for %r", key)
                return None

            delay = get_retry_delay(response)
            if (
                delay is not None
                and response.status_code in _RETRY_STATUSES
                and attempt < self._max_retries
            ):
                logger.debug("origin asked to retry %r in %.2fs", key, delay)
                await asyncio.sleep(delay)
                attempt += 1
                continue

            try:
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise CacheIOError(
                    f"Origin returned {response.status_code} for {key!r}"
                ) from exc
            return response.content

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            client_kwargs: dict[str, Any] = {
                "timeout": httpx.Timeout(self._timeout),
                "headers": self._headers,
                "transport": self._transport,
            }
            self._client = httpx.AsyncClient(**client_kwargs)
        return self._client
