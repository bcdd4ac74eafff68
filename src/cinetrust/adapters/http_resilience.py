"""Async JSON client shared by provider adapters.

Requests go through an ``aiolimiter`` budget, ``httpx-retries`` backoff and,
when configured, a ``hishel`` response cache. Provider clients only ever read,
so the surface is a single :meth:`ResilientClient.get_json`.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any

import httpx
from aiolimiter import AsyncLimiter
from hishel import AsyncSqliteStorage
from hishel.httpx import AsyncCacheClient
from httpx_retries import RetryTransport

from cinetrust.config.storage import get_storage_config

if TYPE_CHECKING:
    from collections.abc import Mapping
    from types import TracebackType

    from cinetrust.config.http_resilience import CacheConfig, ResilienceConfig

log = getLogger(__name__)

type QueryParams = Mapping[str, str]


class ResilientClient:
    """One provider's HTTP session; use as ``async with`` and discard afterwards."""

    def __init__(self, config: ResilienceConfig) -> None:
        self.config = config
        self._limiter: AsyncLimiter | None = (
            AsyncLimiter(config.ratelimit.max_calls, config.ratelimit.per_seconds)
            if config.ratelimit
            else None
        )
        options: dict[str, Any] = {
            "timeout": config.timeout_seconds,
            "transport": RetryTransport(retry=config.retry.build()),
            "headers": config.headers,
        }
        if config.base_url is not None:
            options["base_url"] = config.base_url
        if config.response_hooks:
            options["event_hooks"] = {"response": list(config.response_hooks)}

        storage = _cache_storage(config.cache)
        self._client: httpx.AsyncClient = (
            AsyncCacheClient(**options, storage=storage)
            if storage is not None
            else httpx.AsyncClient(**options)
        )

    async def __aenter__(self) -> ResilientClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get(self, url: str, *, params: QueryParams | None = None) -> httpx.Response:
        if self._limiter is None:
            response = await self._client.get(url, params=params)
        else:
            async with self._limiter:
                response = await self._client.get(url, params=params)
        log.debug(
            "%s GET %s -> %s%s",
            self.config.name,
            response.request.url.path,
            response.status_code,
            " (cached)" if response.extensions.get("hishel_from_cache") else "",
        )
        return response

    async def get_json(self, url: str, *, params: QueryParams | None = None) -> Any | None:
        """Decoded body of a successful response, ``None`` when the provider answers 404.

        Other error statuses raise :class:`httpx.HTTPStatusError`.
        """

        response = await self.get(url, params=params)
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        response.raise_for_status()
        return response.json()


def _cache_storage(config: CacheConfig | None) -> AsyncSqliteStorage | None:
    if config is None or not config.enabled:
        return None
    match config.backend:
        case "memory":
            database_path = ":memory:"
        case "sqlite":
            database_path = config.sqlite_path or str(get_storage_config().http_cache_path())
        case _:
            raise ValueError(f"Unsupported cache backend: {config.backend}")
    return AsyncSqliteStorage(
        database_path=database_path,
        default_ttl=config.default_ttl_seconds,
        refresh_ttl_on_access=config.refresh_ttl_on_access,
    )
