"""Shared HTTP client for the ledger, tracking and resolver adapters.

Every adapter talks to its service through one ``ResilientClient`` per process run:
transport-level retries come from ``httpx-retries``, the per-service request budget
from ``aiolimiter`` and, where configured, immutable responses are served from a
``hishel`` cache.
"""

from __future__ import annotations

import json
import time
from contextlib import nullcontext
from logging import getLogger
from typing import TYPE_CHECKING, TypedDict, Unpack

import httpx
from aiolimiter import AsyncLimiter
from hishel import AsyncSqliteStorage, FilterPolicy
from hishel import Response as HishelCacheResponse
from hishel._policies import BaseFilter
from hishel.httpx import AsyncCacheClient
from httpx_retries import Retry, RetryTransport

from trackoracle.config.storage import get_storage_config

if TYPE_CHECKING:
    from contextlib import AbstractAsyncContextManager
    from types import TracebackType

    from httpx._types import HeaderTypes, QueryParamTypes, RequestContent, URLTypes

    from trackoracle.config.http_resilience import (
        CacheConfig,
        ResilienceConfig,
        ResponseHook,
        RetryPolicy,
        ShouldCacheHook,
    )

log = getLogger(__name__)


class RequestOptions(TypedDict, total=False):
    content: RequestContent | None
    json: object
    params: QueryParamTypes | None
    headers: HeaderTypes | None


class AsyncClientOptions(TypedDict, total=False):
    base_url: str
    timeout: float
    headers: HeaderTypes
    event_hooks: dict[str, list[ResponseHook]]
    transport: httpx.AsyncBaseTransport


def _retry_for(policy: RetryPolicy) -> Retry:
    return Retry(
        total=policy.total,
        backoff_factor=policy.backoff_factor,
        max_backoff_wait=policy.max_backoff_wait,
        respect_retry_after_header=policy.respect_retry_after_header,
        allowed_methods=tuple(policy.allowed_methods),
        status_forcelist=tuple(policy.status_forcelist),
        retry_on_exceptions=policy.retry_on_exceptions,
        backoff_jitter=policy.backoff_jitter,
    )


def _client_options(config: ResilienceConfig) -> AsyncClientOptions:
    options: AsyncClientOptions = {
        "timeout": config.timeout_seconds,
        "transport": RetryTransport(retry=_retry_for(config.retry)),
    }
    if config.base_url is not None:
        options["base_url"] = config.base_url
    if config.default_headers:
        options["headers"] = dict(config.default_headers)
    if config.response_hooks:
        options["event_hooks"] = {"response": list(config.response_hooks)}
    return options


def _build_client(config: ResilienceConfig) -> httpx.AsyncClient:
    options = _client_options(config)
    cache = config.cache
    if cache is None or not cache.enabled:
        return httpx.AsyncClient(**options)
    storage, policy = _cache_components(cache)
    log.debug("HTTP cache for %s backed by %s", config.name, cache.backend)
    return AsyncCacheClient(**options, storage=storage, policy=policy)


class ResilientClient:
    """Rate limited, retrying (and optionally caching) async client for one service."""

    def __init__(self, config: ResilienceConfig) -> None:
        self.config = config
        self._limiter = (
            AsyncLimiter(config.ratelimit.max_calls, config.ratelimit.per_seconds)
            if config.ratelimit is not None
            else None
        )
        self._client = _build_client(config)

    @property
    def name(self) -> str:
        return self.config.name

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

    async def request(
        self,
        method: str,
        url: URLTypes,
        **kwargs: Unpack[RequestOptions],
    ) -> httpx.Response:
        started = time.monotonic()
        async with self._throttle():
            response = await self._client.request(method, url, **kwargs)
        log.debug(
            "%s %s %s -> %d (%.2fs)",
            self.name,
            method,
            response.request.url,
            response.status_code,
            time.monotonic() - started,
        )
        if response.status_code == httpx.codes.TOO_MANY_REQUESTS:
            log.warning("%s is still rate limiting after retries", self.name)
        return response

    async def get(self, url: URLTypes, **kwargs: Unpack[RequestOptions]) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: URLTypes, **kwargs: Unpack[RequestOptions]) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    def _throttle(self) -> AbstractAsyncContextManager[object]:
        return self._limiter if self._limiter is not None else nullcontext()


class _JsonPayloadFilter(BaseFilter[HishelCacheResponse]):
    """Cache a response only when its decoded JSON body satisfies ``predicate``."""

    def __init__(self, predicate: ShouldCacheHook) -> None:
        self._predicate = predicate

    def needs_body(self) -> bool:
        return True

    def apply(self, item: HishelCacheResponse, body: bytes | None) -> bool:  # noqa: ARG002
        if not body:
            return False
        try:
            payload = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return False
        return bool(self._predicate(payload))


def _cache_components(config: CacheConfig) -> tuple[AsyncSqliteStorage, FilterPolicy | None]:
    if config.backend == "sqlite":
        database_path = config.sqlite_path or str(get_storage_config().http_cache_path())
    elif config.backend == "memory":
        database_path = ":memory:"
    else:
        raise ValueError(f"Unsupported cache backend: {config.backend}")

    storage = AsyncSqliteStorage(
        database_path=database_path,
        default_ttl=config.default_ttl_seconds,
        refresh_ttl_on_access=config.refresh_ttl_on_access,
    )
    policy = (
        FilterPolicy(response_filters=[_JsonPayloadFilter(config.should_cache)])
        if config.should_cache is not None
        else None
    )
    return storage, policy
