"""Rate-limited Raindrop.io API client."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import TYPE_CHECKING, Any

import httpx

from raindrop_sync.adapters.raindrop.errors import (
    RaindropClientError,
    RaindropFetchError,
    RaindropThrottledError,
    RaindropTransportError,
)
from raindrop_sync.adapters.raindrop.models import (
    RaindropCollection,
    RaindropCollectionList,
    RaindropPage,
)
from raindrop_sync.adapters.raindrop.sync.constants import (
    MAX_RETRIES,
    PAGE_SIZE,
    RATE_LIMIT_REQUESTS_PER_MINUTE,
    RETRY_BASE_DELAY_SECONDS,
    RETRY_MAX_DELAY_SECONDS,
    SORT_ORDER,
    min_request_interval,
)
from raindrop_sync.core.backoff import backoff_delay
from raindrop_sync.core.logging_utils import truncate_log_content

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from typing import Self

logger = logging.getLogger(__name__)

THROTTLED_STATUS_CODE = 429


class RequestThrottle:
    """Keeps request starts at least ``min_interval`` seconds apart.

    One instance is shared by every client a sync service builds, so the
    interval holds across runs in the same process.
    """

    def __init__(
        self,
        min_interval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last_sent_at: float | None = None

    @classmethod
    def for_rate(
        cls, requests_per_minute: int = RATE_LIMIT_REQUESTS_PER_MINUTE, **kwargs: Any
    ) -> Self:
        return cls(min_request_interval(requests_per_minute), **kwargs)

    @property
    def last_sent_at(self) -> float | None:
        return self._last_sent_at

    async def wait(self) -> float:
        """Sleep until the next request may start; returns the time slept."""
        delay = 0.0
        if self._last_sent_at is not None:
            elapsed = self._clock() - self._last_sent_at
            if elapsed < self.min_interval:
                delay = self.min_interval - elapsed
                await self._sleep(delay)
        self._last_sent_at = self._clock()
        return delay


def _retry_after_seconds(response: httpx.Response) -> float | None:
    """Parse a finite, non-negative ``Retry-After`` header; HTTP-date values are ignored."""
    raw = response.headers.get("Retry-After")
    if not raw:
        return None
    try:
        seconds = float(raw.strip())
    except ValueError:
        return None
    return seconds if math.isfinite(seconds) and seconds >= 0 else None


class RaindropClient:
    """Async HTTP client for the Raindrop REST API."""

    def __init__(
        self,
        api_url: str,
        api_token: str,
        timeout: float = 30.0,
        *,
        throttle: RequestThrottle | None = None,
        max_retries: int = MAX_RETRIES,
        retry_base_delay: float = RETRY_BASE_DELAY_SECONDS,
        retry_max_delay: float = RETRY_MAX_DELAY_SECONDS,
        jitter: float = 0.0,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize the Raindrop client.

        Args:
            api_url: Base URL of the REST API (e.g. https://api.raindrop.io/rest/v1)
            api_token: Bearer token, treated as opaque
            timeout: Request timeout in seconds
            throttle: Shared request throttle; a 120 req/min one is created if omitted
            max_retries: Attempts per request, including the first one
            retry_base_delay: Base delay of the exponential backoff in seconds
            retry_max_delay: Upper bound for a single backoff delay
            jitter: Extra random delay as a fraction of the backoff delay
            transport: Optional httpx transport (tests use ``httpx.MockTransport``)
            sleep: Coroutine used for backoff waits
        """
        self.api_url = api_url.rstrip("/")
        self.api_token = api_token
        self.timeout = timeout
        self.throttle = throttle or RequestThrottle.for_rate(sleep=sleep)
        self.max_retries = max(1, max_retries)
        self.retry_base_delay = retry_base_delay
        self.retry_max_delay = retry_max_delay
        self.jitter = jitter
        self._transport = transport
        self._sleep = sleep
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> Self:
        self._client = httpx.AsyncClient(
            base_url=self.api_url,
            headers={
                "Authorization": f"Bearer {self.api_token}",
                "Accept": "application/json",
            },
            timeout=self.timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RaindropClientError("Client not initialized. Use async context manager.")
        return self._client

    def _backoff(self, attempt: int) -> float:
        return backoff_delay(
            attempt,
            base_delay=self.retry_base_delay,
            max_delay=self.retry_max_delay,
            jitter=self.jitter,
        )

    async def send(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send a request through the throttle, retrying 429s and transport failures.

        Non-429 error statuses are returned untouched. A 429 on the last allowed
        attempt is returned as well; only exhausted transport failures raise.

        Raises:
            RaindropTransportError: If every attempt failed without a response
        """
        last_error: httpx.TransportError | None = None

        for attempt in range(self.max_retries):
            is_last = attempt == self.max_retries - 1
            await self.throttle.wait()

            try:
                response = await self.client.request(method, path, params=params)
            except httpx.TransportError as exc:
                last_error = exc
                if is_last:
                    break
                delay = self._backoff(attempt)
                logger.warning(
                    "raindrop_transport_retry",
                    extra={
                        "path": path,
                        "attempt": attempt + 1,
                        "max_retries": self.max_retries,
                        "delay_seconds": round(delay, 2),
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                )
                await self._sleep(delay)
                continue

            if response.status_code == THROTTLED_STATUS_CODE and not is_last:
                retry_after = _retry_after_seconds(response)
                if retry_after is not None:
                    delay = min(retry_after, self.retry_max_delay)
                else:
                    delay = self._backoff(attempt)
                logger.warning(
                    "raindrop_rate_limited",
                    extra={
                        "path": path,
                        "attempt": attempt + 1,
                        "max_retries": self.max_retries,
                        "delay_seconds": round(delay, 2),
                        "retry_after_header": retry_after is not None,
                    },
                )
                await self._sleep(delay)
                continue

            return response

        logger.error(
            "raindrop_retry_exhausted",
            extra={"path": path, "attempts": self.max_retries, "error": str(last_error)},
        )
        if last_error is None:  # pragma: no cover - loop always returns or records an error
            raise RaindropClientError(f"Request to {path} failed")
        raise RaindropTransportError(path, self.max_retries, last_error) from last_error

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        response = await self.send("GET", path, params=params)
        if not response.is_success:
            body = truncate_log_content(response.text) or ""
            error_cls = (
                RaindropThrottledError
                if response.status_code == THROTTLED_STATUS_CODE
                else RaindropFetchError
            )
            raise error_cls(path, response.status_code, response.reason_phrase, body)
        return response.json()

    async def fetch_root_collections(self) -> list[RaindropCollection]:
        data = await self._get_json("/collections")
        return RaindropCollectionList.model_validate(data).items

    async def fetch_child_collections(self) -> list[RaindropCollection]:
        data = await self._get_json("/collections/childrens")
        return RaindropCollectionList.model_validate(data).items

    async def fetch_raindrops(
        self,
        collection_id: str,
        *,
        page: int,
        perpage: int = PAGE_SIZE,
        search: str | None = None,
        sort: str | None = SORT_ORDER,
    ) -> RaindropPage:
        """Fetch one page of raindrops from a collection (``0`` means all)."""
        params: dict[str, Any] = {"page": page, "perpage": perpage}
        if sort:
            params["sort"] = sort
        if search:
            params["search"] = search
        data = await self._get_json(f"/raindrops/{collection_id}", params)
        return RaindropPage.model_validate(data)

    async def count_raindrops(
        self,
        collection_id: str,
        *,
        search: str | None = None,
        nested: bool = False,
    ) -> int:
        """Return the remote ``count`` of a query without fetching its items."""
        params: dict[str, Any] = {"perpage": 0}
        if search:
            params["search"] = search
        if nested:
            params["nested"] = True
        data = await self._get_json(f"/raindrops/{collection_id}", params)
        return RaindropPage.model_validate(data).count or 0
