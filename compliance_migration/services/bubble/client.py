"""Rate-limited, retrying reader for the Bubble Data API.

Pages are requested with ``limit``/``cursor`` and the response envelope
``{"response": {"results": [...], "remaining": n}}``. Server errors and rate
limiting are retried with a linear backoff; anything else fails the request.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterator

import httpx

from compliance_migration.core.config import Settings
from compliance_migration.core.errors import ErrorCode
from compliance_migration.core.exceptions import BubbleFetchError, raise_migration_error

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500})


@dataclass(frozen=True)
class BubblePage:
    results: list[dict[str, Any]]
    remaining: int


class BubbleClient:
    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        requests_per_minute: int = 100,
        page_size: int = 100,
        max_retries: int = 5,
        backoff_seconds: float = 30,
        timeout: float = 60.0,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.page_size = page_size
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self._interval = 60.0 / requests_per_minute
        self._sleep = sleep
        self._clock = clock
        self._last_request_at: float | None = None
        self._http = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
            transport=transport,
        )

    def __enter__(self) -> "BubbleClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    def pause(self, seconds: float) -> None:
        self._sleep(seconds)

    def _throttle(self) -> None:
        now = self._clock()
        if self._last_request_at is not None:
            elapsed = now - self._last_request_at
            if elapsed < self._interval:
                self._sleep(self._interval - elapsed)
        self._last_request_at = self._clock()

    def _get(self, entity: str, cursor: int, constraints: list[dict[str, Any]] | None) -> httpx.Response:
        params: dict[str, Any] = {"limit": self.page_size, "cursor": cursor}
        if constraints:
            params["constraints"] = json.dumps(constraints)
        self._throttle()
        return self._http.get(f"/api/1.1/obj/{entity}", params=params)

    @staticmethod
    def _to_page(entity: str, response: httpx.Response) -> BubblePage:
        try:
            envelope = response.json().get("response") or {}
            results = envelope.get("results") or []
            remaining = int(envelope.get("remaining") or 0)
        except (ValueError, AttributeError, TypeError) as exc:
            raise BubbleFetchError(
                ErrorCode.BUBBLE_INVALID_RESPONSE,
                detail=f"{entity}: {exc}",
                status_code=response.status_code,
            ) from exc
        return BubblePage(results=list(results), remaining=remaining)

    def fetch_page_once(
        self,
        entity: str,
        cursor: int,
        constraints: list[dict[str, Any]] | None = None,
    ) -> httpx.Response:
        """Issue one throttled request without retrying; the caller inspects the response."""

        return self._get(entity, cursor, constraints)

    def parse_page(self, entity: str, response: httpx.Response) -> BubblePage:
        return self._to_page(entity, response)

    def fetch_page(
        self,
        entity: str,
        cursor: int,
        constraints: list[dict[str, Any]] | None = None,
    ) -> BubblePage:
        for attempt in range(1, self.max_retries + 1):
            wait = attempt * self.backoff_seconds
            try:
                response = self._get(entity, cursor, constraints)
            except httpx.HTTPError as exc:
                if attempt == self.max_retries:
                    raise BubbleFetchError(
                        ErrorCode.BUBBLE_RETRIES_EXHAUSTED,
                        detail=f"{entity} cursor={cursor}: {exc}",
                    ) from exc
                logger.warning(
                    "Network error fetching %s, attempt %d/%d, waiting %ss",
                    entity,
                    attempt,
                    self.max_retries,
                    wait,
                )
                self._sleep(wait)
                continue

            if response.status_code in RETRYABLE_STATUS_CODES:
                if attempt == self.max_retries:
                    raise BubbleFetchError(
                        ErrorCode.BUBBLE_RETRIES_EXHAUSTED,
                        detail=f"{entity} cursor={cursor}: HTTP {response.status_code}",
                        status_code=response.status_code,
                    )
                logger.warning(
                    "Bubble API error %d for %s, attempt %d/%d, waiting %ss",
                    response.status_code,
                    entity,
                    attempt,
                    self.max_retries,
                    wait,
                )
                self._sleep(wait)
                continue

            if not response.is_success:
                raise BubbleFetchError(
                    detail=f"{entity} cursor={cursor}: HTTP {response.status_code} {response.text[:200]}",
                    status_code=response.status_code,
                )
            return self._to_page(entity, response)

        raise BubbleFetchError(ErrorCode.BUBBLE_RETRIES_EXHAUSTED, detail=entity)  # pragma: no cover

    def iter_table(self, entity: str) -> Iterator[dict[str, Any]]:
        cursor = 0
        fetched = 0
        while True:
            page = self.fetch_page(entity, cursor)
            if not page.results:
                break
            yield from page.results
            fetched += len(page.results)
            if fetched // 1000 > (fetched - len(page.results)) // 1000:
                logger.info("  %s: %d records so far...", entity, fetched)
            if page.remaining <= 0:
                break
            cursor += len(page.results)

    def fetch_all(self, entity: str) -> list[dict[str, Any]]:
        return list(self.iter_table(entity))


def create_bubble_client(config: Settings, *, transport: httpx.BaseTransport | None = None) -> BubbleClient:
    if not config.bubble_api_url or not config.bubble_api_token:
        raise_migration_error(ErrorCode.CONFIG_MISSING, detail="BUBBLE_API_URL and BUBBLE_API_TOKEN must be set")
    return BubbleClient(
        config.bubble_api_url,
        config.bubble_api_token,
        requests_per_minute=config.bubble_requests_per_minute,
        page_size=config.bubble_page_size,
        max_retries=config.bubble_max_retries,
        backoff_seconds=config.bubble_retry_backoff_seconds,
        timeout=config.bubble_request_timeout_seconds,
        transport=transport,
    )


__all__ = ["BubbleClient", "BubblePage", "RETRYABLE_STATUS_CODES", "create_bubble_client"]
