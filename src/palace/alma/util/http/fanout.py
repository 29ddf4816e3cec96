from __future__ import annotations

import asyncio
from collections.abc import Hashable, Mapping
from dataclasses import dataclass
from typing import TypeVar

from palace.alma.core.exceptions import PalaceValueError
from palace.alma.util.http.async_http import AsyncClient
from palace.alma.util.http.exception import (
    RemoteIntegrationException,
    RequestTimedOut,
)
from palace.alma.util.log import LoggerMixin, elapsed_time_logging, pluralize

DEFAULT_MAX_IN_FLIGHT = 10
DEFAULT_ROUND_TIMEOUT = 60.0

K = TypeVar("K", bound=Hashable)


@dataclass(frozen=True)
class FetchResult:
    """
    The terminal state of one request in a fan-out round: either the
    raw response body, or the error that stopped us from getting it.
    """

    url: str
    body: bytes | None = None
    error: RemoteIntegrationException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> bytes:
        """Return the body, or raise the error that was captured instead."""
        if self.error is not None:
            raise self.error
        assert self.body is not None
        return self.body


class FanOut(LoggerMixin):
    """
    Issue a batch of GET requests concurrently and wait for all of them.

    Every request reaches a terminal state before `fetch_all` returns. A
    failure is recorded against its own key and never cancels a sibling
    request. The number of requests in flight at once is capped, and the
    round as a whole is bounded by a deadline; anything still running at
    the deadline is cancelled and reported as timed out.
    """

    def __init__(
        self,
        client: AsyncClient,
        *,
        max_in_flight: int = DEFAULT_MAX_IN_FLIGHT,
        round_timeout: float | None = DEFAULT_ROUND_TIMEOUT,
    ) -> None:
        if max_in_flight < 1:
            raise PalaceValueError("max_in_flight must be at least 1")
        self._client = client
        self.max_in_flight = max_in_flight
        self.round_timeout = round_timeout

    async def _fetch_one(self, url: str, semaphore: asyncio.Semaphore) -> FetchResult:
        async with semaphore:
            try:
                response = await self._client.get(url)
            except RemoteIntegrationException as e:
                self.log.warning(f"Request to {url} failed: {e}")
                return FetchResult(url=url, error=e)
        return FetchResult(url=url, body=response.content)

    async def fetch_all(
        self, requests: Mapping[K, str]
    ) -> dict[K, FetchResult]:
        """
        Fetch every URL in `requests`.

        :param requests: A mapping from a caller-chosen key to an absolute URL.
        :return: A mapping with exactly one FetchResult per input key, in
            the same order as the input.
        """
        if not requests:
            raise PalaceValueError("fetch_all needs at least one URL to fetch")

        semaphore = asyncio.Semaphore(self.max_in_flight)
        tasks = {
            key: asyncio.create_task(self._fetch_one(url, semaphore))
            for key, url in requests.items()
        }

        with elapsed_time_logging(
            log_method=self.log.info,
            message_prefix=f"Fetching {pluralize(len(tasks), 'URL')}",
            skip_start=True,
        ):
            _, pending = await asyncio.wait(
                tasks.values(), timeout=self.round_timeout
            )
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.wait(pending)

        results: dict[K, FetchResult] = {}
        for key, task in tasks.items():
            url = requests[key]
            if task in pending:
                self.log.warning(
                    f"Request to {url} did not finish within {self.round_timeout} seconds"
                )
                results[key] = FetchResult(
                    url=url,
                    error=RequestTimedOut(
                        url,
                        f"Round deadline of {self.round_timeout} seconds exceeded",
                    ),
                )
            else:
                results[key] = task.result()
        return results
