from __future__ import annotations

from collections.abc import Mapping, Sequence
from types import TracebackType
from typing import Any, Self

import httpx

from palace.alma.api.data import ItemRecord, StatusSummary
from palace.alma.api.holdings import DocumentType, HoldingsAggregator
from palace.alma.api.parser import DocumentFailurePolicy
from palace.alma.api.settings import AlmaSettings
from palace.alma.api.status import StatusProjection
from palace.alma.util.http.async_http import AsyncClient
from palace.alma.util.http.fanout import FanOut
from palace.alma.util.log import LoggerMixin


class AlmaAPI(LoggerMixin):
    """
    Real-time holdings and availability of Alma bib records.

    This is the entry point a catalog uses: it wires the HTTP client,
    the fan-out executor, the holdings aggregator and the status
    projection together from a single AlmaSettings.

    Use it as an async context manager so the HTTP client is closed:

        async with AlmaAPI(AlmaSettings()) as api:
            summary = await api.get_status("990012")
    """

    def __init__(
        self,
        settings: AlmaSettings,
        client: AsyncClient | None = None,
        failure_policies: Mapping[DocumentType, DocumentFailurePolicy] | None = None,
    ) -> None:
        self.settings = settings
        self.client = client or self.create_client(settings)
        self.fanout = FanOut(
            self.client,
            max_in_flight=settings.max_in_flight_requests,
            round_timeout=settings.round_timeout or None,
        )
        self.aggregator = HoldingsAggregator(
            settings, self.fanout, failure_policies=failure_policies
        )
        self.projection = StatusProjection(
            self.aggregator, max_concurrent_records=settings.max_concurrent_records
        )

    @staticmethod
    def create_client(settings: AlmaSettings) -> AsyncClient:
        return AsyncClient.for_worker(
            # Alma answers a bad request with a 4xx and an error document,
            # which is not something we can parse as holdings.
            allowed_response_codes=["2xx"],
            timeout=httpx.Timeout(settings.request_timeout, pool=None),
            verify=settings.verify_certificate,
            limits=httpx.Limits(
                max_connections=settings.max_in_flight_requests,
                max_keepalive_connections=None,
            ),
        )

    async def get_holding(self, record_id: str) -> list[ItemRecord]:
        return await self.aggregator.get_holding(record_id)

    async def get_status(self, record_id: str) -> StatusSummary:
        return await self.projection.status_for(record_id)

    async def get_statuses(self, record_ids: Sequence[str]) -> list[StatusSummary]:
        return await self.projection.statuses_for(record_ids)

    async def get_purchase_history(self, record_id: str) -> list[dict[str, Any]]:
        """Acquisitions history is not available from this integration."""
        return []

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> Self:
        await self.client.__aenter__()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None = None,
        exc_value: BaseException | None = None,
        traceback: TracebackType | None = None,
    ) -> None:
        await self.client.__aexit__(exc_type, exc_value, traceback)
