from __future__ import annotations

import asyncio
from collections.abc import Sequence

from palace.alma.api.data import ItemRecord, OverallStatus, StatusSummary
from palace.alma.api.holdings import HoldingsAggregator
from palace.alma.util.log import LoggerMixin, elapsed_time_logging, pluralize

DEFAULT_MAX_CONCURRENT_RECORDS = 4


def overall_status(items: Sequence[ItemRecord]) -> OverallStatus:
    if any(item.availability for item in items):
        return OverallStatus.AVAILABLE
    return OverallStatus.UNAVAILABLE


class StatusProjection(LoggerMixin):
    """Summarize the availability of one or many records."""

    def __init__(
        self,
        aggregator: HoldingsAggregator,
        max_concurrent_records: int = DEFAULT_MAX_CONCURRENT_RECORDS,
    ) -> None:
        self.aggregator = aggregator
        self.max_concurrent_records = max_concurrent_records

    async def status_for(self, record_id: str) -> StatusSummary:
        items = await self.aggregator.get_holding(record_id)
        return StatusSummary(
            record_id=record_id,
            items=tuple(items),
            status=overall_status(items),
        )

    async def statuses_for(self, record_ids: Sequence[str]) -> list[StatusSummary]:
        """
        Look up several records at once.

        Records are looked up concurrently, but the summaries come back in
        the same order as `record_ids`. A record that can't be looked up gets
        a summary with its error set, rather than failing the whole batch.
        """
        if not record_ids:
            return []

        semaphore = asyncio.Semaphore(self.max_concurrent_records)

        async def isolated_status_for(record_id: str) -> StatusSummary:
            async with semaphore:
                try:
                    return await self.status_for(record_id)
                except Exception as e:
                    self.log.exception(f"Could not get status of record {record_id}")
                    return StatusSummary(
                        record_id=record_id, error=str(e) or e.__class__.__name__
                    )

        with elapsed_time_logging(
            log_method=self.log.info,
            message_prefix=f"Status of {pluralize(len(record_ids), 'record')}",
            skip_start=True,
        ):
            return list(
                await asyncio.gather(
                    *(isolated_status_for(record_id) for record_id in record_ids)
                )
            )
