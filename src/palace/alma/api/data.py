from __future__ import annotations

import dataclasses
import datetime
from enum import StrEnum


class ItemStatus(StrEnum):
    """The label shown next to a single physical item."""

    AVAILABLE = "Available"
    NOT_AVAILABLE = "Not Available"


class OverallStatus(StrEnum):
    """The coarse availability of a whole bibliographic record."""

    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


@dataclasses.dataclass(frozen=True, kw_only=True)
class LoanRecord:
    """An active loan, as reported by the record's loans document."""

    barcode: str
    due_date: datetime.datetime | None = None


@dataclasses.dataclass(frozen=True, kw_only=True)
class ItemData:
    """One <item> from a holding's items document, before correlation."""

    barcode: str = ""
    base_status: str = ""
    library: str = ""
    location: str = ""
    call_number: str = ""

    @property
    def available(self) -> bool:
        # Alma reports "1" for an item in place and "0" otherwise.
        return self.base_status not in ("", "0")

    @property
    def location_label(self) -> str:
        return f"{self.library} - {self.location}"


@dataclasses.dataclass(frozen=True, kw_only=True)
class ItemRecord:
    """A physical copy of a record, with its availability resolved."""

    record_id: str
    holding_id: str
    barcode: str
    number: int
    availability: bool
    status: ItemStatus
    location: str
    call_number: str
    reserve: bool = False
    due_date: str | None = None

    @property
    def item_id(self) -> str:
        return self.barcode


@dataclasses.dataclass(frozen=True, kw_only=True)
class StatusSummary:
    """The items of one record along with an overall status.

    `error` is only set when this record could not be looked up as part
    of a batch; in that case there are no items.
    """

    record_id: str
    items: tuple[ItemRecord, ...] = ()
    status: OverallStatus = OverallStatus.UNAVAILABLE
    error: str | None = None

    def __repr__(self) -> str:
        return "<StatusSummary for {}: {} items, {}{}>".format(
            self.record_id,
            len(self.items),
            self.status,
            f", error={self.error!r}" if self.error else "",
        )
