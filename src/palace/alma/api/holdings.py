from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum, auto
from urllib.parse import urlencode

from palace.alma.api.data import (
    ItemData,
    ItemRecord,
    ItemStatus,
    LoanRecord,
)
from palace.alma.api.parser import (
    DocumentFailurePolicy,
    DocumentReader,
    HoldingIdsParser,
    ItemsParser,
    LoansParser,
)
from palace.alma.api.settings import AlmaSettings
from palace.alma.core.exceptions import IntegrationException
from palace.alma.util.datetime_helpers import format_long_date
from palace.alma.util.http.exception import RemoteIntegrationException
from palace.alma.util.http.fanout import FanOut, FetchResult
from palace.alma.util.log import LoggerMixin, pluralize
from palace.alma.util.xmlparser import MalformedDocumentError


class HoldingsRetrievalFailed(IntegrationException):
    """The holdings of a record could not be retrieved, so we have no
    idea which items it has."""


class DocumentType(StrEnum):
    LOANS = auto()
    HOLDINGS = auto()
    ITEMS = auto()


DEFAULT_FAILURE_POLICIES: Mapping[DocumentType, DocumentFailurePolicy] = {
    # Loans only add due dates to items we find anyway.
    DocumentType.LOANS: DocumentFailurePolicy.EMPTY,
    # Without holding ids there are no item URLs to fetch.
    DocumentType.HOLDINGS: DocumentFailurePolicy.FATAL,
    # One broken holding shouldn't hide the items of the others.
    DocumentType.ITEMS: DocumentFailurePolicy.SKIP,
}


class RetrievalState(StrEnum):
    INIT = auto()
    LOANS_AND_HOLDINGS_FETCHED = auto()
    HOLDING_IDS_EXTRACTED = auto()
    ITEMS_FETCHED = auto()
    ASSEMBLED = auto()
    ERROR = auto()


class HoldingsRetrieval(LoggerMixin):
    """Tracks the progress of one holdings lookup for a record."""

    def __init__(self, record_id: str) -> None:
        self.record_id = record_id
        self.state = RetrievalState.INIT

    def advance(self, state: RetrievalState) -> None:
        self.log.debug(f"Record {self.record_id}: {self.state} -> {state}")
        self.state = state


class HoldingsAggregator(LoggerMixin):
    """
    Find every item of a bib record, with its availability and due date.

    This takes two rounds of concurrent requests: the record's loans and
    holdings first, then the items of every holding. When a holding has
    more items than fit on one page, a third round fetches the remaining
    pages of all such holdings.
    """

    def __init__(
        self,
        settings: AlmaSettings,
        fanout: FanOut,
        failure_policies: Mapping[DocumentType, DocumentFailurePolicy] | None = None,
    ) -> None:
        self.settings = settings
        self.fanout = fanout
        self.failure_policies = {**DEFAULT_FAILURE_POLICIES, **(failure_policies or {})}
        self.reader = DocumentReader()
        self.loans_parser = LoansParser()
        self.holdings_parser = HoldingIdsParser()
        self.items_parser = ItemsParser()

    def _query(self, **params: str | int) -> str:
        return "?" + urlencode({"apikey": self.settings.api_key, **params})

    def loans_url(self, record_id: str) -> str:
        return self.settings.record_url(record_id, "loans") + self._query()

    def holdings_url(self, record_id: str) -> str:
        return self.settings.record_url(record_id, "holdings") + self._query()

    def items_url(self, record_id: str, holding_id: str, offset: int = 0) -> str:
        params: dict[str, str | int] = {"limit": self.settings.items_page_size}
        if offset:
            params["offset"] = offset
        return self.settings.record_url(
            record_id, "holdings", holding_id, "items"
        ) + self._query(**params)

    def build_loan_index(self, loans: list[LoanRecord]) -> dict[str, LoanRecord]:
        """Index loans by barcode. If a barcode appears more than once, the
        last loan in the document wins."""
        index: dict[str, LoanRecord] = {}
        for loan in loans:
            if not loan.barcode:
                continue
            if loan.barcode in index:
                self.log.warning(
                    f"Barcode {loan.barcode} appears on more than one loan, using the last one"
                )
            index[loan.barcode] = loan
        return index

    async def get_holding(self, record_id: str) -> list[ItemRecord]:
        """
        Retrieve every item of the given record.

        :raise HoldingsRetrievalFailed: If the holdings document could not be
            fetched or parsed.
        :return: The items, numbered 0..n-1 in holding order, then in the
            order Alma listed them within each holding.
        """
        retrieval = HoldingsRetrieval(record_id)
        try:
            return await self._get_holding(retrieval)
        except Exception:
            retrieval.advance(RetrievalState.ERROR)
            raise

    async def _get_holding(self, retrieval: HoldingsRetrieval) -> list[ItemRecord]:
        record_id = retrieval.record_id

        results = await self.fanout.fetch_all(
            {
                "loans": self.loans_url(record_id),
                "holdings": self.holdings_url(record_id),
            }
        )
        retrieval.advance(RetrievalState.LOANS_AND_HOLDINGS_FETCHED)

        loans = self.reader.read(
            results["loans"],
            self.loans_parser,
            self.failure_policies[DocumentType.LOANS],
            f"loans of record {record_id}",
        )
        loan_index = self.build_loan_index(loans)

        try:
            holding_ids = self.reader.read(
                results["holdings"],
                self.holdings_parser,
                self.failure_policies[DocumentType.HOLDINGS],
                f"holdings of record {record_id}",
            )
        except (RemoteIntegrationException, MalformedDocumentError) as e:
            raise HoldingsRetrievalFailed(
                f"Could not retrieve holdings of record {record_id}",
                debug_message=str(e),
            ) from e
        # A holding listed twice would otherwise be fetched and counted twice.
        holding_ids = list(dict.fromkeys(holding_ids))
        retrieval.advance(RetrievalState.HOLDING_IDS_EXTRACTED)

        self.log.info(
            f"Record {record_id} has {pluralize(len(holding_ids), 'holding')} "
            f"and {pluralize(len(loan_index), 'loan')}"
        )

        pages = await self._fetch_items(record_id, holding_ids)
        retrieval.advance(RetrievalState.ITEMS_FETCHED)

        items = self.assemble(record_id, holding_ids, pages, loan_index)
        retrieval.advance(RetrievalState.ASSEMBLED)
        return items

    async def _fetch_items(
        self, record_id: str, holding_ids: list[str]
    ) -> dict[str, list[list[ItemData]]]:
        """Fetch the items of every holding. Returns the pages of items for
        each holding, in offset order. A holding whose first page could not
        be read has no pages."""
        if not holding_ids:
            return {}

        policy = self.failure_policies[DocumentType.ITEMS]
        page_size = self.settings.items_page_size
        first_pages = await self.fanout.fetch_all(
            {
                holding_id: self.items_url(record_id, holding_id)
                for holding_id in holding_ids
            }
        )

        pages: dict[str, list[list[ItemData]]] = {}
        more_pages: dict[tuple[str, int], str] = {}
        for holding_id in holding_ids:
            document = self.reader.load(
                first_pages[holding_id],
                self.items_parser,
                policy,
                f"items of holding {holding_id} of record {record_id}",
            )
            if document is None:
                pages[holding_id] = []
                continue
            pages[holding_id] = [list(self.items_parser.process_all(document))]

            total = self.items_parser.total_record_count(document)
            if self.settings.follow_items_pagination and total and total > page_size:
                for offset in range(page_size, total, page_size):
                    more_pages[(holding_id, offset)] = self.items_url(
                        record_id, holding_id, offset
                    )

        if more_pages:
            self.log.info(
                f"Record {record_id} needs {pluralize(len(more_pages), 'more page')} of items"
            )
            results: dict[tuple[str, int], FetchResult] = await self.fanout.fetch_all(
                more_pages
            )
            for (holding_id, offset), result in results.items():
                pages[holding_id].append(
                    self.reader.read(
                        result,
                        self.items_parser,
                        policy,
                        f"items {offset}+ of holding {holding_id} of record {record_id}",
                    )
                )

        return pages

    def assemble(
        self,
        record_id: str,
        holding_ids: list[str],
        pages: Mapping[str, list[list[ItemData]]],
        loan_index: Mapping[str, LoanRecord],
    ) -> list[ItemRecord]:
        """Number the items and attach due dates from the loan index."""
        items: list[ItemRecord] = []
        for holding_id in holding_ids:
            for page in pages.get(holding_id, []):
                for item in page:
                    loan = loan_index.get(item.barcode)
                    due_date = (
                        format_long_date(loan.due_date)
                        if loan is not None and loan.due_date is not None
                        else None
                    )
                    items.append(
                        ItemRecord(
                            record_id=record_id,
                            holding_id=holding_id,
                            barcode=item.barcode,
                            number=len(items),
                            availability=item.available,
                            status=(
                                ItemStatus.AVAILABLE
                                if item.available
                                else ItemStatus.NOT_AVAILABLE
                            ),
                            location=item.location_label,
                            call_number=item.call_number,
                            due_date=due_date,
                        )
                    )
        return items
