from __future__ import annotations

from enum import StrEnum, auto
from typing import TYPE_CHECKING, Any, TypeVar

from palace.alma.api.data import ItemData, LoanRecord
from palace.alma.util.datetime_helpers import parse_iso_utc
from palace.alma.util.http.exception import RemoteIntegrationException
from palace.alma.util.http.fanout import FetchResult
from palace.alma.util.log import LoggerMixin
from palace.alma.util.xmlparser import MalformedDocumentError, XMLProcessor

if TYPE_CHECKING:
    from lxml.etree import _Element, _ElementTree

T = TypeVar("T")


class AlmaParser(XMLProcessor[T]):
    # Alma documents are small and we would rather know about a broken
    # document than act on half of one.
    RECOVER = False


class LoansParser(AlmaParser[LoanRecord]):
    """Parse the loans of a bib record.

    GET /almaws/v1/bibs/{mms_id}/loans
    """

    ROOT_TAG = "item_loans"

    @property
    def xpath_expression(self) -> str:
        return "/item_loans/item_loan"

    def process_one(
        self, tag: _Element, namespaces: dict[str, str] | None
    ) -> LoanRecord:
        return LoanRecord(
            barcode=self.text_of_optional_subtag(tag, "item_barcode", namespaces)
            or "",
            due_date=parse_iso_utc(
                self.text_of_optional_subtag(tag, "due_date", namespaces)
            ),
        )


class HoldingIdsParser(AlmaParser[str]):
    """Parse the holding ids of a bib record.

    GET /almaws/v1/bibs/{mms_id}/holdings
    """

    ROOT_TAG = "holdings"

    @property
    def xpath_expression(self) -> str:
        return "/holdings/holding/holding_id"

    def process_one(
        self, tag: _Element, namespaces: dict[str, str] | None
    ) -> str | None:
        if not tag.text:
            return None
        return str(tag.text)


class ItemsParser(AlmaParser[ItemData]):
    """Parse one page of the items of a holding.

    GET /almaws/v1/bibs/{mms_id}/holdings/{holding_id}/items
    """

    ROOT_TAG = "items"

    @property
    def xpath_expression(self) -> str:
        return "/items/item"

    def process_one(
        self, tag: _Element, namespaces: dict[str, str] | None
    ) -> ItemData:
        text = self.text_of_optional_subtag
        desc = self.attribute_of_optional_subtag
        return ItemData(
            barcode=text(tag, "item_data/barcode", namespaces) or "",
            base_status=text(tag, "item_data/base_status", namespaces) or "",
            library=desc(tag, "item_data/library", "desc", namespaces) or "",
            location=desc(tag, "item_data/location", "desc", namespaces) or "",
            call_number=text(tag, "holding_data/call_number", namespaces) or "",
        )

    def total_record_count(self, xml: str | bytes | _ElementTree) -> int | None:
        """The number of items in the holding across all pages, if Alma told us."""
        value = self.load(xml).getroot().get("total_record_count")
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None


def parse_loans(body: str | bytes) -> list[LoanRecord]:
    return list(LoansParser().process_all(body))


def parse_holding_ids(body: str | bytes) -> list[str]:
    return list(HoldingIdsParser().process_all(body))


def parse_items(body: str | bytes) -> list[ItemData]:
    return list(ItemsParser().process_all(body))


class DocumentFailurePolicy(StrEnum):
    """What to do when a document could not be fetched or parsed."""

    # Raise the error, ending the whole lookup.
    FATAL = auto()
    # Carry on as if the document was empty: nothing is known.
    EMPTY = auto()
    # Leave out whatever this document would have contributed.
    SKIP = auto()


class DocumentReader(LoggerMixin):
    """Apply a DocumentFailurePolicy to a fetched document.

    Transport failures and parse failures are handled the same way, so the
    policy for a document type is decided in exactly one place.
    """

    def load(
        self,
        result: FetchResult,
        parser: XMLProcessor[Any],
        policy: DocumentFailurePolicy,
        description: str,
    ) -> _ElementTree | None:
        """Load the document, or return None if the policy lets us do without it."""
        try:
            return parser.load(result.unwrap())
        except (RemoteIntegrationException, MalformedDocumentError) as e:
            if policy == DocumentFailurePolicy.FATAL:
                raise
            if policy == DocumentFailurePolicy.EMPTY:
                self.log.warning(
                    f"Could not read {description}, treating it as empty: {e}"
                )
            else:
                self.log.warning(f"Could not read {description}, skipping it: {e}")
            return None

    def read(
        self,
        result: FetchResult,
        parser: XMLProcessor[T],
        policy: DocumentFailurePolicy,
        description: str,
    ) -> list[T]:
        document = self.load(result, parser, policy, description)
        if document is None:
            return []
        return list(parser.process_all(document))
