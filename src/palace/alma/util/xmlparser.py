from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Generator
from io import BytesIO
from typing import TYPE_CHECKING, Generic, TypeVar

from lxml import etree

from palace.alma.core.exceptions import IntegrationException

if TYPE_CHECKING:
    from lxml.etree import _Element, _ElementTree

T = TypeVar("T")


class MalformedDocumentError(IntegrationException):
    """An XML document could not be parsed, or was not the kind of
    document we asked for."""


class XMLParser:
    """XPath helpers shared by all our XML processors."""

    NAMESPACES: dict[str, str] = {}

    @classmethod
    def _xpath(
        cls, tag: _Element, expression: str, namespaces: dict[str, str] | None = None
    ) -> list[_Element]:
        return tag.xpath(expression, namespaces=namespaces or cls.NAMESPACES)  # type: ignore[no-any-return]

    @classmethod
    def _xpath1(
        cls, tag: _Element, expression: str, namespaces: dict[str, str] | None = None
    ) -> _Element | None:
        """The first match of `expression`, if there is one."""
        values = cls._xpath(tag, expression, namespaces=namespaces)
        return values[0] if values else None

    def text_of_optional_subtag(
        self, tag: _Element, name: str, namespaces: dict[str, str] | None = None
    ) -> str | None:
        subtag = self._xpath1(tag, name, namespaces=namespaces)
        if subtag is None or subtag.text is None:
            return None
        return str(subtag.text)

    def attribute_of_optional_subtag(
        self,
        tag: _Element,
        name: str,
        attribute: str,
        namespaces: dict[str, str] | None = None,
    ) -> str | None:
        subtag = self._xpath1(tag, name, namespaces=namespaces)
        if subtag is None:
            return None
        return subtag.get(attribute)

    @staticmethod
    def _load_xml(
        xml: str | bytes | _ElementTree,
        recover: bool = True,
    ) -> _ElementTree:
        """
        Parse `xml`, unless it is already a parsed document.

        :param recover: Let lxml make what it can of broken markup instead
            of raising XMLSyntaxError.
        """
        if not isinstance(xml, (str, bytes)):
            return xml

        if isinstance(xml, str):
            xml = xml.encode("utf8")
        # lxml gives up on a document at the first null byte, even when
        # recovering, so those go before parsing.
        xml = xml.replace(b"\x00", b"")
        parser = etree.XMLParser(recover=recover, resolve_entities=False)
        return etree.parse(BytesIO(xml), parser)

    @staticmethod
    def _process_all(
        xml: _ElementTree,
        xpath_expression: str,
        namespaces: dict[str, str],
        handler: Callable[[_Element, dict[str, str]], T | None],
    ) -> Generator[T, None, None]:
        """Yield `handler` applied to each match of `xpath_expression`,
        leaving out None."""
        for element in xml.xpath(xpath_expression, namespaces=namespaces):
            data = handler(element, namespaces)
            if data is not None:
                yield data


class XMLProcessor(XMLParser, Generic[T], ABC):
    """
    Base class for turning one kind of XML document into objects.

    Subclasses name the elements to process with `xpath_expression` and
    build one object per element in `process_one`.

    Set ROOT_TAG to only accept documents with that root element, and
    RECOVER to False to refuse markup that isn't well-formed. A document
    that fails either check raises MalformedDocumentError.
    """

    ROOT_TAG: str | None = None
    RECOVER: bool = True

    def load(self, xml: str | bytes | _ElementTree) -> _ElementTree:
        try:
            document = self._load_xml(xml, recover=self.RECOVER)
        except etree.XMLSyntaxError as e:
            raise MalformedDocumentError(
                f"Could not parse XML document: {e}", debug_message=repr(xml)[:500]
            ) from e

        root = document.getroot()
        if root is None:
            raise MalformedDocumentError("XML document has no root element")
        if self.ROOT_TAG is not None and root.tag != self.ROOT_TAG:
            raise MalformedDocumentError(
                f"Expected a <{self.ROOT_TAG}> document, got <{root.tag}>"
            )
        return document

    def process_all(
        self,
        xml: str | bytes | _ElementTree,
    ) -> Generator[T, None, None]:
        """
        Load the document and process every matching element.

        The document is loaded, and checked, before the first item is
        requested from the generator.
        """
        document = self.load(xml)
        return self._process_all(
            document, self.xpath_expression, self.NAMESPACES, self.process_one
        )

    @property
    @abstractmethod
    def xpath_expression(self) -> str:
        """Selects the elements passed to process_one."""
        ...

    @abstractmethod
    def process_one(self, tag: _Element, namespaces: dict[str, str] | None) -> T | None:
        """Build an object from one element, or return None to leave it out."""
        ...
