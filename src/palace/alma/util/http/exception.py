from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Self
from urllib.parse import urlparse

import httpx
from httpx import Headers

from palace.alma.core.exceptions import IntegrationException, PalaceValueError


class RemoteIntegrationException(IntegrationException):
    """We couldn't get what we needed from a remote service over HTTP."""

    internal_message = "Error accessing %s: %s"

    def __init__(
        self, url_or_service: str, message: str, debug_message: str | None = None
    ) -> None:
        """
        :param url_or_service: The URL that failed, or the name of the
            service (e.g. "Alma") if there isn't a single URL to blame.
        """
        if url_or_service.startswith(("http:", "https:")):
            self.url = url_or_service
            self.service = urlparse(url_or_service).netloc
        else:
            self.url = self.service = url_or_service

        super().__init__(message, debug_message)

    def __str__(self) -> str:
        message = super().__str__()
        if self.debug_message:
            message += "\n\n" + self.debug_message
        return self.internal_message % (self.url, message)


@dataclass(frozen=True)
class HttpResponse:
    """
    The parts of an httpx.Response worth keeping on an exception.

    Unlike the response itself this can be pickled, and it stays readable
    after the client that fetched it has been closed.
    """

    status_code: int
    url: str
    headers: Headers
    text: str
    content: bytes
    extensions: Mapping[str, Any]

    @classmethod
    def from_response(cls, response: httpx.Response | Self) -> Self:
        if isinstance(response, cls):
            return response

        return cls(
            status_code=response.status_code,
            url=str(response.url),
            headers=Headers(response.headers),
            text=response.text,
            content=response.content,
            extensions=dict(response.extensions),
        )


class BadResponseException(RemoteIntegrationException):
    """The remote service answered, but with a status code we can't use."""

    internal_message = "Bad response from %s: %s"

    BAD_STATUS_CODE_MESSAGE = (
        "Got status code %s from external server, cannot continue."
    )

    def __init__(
        self,
        url_or_service: str,
        message: str,
        response: httpx.Response | HttpResponse,
        debug_message: str | None = None,
    ):
        if debug_message is None:
            debug_message = (
                f"Status code: {response.status_code}\nContent: {response.text}"
            )

        super().__init__(url_or_service, message, debug_message)
        self.response = HttpResponse.from_response(response)

    def __setstate__(self, state: dict[str, Any] | None) -> None:
        if state is None:
            raise PalaceValueError(
                "Cannot unpickle a BadResponseException without its response"
            )
        super().__setstate__(state)


class RequestNetworkException(RemoteIntegrationException):
    """No response at all: the connection failed, was refused or was reset."""

    internal_message = "Network error contacting %s: %s"


class RequestTimedOut(RequestNetworkException):
    """No response within the allowed time."""

    internal_message = "Timeout accessing %s: %s"
