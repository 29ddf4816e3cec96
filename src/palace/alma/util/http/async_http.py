from __future__ import annotations

from collections.abc import Mapping
from types import TracebackType
from typing import Any, Self, TypedDict, Unpack, cast

import httpx

from palace.alma.util.http.base import (
    ResponseCodesTypes,
    get_default_headers,
    raise_for_bad_response,
)
from palace.alma.util.http.exception import (
    RequestNetworkException,
    RequestTimedOut,
)
from palace.alma.util.log import LoggerMixin

TimeoutTypes = float | httpx.Timeout | None


class GetKwargs(TypedDict, total=False):
    """
    Keyword arguments accepted by `AsyncClient.get`.

    `params`, `headers` and `timeout` are handed to httpx unchanged. The
    response code options override the client's defaults for one request.
    """

    params: Mapping[str, str | int]
    headers: Mapping[str, str]
    timeout: TimeoutTypes
    allowed_response_codes: ResponseCodesTypes
    disallowed_response_codes: ResponseCodesTypes


class ClientKwargs(TypedDict, total=False):
    """The subset of `httpx.AsyncClient` options we set."""

    headers: Mapping[str, str]
    verify: bool
    timeout: TimeoutTypes
    follow_redirects: bool
    limits: httpx.Limits
    max_redirects: int


WORKER_DEFAULT_TIMEOUT = httpx.Timeout(20.0, pool=None)
WORKER_DEFAULT_MAX_REDIRECTS = 20
WORKER_DEFAULT_LIMITS = httpx.Limits(max_connections=10, max_keepalive_connections=None)


class AsyncClient(LoggerMixin):
    """
    A thin wrapper around `httpx.AsyncClient`.

    It adds our default headers, logs how long each request took, turns
    unacceptable status codes into BadResponseException and httpx transport
    errors (including URLs httpx refuses to send) into
    RequestNetworkException / RequestTimedOut. Each request is
    attempted once.
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient,
        allowed_response_codes: ResponseCodesTypes | None = None,
        disallowed_response_codes: ResponseCodesTypes | None = None,
    ) -> None:
        """
        :param client: The httpx client that sends the requests.
        :param allowed_response_codes: Used for every request that doesn't
            pass its own allowed_response_codes.
        :param disallowed_response_codes: Used for every request that doesn't
            pass its own disallowed_response_codes.
        """
        self._httpx_client = client
        self._allowed_response_codes = allowed_response_codes or []
        self._disallowed_response_codes = disallowed_response_codes or []

    @classmethod
    def for_worker(
        cls,
        *,
        allowed_response_codes: ResponseCodesTypes | None = None,
        disallowed_response_codes: ResponseCodesTypes | None = None,
        **kwargs: Unpack[ClientKwargs],
    ) -> Self:
        """
        Create a client for talking to a slow remote API from a background
        process: generous timeouts, redirects followed.
        """
        # Caller headers are layered over the defaults rather than replacing them.
        kwargs["headers"] = {**get_default_headers(), **kwargs.get("headers", {})}
        kwargs.setdefault("verify", True)
        kwargs.setdefault("limits", WORKER_DEFAULT_LIMITS)
        kwargs.setdefault("follow_redirects", True)
        kwargs.setdefault("timeout", WORKER_DEFAULT_TIMEOUT)
        kwargs.setdefault("max_redirects", WORKER_DEFAULT_MAX_REDIRECTS)
        return cls(
            client=httpx.AsyncClient(**kwargs),
            allowed_response_codes=allowed_response_codes,
            disallowed_response_codes=disallowed_response_codes,
        )

    @property
    def headers(self) -> httpx.Headers:
        return self._httpx_client.headers

    async def request(
        self,
        method: str,
        url: httpx.URL | str,
        **kwargs: Unpack[GetKwargs],
    ) -> httpx.Response:
        allowed_response_codes = kwargs.pop(
            "allowed_response_codes", self._allowed_response_codes
        )
        disallowed_response_codes = kwargs.pop(
            "disallowed_response_codes", self._disallowed_response_codes
        )

        try:
            # What's left in kwargs is all httpx options.
            response = await self._httpx_client.request(
                method, url, **cast(Any, kwargs)
            )
        except httpx.TimeoutException as e:
            raise RequestTimedOut(str(url), str(e) or e.__class__.__name__) from e
        except (httpx.RequestError, httpx.InvalidURL) as e:
            raise RequestNetworkException(
                str(url), str(e) or e.__class__.__name__
            ) from e

        self.log.info(
            f"{method} {url} returned {response.status_code} "
            f"in {response.elapsed.total_seconds():.2f} seconds"
        )
        return raise_for_bad_response(
            url, response, allowed_response_codes, disallowed_response_codes
        )

    async def get(
        self,
        url: httpx.URL | str,
        **kwargs: Unpack[GetKwargs],
    ) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def aclose(self) -> None:
        await self._httpx_client.aclose()

    async def __aenter__(self) -> Self:
        await self._httpx_client.__aenter__()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None = None,
        exc_value: BaseException | None = None,
        traceback: TracebackType | None = None,
    ) -> None:
        await self._httpx_client.__aexit__(exc_type, exc_value, traceback)
