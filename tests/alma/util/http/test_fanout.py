import httpx
import pytest

from palace.alma.core.exceptions import PalaceValueError
from palace.alma.util.http.async_http import AsyncClient
from palace.alma.util.http.exception import (
    BadResponseException,
    RequestNetworkException,
    RequestTimedOut,
)
from palace.alma.util.http.fanout import FanOut, FetchResult
from tests.fixtures.http import MockAsyncClientFixture


def url(n: int | str) -> str:
    return f"http://alma.test/resource/{n}"


class TestFetchResult:
    def test_ok(self) -> None:
        result = FetchResult(url=url(1), body=b"<ok/>")
        assert result.ok
        assert result.unwrap() == b"<ok/>"

    def test_error(self) -> None:
        error = RequestTimedOut(url(1), "too slow")
        result = FetchResult(url=url(1), error=error)
        assert not result.ok
        with pytest.raises(RequestTimedOut) as excinfo:
            result.unwrap()
        assert excinfo.value is error


class TestFanOut:
    async def test_fetch_all(self, async_http_client: MockAsyncClientFixture) -> None:
        for n in range(3):
            async_http_client.add_response(url(n), 200, content=f"<doc>{n}</doc>")

        async with AsyncClient.for_worker() as client:
            results = await FanOut(client).fetch_all(
                {"c": url(2), "a": url(0), "b": url(1)}
            )

        # One result per key, in the order the keys were given
        assert list(results) == ["c", "a", "b"]
        assert results["a"].body == b"<doc>0</doc>"
        assert results["b"].body == b"<doc>1</doc>"
        assert results["c"].body == b"<doc>2</doc>"
        assert results["c"].url == url(2)
        assert all(r.ok for r in results.values())
        assert sorted(async_http_client.request_urls) == [url(0), url(1), url(2)]

    async def test_requests_are_concurrent(
        self, async_http_client: MockAsyncClientFixture
    ) -> None:
        for n in range(5):
            async_http_client.add_response(url(n), 200)

        async with AsyncClient.for_worker() as client:
            await FanOut(client).fetch_all({n: url(n) for n in range(5)})

        assert async_http_client.max_in_flight > 1

    async def test_max_in_flight(
        self, async_http_client: MockAsyncClientFixture
    ) -> None:
        for n in range(6):
            async_http_client.add_response(url(n), 200)

        async with AsyncClient.for_worker() as client:
            results = await FanOut(client, max_in_flight=2).fetch_all(
                {n: url(n) for n in range(6)}
            )

        assert len(results) == 6
        assert len(async_http_client.requests) == 6
        assert async_http_client.max_in_flight <= 2

    async def test_failures_are_isolated(
        self, async_http_client: MockAsyncClientFixture
    ) -> None:
        async_http_client.add_response(url("ok"), 200, content="<ok/>")
        async_http_client.add_response(url("bad"), 500, content="oops")
        async_http_client.add_exception(
            url("refused"), httpx.ConnectError("connection refused")
        )
        async_http_client.add_exception(url("slow"), httpx.ReadTimeout("timed out"))

        async with AsyncClient.for_worker() as client:
            results = await FanOut(client).fetch_all(
                {
                    "ok": url("ok"),
                    "bad": url("bad"),
                    "refused": url("refused"),
                    "slow": url("slow"),
                }
            )

        assert results["ok"].body == b"<ok/>"
        assert isinstance(results["bad"].error, BadResponseException)
        assert results["bad"].body is None
        assert isinstance(results["refused"].error, RequestNetworkException)
        assert isinstance(results["slow"].error, RequestTimedOut)

        # Nothing was retried
        assert len(async_http_client.requests) == 4

    async def test_unsendable_url_is_isolated(
        self, async_http_client: MockAsyncClientFixture
    ) -> None:
        async_http_client.add_response(url("ok"), 200, content="<ok/>")
        too_long = url("x" * 70000)

        async with AsyncClient.for_worker() as client:
            results = await FanOut(client).fetch_all({"ok": url("ok"), "bad": too_long})

        assert results["ok"].body == b"<ok/>"
        assert results["bad"].url == too_long
        assert isinstance(results["bad"].error, RequestNetworkException)
        assert isinstance(results["bad"].error.__cause__, httpx.InvalidURL)

    async def test_round_timeout(
        self, async_http_client: MockAsyncClientFixture
    ) -> None:
        async_http_client.add_response(url("fast"), 200, content="<fast/>")
        async_http_client.add_hang(url("hung"))

        async with AsyncClient.for_worker() as client:
            results = await FanOut(client, round_timeout=0.1).fetch_all(
                {"fast": url("fast"), "hung": url("hung")}
            )

        assert results["fast"].body == b"<fast/>"
        error = results["hung"].error
        assert isinstance(error, RequestTimedOut)
        assert "Round deadline of 0.1 seconds exceeded" in str(error)
        assert async_http_client.in_flight == 0

    async def test_empty(self) -> None:
        fanout = FanOut(AsyncClient.for_worker())
        with pytest.raises(PalaceValueError, match="at least one URL"):
            await fanout.fetch_all({})

    def test_invalid_max_in_flight(self) -> None:
        with pytest.raises(PalaceValueError):
            FanOut(AsyncClient.for_worker(), max_in_flight=0)
