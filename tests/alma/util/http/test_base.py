from unittest.mock import patch

import pytest

from palace.alma.util.http.base import (
    get_default_headers,
    get_series,
    get_user_agent,
    raise_for_bad_response,
    status_code_matches,
)
from palace.alma.util.http.exception import BadResponseException
from tests.fixtures.http import MockHttpxResponse


def test_get_series() -> None:
    assert get_series(201) == "2xx"
    assert get_series(399) == "3xx"
    assert get_series(500) == "5xx"


def test_status_code_matches() -> None:
    assert status_code_matches(200, [200])
    assert status_code_matches(200, ["2xx"])
    assert status_code_matches(404, [200, "4xx"])
    assert not status_code_matches(404, [200, "5xx"])
    assert not status_code_matches(404, [])


def test_user_agent() -> None:
    with patch("palace.alma.util.http.base.alma.__version__", "1.2.3"):
        assert get_user_agent() == "Palace Alma/1.2.3"
        assert get_default_headers()["User-Agent"] == "Palace Alma/1.2.3"

    with patch("palace.alma.util.http.base.alma.__version__", None):
        assert get_user_agent() == "Palace Alma/x.x.x"

    assert get_default_headers()["Accept"] == "application/xml"


class TestRaiseForBadResponse:
    url = "http://alma.test/almaws/v1/bibs/1/holdings"

    def test_ok(self) -> None:
        response = MockHttpxResponse(200, content="<holdings/>")
        assert raise_for_bad_response(self.url, response, [], []) is response

    def test_5xx_always_fails(self) -> None:
        response = MockHttpxResponse(503, content="down")
        with pytest.raises(BadResponseException) as excinfo:
            raise_for_bad_response(self.url, response, [], [])
        assert excinfo.value.response.status_code == 503
        assert "Got status code 503 from external server, cannot continue." in str(
            excinfo.value
        )

    def test_5xx_can_be_allowed(self) -> None:
        response = MockHttpxResponse(503, content="down")
        assert raise_for_bad_response(self.url, response, [503], []) is response

    def test_disallowed(self) -> None:
        response = MockHttpxResponse(404)
        assert raise_for_bad_response(self.url, response, [], []) is response
        with pytest.raises(BadResponseException):
            raise_for_bad_response(self.url, response, [], ["4xx"])

    def test_not_in_allowed(self) -> None:
        response = MockHttpxResponse(400, content="<web_service_result/>")
        with pytest.raises(BadResponseException) as excinfo:
            raise_for_bad_response(self.url, response, ["2xx"], [])
        assert (
            "Got status code 400 from external server, but can only continue on: 2xx."
            in str(excinfo.value)
        )
        assert isinstance(excinfo.value.response.content, bytes)
        assert excinfo.value.url == self.url
        assert excinfo.value.service == "alma.test"
