from __future__ import annotations

import pytest

from palace.alma.api.settings import AlmaSettings
from palace.alma.core.config import CannotLoadConfiguration
from tests.fixtures.alma import API_KEY, BASE_URL, alma_settings

ENV_VARS = [
    "PALACE_ALMA_API_KEY",
    "PALACE_ALMA_BASE_URL",
    "PALACE_ALMA_ITEMS_PAGE_SIZE",
    "PALACE_ALMA_FOLLOW_ITEMS_PAGINATION",
    "PALACE_ALMA_REQUEST_TIMEOUT",
    "PALACE_ALMA_ROUND_TIMEOUT",
    "PALACE_ALMA_MAX_IN_FLIGHT_REQUESTS",
    "PALACE_ALMA_MAX_CONCURRENT_RECORDS",
    "PALACE_ALMA_VERIFY_CERTIFICATE",
]


@pytest.fixture
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for key in ENV_VARS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


class TestAlmaSettings:
    def test_defaults(self, clean_environment: pytest.MonkeyPatch) -> None:
        settings = AlmaSettings(_env_file=None, api_key=API_KEY, base_url=BASE_URL)
        assert settings.items_page_size == 90
        assert settings.follow_items_pagination is True
        assert settings.request_timeout == 20.0
        assert settings.round_timeout == 60.0
        assert settings.max_in_flight_requests == 10
        assert settings.max_concurrent_records == 4
        assert settings.verify_certificate is True

    def test_from_environment(self, clean_environment: pytest.MonkeyPatch) -> None:
        clean_environment.setenv("PALACE_ALMA_API_KEY", "  env-key  ")
        clean_environment.setenv(
            "PALACE_ALMA_BASE_URL", "https://api-na.hosted.exlibrisgroup.com"
        )
        clean_environment.setenv("PALACE_ALMA_ITEMS_PAGE_SIZE", "50")
        clean_environment.setenv("PALACE_ALMA_ROUND_TIMEOUT", "0")
        clean_environment.setenv("PALACE_ALMA_VERIFY_CERTIFICATE", "false")

        settings = AlmaSettings(_env_file=None)
        assert settings.api_key == "env-key"
        assert settings.items_page_size == 50
        assert settings.round_timeout == 0
        assert settings.verify_certificate is False
        assert (
            settings.bibs_url
            == "https://api-na.hosted.exlibrisgroup.com/almaws/v1/bibs"
        )

    def test_missing(self, clean_environment: pytest.MonkeyPatch) -> None:
        with pytest.raises(CannotLoadConfiguration) as excinfo:
            AlmaSettings(_env_file=None)
        message = str(excinfo.value)
        assert "PALACE_ALMA_API_KEY:  Field required" in message
        assert "PALACE_ALMA_BASE_URL:  Field required" in message

    @pytest.mark.parametrize(
        "field,value,env_var",
        [
            pytest.param("api_key", "   ", "PALACE_ALMA_API_KEY", id="blank api key"),
            pytest.param("base_url", "not a url", "PALACE_ALMA_BASE_URL", id="bad url"),
            pytest.param(
                "items_page_size", 101, "PALACE_ALMA_ITEMS_PAGE_SIZE", id="page too big"
            ),
            pytest.param(
                "items_page_size", 0, "PALACE_ALMA_ITEMS_PAGE_SIZE", id="empty page"
            ),
            pytest.param(
                "request_timeout", 0, "PALACE_ALMA_REQUEST_TIMEOUT", id="no timeout"
            ),
            pytest.param(
                "round_timeout", -1, "PALACE_ALMA_ROUND_TIMEOUT", id="negative deadline"
            ),
            pytest.param(
                "max_in_flight_requests",
                0,
                "PALACE_ALMA_MAX_IN_FLIGHT_REQUESTS",
                id="no requests",
            ),
        ],
    )
    def test_invalid(
        self,
        clean_environment: pytest.MonkeyPatch,
        field: str,
        value: object,
        env_var: str,
    ) -> None:
        with pytest.raises(CannotLoadConfiguration, match=f"{env_var}:"):
            alma_settings(**{field: value})

    def test_bibs_url(self) -> None:
        assert alma_settings().bibs_url == f"{BASE_URL}/almaws/v1/bibs"
        # A trailing slash or a path on the base URL is handled.
        assert (
            alma_settings(base_url=f"{BASE_URL}/").bibs_url
            == f"{BASE_URL}/almaws/v1/bibs"
        )
        assert (
            alma_settings(base_url=f"{BASE_URL}/proxy/").bibs_url
            == f"{BASE_URL}/proxy/almaws/v1/bibs"
        )

    def test_record_url(self) -> None:
        settings = alma_settings()
        assert settings.record_url("990012") == f"{BASE_URL}/almaws/v1/bibs/990012"
        assert (
            settings.record_url("990012", "holdings", "H1", "items")
            == f"{BASE_URL}/almaws/v1/bibs/990012/holdings/H1/items"
        )
        assert (
            settings.record_url("a/b c", "holdings", "?x#y")
            == f"{BASE_URL}/almaws/v1/bibs/a%2Fb%20c/holdings/%3Fx%23y"
        )
