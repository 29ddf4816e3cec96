from __future__ import annotations

from urllib.parse import quote

from pydantic import (
    Field,
    HttpUrl,
    NonNegativeFloat,
    PositiveFloat,
    PositiveInt,
)
from pydantic_settings import SettingsConfigDict

from palace.alma.service.configuration.service_configuration import (
    ServiceConfiguration,
)

# The path of the Bibs API below the configured Alma base URL.
BIBS_API_PATH = "/almaws/v1/bibs"


class AlmaSettings(ServiceConfiguration):
    """
    Settings for the Alma Bibs API.

    These are loaded from environment variables prefixed with PALACE_ALMA_,
    e.g. PALACE_ALMA_API_KEY, or can be passed in directly.
    """

    model_config = SettingsConfigDict(env_prefix="PALACE_ALMA_")

    # The API key for the Alma Developer Network application.
    api_key: str = Field(min_length=1)

    # The regional API gateway, e.g. https://api-eu.hosted.exlibrisgroup.com
    base_url: HttpUrl

    # Alma allows at most 100 items per page.
    items_page_size: PositiveInt = Field(default=90, le=100)

    # When a holding has more items than fit on one page, fetch the rest.
    follow_items_pagination: bool = True

    # Timeout, in seconds, for each individual request.
    request_timeout: PositiveFloat = 20.0

    # Deadline, in seconds, for a whole round of concurrent requests.
    # 0 disables the deadline.
    round_timeout: NonNegativeFloat = 60.0

    # The maximum number of requests in flight at once within a round.
    max_in_flight_requests: PositiveInt = 10

    # The maximum number of records looked up at once by a batch call.
    max_concurrent_records: PositiveInt = 4

    verify_certificate: bool = True

    @property
    def bibs_url(self) -> str:
        return str(self.base_url).rstrip("/") + BIBS_API_PATH

    def record_url(self, record_id: str, *path: str) -> str:
        """Build the URL of a sub-resource of a bib record, without a query string."""
        segments = [record_id, *path]
        return "/".join(
            [self.bibs_url, *(quote(segment, safe="") for segment in segments)]
        )
