from __future__ import annotations

from collections.abc import Collection
from typing import Literal

import httpx

from palace import alma
from palace.alma.util.http.exception import BadResponseException

# Used in the User-Agent when we're running from a checkout rather than a release.
DEFAULT_USER_AGENT_VERSION = "x.x.x"


def get_user_agent() -> str:
    version = alma.__version__ if alma.__version__ else DEFAULT_USER_AGENT_VERSION
    return f"Palace Alma/{version}"


def get_default_headers() -> dict[str, str]:
    """Headers sent with every request unless the caller overrides them."""
    return {
        "User-Agent": get_user_agent(),
        # Alma answers in JSON unless asked for XML.
        "Accept": "application/xml",
    }


ResponseCodesStringLiterals = Literal["2xx", "3xx", "4xx", "5xx"]
ResponseCodesTypes = Collection[ResponseCodesStringLiterals | int]


def get_series(status_code: int) -> ResponseCodesStringLiterals:
    """e.g. 404 -> "4xx"."""
    return f"{int(status_code) // 100}xx"  # type: ignore[return-value]


def status_code_matches(status_code: int, code_collection: ResponseCodesTypes) -> bool:
    """Is `status_code` in `code_collection`, either itself or by its series?"""
    codes = {str(code) for code in code_collection}
    return str(status_code) in codes or get_series(status_code) in codes


def raise_for_bad_response(
    url: str | httpx.URL,
    response: httpx.Response,
    allowed_response_codes: ResponseCodesTypes,
    disallowed_response_codes: ResponseCodesTypes,
) -> httpx.Response:
    """
    Raise BadResponseException unless we can do something with `response`.

    :param allowed_response_codes: If not empty, only these codes or series
        are acceptable. An allowed code is accepted even if it is 5xx.
    :param disallowed_response_codes: Codes or series that are refused in
        addition to 5xx, which is always refused unless explicitly allowed.
    :return: The response, if it is acceptable.
    """
    status_code = response.status_code
    if status_code_matches(status_code, allowed_response_codes):
        return response

    if get_series(status_code) == "5xx" or status_code_matches(
        status_code, disallowed_response_codes
    ):
        message = BadResponseException.BAD_STATUS_CODE_MESSAGE % status_code
    elif allowed_response_codes:
        allowed = ", ".join(sorted(str(code) for code in allowed_response_codes))
        message = (
            f"Got status code {status_code} from external server, "
            f"but can only continue on: {allowed}."
        )
    else:
        return response

    raise BadResponseException(
        str(url),
        message,
        debug_message=f"Response content: {response.text}",
        response=response,
    )
