"""
Mapping from HTTP outcomes to the report error taxonomy
"""

import logging
from typing import Any, Dict

import httpx

from src.core.exceptions import (
    NetworkError,
    RequestRejectedError,
    RequestTimeoutError,
    ServerError,
    TransportError,
    UnknownRequestError,
)

logger = logging.getLogger(__name__)

# Messages shown for well-known rejections
STATUS_MESSAGES = {
    401: "Session expired - please login again",
    403: "You do not have permission to perform this action",
    404: "Report not found",
    413: "File size too large. Maximum size is 10MB.",
    429: "Too many requests. Please wait a moment and try again.",
}


def translate_transport_error(exc: httpx.HTTPError) -> TransportError:
    """Turn an httpx failure that produced no response into a typed error."""
    if isinstance(exc, httpx.TimeoutException):
        return RequestTimeoutError()
    if isinstance(exc, httpx.TransportError):
        return NetworkError()
    return UnknownRequestError()


def parse_response(response: httpx.Response) -> Dict[str, Any]:
    """
    Return the JSON body of a successful response.

    Raises:
        ServerError: for 5xx responses
        RequestRejectedError: for 4xx responses
        UnknownRequestError: for unexpected statuses or a malformed body
    """
    if response.status_code >= 500:
        logger.warning(f"Server error {response.status_code} from {response.request.url}")
        raise ServerError(status_code=response.status_code)

    try:
        body = response.json()
    except ValueError:
        body = None

    if 400 <= response.status_code < 500:
        body = body if isinstance(body, dict) else {}
        message = STATUS_MESSAGES.get(response.status_code) or body.get("message")
        raise RequestRejectedError(
            message,
            status_code=response.status_code,
            errors=body.get("errors"),
        )

    if not response.is_success or not isinstance(body, dict):
        logger.warning(f"Unexpected response {response.status_code} from {response.request.url}")
        raise UnknownRequestError()

    return body
