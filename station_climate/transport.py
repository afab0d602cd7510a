"""
Typed HTTP transport with status classification and exponential backoff.

Every remote call of the station search goes through ``http_request``; a
non-retryable failure surfaces as ``ApiException`` and aborts the caller.
"""

import time
from enum import Enum
from typing import Any

import requests
from urllib3.exceptions import NameResolutionError

from station_climate.http_cache import request
from station_climate.logging_config import get_logger

logger = get_logger(__name__)

SUCCESS_CODES = {200, 201}
NO_DATA_CODES = {404, 412}  # "no data", not an error
AUTH_CODES = {401, 403}
MALFORMED_CODES = {400}
OVERLOAD_CODES = {429}


class ApiError(str, Enum):
    """Classes of remote failure."""

    TIMEOUT = "timeout"
    AUTHORIZATION = "authorization"
    SERVER = "server"
    OVERLOAD = "overload"
    NETWORK = "network"
    MALFORMED_REQUEST = "malformed_request"
    UNKNOWN = "unknown"


class ApiException(Exception):
    """A remote call failed in a way the caller cannot recover from."""

    def __init__(self, error_code: ApiError, message: str | None = None):
        self.error_code = error_code
        super().__init__(message or error_code.value)


def _is_unresolved_host(error: requests.ConnectionError) -> bool:
    reason = error.args[0] if error.args else None
    reason = getattr(reason, "reason", reason)
    return isinstance(reason, NameResolutionError)


def classify_status(status_code: int) -> ApiError | None:
    """Map a non-success, non-retryable status code to its error class."""
    if status_code in AUTH_CODES:
        return ApiError.AUTHORIZATION
    if status_code in MALFORMED_CODES:
        return ApiError.MALFORMED_REQUEST
    if 500 <= status_code < 600:
        return ApiError.SERVER
    return ApiError.UNKNOWN


def http_request(
    url: str,
    headers: dict[str, str] | None = None,
    body: Any = None,
    method: str = "GET",
    params: dict[str, Any] | None = None,
    max_retries: int = 3,
    timeout_s: float = 10.0,
    initial_backoff_s: float = 1.0,
    read_from_cache: bool = True,
    write_to_cache: bool = True,
) -> Any | None:
    """
    Perform a request and classify the outcome.

    Args:
        url: Request URL
        headers: Extra request headers
        body: JSON body, sent only when not None
        method: HTTP method
        params: Query parameters, URL-encoded by requests
        max_retries: Retries after the first attempt for 429, timeouts and
            connection failures
        timeout_s: Connect and read timeout of each attempt
        initial_backoff_s: First backoff delay, doubled after every retry

    Returns:
        Decoded JSON body on 200/201, None on 404/412

    Raises:
        ApiException: On authorization, malformed request, server and unknown
            errors, and once retries are exhausted
    """
    attempt = 0
    delay = initial_backoff_s
    kwargs: dict[str, Any] = {"headers": headers or {}, "timeout": timeout_s}
    if params is not None:
        kwargs["params"] = params
    if body is not None:
        kwargs["json"] = body

    while attempt < max_retries + 1:
        try:
            response = request(
                method,
                url,
                read_from_cache=read_from_cache,
                write_to_cache=write_to_cache,
                **kwargs,
            )
        except requests.Timeout as e:
            if attempt >= max_retries:
                raise ApiException(ApiError.TIMEOUT, str(e)) from e
            logger.warning(f"Timeout, retrying in {delay:.1f}s...")
        except requests.ConnectionError as e:
            if _is_unresolved_host(e):
                logger.error(f"Network error: host not found for {url}")
                raise ApiException(ApiError.NETWORK, str(e)) from e
            if attempt >= max_retries:
                raise ApiException(ApiError.NETWORK, str(e)) from e
            logger.warning(f"Network error: {e}, retrying in {delay:.1f}s...")
        except requests.RequestException as e:
            logger.error(f"Request to {url} failed: {e}")
            raise ApiException(ApiError.UNKNOWN, str(e)) from e
        else:
            status = response.status_code
            if status in SUCCESS_CODES:
                try:
                    return response.json()
                except ValueError as e:
                    logger.error(f"{url} -> {status} with a body that is not JSON: {e}")
                    raise ApiException(ApiError.UNKNOWN, "Response body is not JSON") from e
            if status in NO_DATA_CODES:
                logger.debug(f"{url} -> {status}, no data")
                return None
            if status in OVERLOAD_CODES:
                if attempt >= max_retries:
                    raise ApiException(ApiError.OVERLOAD)
                logger.warning(f"Rate limit exceeded, retrying in {delay:.1f}s...")
                time.sleep(delay)
                delay *= 2
                attempt += 1
                continue
            error = classify_status(status)
            logger.error(f"{url} -> {status} ({error.value})")
            raise ApiException(error, f"HTTP {status}")

        time.sleep(delay)
        delay *= 2
        attempt += 1

    raise ApiException(ApiError.UNKNOWN)
