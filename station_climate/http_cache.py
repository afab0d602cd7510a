"""
HTTP caching for station search and observation requests using requests-cache.

Historical observations do not change once published, so repeated searches
for the same region and interval are served from a local SQLite cache.
"""

import os
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import requests
from requests_cache import CachedSession, create_key

from station_climate.config import get_settings
from station_climate.logging_config import get_logger

logger = get_logger(__name__)

# Module-level singleton (tests can override/reset)
_SESSION: CachedSession | None = None


INTERVAL_PARAMS = {"time", "referencetime"}
END_PARAMS = {"to"}


def canonicalize_time_params(params: dict[str, Any]) -> dict[str, Any]:
    """Truncate window ends to their date for consistent caching."""
    canonical: dict[str, Any] = {}
    for key, value in params.items():
        key_lower = key.lower()
        if key_lower in INTERVAL_PARAMS and isinstance(value, str) and "/" in value:
            start, end = value.split("/", 1)
            canonical[key] = f"{start}/{end.split('T')[0]}"
        elif key_lower in END_PARAMS and isinstance(value, str):
            canonical[key] = value.split("T")[0]
        else:
            canonical[key] = value
    return canonical


def _key_with_auth(request, **kwargs):
    # Windows ending "now" differ every second; key them by their end date
    parts = urlsplit(request.url)
    params = dict(parse_qsl(parts.query, keep_blank_values=True))
    canonical = canonicalize_time_params(params)
    if canonical != params:
        request = request.copy()
        request.url = urlunsplit(parts._replace(query=urlencode(canonical)))

    # Different Frost client ids may see different data
    kwargs.pop("match_headers", None)
    return create_key(request=request, match_headers=["Authorization"], **kwargs)


def _cache_ok(response) -> bool:
    if response.status_code != 200:
        return False
    # Frost reports some query errors in a 200 body
    try:
        body = response.json()
    except ValueError:
        return False
    return not (isinstance(body, dict) and "error" in body)


def _make_session() -> CachedSession:
    """Create a new SQLite-backed cached session with current settings."""
    settings = get_settings().cache
    cache_name = settings.cache_name

    # Support pytest-xdist parallel testing with per-worker cache files
    xdist_worker = os.getenv("PYTEST_XDIST_WORKER")
    if xdist_worker:
        cache_name = f"{cache_name}_{xdist_worker}"

    if settings.backend != "sqlite":
        logger.warning(
            f"Unsupported cache backend '{settings.backend}', falling back to SQLite"
        )

    logger.info(f"Using SQLite cache backend: {cache_name}")
    return CachedSession(
        cache_name=cache_name,
        backend="sqlite",
        key_fn=_key_with_auth,
        cache_control=True,
        allowable_codes=settings.allowable_codes,
        expire_after=settings.ttl_seconds,
        filter_fn=_cache_ok,
    )


def get_session() -> CachedSession:
    """
    Get the shared cached session.

    Environment variables:
    - CACHE_NAME: Cache file name (default: 'cache/http')
    - CACHE_TTL_SECONDS: Expiry of cached responses (default: one day)
    """
    global _SESSION
    if _SESSION is None:
        _SESSION = _make_session()
    return _SESSION


def reset_session():
    """Close and clear the module session (for tests)."""
    global _SESSION
    if _SESSION is not None:
        _SESSION.close()
    _SESSION = None


def set_session_for_tests(session: CachedSession):
    """Force get_session() to return a provided session (for tests)."""
    global _SESSION
    _SESSION = session


def request(
    method: str,
    url: str,
    read_from_cache: bool = True,
    write_to_cache: bool = True,
    **kwargs: Any,
) -> requests.Response:
    """
    Make an HTTP request through the shared cache.

    Args:
        method: HTTP method
        url: Request URL
        read_from_cache: Whether a cached response may be returned
        write_to_cache: Whether the response may be stored
        **kwargs: Additional request parameters (params, headers, json, timeout)

    Returns:
        HTTP response
    """
    logger.debug(f"Making {method} request to {url}")

    if not read_from_cache and not write_to_cache:
        with requests.Session() as plain:
            response = plain.request(method, url, **kwargs)
        logger.debug(f"{method} {url} -> {response.status_code} (Cache: OFF)")
        return response

    session = get_session()
    if not write_to_cache:
        with session.cache_disabled():
            response = session.request(method, url, **kwargs)
    else:
        # force_refresh skips the lookup but still stores the new response
        response = session.request(
            method, url, force_refresh=not read_from_cache, **kwargs
        )

    cache_status = "HIT" if getattr(response, "from_cache", False) else "MISS"
    if not read_from_cache:
        cache_status = "BYPASS"
    logger.debug(f"{method} {url} -> {response.status_code} (Cache: {cache_status})")
    return response
