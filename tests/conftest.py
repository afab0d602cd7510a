"""
pytest configuration for station-climate tests.

Loads .env, keeps every test away from the production HTTP cache and resets
the cached configuration between tests.
"""

import os
from pathlib import Path

import pytest
import requests_cache
from dotenv import load_dotenv

from station_climate.config import SearchSettings, clear_config_cache
from station_climate.models import GeoPoint


def pytest_configure(config):
    """Configure pytest session - load environment variables."""
    env_path = Path(__file__).parent.parent / ".env"
    if env_path.exists():
        load_dotenv(env_path)
        print(f"Loaded environment variables from {env_path}")
    else:
        print(f"No .env file found at {env_path}")


@pytest.fixture(autouse=True)
def _ban_global_requests_cache():
    """Ensure no one globally monkey-patches requests via install_cache()."""
    requests_cache.uninstall_cache()
    yield
    requests_cache.uninstall_cache()


@pytest.fixture(autouse=True)
def _route_all_test_cache_to_tmp(tmp_path):
    """Route all test cache to temp directory to preserve existing cache."""
    # Opt-out toggle: set USE_PROD_CACHE_IN_TESTS=1 to skip redirection
    if os.getenv("USE_PROD_CACHE_IN_TESTS"):
        yield
        return

    import station_climate.http_cache as hc

    hc.reset_session()
    test_session = requests_cache.CachedSession(
        cache_name=str(tmp_path / "test_cache"),
        backend="sqlite",
        cache_control=True,
        allowable_codes=(200,),
    )
    hc.set_session_for_tests(test_session)

    yield

    hc._SESSION = None
    test_session.close()


@pytest.fixture(autouse=True)
def _fresh_config():
    """Reload configuration for every test so env changes take effect."""
    clear_config_cache()
    yield
    clear_config_cache()


@pytest.fixture
def center() -> GeoPoint:
    """Target point used across the search tests (Oslo area)."""
    return GeoPoint(lat=59.91, lon=10.75)


@pytest.fixture
def settings() -> SearchSettings:
    return SearchSettings()
