"""Configuration management for station-climate.

Loads YAML files from the config/ directory and environment variables.
Search tuning lives in defaults.yaml, remote endpoints in providers.yaml.
"""

import os
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from station_climate.logging_config import get_logger

logger = get_logger(__name__)


class CacheSettings(BaseModel):
    """HTTP cache configuration."""

    backend: str = "sqlite"
    cache_name: str = "cache/http"
    allowable_codes: tuple[int, ...] = (200,)
    ttl_seconds: int = 86400


class AppSettings(BaseModel):
    """Main application settings."""

    cache: CacheSettings = CacheSettings()


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Get application settings with environment override support.

    Uses lazy loading to avoid import-time dependencies.
    """
    from dotenv import load_dotenv

    load_dotenv(override=False)

    cache = CacheSettings(
        backend=os.getenv("CACHE_BACKEND", "sqlite").lower(),
        cache_name=os.getenv("CACHE_NAME", "cache/http"),
        ttl_seconds=int(os.getenv("CACHE_TTL_SECONDS", "86400")),
    )
    return AppSettings(cache=cache)


def clear_settings_cache() -> None:
    """Clear settings cache to force reload from current environment."""
    get_settings.cache_clear()


class ProviderConfig(BaseModel):
    """Configuration for an external API provider."""

    endpoint: str
    timeout_s: float = 10.0
    enabled: bool = True
    api_key_env: str | None = None
    max_retries: int = Field(default=3, ge=0)
    initial_backoff_s: float = Field(default=1.0, ge=0.0)


class WindowDefaults(BaseModel):
    """Default start of the observation window."""

    default_start: datetime

    @field_validator("default_start", mode="before")
    @classmethod
    def parse_zulu(cls, v: Any) -> Any:
        """Accept the trailing Z that ISO instants carry."""
        if isinstance(v, str) and v.endswith("Z"):
            return v[:-1] + "+00:00"
        return v


class SearchSettings(WindowDefaults):
    """Tuning of the ring search, mode selection and fusion."""

    ring_width_km: float = Field(default=20.0, gt=0)
    initial_radius_km: float = Field(default=20.0, gt=0)
    initial_circle_points: int = Field(default=20, ge=3)
    sector_arc_points: int = Field(default=5, ge=1)
    nearest_radius_km: float = Field(default=5.0, ge=0)
    exceed_step: int = Field(default=4, ge=1)
    max_expansion_step: int = Field(default=3, ge=1)
    interpolation_min_candidates: int = 3
    extrapolation_min_stations: int = 2
    extrapolation_wanted_stations: int = 3
    idw_power: int = 2
    idw_weight_threshold: float = 0.04
    elevation_threshold_m: float = 250.0
    coordinate_precision: int = 4
    default_start: datetime = datetime.fromisoformat("1800-01-01T00:00:00+00:00")


class NearestSeriesSettings(WindowDefaults):
    """Element and window start of the nearest-series lookup."""

    default_start: datetime = datetime.fromisoformat("2025-01-01T00:00:00+00:00")
    default_element: str = "mean(surface_downwelling_shortwave_flux_in_air PT1H)"


@lru_cache(maxsize=1)
def get_config_dir() -> Path:
    """Get the configuration directory path."""
    current_file = Path(__file__).resolve()
    project_root = current_file.parent.parent
    config_dir = project_root / "config"

    if not config_dir.exists():
        raise FileNotFoundError(f"Configuration directory not found: {config_dir}")

    return config_dir


def load_yaml_config(filename: str) -> dict[str, Any]:
    """Load a YAML configuration file."""
    config_file = get_config_dir() / filename

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    try:
        with open(config_file, encoding="utf-8") as f:
            data = yaml.safe_load(f)

        logger.debug(f"Loaded configuration from {config_file}")
        return data or {}

    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {config_file}: {e}") from e


@lru_cache(maxsize=1)
def get_providers_config() -> dict[str, Any]:
    """Load provider configuration."""
    return load_yaml_config("providers.yaml")


@lru_cache(maxsize=1)
def get_defaults_config() -> dict[str, Any]:
    """Load defaults configuration."""
    return load_yaml_config("defaults.yaml")


def get_provider_config(service_type: str, provider_name: str) -> ProviderConfig | None:
    """Get configuration for a specific provider.

    Args:
        service_type: Type of service ('climate')
        provider_name: Name of provider ('frost_search', 'rim_stations', ...)

    Returns:
        Provider configuration object, or None if not found
    """
    providers_config = get_providers_config()

    service_config = providers_config.get(service_type, {})
    provider_dict = service_config.get("providers", {}).get(provider_name)

    if not provider_dict:
        logger.warning(f"No configuration found for {service_type}.{provider_name}")
        return None

    try:
        return ProviderConfig(**provider_dict)
    except Exception as e:
        logger.error(f"Invalid configuration for {service_type}.{provider_name}: {e}")
        return None


def get_api_key(env_var_name: str) -> str | None:
    """Get API key from environment variable.

    Args:
        env_var_name: Name of environment variable containing API key

    Returns:
        API key string, or None if not set
    """
    get_settings()  # makes sure .env has been read
    api_key = os.getenv(env_var_name)
    if not api_key:
        logger.debug(f"API key environment variable {env_var_name} not set")
        return None

    logger.debug(f"Loaded API key from {env_var_name}")
    return api_key


def _defaults_section(section: str) -> dict[str, Any]:
    try:
        return get_defaults_config().get(section, {}) or {}
    except FileNotFoundError as e:
        logger.debug(f"Using built-in defaults for '{section}': {e}")
        return {}


@lru_cache(maxsize=1)
def get_search_settings() -> SearchSettings:
    """Search settings from defaults.yaml, falling back to model defaults."""
    return SearchSettings(**_defaults_section("search"))


def get_default_elements() -> list[str]:
    """Elements estimated when the caller names none."""
    elements = _defaults_section("estimate").get("default_elements")
    return list(
        elements
        or [
            "mean(air_temperature P1M)",
            "mean(snow_coverage_type P1M)",
            "mean(cloud_area_fraction P1M)",
        ]
    )


@lru_cache(maxsize=1)
def get_nearest_series_settings() -> NearestSeriesSettings:
    """Nearest-series settings from defaults.yaml, falling back to model defaults."""
    return NearestSeriesSettings(**_defaults_section("nearest_series"))


def clear_config_cache() -> None:
    """Clear all cached configuration to force reload from current environment.

    This is useful in tests when environment variables are modified.
    """
    get_config_dir.cache_clear()
    get_providers_config.cache_clear()
    get_defaults_config.cache_clear()
    get_search_settings.cache_clear()
    get_nearest_series_settings.cache_clear()
    clear_settings_cache()
