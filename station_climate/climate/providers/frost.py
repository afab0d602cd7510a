"""Frost (met.no) station search and observation provider."""

import base64
from typing import Any

from pydantic import BaseModel, ValidationError

from station_climate.climate.providers.base import StationDataProviderBase
from station_climate.climate.query import ObservationQuery, StationSearchQuery
from station_climate.config import ProviderConfig, get_api_key, get_provider_config
from station_climate.frost_models import (
    CatalogueResponse,
    ObservationsResponse,
    StationSearchResponse,
)
from station_climate.logging_config import get_logger
from station_climate.models import TimeRange
from station_climate.transport import ApiError, ApiException, http_request

logger = get_logger(__name__)

INSTANT_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def basic_auth_header(client_id: str | None) -> dict[str, str]:
    """Frost authenticates with the client id as Basic auth user, empty password."""
    token = base64.b64encode(f"{client_id or ''}:".encode()).decode("ascii")
    return {"Authorization": f"Basic {token}"}


def _load_config(provider_name: str) -> ProviderConfig:
    config = get_provider_config("climate", provider_name)
    if not config:
        raise ValueError(f"Frost provider configuration '{provider_name}' not found")
    if not config.enabled:
        raise ValueError(f"Frost provider '{provider_name}' is disabled in configuration")
    return config


class FrostProvider(StationDataProviderBase):
    """
    Station search against the Frost beta filter endpoint, observations from
    the Frost observations endpoint and the station catalogue from rim.
    """

    def __init__(
        self,
        client_id: str | None = None,
        *,
        read_from_cache: bool = True,
        write_to_cache: bool = True,
    ) -> None:
        super().__init__(name="frost")

        self.search_config = _load_config("frost_search")
        self.observations_config = _load_config("frost_observations")
        self.catalogue_config = _load_config("rim_stations")

        if client_id is None and self.search_config.api_key_env:
            client_id = get_api_key(self.search_config.api_key_env)
        if not client_id:
            logger.warning(
                f"No Frost client id; set {self.search_config.api_key_env} "
                "or requests will be rejected"
            )
        self.client_id = client_id
        self.read_from_cache = read_from_cache
        self.write_to_cache = write_to_cache

    def _get(
        self,
        config: ProviderConfig,
        params: dict[str, Any],
        model: type[BaseModel],
        authenticated: bool = True,
    ) -> Any | None:
        headers = basic_auth_header(self.client_id) if authenticated else {}
        data = http_request(
            config.endpoint,
            headers=headers,
            params=params,
            max_retries=config.max_retries,
            timeout_s=config.timeout_s,
            initial_backoff_s=config.initial_backoff_s,
            read_from_cache=self.read_from_cache,
            write_to_cache=self.write_to_cache,
        )
        if data is None:
            return None
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.error(f"Unexpected {model.__name__} payload from {config.endpoint}: {e}")
            raise ApiException(ApiError.UNKNOWN, f"Invalid {model.__name__}") from e

    def search_stations(self, query: StationSearchQuery) -> StationSearchResponse | None:
        logger.debug(
            f"Frost station search: {len(query.regions)} regions, elements {query.elements}"
        )
        return self._get(self.search_config, query.to_params(), StationSearchResponse)

    def fetch_observations(self, query: ObservationQuery) -> ObservationsResponse | None:
        logger.debug(f"Frost observations for {len(query.station_ids)} stations")
        return self._get(self.observations_config, query.to_params(), ObservationsResponse)

    def list_catalogue_stations(
        self, element: str, time_range: TimeRange
    ) -> CatalogueResponse | None:
        params = {
            "weatherElements": element,
            "from": time_range.start.strftime(INSTANT_FORMAT),
            "to": time_range.end.strftime(INSTANT_FORMAT),
        }
        return self._get(self.catalogue_config, params, CatalogueResponse, authenticated=False)

    def get_provider_info(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "search_endpoint": self.search_config.endpoint,
            "observations_endpoint": self.observations_config.endpoint,
            "catalogue_endpoint": self.catalogue_config.endpoint,
            "authenticated": bool(self.client_id),
        }
