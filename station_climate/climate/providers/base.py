"""
Base station data provider interface used by the climate search.
"""

from abc import ABC, abstractmethod
from typing import Any

from station_climate.climate.query import ObservationQuery, StationSearchQuery
from station_climate.frost_models import (
    CatalogueResponse,
    ObservationsResponse,
    StationSearchResponse,
)
from station_climate.logging_config import get_logger
from station_climate.models import TimeRange

logger = get_logger(__name__)


class StationDataProviderBase(ABC):
    """
    Abstract base class for station data sources.

    The search loop only needs two calls: a region query listing the stations
    that report some elements inside a set of polygons, and an observation
    query for a batch of stations. Implementations return ``None`` when the
    remote side reports "no data" and raise ``ApiException`` for failures.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        logger.debug(f"Initialized {name} station data provider")

    @abstractmethod
    def search_stations(self, query: StationSearchQuery) -> StationSearchResponse | None:
        """
        Find stations reporting ``query.elements`` inside ``query.regions``.

        Args:
            query: Region query of one search round

        Returns:
            Matched station/element series, or None when nothing matched
        """

    @abstractmethod
    def fetch_observations(self, query: ObservationQuery) -> ObservationsResponse | None:
        """
        Fetch the observations of a batch of stations.

        Args:
            query: Stations, elements and reference time window

        Returns:
            Observation records, or None when there is no data
        """

    def list_catalogue_stations(
        self, element: str, time_range: TimeRange
    ) -> CatalogueResponse | None:
        """Stations of the station catalogue reporting ``element``."""
        raise NotImplementedError(f"{self.name} has no station catalogue")

    def get_provider_info(self) -> dict[str, Any]:
        return {"name": self.name}
