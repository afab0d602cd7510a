"""
Series of the closest catalogue station with a complete short window.

A single-element lookup: stations of the catalogue are tried in order of
distance, one observation call each, until one has a value in every bucket
of the element's interval.
"""

from station_climate.climate.accumulator import assign_observations
from station_climate.climate.elements import element_interval
from station_climate.climate.fusion import average_array
from station_climate.climate.geometry import distance_km
from station_climate.climate.models import NearestSeries
from station_climate.climate.providers.base import StationDataProviderBase
from station_climate.climate.query import build_observation_query
from station_climate.climate.state import BucketAccumulator
from station_climate.config import get_nearest_series_settings
from station_climate.logging_config import get_logger
from station_climate.models import GeoPoint, TimeRange
from station_climate.transport import ApiError, ApiException

logger = get_logger(__name__)


class NoCompleteStationError(Exception):
    """No catalogue station had data for every bucket of the window."""


class NearestSeriesService:
    """Nearest-station series lookup backed by the station catalogue."""

    def __init__(self, provider: StationDataProviderBase | None = None):
        if provider is None:
            from station_climate.climate.providers.frost import FrostProvider

            provider = FrostProvider()
        self.provider = provider
        self.settings = get_nearest_series_settings()

    def default_time_range(self) -> TimeRange:
        return TimeRange.until_now(self.settings.default_start)

    def fetch_nearest_series(
        self,
        lat: float,
        lon: float,
        element: str | None = None,
        time_range: TimeRange | None = None,
    ) -> NearestSeries:
        """
        Return the averaged series of the closest complete station.

        Raises:
            ApiException: When a remote call fails, or with UNKNOWN when the
                catalogue answers without a body
            NoCompleteStationError: When no catalogue station is complete
        """
        element = element or self.settings.default_element
        time_range = time_range or self.default_time_range()
        center = GeoPoint(lat=lat, lon=lon)
        interval = element_interval(element)

        catalogue = self.provider.list_catalogue_stations(element, time_range)
        if catalogue is None:
            raise ApiException(ApiError.UNKNOWN, "Station catalogue returned no body")

        candidates = sorted(
            (
                (distance_km(center, station.to_point()), station.station_id)
                for station in catalogue.data
            ),
            key=lambda item: item[0],
        )
        logger.info(f"Trying {len(candidates)} catalogue stations for {element}")

        accumulator = BucketAccumulator()
        for distance, station_id in candidates:
            query = build_observation_query([station_id], [element], time_range)
            response = self.provider.fetch_observations(query)
            assign_observations(accumulator, response, {element: interval})

            if accumulator.bucket_count(element, station_id) >= interval.length:
                logger.info(f"Station {station_id} at {distance:.1f} km is complete")
                values = average_array(
                    accumulator.buckets(element, station_id), interval.length
                )
                return NearestSeries(
                    element=element,
                    station_id=station_id,
                    distance_km=distance,
                    values=values,
                )
            logger.debug(
                f"Station {station_id} has {accumulator.bucket_count(element, station_id)}"
                f"/{interval.length} buckets"
            )

        raise NoCompleteStationError(
            f"No station in the catalogue has a complete {interval.value} series for {element}"
        )
