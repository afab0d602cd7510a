"""
Climate estimate service.

Runs the adaptive station search for one target point: widen the searched
area until every element has stations queued (or has given up), fetch
station data until no element wants another station, and repeat while the
fetch phase asks for more area. The converged state is fused into one
series per element.
"""

from collections.abc import Sequence
from enum import Enum

from station_climate.climate.accumulator import (
    RequestedQuadrants,
    assign_observations,
    assign_stations,
    select_next_stations,
)
from station_climate.climate.fusion import fuse_all
from station_climate.climate.models import ClimateResult
from station_climate.climate.modes import update_modes
from station_climate.climate.providers.base import StationDataProviderBase
from station_climate.climate.query import build_observation_query, build_region_query
from station_climate.climate.state import SearchState
from station_climate.config import SearchSettings, get_default_elements, get_search_settings
from station_climate.logging_config import get_logger
from station_climate.models import GeoPoint, TimeRange
from station_climate.transport import ApiException

logger = get_logger(__name__)


class SearchPhase(Enum):
    EXPAND_AREA = "expand_area"
    FETCH_DATA = "fetch_data"
    FUSE = "fuse"


class ClimateService:
    """
    Estimates climate series at arbitrary points from station observations.
    """

    def __init__(
        self,
        provider: StationDataProviderBase | None = None,
        settings: SearchSettings | None = None,
    ):
        """
        Initialize the climate service.

        Args:
            provider: Station data source. If None, uses the Frost provider.
            settings: Search tuning. If None, loads it from configuration.
        """
        if provider is None:
            from station_climate.climate.providers.frost import FrostProvider

            provider = FrostProvider()

        self.provider = provider
        self.settings = settings or get_search_settings()
        logger.info(f"Climate service initialized with provider {provider.name}")

    def default_time_range(self) -> TimeRange:
        return TimeRange.until_now(self.settings.default_start)

    def estimate(
        self,
        lat: float,
        lon: float,
        elevation: float | None = None,
        elements: Sequence[str] | None = None,
        time_range: TimeRange | None = None,
    ) -> ClimateResult:
        """
        Estimate the series of each element at a point.

        Args:
            lat: Latitude in decimal degrees
            lon: Longitude in decimal degrees
            elevation: Target elevation in metres, enables elevation correction
            elements: Element ids such as ``mean(air_temperature P1M)``
            time_range: Observation window, defaults to 1800-01-01 until now

        Returns:
            ClimateResult holding an estimate for every element that did not fail

        Raises:
            ApiException: When any remote call fails; no partial result is kept
        """
        center = GeoPoint(lat=lat, lon=lon, elevation=elevation)
        elements = list(elements) if elements else get_default_elements()
        time_range = time_range or self.default_time_range()

        logger.info(
            f"Estimating {len(elements)} elements at ({lat}, {lon}), "
            f"elevation {elevation if elevation is not None else 'unknown'}"
        )
        state = SearchState(center, elements)

        try:
            remote_calls = self._run_search(state, time_range)
        except ApiException as e:
            logger.error(f"Climate search aborted: {e.error_code.value} ({e})")
            raise

        estimates = fuse_all(state, self.settings)
        logger.info(
            f"Estimated {len(estimates)}/{len(state.elements)} elements "
            f"with {remote_calls} remote calls"
        )
        return ClimateResult(location=center, estimates=estimates, remote_calls=remote_calls)

    def _run_search(self, state: SearchState, time_range: TimeRange) -> int:
        """Drive the search phases until fusion; returns the remote call count."""
        phase = SearchPhase.EXPAND_AREA
        requested: RequestedQuadrants = {}
        first_round = True
        remote_calls = 0

        while phase is not SearchPhase.FUSE:
            if phase is SearchPhase.EXPAND_AREA:
                update_modes(state, self.settings)
                query = build_region_query(
                    state, None if first_round else requested, time_range, self.settings
                )
                first_round = False
                response = self.provider.search_stations(query)
                remote_calls += 1
                requested = assign_stations(state, response, self.settings)
                if not requested:
                    phase = SearchPhase.FETCH_DATA
                continue

            station_ids, missing = select_next_stations(state, requested, self.settings)
            if not station_ids:
                phase = SearchPhase.EXPAND_AREA if requested else SearchPhase.FUSE
                continue

            query = build_observation_query(station_ids, missing, time_range)
            response = self.provider.fetch_observations(query)
            remote_calls += 1
            added = assign_observations(state.observations, response, state.intervals)
            logger.debug(f"Accumulated {added} values from {len(station_ids)} stations")

        return remote_calls
