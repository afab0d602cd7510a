"""
Climate estimation from sparse weather-station observations.

Searches stations around a target point ring by ring, per element and
quadrant, and fuses what it finds into one series per element.
"""

from station_climate.climate.models import (
    ClimateEstimate,
    ClimateResult,
    Mode,
    NearestSeries,
)
from station_climate.climate.nearest import NearestSeriesService, NoCompleteStationError
from station_climate.climate.providers import FrostProvider, StationDataProviderBase
from station_climate.climate.service import ClimateService

__all__ = [
    "ClimateEstimate",
    "ClimateResult",
    "ClimateService",
    "FrostProvider",
    "Mode",
    "NearestSeries",
    "NearestSeriesService",
    "NoCompleteStationError",
    "StationDataProviderBase",
]
