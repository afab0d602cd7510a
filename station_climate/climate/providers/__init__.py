"""
Station data providers for the climate search.
"""

from station_climate.climate.providers.base import StationDataProviderBase
from station_climate.climate.providers.frost import FrostProvider

__all__ = ["StationDataProviderBase", "FrostProvider"]
