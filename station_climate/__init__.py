"""Station Climate: estimate climate series at any point from weather-station observations."""

__version__ = "0.1.0"

from .climate import ClimateResult, ClimateService
from .models import GeoPoint, TimeRange

__all__ = ["ClimateService", "ClimateResult", "GeoPoint", "TimeRange"]
