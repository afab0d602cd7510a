"""
Climate estimate data models.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from station_climate.models import GeoPoint


class Mode(str, Enum):
    """Fusion strategy assigned to an element."""

    NEAREST = "nearest"  # copy a station within the nearest radius
    INTERPOLATION = "interpolation"  # IDW over one station per quadrant
    EXTRAPOLATION = "extrapolation"  # distance regression within quadrants
    FAIL = "fail"  # no usable data, element omitted


class ClimateEstimate(BaseModel):
    """Fused series for one element at the target point."""

    element: str
    mode: Mode
    values: list[float] = Field(description="One value per time bucket")
    source_elevation: float | None = Field(
        default=None, description="Elevation the fused values represent (m)"
    )
    elevation_delta: float | None = Field(
        default=None, description="Target minus source elevation (m)"
    )
    correction_applied: bool = False
    contributing_stations: list[str] = Field(default_factory=list)


class ClimateResult(BaseModel):
    """
    Estimates for every element that produced a series.

    Elements that ended in FAIL mode are absent.
    """

    location: GeoPoint
    estimates: dict[str, ClimateEstimate] = Field(default_factory=dict)
    remote_calls: int = 0

    def as_series(self) -> dict[str, list[float]]:
        """Plain element -> series mapping."""
        return {element: est.values for element, est in self.estimates.items()}

    def get_coverage_metrics(self) -> dict[str, Any]:
        """Summary of how each estimated element was produced."""
        modes: dict[str, int] = {}
        for estimate in self.estimates.values():
            modes[estimate.mode.value] = modes.get(estimate.mode.value, 0) + 1

        return {
            "estimated_count": len(self.estimates),
            "modes": modes,
            "corrected_elements": [
                e for e, est in self.estimates.items() if est.correction_applied
            ],
            "remote_calls": self.remote_calls,
        }


class NearestSeries(BaseModel):
    """Series of the closest catalogue station with a complete window."""

    element: str
    station_id: str
    distance_km: float
    values: list[float]
