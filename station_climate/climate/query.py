"""
Construction of the remote queries of one search round.
"""

from collections.abc import Mapping, Set
from dataclasses import dataclass, field
from typing import Any

from station_climate.climate.geometry import (
    Polygon,
    Quadrant,
    annular_sector,
    circle,
    format_polygons,
)
from station_climate.climate.state import SearchState
from station_climate.config import SearchSettings
from station_climate.logging_config import get_logger
from station_climate.models import TimeRange

logger = get_logger(__name__)


@dataclass(frozen=True)
class SearchRegion:
    """One polygon of a region query; ``quadrant`` is None for the initial circle."""

    polygon: Polygon
    inner_km: float
    outer_km: float
    quadrant: Quadrant | None = None
    step: int | None = None


@dataclass
class StationSearchQuery:
    """Stations reporting ``elements`` inside any of ``regions``."""

    elements: list[str]
    time_range: TimeRange
    regions: list[SearchRegion] = field(default_factory=list)
    precision: int = 4

    def to_params(self) -> dict[str, Any]:
        return {
            "incobs": "false",
            "elementids": ",".join(self.elements),
            "time": self.time_range.to_iso_interval(),
            "inside": format_polygons(
                [region.polygon for region in self.regions], self.precision
            ),
        }


@dataclass
class ObservationQuery:
    """Observations of ``elements`` at the given stations."""

    station_ids: list[str]
    elements: list[str]
    time_range: TimeRange

    def to_params(self) -> dict[str, Any]:
        return {
            "sources": ",".join(f"SN{station_id}" for station_id in self.station_ids),
            "referencetime": self.time_range.to_iso_interval(),
            "elements": ",".join(self.elements),
        }


def initial_region(state: SearchState, settings: SearchSettings) -> SearchRegion:
    return SearchRegion(
        polygon=circle(
            state.center, settings.initial_radius_km, settings.initial_circle_points
        ),
        inner_km=0.0,
        outer_km=settings.initial_radius_km,
    )


def build_region_query(
    state: SearchState,
    requested: Mapping[str, Set[Quadrant]] | None,
    time_range: TimeRange,
    settings: SearchSettings,
) -> StationSearchQuery:
    """
    Build the combined station search of one round.

    With nothing requested (the first round) every element is searched in the
    initial circle. Otherwise each requested quadrant is widened by one ring
    for its element, and every distinct (quadrant, step) ring is sent once.
    Elements that have failed or are satisfied by a nearest station are left
    out of the element list.
    """
    if not requested:
        return StationSearchQuery(
            elements=list(state.elements),
            time_range=time_range,
            regions=[initial_region(state, settings)],
            precision=settings.coordinate_precision,
        )

    regions: list[SearchRegion] = []
    seen: set[tuple[Quadrant, int]] = set()
    for element in state.elements:
        quadrants = requested.get(element)
        if not quadrants:
            continue
        for quadrant in Quadrant:
            if quadrant not in quadrants:
                continue
            step = state.advance_quadrant(element, quadrant)
            if (quadrant, step) in seen:
                continue
            seen.add((quadrant, step))
            outer_km = step * settings.ring_width_km
            regions.append(
                SearchRegion(
                    polygon=annular_sector(
                        state.center,
                        outer_km,
                        quadrant,
                        settings.ring_width_km,
                        settings.sector_arc_points,
                    ),
                    inner_km=outer_km - settings.ring_width_km,
                    outer_km=outer_km,
                    quadrant=quadrant,
                    step=step,
                )
            )

    logger.info(
        "Expanding search: "
        + ", ".join(f"{r.quadrant.name}@{r.outer_km:g}km" for r in regions if r.quadrant)
    )
    return StationSearchQuery(
        elements=state.searching_elements(),
        time_range=time_range,
        regions=regions,
        precision=settings.coordinate_precision,
    )


def build_observation_query(
    station_ids: list[str], elements: list[str], time_range: TimeRange
) -> ObservationQuery:
    return ObservationQuery(
        station_ids=list(station_ids), elements=list(elements), time_range=time_range
    )
