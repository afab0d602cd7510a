"""
Fusion of usable station series into one estimate per element, followed by
the elevation correction pass.
"""

from collections.abc import Mapping, Sequence
from typing import NamedTuple

import numpy as np

from station_climate.climate.elements import (
    CorrectionContext,
    correction_order,
    is_temperature,
    strategy_for,
)
from station_climate.climate.geometry import Quadrant, distance_km
from station_climate.climate.models import ClimateEstimate, Mode
from station_climate.climate.state import SearchState
from station_climate.config import SearchSettings
from station_climate.logging_config import get_logger

logger = get_logger(__name__)


class FusedSeries(NamedTuple):
    values: list[float]
    source_elevation: float | None
    stations: list[str]


def average_array(buckets: Mapping[int, tuple[float, int]], length: int) -> list[float]:
    """
    Mean value per 1-based bucket as a list of ``length`` values.

    Buckets without observations read as 0.0.
    """
    values = [0.0] * length
    for bucket, (total, count) in buckets.items():
        if 1 <= bucket <= length and count:
            values[bucket - 1] = total / count
    return values


def idw_weights(distances: Sequence[float], power: int = 2) -> list[float]:
    """
    Inverse distance weights normalized to sum to 1.

    A station at distance zero takes the whole weight (shared equally when
    there are several).
    """
    if not distances:
        return []
    zero = [d == 0.0 for d in distances]
    if any(zero):
        share = 1.0 / sum(zero)
        return [share if is_zero else 0.0 for is_zero in zero]
    raw = [1.0 / d**power for d in distances]
    total = sum(raw)
    return [w / total for w in raw]


def multi_y_regression(
    distances: Sequence[float], series: Sequence[Sequence[float]]
) -> list[float]:
    """
    Intercepts of one least-squares line per bucket, value against distance.

    ``series[i]`` holds the bucket values of the station at ``distances[i]``.
    The intercept is the value the line predicts at the target.
    """
    x = np.asarray(distances, dtype=float)
    y = np.asarray(series, dtype=float)
    mean_x = x.mean()
    mean_y = y.mean(axis=0)

    dx = x - mean_x
    denominator = float(dx @ dx)
    if denominator == 0.0:
        slopes = np.zeros_like(mean_y)
    else:
        slopes = (dx @ (y - mean_y)) / denominator
    return (mean_y - slopes * mean_x).tolist()


def _series(state: SearchState, element: str, station_id: str) -> list[float]:
    length = state.intervals[element].length
    return average_array(state.observations.buckets(element, station_id), length)


def fuse_nearest(state: SearchState, element: str) -> FusedSeries | None:
    station_id = state.nearest[element].chosen
    if station_id is None:
        return None
    location = state.station_locations.get(station_id)
    elevation = location.elevation if location is not None else None
    return FusedSeries(_series(state, element, station_id), elevation, [station_id])


def fuse_interpolation(
    state: SearchState, element: str, settings: SearchSettings
) -> FusedSeries | None:
    """IDW over the closest usable station of every quadrant."""
    stations = [
        state.usable_stations[element][q][0]
        for q in Quadrant
        if state.usable_stations[element][q]
    ]
    if not stations:
        return None

    locations = [state.station_locations[s] for s in stations]
    distances = [distance_km(state.center, loc) for loc in locations]
    weights = idw_weights(distances, settings.idw_power)

    length = state.intervals[element].length
    values = [0.0] * length
    for station_id, weight in zip(stations, weights, strict=True):
        for index, value in enumerate(_series(state, element, station_id)):
            values[index] += value * weight

    elevation: float | None = None
    if all(loc.elevation is not None for loc in locations):
        elevation = sum(loc.elevation * w for loc, w in zip(locations, weights, strict=True))
    return FusedSeries(values, elevation, stations)


def fuse_extrapolation(
    state: SearchState, element: str, settings: SearchSettings
) -> FusedSeries | None:
    """Mean of per-quadrant regression intercepts at the target."""
    intercepts: list[list[float]] = []
    contributors: list[str] = []
    for quadrant in Quadrant:
        stations = state.usable_stations[element][quadrant]
        if len(stations) < settings.extrapolation_min_stations:
            continue
        distances = [distance_km(state.center, state.station_locations[s]) for s in stations]
        series = [_series(state, element, s) for s in stations]
        intercepts.append(multi_y_regression(distances, series))
        contributors.extend(stations)

    if not intercepts:
        return None

    values = np.asarray(intercepts).mean(axis=0).tolist()
    elevations = [state.station_locations[s].elevation for s in contributors]
    elevation = None
    if all(e is not None for e in elevations):
        elevation = sum(elevations) / len(elevations)
    return FusedSeries(values, elevation, contributors)


def fuse_element(
    state: SearchState, element: str, settings: SearchSettings
) -> FusedSeries | None:
    mode = state.modes[element]
    if mode is Mode.NEAREST:
        return fuse_nearest(state, element)
    if mode is Mode.INTERPOLATION:
        return fuse_interpolation(state, element, settings)
    if mode is Mode.EXTRAPOLATION:
        return fuse_extrapolation(state, element, settings)
    return None


def correct_estimate(
    estimate: ClimateEstimate,
    target_elevation: float | None,
    ctx: CorrectionContext,
    settings: SearchSettings,
) -> None:
    """Shift the estimate in place for the elevation difference to the target."""
    if target_elevation is None or estimate.source_elevation is None:
        return
    delta = target_elevation - estimate.source_elevation
    estimate.elevation_delta = delta
    if abs(delta) <= settings.elevation_threshold_m:
        return

    corrector = strategy_for(estimate.element).correct
    tracks_gain = estimate.element == ctx.temperature_element
    for index in range(len(estimate.values)):
        addition = corrector(delta, index, ctx)
        if addition is None:
            continue
        if tracks_gain:
            ctx.temperature_gain[index] = addition
        estimate.values[index] += addition
        estimate.correction_applied = True

    if estimate.correction_applied:
        logger.info(f"{estimate.element}: corrected for {delta:+.0f} m elevation difference")


def fuse_all(state: SearchState, settings: SearchSettings) -> dict[str, ClimateEstimate]:
    """Fuse every non-failed element, then correct them in dependency order."""
    estimates: dict[str, ClimateEstimate] = {}
    for element in state.elements:
        mode = state.modes[element]
        if mode is Mode.FAIL:
            logger.info(f"{element}: no usable data, omitted")
            continue
        fused = fuse_element(state, element, settings)
        if fused is None:
            logger.warning(f"{element}: {mode.value} found no contributing stations, omitted")
            continue
        estimates[element] = ClimateEstimate(
            element=element,
            mode=mode,
            values=fused.values,
            source_elevation=fused.source_elevation,
            contributing_stations=fused.stations,
        )

    ctx = CorrectionContext(
        fused={element: est.values for element, est in estimates.items()},
        temperature_element=next((e for e in estimates if is_temperature(e)), None),
    )
    for element in correction_order(list(estimates)):
        correct_estimate(estimates[element], state.center.elevation, ctx, settings)

    return estimates
