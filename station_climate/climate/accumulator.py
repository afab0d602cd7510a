"""
Folding remote responses into the search state and picking the stations to
fetch next.

``assign_stations`` consumes a station-search response and returns the
(element, quadrant) pairs that need a wider search area. ``assign_observations``
consumes an observation response. ``select_next_stations`` judges the stations
fetched last round and returns the next batch of station ids to fetch, adding
quadrants whose queue ran dry to the area requests.
"""

from station_climate.climate.elements import TimeInterval, normalize_value
from station_climate.climate.geometry import Quadrant, classify_quadrant, distance_km
from station_climate.climate.models import Mode
from station_climate.climate.modes import candidate_weight, classify_mode, reclassify
from station_climate.climate.state import BucketAccumulator, SearchState
from station_climate.config import SearchSettings
from station_climate.frost_models import ObservationsResponse, StationSearchResponse
from station_climate.logging_config import get_logger

logger = get_logger(__name__)

RequestedQuadrants = dict[str, set[Quadrant]]


def needs_more_area(
    state: SearchState,
    element: str,
    quadrant: Quadrant,
    mode: Mode,
    candidate_count: int,
    settings: SearchSettings,
) -> bool:
    """
    Whether widening ``quadrant`` is still worth a query for the element.

    Interpolation keeps searching an empty quadrant while there are few
    candidates overall or a station one ring further out would still weigh
    enough. Extrapolation keeps searching until the quadrant can support a
    regression. Both stop once the quadrant has been widened past the
    maximum step.
    """
    steps = state.search_steps[element]
    if steps[quadrant] > settings.max_expansion_step:
        return False

    usable = state.usable_count(element, quadrant)
    if mode is Mode.INTERPOLATION:
        if usable > 0:
            return False
        if candidate_count < settings.interpolation_min_candidates:
            return True
        weight = candidate_weight(steps, quadrant, settings.idw_power)
        return weight > settings.idw_weight_threshold
    if mode is Mode.EXTRAPOLATION:
        return usable < settings.extrapolation_min_stations
    return False


def _request(requested: RequestedQuadrants, element: str, quadrant: Quadrant) -> None:
    requested.setdefault(element, set()).add(quadrant)


def assign_stations(
    state: SearchState,
    response: StationSearchResponse | None,
    settings: SearchSettings,
) -> RequestedQuadrants:
    """
    Record the stations of a search response and queue them per quadrant.

    A ``None`` response (no matches) still re-evaluates every element, so
    quadrants with empty queues are requested again while they qualify.
    """
    pending: dict[str, dict[Quadrant, list[tuple[str, float]]]] = {
        element: {quadrant: [] for quadrant in Quadrant} for element in state.elements
    }

    series = response.data.tseries if response is not None else []
    for tseries in series:
        element = tseries.element_id
        if element not in state:
            logger.debug(f"Ignoring unrequested element {element}")
            continue

        station_id = tseries.station_id
        location = state.record_location(station_id, tseries.representative_location())
        if location is None:
            logger.debug(f"Station {station_id} has no usable location, skipped")
            continue

        quadrant = classify_quadrant(state.center, location)
        distance = distance_km(state.center, location)

        nearest = state.nearest[element]
        if distance < settings.nearest_radius_km and not nearest.satisfied:
            if nearest.insert(station_id, distance):
                logger.debug(f"{element}: nearest candidate {station_id} at {distance:.2f} km")
            if nearest.candidates:
                state.set_mode(element, Mode.NEAREST)

        pending[element][quadrant].append((station_id, distance))

    requested: RequestedQuadrants = {}
    for element in state.elements:
        if state.modes[element] not in (Mode.NEAREST, Mode.FAIL):
            reclassify(state, element, settings)
        mode = state.modes[element]
        candidate_count = state.queueable_or_usable_count(element)

        for quadrant in Quadrant:
            found = sorted(pending[element][quadrant], key=lambda item: item[1])
            state.enqueue_stations(element, quadrant, (sid for sid, _ in found))
            if not state.station_queues[element][quadrant] and needs_more_area(
                state, element, quadrant, mode, candidate_count, settings
            ):
                _request(requested, element, quadrant)

    return requested


def assign_observations(
    accumulator: BucketAccumulator,
    response: ObservationsResponse | None,
    intervals: dict[str, TimeInterval],
) -> int:
    """
    Add normalized observation values to the per-station buckets.

    Only elements present in ``intervals`` are kept; returns the number of
    values added.
    """
    if response is None:
        return 0

    added = 0
    for record in response.data:
        station_id = record.station_id
        for observation in record.observations:
            interval = intervals.get(observation.elementId)
            if interval is None:
                continue
            bucket = interval.bucket(record.referenceTime)
            value = normalize_value(observation.elementId, observation.value)
            accumulator.add(observation.elementId, station_id, bucket, value)
            added += 1
    return added


def _select_nearest(
    state: SearchState,
    element: str,
    station_ids: set[str],
    elements: set[str],
    settings: SearchSettings,
) -> None:
    nearest = state.nearest[element]

    if nearest.requested is not None:
        station_id = nearest.requested
        if state.is_complete(element, station_id):
            logger.info(f"{element}: nearest station {station_id} is complete")
            nearest.satisfy(station_id)
            return
        logger.debug(f"{element}: nearest station {station_id} incomplete, dropped")
        nearest.reject(station_id)

    head = nearest.head
    if head is not None:
        station_ids.add(head)
        elements.add(element)
        nearest.requested = head
        return

    logger.info(f"{element}: nearest candidates exhausted")
    mode = classify_mode(
        Mode.NEAREST,
        state.search_steps[element],
        state.usable_counts(element),
        settings,
    )
    state.set_mode(element, mode)


def _judge_pending(state: SearchState, element: str, quadrant: Quadrant) -> None:
    station_id = state.pending_station(element, quadrant)
    if station_id is None:
        return
    if state.is_complete(element, station_id):
        state.mark_usable(element, quadrant, station_id)
    else:
        logger.debug(
            f"{element}: station {station_id} has "
            f"{state.observations.bucket_count(element, station_id)} buckets, not usable"
        )
    state.freeze_pointer(element, quadrant)


def _wants_station(
    state: SearchState,
    element: str,
    quadrant: Quadrant,
    mode: Mode,
    settings: SearchSettings,
) -> bool:
    usable = state.usable_count(element, quadrant)
    if mode is Mode.INTERPOLATION:
        return usable == 0
    return usable < settings.extrapolation_wanted_stations


def select_next_stations(
    state: SearchState,
    requested: RequestedQuadrants,
    settings: SearchSettings,
) -> tuple[list[str], list[str]]:
    """
    Judge last round's stations and pick the next ones to fetch.

    Returns (station ids, element ids) for one observation query; both are
    empty when no element needs more data. Quadrants that want a station but
    have run out of queue are added to ``requested`` when widening them is
    still worthwhile.
    """
    station_ids: set[str] = set()
    elements: set[str] = set()
    wanted: dict[str, list[Quadrant]] = {}

    for element in state.elements:
        if state.modes[element] is Mode.NEAREST and not state.nearest[element].satisfied:
            _select_nearest(state, element, station_ids, elements, settings)

        mode = state.modes[element]
        if mode not in (Mode.INTERPOLATION, Mode.EXTRAPOLATION):
            continue
        for quadrant in Quadrant:
            _judge_pending(state, element, quadrant)
            if _wants_station(state, element, quadrant, mode, settings):
                wanted.setdefault(element, []).append(quadrant)

    for element, quadrants in wanted.items():
        mode = state.modes[element]
        candidate_count = state.quadrants_with_usable(element)
        for quadrant in quadrants:
            station_id = state.claim_next_station(element, quadrant)
            if station_id is not None:
                station_ids.add(station_id)
                elements.add(element)
            elif needs_more_area(state, element, quadrant, mode, candidate_count, settings):
                _request(requested, element, quadrant)

    ordered_ids = sorted(station_ids, key=_station_sort_key)
    ordered_elements = [e for e in state.elements if e in elements]
    if ordered_ids:
        logger.debug(f"Next stations: {ordered_ids} for {ordered_elements}")
    return ordered_ids, ordered_elements


def _station_sort_key(station_id: str) -> tuple[int, str]:
    return (int(station_id), station_id) if station_id.isdigit() else (0, station_id)
