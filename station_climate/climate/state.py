"""
Mutable state of one climate search.

Everything keyed by element and quadrant lives in ``SearchState`` and changes
only through its named operations, so the invariants below hold in one place:

- search steps per (element, quadrant) never decrease;
- station queues are append-only and hold each station once per element;
- a station becomes usable for an element at most once, the first time its
  bucket count reaches the element's interval length.

A state is created per request and discarded after fusion.
"""

import bisect
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from station_climate.climate.elements import TimeInterval, element_interval
from station_climate.climate.geometry import Quadrant
from station_climate.climate.models import Mode
from station_climate.logging_config import get_logger
from station_climate.models import GeoPoint

logger = get_logger(__name__)


class BucketAccumulator:
    """Running (sum, count) per element, station and time bucket."""

    def __init__(self) -> None:
        self._data: dict[str, dict[str, dict[int, list[float]]]] = {}

    def add(self, element: str, station_id: str, bucket: int, value: float) -> None:
        buckets = self._data.setdefault(element, {}).setdefault(station_id, {})
        if bucket in buckets:
            buckets[bucket][0] += value
            buckets[bucket][1] += 1
        else:
            buckets[bucket] = [value, 1]

    def buckets(self, element: str, station_id: str) -> dict[int, tuple[float, int]]:
        raw = self._data.get(element, {}).get(station_id, {})
        return {bucket: (total, int(count)) for bucket, (total, count) in raw.items()}

    def bucket_count(self, element: str, station_id: str) -> int:
        return len(self._data.get(element, {}).get(station_id, {}))


@dataclass
class NearestCandidates:
    """Stations within the nearest radius, closest first."""

    candidates: list[tuple[str, float]] = field(default_factory=list)
    satisfied: bool = False
    # Station whose data was fetched last and waits to be judged
    requested: str | None = None
    chosen: str | None = None
    rejected: set[str] = field(default_factory=set)

    @property
    def head(self) -> str | None:
        return self.candidates[0][0] if self.candidates else None

    def insert(self, station_id: str, distance: float) -> bool:
        if station_id in self.rejected or any(
            sid == station_id for sid, _ in self.candidates
        ):
            return False
        bisect.insort(self.candidates, (station_id, distance), key=lambda c: c[1])
        return True

    def reject(self, station_id: str) -> None:
        """Drop a candidate whose data turned out incomplete."""
        self.candidates = [c for c in self.candidates if c[0] != station_id]
        self.rejected.add(station_id)
        if self.requested == station_id:
            self.requested = None

    def satisfy(self, station_id: str) -> None:
        self.satisfied = True
        self.chosen = station_id
        self.requested = None


def _per_quadrant(factory) -> dict[Quadrant, object]:
    return {quadrant: factory() for quadrant in Quadrant}


class SearchState:
    """Search counters, station queues and observations for one target point."""

    def __init__(self, center: GeoPoint, elements: Sequence[str]) -> None:
        self.center = center
        self.elements: list[str] = list(dict.fromkeys(elements))
        self.intervals: dict[str, TimeInterval] = {
            e: element_interval(e) for e in self.elements
        }

        self.station_locations: dict[str, GeoPoint] = {}
        self.observations = BucketAccumulator()

        self.search_steps: dict[str, dict[Quadrant, int]] = {
            e: _per_quadrant(lambda: 1) for e in self.elements
        }
        self.station_queues: dict[str, dict[Quadrant, list[str]]] = {
            e: _per_quadrant(list) for e in self.elements
        }
        # Positive: next index to judge (1-based). Negative: already judged.
        self.queue_pointers: dict[str, dict[Quadrant, int]] = {
            e: _per_quadrant(lambda: 0) for e in self.elements
        }
        self.usable_stations: dict[str, dict[Quadrant, list[str]]] = {
            e: _per_quadrant(list) for e in self.elements
        }
        self.modes: dict[str, Mode] = {e: Mode.INTERPOLATION for e in self.elements}
        self.nearest: dict[str, NearestCandidates] = {
            e: NearestCandidates() for e in self.elements
        }

    def __contains__(self, element: str) -> bool:
        return element in self.modes

    # Mutations

    def record_location(self, station_id: str, location: GeoPoint | None) -> GeoPoint | None:
        """Keep the first location seen for a station and return the kept one."""
        if station_id not in self.station_locations and location is not None:
            self.station_locations[station_id] = location
        return self.station_locations.get(station_id)

    def advance_quadrant(self, element: str, quadrant: Quadrant) -> int:
        """Widen the quadrant's search by one ring and return the new step."""
        step = self.search_steps[element][quadrant] + 1
        self.search_steps[element][quadrant] = step
        logger.debug(f"{element}: {quadrant.name} search step -> {step}")
        return step

    def enqueue_stations(
        self, element: str, quadrant: Quadrant, station_ids: Iterable[str]
    ) -> int:
        """Append stations not queued yet for the element; returns how many."""
        queued = {s for q in self.station_queues[element].values() for s in q}
        added = 0
        for station_id in station_ids:
            if station_id in queued:
                continue
            self.station_queues[element][quadrant].append(station_id)
            queued.add(station_id)
            added += 1
        return added

    def claim_next_station(self, element: str, quadrant: Quadrant) -> str | None:
        """Move the queue pointer to the next unjudged station, if any."""
        queue = self.station_queues[element][quadrant]
        next_index = abs(self.queue_pointers[element][quadrant]) + 1
        if next_index > len(queue):
            return None
        self.queue_pointers[element][quadrant] = next_index
        return queue[next_index - 1]

    def pending_station(self, element: str, quadrant: Quadrant) -> str | None:
        """Station claimed by the pointer but not judged yet."""
        pointer = self.queue_pointers[element][quadrant]
        queue = self.station_queues[element][quadrant]
        if 0 < pointer <= len(queue):
            return queue[pointer - 1]
        return None

    def freeze_pointer(self, element: str, quadrant: Quadrant) -> None:
        """Flag the pointed station as judged without losing the position."""
        pointer = self.queue_pointers[element][quadrant]
        self.queue_pointers[element][quadrant] = -abs(pointer)

    def mark_usable(self, element: str, quadrant: Quadrant, station_id: str) -> bool:
        if any(station_id in s for s in self.usable_stations[element].values()):
            return False
        self.usable_stations[element][quadrant].append(station_id)
        logger.debug(f"{element}: station {station_id} usable in {quadrant.name}")
        return True

    def accumulate(self, element: str, station_id: str, bucket: int, value: float) -> None:
        self.observations.add(element, station_id, bucket, value)

    def set_mode(self, element: str, mode: Mode) -> None:
        previous = self.modes[element]
        if previous is not mode:
            logger.info(f"{element}: mode {previous.value} -> {mode.value}")
        self.modes[element] = mode

    # Queries

    def is_complete(self, element: str, station_id: str) -> bool:
        """Station has a value for every bucket of the element's interval."""
        length = self.intervals[element].length
        return self.observations.bucket_count(element, station_id) >= length

    def usable_count(self, element: str, quadrant: Quadrant) -> int:
        return len(self.usable_stations[element][quadrant])

    def usable_counts(self, element: str) -> dict[Quadrant, int]:
        return {q: len(s) for q, s in self.usable_stations[element].items()}

    def quadrants_with_usable(self, element: str) -> int:
        return sum(1 for s in self.usable_stations[element].values() if s)

    def queueable_or_usable_count(self, element: str) -> int:
        """Quadrants holding a usable station or a pointer within their queue."""
        count = 0
        for quadrant in Quadrant:
            pointer = self.queue_pointers[element][quadrant]
            if self.usable_stations[element][quadrant] or pointer <= len(
                self.station_queues[element][quadrant]
            ):
                count += 1
        return count

    def is_searching(self, element: str) -> bool:
        """Element still takes part in region queries."""
        if self.modes[element] is Mode.FAIL:
            return False
        return not (
            self.modes[element] is Mode.NEAREST and self.nearest[element].satisfied
        )

    def searching_elements(self) -> list[str]:
        return [e for e in self.elements if self.is_searching(e)]
