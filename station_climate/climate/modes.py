"""
Mode selection from the search counters.

The radius-based rule looks at how many quadrants have exhausted their search
("exceeders"): few or diagonally opposite exceeders still surround the target
and allow interpolation, adjacent or three exceeders leave one side open and
call for extrapolation, four mean there is nothing to work with.
NEAREST is entered elsewhere, when a station turns up within the nearest
radius.
"""

from collections.abc import Mapping

from station_climate.climate.geometry import Quadrant, is_diagonal
from station_climate.climate.models import Mode
from station_climate.climate.state import SearchState
from station_climate.config import SearchSettings
from station_climate.logging_config import get_logger

logger = get_logger(__name__)


def exceeding_quadrants(steps: Mapping[Quadrant, int], exceed_step: int = 4) -> list[Quadrant]:
    return [quadrant for quadrant in Quadrant if steps[quadrant] >= exceed_step]


def classify_mode(
    current: Mode,
    steps: Mapping[Quadrant, int],
    usable_counts: Mapping[Quadrant, int],
    settings: SearchSettings,
) -> Mode:
    """
    Radius-based mode for an element.

    An element already extrapolating keeps that mode while any quadrant holds
    enough stations for a regression.
    """
    if current is Mode.EXTRAPOLATION and not all(
        count < settings.extrapolation_min_stations for count in usable_counts.values()
    ):
        return current

    exceeders = exceeding_quadrants(steps, settings.exceed_step)
    if len(exceeders) <= 1 or (
        len(exceeders) == 2 and is_diagonal(exceeders[0], exceeders[1])
    ):
        return Mode.INTERPOLATION
    if len(exceeders) == len(Quadrant):
        return Mode.FAIL
    return Mode.EXTRAPOLATION


def reclassify(state: SearchState, element: str, settings: SearchSettings) -> Mode:
    """Recompute and store the radius-based mode of one element."""
    steps = state.search_steps[element]
    mode = classify_mode(
        state.modes[element], steps, state.usable_counts(element), settings
    )
    logger.debug(
        f"{element}: exceeders "
        f"{[q.name for q in exceeding_quadrants(steps, settings.exceed_step)]}"
    )
    state.set_mode(element, mode)
    return mode


def update_modes(state: SearchState, settings: SearchSettings) -> None:
    """Reclassify every element that is neither NEAREST nor FAIL."""
    for element in state.elements:
        if state.modes[element] not in (Mode.NEAREST, Mode.FAIL):
            reclassify(state, element, settings)


def candidate_weight(
    steps: Mapping[Quadrant, int], quadrant: Quadrant, power: int = 2
) -> float:
    """
    Share of the IDW weight a station one ring further out in ``quadrant``
    would get, using search steps as distances of the other quadrants.

    Steps start at 1, so no distance is zero here.
    """
    total = 0.0
    this_distance = 0.0
    for searched, step in steps.items():
        distance = float(step + 1 if searched is quadrant else step)
        if searched is quadrant:
            this_distance = distance
        total += 1.0 / distance**power
    return (1.0 / this_distance**power) / total
