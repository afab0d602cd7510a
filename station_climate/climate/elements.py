"""
Per-element behaviour of the climate estimate.

An element id such as ``mean(air_temperature P1M)`` names a variable
(``air_temperature``) and a time resolution (``P1M``). The resolution picks
the time buckets observations are aggregated into; the variable picks how raw
values are cleaned and how a fused series is corrected for elevation.
"""

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

_ELEMENT_PATTERN = re.compile(
    r"^\s*\w+\(\s*(?P<variable>[^\s)]+)(?:\s+(?P<resolution>[^)]+))?\)\s*$"
)

TEMPERATURE = "air_temperature"
SNOW_COVERAGE = "snow_coverage_type"
CLOUD_FRACTION = "cloud_area_fraction"
SHORTWAVE_FLUX = "surface_downwelling_shortwave_flux_in_air"

TEMPERATURE_LAPSE_RATE = -0.0065  # degC per metre
SNOW_PER_DEGREE = 0.08
CLOUD_PER_METRE = 1 / 2000.0
SNOW_MELT_TEMPERATURE = 5.0
CLOUD_FALLBACK_VALUE = 5.0  # average cover, used for "sky obscured" codes


class TimeInterval(str, Enum):
    """Time bucket cycle observations are aggregated over."""

    SECOND = "second"
    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"

    @property
    def length(self) -> int:
        """Buckets per cycle: completeness threshold and output series length."""
        return _BUCKET_COUNTS[self]

    def bucket(self, moment: datetime) -> int:
        """1-based bucket of ``moment`` within the cycle."""
        if self is TimeInterval.SECOND:
            return moment.second + 1
        if self is TimeInterval.MINUTE:
            return moment.minute + 1
        if self is TimeInterval.HOUR:
            return moment.hour + 1
        if self is TimeInterval.DAY:
            return moment.day
        if self is TimeInterval.WEEK:
            return moment.isocalendar()[1]
        return moment.month


_BUCKET_COUNTS = {
    TimeInterval.SECOND: 60,
    TimeInterval.MINUTE: 60,
    TimeInterval.HOUR: 24,
    TimeInterval.DAY: 31,
    TimeInterval.WEEK: 53,
    TimeInterval.MONTH: 12,
}

_RESOLUTIONS = {
    "PT1S": TimeInterval.SECOND,
    "PT1M": TimeInterval.MINUTE,
    "PT1H": TimeInterval.HOUR,
    "P1D": TimeInterval.DAY,
    "P1W": TimeInterval.WEEK,
    "P1M": TimeInterval.MONTH,
}


def parse_element(element_id: str) -> tuple[str, str | None]:
    """Split ``mean(air_temperature P1M)`` into ``("air_temperature", "P1M")``."""
    match = _ELEMENT_PATTERN.match(element_id)
    if not match:
        return element_id.strip(), None
    return match.group("variable"), match.group("resolution")


def element_variable(element_id: str) -> str:
    return parse_element(element_id)[0]


def element_interval(element_id: str) -> TimeInterval:
    """Bucket cycle for the element's resolution; monthly when unknown."""
    resolution = parse_element(element_id)[1]
    if resolution is None:
        return TimeInterval.MONTH
    return _RESOLUTIONS.get(resolution.strip().upper(), TimeInterval.MONTH)


@dataclass
class CorrectionContext:
    """Shared state of one elevation-correction pass over all elements."""

    fused: dict[str, list[float]] = field(default_factory=dict)
    # Per-bucket temperature shift applied earlier in the same pass
    temperature_gain: dict[int, float] = field(default_factory=dict)
    temperature_element: str | None = None

    def original_temperature(self, index: int) -> float | None:
        """Fused temperature before its own correction, if known."""
        if self.temperature_element is None:
            return None
        series = self.fused.get(self.temperature_element)
        if series is None or index >= len(series):
            return None
        return series[index] - self.temperature_gain.get(index, 0.0)


Normalizer = Callable[[float], float]
Corrector = Callable[[float, int, CorrectionContext], float | None]


def _identity(value: float) -> float:
    return value


def _snow_normalizer(value: float) -> float:
    # -1 means "no snow registered"
    return 0.0 if value == -1.0 else value


def _cloud_normalizer(value: float) -> float:
    # -3 (undefined) and 9 (sky obscured) carry no cover fraction
    return CLOUD_FALLBACK_VALUE if value in (-3.0, 9.0) else value


def _flux_normalizer(value: float) -> float:
    return max(value, 0.0)


def _no_correction(elevation_delta: float, index: int, ctx: CorrectionContext) -> None:
    return None


def _temperature_correction(
    elevation_delta: float, index: int, ctx: CorrectionContext
) -> float:
    return elevation_delta * TEMPERATURE_LAPSE_RATE


def _snow_correction(
    elevation_delta: float, index: int, ctx: CorrectionContext
) -> float | None:
    gained = ctx.temperature_gain.get(index, 0.0)
    original = ctx.original_temperature(index)
    if original is None:
        return None
    if gained > 0.0 or original + gained < SNOW_MELT_TEMPERATURE:
        return -gained * SNOW_PER_DEGREE
    return 0.0


def _cloud_correction(
    elevation_delta: float, index: int, ctx: CorrectionContext
) -> float:
    return -elevation_delta * CLOUD_PER_METRE


@dataclass(frozen=True)
class ElementStrategy:
    """Cleaning and elevation correction rules of one variable."""

    normalize: Normalizer = _identity
    correct: Corrector = _no_correction
    # Lower runs first in a correction pass
    priority: int = 10


STRATEGIES: dict[str, ElementStrategy] = {
    TEMPERATURE: ElementStrategy(correct=_temperature_correction, priority=0),
    SNOW_COVERAGE: ElementStrategy(
        normalize=_snow_normalizer, correct=_snow_correction, priority=1
    ),
    CLOUD_FRACTION: ElementStrategy(
        normalize=_cloud_normalizer, correct=_cloud_correction, priority=1
    ),
    SHORTWAVE_FLUX: ElementStrategy(normalize=_flux_normalizer),
}

DEFAULT_STRATEGY = ElementStrategy()


def strategy_for(element_id: str) -> ElementStrategy:
    return STRATEGIES.get(element_variable(element_id), DEFAULT_STRATEGY)


def normalize_value(element_id: str, value: float) -> float:
    """Remap the element's sentinel values before aggregation."""
    return strategy_for(element_id).normalize(value)


def is_temperature(element_id: str) -> bool:
    return element_variable(element_id) == TEMPERATURE


def correction_order(elements: Sequence[str]) -> list[str]:
    """Elements sorted so that temperature is corrected before what depends on it."""
    return sorted(elements, key=lambda e: strategy_for(e).priority)
