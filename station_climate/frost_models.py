"""
Pydantic models for the Frost station search, observation and station
catalogue responses.

Only the fields the search engine reads are declared; everything else in the
payloads is ignored.
"""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from station_climate.models import GeoPoint


def normalize_station_id(raw: str | int) -> str:
    """Strip the ``SN`` prefix and the ``:0`` sensor suffix from a source id."""
    text = str(raw)
    if ":" in text:
        text = text.rsplit(":", 1)[0]
    return text.removeprefix("SN")


class LocationValue(BaseModel):
    """Coordinates of a station over one location period."""

    latitude: float | None = None
    longitude: float | None = None
    elevation: float | None = Field(default=None, alias="elevation(masl/hs)")

    model_config = {"populate_by_name": True}

    def to_point(self) -> GeoPoint | None:
        """Convert to a GeoPoint, or None when coordinates are missing."""
        if self.latitude is None or self.longitude is None:
            return None
        return GeoPoint(lat=self.latitude, lon=self.longitude, elevation=self.elevation)


class StationLocation(BaseModel):
    """One entry of a station's location history."""

    from_: datetime | None = Field(default=None, alias="from")
    to: datetime | None = None
    value: LocationValue

    model_config = {"populate_by_name": True}


class StationInfo(BaseModel):
    location: list[StationLocation] = Field(default_factory=list)
    shortname: str | None = None


class ElementInfo(BaseModel):
    id: str
    name: str | None = None
    unit: str | None = None
    description: str | None = None


class SeriesExtra(BaseModel):
    element: ElementInfo
    station: StationInfo


class SeriesId(BaseModel):
    stationid: str
    level: int | None = None
    parameterid: int | None = None
    sensor: int | None = None

    @field_validator("stationid", mode="before")
    @classmethod
    def coerce_station_id(cls, v):
        """The beta API sends station ids as integers."""
        return normalize_station_id(v)


class AvailableRange(BaseModel):
    from_: datetime | None = Field(default=None, alias="from")
    to: datetime | None = None

    model_config = {"populate_by_name": True}


class SeriesHeader(BaseModel):
    id: SeriesId
    extra: SeriesExtra
    available: AvailableRange | None = None


class TimeSeries(BaseModel):
    """A station/element pair matched by the region query."""

    header: SeriesHeader

    @property
    def station_id(self) -> str:
        return self.header.id.stationid

    @property
    def element_id(self) -> str:
        return self.header.extra.element.id

    def representative_location(self) -> GeoPoint | None:
        """First location record, taken as representative of the station."""
        locations = self.header.extra.station.location
        if not locations:
            return None
        return locations[0].value.to_point()


class StationSearchData(BaseModel):
    tstype: str | None = None
    tseries: list[TimeSeries] = Field(default_factory=list)


class StationSearchResponse(BaseModel):
    """Response of the region/station-search query."""

    data: StationSearchData


class ObservationValue(BaseModel):
    elementId: str
    value: float
    unit: str | None = None
    qualityCode: int | None = None


class ObservationData(BaseModel):
    sourceId: str
    referenceTime: datetime
    observations: list[ObservationValue] = Field(default_factory=list)

    @property
    def station_id(self) -> str:
        return normalize_station_id(self.sourceId)


class ObservationsResponse(BaseModel):
    """Response of the observation-fetch query."""

    data: list[ObservationData] = Field(default_factory=list)


class CatalogueGeometry(BaseModel):
    """GeoJSON point, coordinates in [lon, lat] order."""

    coordinates: list[float]


class CatalogueStation(BaseModel):
    id: str
    name: str | None = None
    geometry: CatalogueGeometry
    masl: float | None = None

    @property
    def station_id(self) -> str:
        return normalize_station_id(self.id)

    def to_point(self) -> GeoPoint:
        lon, lat = self.geometry.coordinates[0], self.geometry.coordinates[1]
        return GeoPoint(lat=lat, lon=lon, elevation=self.masl)


class CatalogueResponse(BaseModel):
    """Station catalogue used by the nearest-series lookup."""

    data: list[CatalogueStation] = Field(default_factory=list)
