"""
Pydantic models shared by the station search, the remote schemas and the CLI.
"""

from datetime import UTC, datetime

from pydantic import BaseModel, Field, model_validator


class GeoPoint(BaseModel):
    """Geographic point, optionally with elevation in metres above sea level."""

    lat: float = Field(ge=-90, le=90, description="Latitude in decimal degrees")
    lon: float = Field(ge=-180, le=180, description="Longitude in decimal degrees")
    elevation: float | None = Field(
        default=None, description="Elevation in metres, None when unknown"
    )

    model_config = {"frozen": True}


class TimeRange(BaseModel):
    """Closed reference-time interval used by every remote query."""

    start: datetime = Field(description="Interval start (timezone aware)")
    end: datetime = Field(description="Interval end (timezone aware)")

    @model_validator(mode="after")
    def normalize_to_utc(self) -> "TimeRange":
        """Naive datetimes are taken as UTC; the interval must not be reversed."""
        start = self.start if self.start.tzinfo else self.start.replace(tzinfo=UTC)
        end = self.end if self.end.tzinfo else self.end.replace(tzinfo=UTC)
        if end < start:
            raise ValueError("time range end is before its start")
        object.__setattr__(self, "start", start.astimezone(UTC))
        object.__setattr__(self, "end", end.astimezone(UTC))
        return self

    @classmethod
    def until_now(cls, start: datetime) -> "TimeRange":
        """Interval from ``start`` to the current instant."""
        return cls(start=start, end=datetime.now(UTC))

    def to_iso_interval(self) -> str:
        """Render as ``start/end`` ISO-8601 instants, e.g. ``1800-01-01T00:00:00Z/...``."""
        fmt = "%Y-%m-%dT%H:%M:%SZ"
        return f"{self.start.strftime(fmt)}/{self.end.strftime(fmt)}"
