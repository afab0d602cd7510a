"""CLI interface for climate estimates and nearest-station series."""

import json
import sys
from datetime import datetime
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from station_climate.climate import ClimateResult, ClimateService, NearestSeriesService
from station_climate.climate.elements import element_variable
from station_climate.climate.nearest import NoCompleteStationError
from station_climate.logging_config import get_logger, setup_logging
from station_climate.models import TimeRange
from station_climate.transport import ApiException

console = Console()
logger = get_logger(__name__)

DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S"]


@click.group()
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Set logging level",
)
@click.option("--no-log-file", is_flag=True, help="Log to the console only")
def climate_cli(log_level: str, no_log_file: bool) -> None:
    """Climate estimates from weather-station observations."""
    setup_logging(level=log_level.upper(), enable_file_logging=not no_log_file)


def _time_range(
    start: datetime | None, end: datetime | None, default: TimeRange
) -> TimeRange | None:
    if start is None and end is None:
        return None
    return TimeRange(start=start or default.start, end=end or default.end)


def _write_json(output: str, payload: dict) -> None:
    output_path = Path(output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(payload, f, indent=2, default=str)
    console.print(f"💾 Saved results to {output_path}")


def render_result(result: ClimateResult) -> Table:
    """One row per time bucket, one column per estimated element."""
    table = Table(
        title=f"Climate estimate: {result.location.lat:.4f}, {result.location.lon:.4f}"
    )
    table.add_column("Bucket", style="cyan", justify="right")
    for element in result.estimates:
        table.add_column(element_variable(element), justify="right")

    length = max((len(est.values) for est in result.estimates.values()), default=0)
    for index in range(length):
        row = [str(index + 1)]
        for estimate in result.estimates.values():
            row.append(f"{estimate.values[index]:.2f}" if index < len(estimate.values) else "")
        table.add_row(*row)
    return table


@climate_cli.command(name="estimate")
@click.option("--lat", type=float, required=True, help="Latitude in decimal degrees")
@click.option("--lon", type=float, required=True, help="Longitude in decimal degrees")
@click.option("--elevation", type=float, help="Target elevation in metres")
@click.option(
    "--element",
    "elements",
    multiple=True,
    help="Element id, e.g. 'mean(air_temperature P1M)' (repeatable)",
)
@click.option("--start", type=click.DateTime(formats=DATE_FORMATS), help="Window start (UTC)")
@click.option("--end", type=click.DateTime(formats=DATE_FORMATS), help="Window end (UTC)")
@click.option("--output", "-o", help="Output file path (JSON)")
def estimate_climate(
    lat: float,
    lon: float,
    elevation: float | None,
    elements: tuple[str, ...],
    start: datetime | None,
    end: datetime | None,
    output: str | None,
) -> None:
    """Estimate climate series at a point from nearby stations."""
    try:
        service = ClimateService()
        time_range = _time_range(start, end, service.default_time_range())

        console.print(f"🌍 Estimating climate for {lat:.4f}, {lon:.4f}")
        result = service.estimate(lat, lon, elevation, list(elements) or None, time_range)
    except ApiException as e:
        logger.error(f"Climate estimate failed: {e}")
        console.print(f"❌ API error: {e.error_code.name}")
        sys.exit(1)

    if not result.estimates:
        console.print("⚠️  No element could be estimated")
    else:
        console.print(render_result(result))
        for element, estimate in result.estimates.items():
            corrected = " (elevation corrected)" if estimate.correction_applied else ""
            console.print(
                f"  {element}: {estimate.mode.value}, "
                f"{len(estimate.contributing_stations)} stations{corrected}"
            )
    metrics = result.get_coverage_metrics()
    console.print(
        f"📊 Estimated {metrics['estimated_count']} elements, "
        f"📡 remote calls: {metrics['remote_calls']}"
    )

    if output:
        _write_json(output, result.model_dump(mode="json"))


@climate_cli.command(name="nearest")
@click.option("--lat", type=float, required=True, help="Latitude in decimal degrees")
@click.option("--lon", type=float, required=True, help="Longitude in decimal degrees")
@click.option("--element", help="Element id (defaults to hourly shortwave flux)")
@click.option("--output", "-o", help="Output file path (JSON)")
def nearest_series(
    lat: float, lon: float, element: str | None, output: str | None
) -> None:
    """Series of the closest station with a complete short window."""
    try:
        series = NearestSeriesService().fetch_nearest_series(lat, lon, element)
    except ApiException as e:
        logger.error(f"Nearest series lookup failed: {e}")
        console.print(f"❌ API error: {e.error_code.name}")
        sys.exit(1)
    except NoCompleteStationError as e:
        console.print(f"❌ {e}")
        sys.exit(1)

    console.print(
        f"🎯 Station {series.station_id} at {series.distance_km:.1f} km ({series.element})"
    )
    table = Table(title="Nearest station series")
    table.add_column("Bucket", style="cyan", justify="right")
    table.add_column("Value", style="green", justify="right")
    for index, value in enumerate(series.values, start=1):
        table.add_row(str(index), f"{value:.2f}")
    console.print(table)

    if output:
        _write_json(output, series.model_dump(mode="json"))
