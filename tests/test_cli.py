"""Tests for the command line interface."""

import json
from datetime import UTC, datetime
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from station_climate import __version__
from station_climate.cli import main
from station_climate.climate.models import ClimateEstimate, ClimateResult, Mode, NearestSeries
from station_climate.climate.nearest import NoCompleteStationError
from station_climate.models import GeoPoint, TimeRange
from station_climate.transport import ApiError, ApiException

TEMP = "mean(air_temperature P1M)"


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def mock_setup_logging():
    with patch("station_climate.cli_climate.setup_logging") as mock:
        yield mock


@pytest.fixture
def climate_service():
    with patch("station_climate.cli_climate.ClimateService") as mock_cls:
        service = mock_cls.return_value
        service.default_time_range.return_value = TimeRange(
            start=datetime(1800, 1, 1, tzinfo=UTC), end=datetime(2025, 1, 1, tzinfo=UTC)
        )
        yield service


def result_with(*estimates: ClimateEstimate, remote_calls: int = 2) -> ClimateResult:
    return ClimateResult(
        location=GeoPoint(lat=59.91, lon=10.75),
        estimates={e.element: e for e in estimates},
        remote_calls=remote_calls,
    )


class TestMainCLI:
    def test_main_help(self, runner):
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "climate" in result.output

    def test_main_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_climate_subcommands(self, runner):
        result = runner.invoke(main, ["climate", "--help"])
        assert result.exit_code == 0
        assert "estimate" in result.output
        assert "nearest" in result.output

    def test_invalid_command(self, runner):
        result = runner.invoke(main, ["invalid-command"])
        assert result.exit_code != 0


class TestEstimateCommand:
    def test_estimate_prints_table(self, runner, climate_service, mock_setup_logging):
        climate_service.estimate.return_value = result_with(
            ClimateEstimate(
                element=TEMP,
                mode=Mode.NEAREST,
                values=[float(m) for m in range(12)],
                contributing_stations=["18700"],
            )
        )

        result = runner.invoke(
            main,
            ["climate", "--log-level", "debug", "--no-log-file", "estimate",
             "--lat", "59.91", "--lon", "10.75", "--element", TEMP],
        )

        assert result.exit_code == 0, result.output
        assert "nearest" in result.output
        assert "11.00" in result.output
        assert "remote calls: 2" in result.output
        climate_service.estimate.assert_called_once_with(59.91, 10.75, None, [TEMP], None)
        mock_setup_logging.assert_called_once_with(level="DEBUG", enable_file_logging=False)

    def test_window_options(self, runner, climate_service):
        climate_service.estimate.return_value = result_with()

        result = runner.invoke(
            main,
            ["climate", "estimate", "--lat", "60", "--lon", "10", "--elevation", "450",
             "--start", "2000-01-01"],
        )

        assert result.exit_code == 0, result.output
        args = climate_service.estimate.call_args.args
        assert args[2] == 450.0
        # No --element: the service picks its defaults
        assert args[3] is None
        time_range = args[4]
        assert time_range.start == datetime(2000, 1, 1, tzinfo=UTC)
        assert time_range.end == datetime(2025, 1, 1, tzinfo=UTC)

    def test_nothing_estimated(self, runner, climate_service):
        climate_service.estimate.return_value = result_with(remote_calls=4)

        result = runner.invoke(main, ["climate", "estimate", "--lat", "0", "--lon", "0"])

        assert result.exit_code == 0
        assert "No element could be estimated" in result.output
        assert "remote calls: 4" in result.output

    def test_api_error_exits_nonzero(self, runner, climate_service):
        climate_service.estimate.side_effect = ApiException(ApiError.AUTHORIZATION)

        result = runner.invoke(main, ["climate", "estimate", "--lat", "0", "--lon", "0"])

        assert result.exit_code == 1
        assert "API error: AUTHORIZATION" in result.output

    def test_output_file(self, runner, climate_service, tmp_path):
        climate_service.estimate.return_value = result_with(
            ClimateEstimate(
                element=TEMP, mode=Mode.INTERPOLATION, values=[1.5] * 12,
                contributing_stations=["1", "2"],
            )
        )
        output = tmp_path / "out" / "estimate.json"

        result = runner.invoke(
            main, ["climate", "estimate", "--lat", "0", "--lon", "0", "-o", str(output)]
        )

        assert result.exit_code == 0, result.output
        payload = json.loads(output.read_text())
        assert payload["estimates"][TEMP]["mode"] == "interpolation"
        assert payload["estimates"][TEMP]["values"] == [1.5] * 12
        assert payload["remote_calls"] == 2

    def test_missing_coordinates(self, runner, climate_service):
        result = runner.invoke(main, ["climate", "estimate", "--lat", "0"])
        assert result.exit_code == 2
        climate_service.estimate.assert_not_called()


class TestNearestCommand:
    @pytest.fixture
    def nearest_service(self):
        with patch("station_climate.cli_climate.NearestSeriesService") as mock_cls:
            yield mock_cls.return_value

    def test_nearest_prints_series(self, runner, nearest_service):
        nearest_service.fetch_nearest_series.return_value = NearestSeries(
            element="mean(surface_downwelling_shortwave_flux_in_air PT1H)",
            station_id="18700",
            distance_km=4.2,
            values=[0.0] * 6 + [123.0] * 18,
        )

        result = runner.invoke(main, ["climate", "nearest", "--lat", "59.9", "--lon", "10.7"])

        assert result.exit_code == 0, result.output
        assert "Station 18700 at 4.2 km" in result.output
        assert "123.00" in result.output
        nearest_service.fetch_nearest_series.assert_called_once_with(59.9, 10.7, None)

    def test_no_complete_station(self, runner, nearest_service):
        nearest_service.fetch_nearest_series.side_effect = NoCompleteStationError("none")

        result = runner.invoke(main, ["climate", "nearest", "--lat", "0", "--lon", "0"])

        assert result.exit_code == 1

    def test_api_error(self, runner, nearest_service):
        nearest_service.fetch_nearest_series.side_effect = ApiException(ApiError.NETWORK)

        result = runner.invoke(main, ["climate", "nearest", "--lat", "0", "--lon", "0"])

        assert result.exit_code == 1
        assert "API error: NETWORK" in result.output
