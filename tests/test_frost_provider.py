"""Tests for the Frost provider with the transport mocked out."""

import base64
from datetime import UTC, datetime
from unittest.mock import patch

import pytest

from station_climate.climate.providers.frost import FrostProvider, basic_auth_header
from station_climate.climate.query import (
    SearchRegion,
    StationSearchQuery,
    build_observation_query,
)
from station_climate.models import TimeRange
from station_climate.transport import ApiError, ApiException

TEMP = "mean(air_temperature P1M)"
WINDOW = TimeRange(
    start=datetime(2025, 1, 1, tzinfo=UTC), end=datetime(2025, 1, 2, 6, 0, tzinfo=UTC)
)

SEARCH_QUERY = StationSearchQuery(
    elements=[TEMP],
    time_range=WINDOW,
    regions=[
        SearchRegion(
            polygon=[(60.0, 10.0), (60.1, 10.1), (59.9, 10.2)], inner_km=0.0, outer_km=20.0
        )
    ],
)

SEARCH_PAYLOAD = {
    "data": {
        "tstype": "met.no/filter",
        "tseries": [
            {
                "header": {
                    "id": {"stationid": 18700, "level": 0, "sensor": 0},
                    "extra": {
                        "element": {"id": TEMP, "unit": "degC"},
                        "station": {
                            "shortname": "Oslo - Blindern",
                            "location": [
                                {
                                    "from": "1937-01-01T00:00:00Z",
                                    "to": "2100-01-01T00:00:00Z",
                                    "value": {
                                        "elevation(masl/hs)": "94",
                                        "latitude": "59.9423",
                                        "longitude": "10.72",
                                    },
                                }
                            ],
                        },
                    },
                    "available": {"from": "1937-01-01T00:00:00Z"},
                }
            }
        ],
    }
}

OBSERVATIONS_PAYLOAD = {
    "@context": "https://frost.met.no/schema",
    "data": [
        {
            "sourceId": "SN18700:0",
            "referenceTime": "2020-01-01T00:00:00.000Z",
            "observations": [{"elementId": TEMP, "value": -3.1, "unit": "degC"}],
        }
    ],
}

CATALOGUE_PAYLOAD = {
    "data": [
        {
            "id": "SN18700",
            "name": "OSLO - BLINDERN",
            "geometry": {"type": "Point", "coordinates": [10.72, 59.9423]},
            "masl": 94,
        }
    ]
}


@pytest.fixture
def provider(monkeypatch):
    monkeypatch.setenv("FROST_CLIENT_ID", "test-client")
    return FrostProvider()


class TestFrostProvider:
    def test_basic_auth_header(self):
        header = basic_auth_header("abc-123")
        token = header["Authorization"].removeprefix("Basic ")
        assert base64.b64decode(token) == b"abc-123:"

    def test_client_id_from_environment(self, provider):
        assert provider.client_id == "test-client"
        assert provider.get_provider_info()["authenticated"] is True

    def test_missing_client_id(self):
        with patch(
            "station_climate.climate.providers.frost.get_api_key", return_value=None
        ) as mock_key:
            provider = FrostProvider()
        mock_key.assert_called_once_with("FROST_CLIENT_ID")
        assert provider.client_id is None
        assert provider.get_provider_info()["authenticated"] is False

    def test_explicit_client_id_wins(self, provider):
        with patch("station_climate.climate.providers.frost.get_api_key") as mock_key:
            explicit = FrostProvider(client_id="other")
        mock_key.assert_not_called()
        assert explicit.client_id == "other"

    def test_search_parsed(self, provider):
        with patch(
            "station_climate.climate.providers.frost.http_request",
            return_value=SEARCH_PAYLOAD,
        ) as mock_http:
            response = provider.search_stations(SEARCH_QUERY)

        series = response.data.tseries[0]
        assert series.station_id == "18700"
        assert series.element_id == TEMP
        location = series.representative_location()
        assert location.lat == pytest.approx(59.9423)
        assert location.elevation == pytest.approx(94.0)

        args, kwargs = mock_http.call_args
        assert args[0] == "https://frost-beta.met.no/api/v1/obs/met.no/filter/get"
        assert kwargs["headers"] == basic_auth_header("test-client")
        assert kwargs["params"]["incobs"] == "false"
        assert kwargs["max_retries"] == 3

    def test_observations_parsed(self, provider):
        query = build_observation_query(["18700"], [TEMP], WINDOW)
        with patch(
            "station_climate.climate.providers.frost.http_request",
            return_value=OBSERVATIONS_PAYLOAD,
        ) as mock_http:
            response = provider.fetch_observations(query)

        record = response.data[0]
        assert record.station_id == "18700"
        assert record.referenceTime.month == 1
        assert record.observations[0].value == pytest.approx(-3.1)
        assert mock_http.call_args.kwargs["params"]["sources"] == "SN18700"

    def test_no_data(self, provider):
        query = build_observation_query(["18700"], [TEMP], WINDOW)
        with patch("station_climate.climate.providers.frost.http_request", return_value=None):
            assert provider.fetch_observations(query) is None

    def test_unexpected_payload(self, provider):
        query = build_observation_query(["18700"], [TEMP], WINDOW)
        with patch(
            "station_climate.climate.providers.frost.http_request",
            return_value={"data": [{"referenceTime": "not a time"}]},
        ):
            with pytest.raises(ApiException) as exc_info:
                provider.fetch_observations(query)
        assert exc_info.value.error_code is ApiError.UNKNOWN

    def test_catalogue_is_unauthenticated(self, provider):
        with patch(
            "station_climate.climate.providers.frost.http_request",
            return_value=CATALOGUE_PAYLOAD,
        ) as mock_http:
            response = provider.list_catalogue_stations(TEMP, WINDOW)

        station = response.data[0]
        assert station.station_id == "18700"
        assert station.to_point().lat == pytest.approx(59.9423)
        assert station.to_point().lon == pytest.approx(10.72)

        kwargs = mock_http.call_args.kwargs
        assert kwargs["headers"] == {}
        assert kwargs["params"] == {
            "weatherElements": TEMP,
            "from": "2025-01-01T00:00:00Z",
            "to": "2025-01-02T06:00:00Z",
        }

    def test_transport_errors_propagate(self, provider):
        query = build_observation_query(["18700"], [TEMP], WINDOW)
        with patch(
            "station_climate.climate.providers.frost.http_request",
            side_effect=ApiException(ApiError.AUTHORIZATION),
        ):
            with pytest.raises(ApiException) as exc_info:
                provider.fetch_observations(query)
        assert exc_info.value.error_code is ApiError.AUTHORIZATION

