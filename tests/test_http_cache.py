"""
Tests for the requests-cache session used by the Frost transport.
"""

from unittest.mock import MagicMock, Mock, patch

import requests
import requests_cache

from station_climate import http_cache
from station_climate.http_cache import (
    _cache_ok,
    _key_with_auth,
    canonicalize_time_params,
    get_session,
    request,
)

OBS_URL = "https://frost.met.no/observations/v0.jsonld"


def prepared(headers=None, params=None):
    return requests.Request("GET", OBS_URL, headers=headers, params=params).prepare()


def fake_response(status: int, body=None, raises: bool = False) -> Mock:
    response = Mock()
    response.status_code = status
    if raises:
        response.json.side_effect = ValueError("not json")
    else:
        response.json.return_value = body
    return response


class TestCacheKeys:
    def test_client_id_is_part_of_key(self):
        a = _key_with_auth(prepared({"Authorization": "Basic YTo="}))
        b = _key_with_auth(prepared({"Authorization": "Basic Yjo="}))
        assert a != b

    def test_same_request_same_key(self):
        params = {"sources": "SN18700", "elements": "mean(air_temperature P1M)"}
        a = _key_with_auth(prepared({"Authorization": "Basic YTo="}, params))
        b = _key_with_auth(prepared({"Authorization": "Basic YTo="}, params))
        assert a == b

    def test_params_change_key(self):
        a = _key_with_auth(prepared(params={"sources": "SN18700"}))
        b = _key_with_auth(prepared(params={"sources": "SN4780"}))
        assert a != b

    def test_window_end_within_a_day_shares_key(self):
        a = _key_with_auth(
            prepared(params={"referencetime": "1800-01-01T00:00:00Z/2026-10-19T12:00:01Z"})
        )
        b = _key_with_auth(
            prepared(params={"referencetime": "1800-01-01T00:00:00Z/2026-10-19T12:00:07Z"})
        )
        assert a == b

    def test_window_end_on_another_day_changes_key(self):
        a = _key_with_auth(prepared(params={"time": "1800-01-01T00:00:00Z/2026-10-19T23:59:59Z"}))
        b = _key_with_auth(prepared(params={"time": "1800-01-01T00:00:00Z/2026-10-20T00:00:00Z"}))
        assert a != b

    def test_window_start_changes_key(self):
        a = _key_with_auth(prepared(params={"time": "1800-01-01T00:00:00Z/2026-10-19T12:00:00Z"}))
        b = _key_with_auth(prepared(params={"time": "1800-01-01T06:00:00Z/2026-10-19T12:00:00Z"}))
        assert a != b

    def test_sent_request_keeps_full_window(self):
        window = "1800-01-01T00:00:00Z/2026-10-19T12:00:01Z"
        req = prepared(params={"referencetime": window})
        _key_with_auth(req)
        assert "12%3A00%3A01Z" in req.url

    def test_canonicalize_time_params(self):
        params = {
            "from": "2025-01-01T00:00:00Z",
            "to": "2026-10-19T12:34:56Z",
            "time": "1800-01-01T00:00:00Z/2026-10-19T12:34:56Z",
            "sources": "SN18700",
        }
        assert canonicalize_time_params(params) == {
            "from": "2025-01-01T00:00:00Z",
            "to": "2026-10-19",
            "time": "1800-01-01T00:00:00Z/2026-10-19",
            "sources": "SN18700",
        }


class TestCacheFilter:
    def test_ok_payload_cached(self):
        assert _cache_ok(fake_response(200, {"data": []}))

    def test_errors_not_cached(self):
        assert not _cache_ok(fake_response(404, {"error": {"code": 404}}))
        assert not _cache_ok(fake_response(500))

    def test_error_body_not_cached(self):
        assert not _cache_ok(fake_response(200, {"error": {"message": "bad polygon"}}))

    def test_non_json_not_cached(self):
        assert not _cache_ok(fake_response(200, raises=True))


class TestSession:
    def test_test_session_is_used(self):
        assert isinstance(get_session(), requests_cache.CachedSession)

    def test_session_created_from_settings(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CACHE_NAME", str(tmp_path / "frost"))
        http_cache.reset_session()
        try:
            session = get_session()
            assert isinstance(session, requests_cache.CachedSession)
            assert get_session() is session
        finally:
            http_cache.reset_session()


class TestRequest:
    def test_cached_request(self):
        session = MagicMock()
        session.request.return_value = Mock(status_code=200, from_cache=True)
        http_cache.set_session_for_tests(session)

        response = request("GET", OBS_URL, params={"sources": "SN1"})

        assert response.status_code == 200
        session.request.assert_called_once_with(
            "GET", OBS_URL, force_refresh=False, params={"sources": "SN1"}
        )

    def test_refresh_skips_lookup(self):
        session = MagicMock()
        http_cache.set_session_for_tests(session)

        request("GET", OBS_URL, read_from_cache=False)

        assert session.request.call_args.kwargs["force_refresh"] is True

    def test_no_write_disables_cache(self):
        session = MagicMock()
        http_cache.set_session_for_tests(session)

        request("GET", OBS_URL, write_to_cache=False)

        session.cache_disabled.assert_called_once()
        session.request.assert_called_once_with("GET", OBS_URL)

    def test_cache_off_uses_plain_session(self):
        session = MagicMock()
        http_cache.set_session_for_tests(session)
        with patch("station_climate.http_cache.requests.Session") as plain_cls:
            plain = plain_cls.return_value.__enter__.return_value
            plain.request.return_value = Mock(status_code=404)

            response = request("GET", OBS_URL, read_from_cache=False, write_to_cache=False)

        assert response.status_code == 404
        session.request.assert_not_called()
