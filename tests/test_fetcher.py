"""Tests for the Handbook Fetcher and network probes."""

import socket
from unittest.mock import MagicMock, patch

import pytest
import requests

from handbook_kernel.models.errors import FetchError, FetchTimeoutError
from handbook_kernel.sync.fetcher import HandbookFetcher, parse_envelope
from handbook_kernel.sync.network import HostReachability, StaticNetwork

API_URL = "http://handbook.local:3001/api/handbook"

SUCCESS_PAYLOAD = {
    "status": "success",
    "data": {
        "timestamp": 1700000000123.0,
        "office": [{
            "department": "Sales",
            "sortPriority": 1,
            "position": "Mgr",
            "fullName": "Jane Doe",
            "internalNumber": "101",
            "generalNumber": "100",
        }],
        "cabinets": [{"city": "Austin", "address": "1st Ave", "internalNumber": "6"}],
    },
}


def _response(status_code=200, payload=None, reason="OK"):
    resp = MagicMock()
    resp.status_code = status_code
    resp.reason = reason
    if isinstance(payload, Exception):
        resp.json.side_effect = payload
    else:
        resp.json.return_value = payload
    return resp


class TestParseEnvelope:
    def test_success(self):
        snapshot = parse_envelope(SUCCESS_PAYLOAD)
        assert snapshot.timestamp == 1700000000123.0
        assert snapshot.office[0].full_name == "Jane Doe"

    def test_error_status_uses_server_message(self):
        with pytest.raises(FetchError, match="Failed to load handbook data."):
            parse_envelope({"status": "error", "message": "Failed to load handbook data."})

    def test_not_an_object(self):
        with pytest.raises(FetchError):
            parse_envelope(["status", "success"])

    def test_missing_data(self):
        with pytest.raises(FetchError):
            parse_envelope({"status": "success"})


class TestHandbookFetcher:
    @patch("handbook_kernel.sync.fetcher.requests.get")
    def test_fetch_success(self, mock_get):
        mock_get.return_value = _response(payload=SUCCESS_PAYLOAD)
        snapshot = HandbookFetcher(API_URL, timeout_seconds=3).fetch()

        assert snapshot.cabinets[0].city == "Austin"
        args, kwargs = mock_get.call_args
        assert args[0] == API_URL
        assert kwargs["timeout"] == 3

    @patch("handbook_kernel.sync.fetcher.requests.get")
    def test_timeout(self, mock_get):
        mock_get.side_effect = requests.Timeout("read timed out")
        with pytest.raises(FetchTimeoutError):
            HandbookFetcher(API_URL).fetch()

    @patch("handbook_kernel.sync.fetcher.requests.get")
    def test_connection_error(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("refused")
        with pytest.raises(FetchError) as exc_info:
            HandbookFetcher(API_URL).fetch()
        assert not isinstance(exc_info.value, FetchTimeoutError)

    @patch("handbook_kernel.sync.fetcher.requests.get")
    def test_http_error_status(self, mock_get):
        mock_get.return_value = _response(500, {"status": "error"}, reason="Internal Server Error")
        with pytest.raises(FetchError, match="HTTP 500"):
            HandbookFetcher(API_URL).fetch()

    @patch("handbook_kernel.sync.fetcher.requests.get")
    def test_invalid_json(self, mock_get):
        mock_get.return_value = _response(payload=ValueError("Expecting value"))
        with pytest.raises(FetchError, match="Invalid JSON"):
            HandbookFetcher(API_URL).fetch()


class TestNetworkProbes:
    def test_static_network(self):
        assert StaticNetwork(True)()
        assert not StaticNetwork(False)()

    def test_host_and_port_from_url(self):
        probe = HostReachability("https://handbook.example/api/handbook")
        assert probe.host == "handbook.example"
        assert probe.port == 443

    @patch("handbook_kernel.sync.network.socket.create_connection")
    def test_reachable(self, mock_connect):
        mock_connect.return_value = MagicMock()
        assert HostReachability(API_URL)() is True
        assert mock_connect.call_args[0][0] == ("handbook.local", 3001)

    @patch("handbook_kernel.sync.network.socket.create_connection")
    def test_unreachable(self, mock_connect):
        mock_connect.side_effect = socket.timeout("timed out")
        assert HostReachability(API_URL)() is False
