"""Tests for the tailnet control-plane client."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from flygate.errors import TailnetError
from flygate.tailnet.client import TailnetClient


def _response(status=200, payload=None, text=None):
    response = MagicMock()
    response.status_code = status
    response.ok = 200 <= status < 300
    response.reason = "Error"
    if text is None:
        text = "" if payload is None else "{...}"
    response.text = text
    response.json.return_value = payload
    return response


def _devices(*devices):
    return _response(payload={"devices": list(devices)})


@pytest.fixture
def client():
    return TailnetClient("tskey-api-test", base_url="https://api.example.test/api/v2/")


class TestTailnetClient:
    """Tests for TailnetClient."""

    def test_bearer_auth(self, client):
        assert client.session.headers["Authorization"] == "Bearer tskey-api-test"
        assert client.base_url == "https://api.example.test/api/v2"

    def test_list_devices(self, client):
        payload = {"id": "d1", "hostname": "laptop", "addresses": ["100.64.0.1"], "lastSeen": "2026-01-01"}
        with patch.object(client.session, "request", return_value=_devices(payload)) as request:
            devices = client.list_devices()

        assert devices[0].id == "d1"
        assert devices[0].last_seen == "2026-01-01"
        method, url = request.call_args.args
        assert method == "GET"
        assert url == "https://api.example.test/api/v2/tailnet/-/devices"

    def test_http_error(self, client):
        with patch.object(client.session, "request", return_value=_response(403, text="forbidden")):
            with pytest.raises(TailnetError) as exc_info:
                client.list_devices()

        assert exc_info.value.details == {"status": 403}
        assert "forbidden" in exc_info.value.message

    def test_connection_error(self, client):
        with patch.object(client.session, "request", side_effect=requests.exceptions.ConnectionError("down")):
            with pytest.raises(TailnetError):
                client.list_devices()

    def test_validate_api_key(self, client):
        with patch.object(client.session, "request", return_value=_devices()):
            assert client.validate_api_key()
        with patch.object(client.session, "request", return_value=_response(401)):
            assert not client.validate_api_key()

    def test_exact_hostname_wins(self, client):
        devices = _devices(
            {"id": "d2", "hostname": "router-browsers-ab12-1", "online": True},
            {"id": "d1", "hostname": "router-browsers-ab12", "online": False},
        )
        with patch.object(client.session, "request", return_value=devices):
            assert client.get_device_by_hostname("router-browsers-ab12").id == "d1"

    def test_renamed_device_prefers_online_then_recent(self, client):
        devices = _devices(
            {"id": "old", "hostname": "r-1", "online": False, "lastSeen": "2026-03-01"},
            {"id": "new", "hostname": "r-2", "online": True, "lastSeen": "2026-01-01"},
            {"id": "other", "hostname": "rr", "online": True},
        )
        with patch.object(client.session, "request", return_value=devices):
            assert client.get_device_by_hostname("r").id == "new"

    def test_device_not_found(self, client):
        with patch.object(client.session, "request", return_value=_devices()):
            assert client.get_device_by_hostname("nope") is None

    def test_approve_routes(self, client):
        with patch.object(client.session, "request", return_value=_response()) as request:
            client.approve_routes("d1", ["fdaa:0:1234::/48"])

        assert request.call_args.args == ("POST", "https://api.example.test/api/v2/device/d1/routes")
        assert request.call_args.kwargs["json"] == {"routes": ["fdaa:0:1234::/48"]}

    def test_split_dns(self, client):
        with patch.object(client.session, "request", return_value=_response()) as request:
            client.set_split_dns("browsers", ["100.64.0.7"])
            client.clear_split_dns("browsers")

        set_call, clear_call = request.call_args_list
        assert set_call.args[0] == "PATCH"
        assert set_call.args[1].endswith("/tailnet/-/dns/split-dns")
        assert set_call.kwargs["json"] == {"browsers": ["100.64.0.7"]}
        assert clear_call.kwargs["json"] == {"browsers": None}

    def test_wait_for_device(self, client):
        responses = [_devices(), _devices({"id": "d1", "hostname": "r"})]
        with patch.object(client.session, "request", side_effect=responses), \
                patch("flygate.tailnet.client.time.sleep") as sleep:
            device = client.wait_for_device("r", timeout=60, interval=5)

        assert device.id == "d1"
        sleep.assert_called_once_with(5)

    def test_wait_for_device_times_out(self, client):
        with patch.object(client.session, "request", return_value=_devices()), \
                patch("flygate.tailnet.client.time.sleep"), \
                patch("flygate.tailnet.client.time.monotonic", side_effect=[0.0, 10.0, 200.0]):
            with pytest.raises(TailnetError) as exc_info:
                client.wait_for_device("r", timeout=120)

        assert exc_info.value.details == {"hostname": "r"}
