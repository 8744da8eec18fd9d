"""Tests for the Outside Observations proxy client."""

import asyncio
from unittest.mock import Mock, patch

import httpx
import pytest

from archive_gate.observations_client import (
    COMPARE_CONFIG_MESSAGES,
    QUERY_CONFIG_MESSAGES,
    SERVER_CONFIG_MESSAGES,
    ObservationsAPIError,
    ObservationsClient,
)


def settings_mock(**overrides):
    values = dict(
        outside_observations_api_base_url="https://observations.example",
        outside_observations_api_key="env-key",
        observations_timeout_s=5.0,
    )
    values.update(overrides)
    return Mock(**values)


def run(coro):
    return asyncio.run(coro)


class TestClientConfiguration:
    """Tests for configuration handling."""

    @patch("archive_gate.observations_client.get_settings")
    def test_reads_settings(self, mock_settings):
        mock_settings.return_value = settings_mock()
        client = ObservationsClient()
        assert client.base_url == "https://observations.example"
        assert client.api_key == "env-key"
        assert client.timeout_s == 5.0
        assert client.configured

    @patch("archive_gate.observations_client.get_settings")
    def test_arguments_override_settings(self, mock_settings):
        mock_settings.return_value = settings_mock()
        client = ObservationsClient(base_url="http://other", api_key="arg-key")
        assert client.base_url == "http://other"
        assert client.api_key == "arg-key"

    @patch("archive_gate.observations_client.get_settings")
    def test_build_url_normalises_slashes(self, mock_settings):
        mock_settings.return_value = settings_mock()
        client = ObservationsClient(base_url="https://observations.example///")
        assert client.build_url("api/x") == "https://observations.example/api/x"
        assert client.build_url("/api/x") == "https://observations.example/api/x"

    @patch("archive_gate.observations_client.get_settings")
    def test_missing_key_reported_first(self, mock_settings):
        mock_settings.return_value = settings_mock(
            outside_observations_api_key=None,
            outside_observations_api_base_url=None,
        )
        client = ObservationsClient()
        assert not client.configured

        with pytest.raises(ObservationsAPIError) as exc_info:
            run(client.get_all_images())

        assert exc_info.value.status_code == 500
        assert "OUTSIDE_OBSERVATIONS_API_KEY" in exc_info.value.message

    @patch("archive_gate.observations_client.get_settings")
    def test_missing_base_url(self, mock_settings):
        mock_settings.return_value = settings_mock(outside_observations_api_base_url=None)
        client = ObservationsClient()

        with pytest.raises(ObservationsAPIError) as exc_info:
            run(client.get_all_images())

        assert "OUTSIDE_OBSERVATIONS_API_BASE_URL" in exc_info.value.message

    @patch("archive_gate.observations_client.get_settings")
    def test_check_configured_uses_given_messages(self, mock_settings):
        mock_settings.return_value = settings_mock(outside_observations_api_key=None)
        client = ObservationsClient()

        with pytest.raises(ObservationsAPIError) as exc_info:
            client.check_configured(QUERY_CONFIG_MESSAGES)
        assert exc_info.value.message == QUERY_CONFIG_MESSAGES.api_key
        assert exc_info.value.status_code == 500

        with pytest.raises(ObservationsAPIError) as exc_info:
            client.check_configured()
        assert exc_info.value.message == COMPARE_CONFIG_MESSAGES.api_key

    @patch("archive_gate.observations_client.get_settings")
    def test_operations_report_their_own_wording(self, mock_settings):
        mock_settings.return_value = settings_mock(outside_observations_api_key=None)
        client = ObservationsClient()

        expected = [
            (client.query_vector_store("dusk"), "Vector store API key is not configured."),
            (client.add_image("a", "d"), "API key is not configured on the server."),
            (client.delete_image("a"), "API key is not configured on the server."),
            (client.update_item("a", "d"), "API key is not configured. Set"),
            (client.compare_items({}, {}), "API key is not configured. Please set"),
        ]
        for coro, prefix in expected:
            with pytest.raises(ObservationsAPIError) as exc_info:
                run(coro)
            assert exc_info.value.message.startswith(prefix)

    @patch("archive_gate.observations_client.get_settings")
    def test_missing_base_url_wording(self, mock_settings):
        mock_settings.return_value = settings_mock(outside_observations_api_base_url=None)
        client = ObservationsClient()

        with pytest.raises(ObservationsAPIError) as exc_info:
            client.check_configured(SERVER_CONFIG_MESSAGES)
        assert exc_info.value.message == SERVER_CONFIG_MESSAGES.base_url


class TestForward:
    """Tests for request forwarding and error relay."""

    def make_client(self, handler):
        with patch("archive_gate.observations_client.get_settings") as mock_settings:
            mock_settings.return_value = settings_mock()
            return ObservationsClient(transport=httpx.MockTransport(handler))

    def test_success_relays_json(self):
        client = self.make_client(lambda r: httpx.Response(200, json={"ok": True}))
        assert run(client.compare_items({"id": 1}, {"id": 2})) == {"ok": True}

    def test_error_prefers_upstream_error_field(self):
        client = self.make_client(
            lambda r: httpx.Response(404, json={"error": "No such item", "message": "ignored"})
        )
        with pytest.raises(ObservationsAPIError) as exc_info:
            run(client.update_item("abc", "fog"))

        err = exc_info.value
        assert err.status_code == 404
        assert err.message == "No such item"
        assert err.details == {"error": "No such item", "message": "ignored"}

    def test_error_with_text_body(self):
        client = self.make_client(lambda r: httpx.Response(502, text="Bad Gateway"))
        with pytest.raises(ObservationsAPIError) as exc_info:
            run(client.query_vector_store("dusk"))

        err = exc_info.value
        assert err.status_code == 502
        assert err.message == "Vector store query failed: 502 Bad Gateway"
        assert err.details == "Bad Gateway"
        assert err.to_dict() == {"error": err.message, "details": "Bad Gateway"}

    def test_transport_error_is_500(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out")

        client = self.make_client(handler)
        with pytest.raises(ObservationsAPIError) as exc_info:
            run(client.compare_images("a", "b"))

        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "Failed to compare images."
        assert "timed out" in exc_info.value.details

    def test_sends_once(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500, json={"error": "boom"})

        client = self.make_client(handler)
        with pytest.raises(ObservationsAPIError):
            run(client.add_image("abc", "fog"))
        assert len(calls) == 1

    def test_to_dict_without_details(self):
        assert ObservationsAPIError("nope").to_dict() == {"error": "nope"}
