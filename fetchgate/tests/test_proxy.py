"""Tests for ProxyLeaseClient: lease acquisition, call records and the call bracket."""

from unittest.mock import MagicMock

import pytest
import requests

from fetchgate.exceptions import ConfigurationError, ProviderError, TransportError
from fetchgate.factories import ProxyLeaseFactory, ProxySelectorFactory
from fetchgate.proxy import ProxyLease, ProxyLeaseClient


def provider_response(payload, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


@pytest.fixture
def client():
    return ProxyLeaseClient(base_url="http://proxy-provider.test/api/", token="t0ken")


@pytest.fixture
def mock_post(monkeypatch):
    post = MagicMock()
    monkeypatch.setattr("fetchgate.proxy.requests.post", post)
    return post


# ---------------------------------------------------------------------------
# acquire_lease
# ---------------------------------------------------------------------------
class TestAcquireLease:
    def test_successful_lease(self, client, mock_post):
        mock_post.return_value = provider_response(
            {
                "success": True,
                "message": "ok",
                "code": 200,
                "data": {"ip": "10.1.2.3", "port": 3128, "username": "u", "password": "p"},
            }
        )
        selector = ProxySelectorFactory(identifier="proxy-1", usage_tag="search", country_code="PL")

        lease = client.acquire_lease(selector)

        assert lease.exists is True
        assert lease.ip == "10.1.2.3"
        assert lease.port == 3128
        assert lease.credentials == ("u", "p")

        url = mock_post.call_args.args[0]
        kwargs = mock_post.call_args.kwargs
        assert url == "http://proxy-provider.test/api/connection-data"
        assert kwargs["json"]["proxy_internal_id"] == "proxy-1"
        assert kwargs["json"]["usage"] == "search"
        assert kwargs["json"]["country_iso_code"] == "PL"
        assert kwargs["headers"] == {"Authorization": "Bearer t0ken"}

    def test_not_found_in_dev_mode_yields_non_existing_lease(self, client, mock_post):
        mock_post.return_value = provider_response(
            {"success": False, "message": "no proxy", "code": 404}, status_code=404
        )

        lease = client.acquire_lease(ProxySelectorFactory())

        assert lease.exists is False

    def test_not_found_in_prod_mode_raises(self, client, mock_post, prod_mode):
        mock_post.return_value = provider_response(
            {"success": False, "message": "no proxy", "code": 404}, status_code=404
        )

        with pytest.raises(ProviderError) as exc_info:
            client.acquire_lease(ProxySelectorFactory())
        assert exc_info.value.code == 404

    def test_failure_response_raises(self, client, mock_post):
        mock_post.return_value = provider_response(
            {"success": False, "message": "quota exceeded", "code": 429}, status_code=429
        )

        with pytest.raises(ProviderError, match="quota exceeded"):
            client.acquire_lease(ProxySelectorFactory())

    def test_connection_error_raises_provider_error(self, client, mock_post):
        mock_post.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(ProviderError, match="connection refused"):
            client.acquire_lease(ProxySelectorFactory())

    def test_unreadable_response_raises_provider_error(self, client, mock_post):
        response = MagicMock()
        response.status_code = 502
        response.json.side_effect = ValueError("Expecting value")
        mock_post.return_value = response

        with pytest.raises(ProviderError) as exc_info:
            client.acquire_lease(ProxySelectorFactory())
        assert exc_info.value.code == 502

    def test_malformed_lease_raises_provider_error(self, client, mock_post):
        mock_post.return_value = provider_response(
            {"success": True, "code": 200, "data": {"ip": "10.1.2.3", "port": 99999}}
        )

        with pytest.raises(ProviderError, match="malformed"):
            client.acquire_lease(ProxySelectorFactory())

    def test_lease_for_disabled_selector_skips_provider(self, client, mock_post):
        assert client.lease_for(ProxySelectorFactory(enabled=False)) is None
        mock_post.assert_not_called()

    def test_base_url_falls_back_to_environment(self, monkeypatch):
        monkeypatch.setenv("PROXY_PROVIDER_URL", "http://from-env.test/")
        assert ProxyLeaseClient().base_url == "http://from-env.test"

    def test_missing_base_url_is_a_configuration_error(self, monkeypatch):
        monkeypatch.delenv("PROXY_PROVIDER_URL", raising=False)
        with pytest.raises(ConfigurationError):
            ProxyLeaseClient().acquire_lease(ProxySelectorFactory())


# ---------------------------------------------------------------------------
# Call records
# ---------------------------------------------------------------------------
class TestCallRecords:
    def test_open_call_record_returns_id(self, client, mock_post):
        mock_post.return_value = provider_response({"success": True, "code": 201, "data": {"call_id": 42}})

        call_id = client.open_call_record("10.1.2.3", 3128, "https://example.com")

        assert call_id == 42
        assert mock_post.call_args.kwargs["json"] == {
            "proxy_ip": "10.1.2.3",
            "proxy_port": 3128,
            "url": "https://example.com",
        }

    def test_open_call_record_without_id_raises(self, client, mock_post):
        mock_post.return_value = provider_response({"success": True, "code": 201, "data": {}})

        with pytest.raises(ProviderError):
            client.open_call_record("10.1.2.3", 3128, "https://example.com")

    def test_close_call_record_posts_outcome(self, client, mock_post):
        mock_post.return_value = provider_response({"success": True, "code": 200})

        client.close_call_record(42, succeeded=False)

        assert mock_post.call_args.args[0] == "http://proxy-provider.test/api/call-data/42"
        assert mock_post.call_args.kwargs["json"] == {"id": 42, "success": False}

    def test_close_call_record_failure_raises(self, client, mock_post):
        mock_post.return_value = provider_response({"success": False, "message": "unknown call", "code": 404})

        with pytest.raises(ProviderError, match="unknown call"):
            client.close_call_record(42, succeeded=True)


# ---------------------------------------------------------------------------
# tracked_call
# ---------------------------------------------------------------------------
class TestTrackedCall:
    def test_success_closes_once_as_succeeded(self, proxy_client):
        with proxy_client.tracked_call(proxy_client.lease, "https://example.com") as call_id:
            assert call_id is not None

        assert len(proxy_client.opened()) == 1
        assert proxy_client.closed() == [("close", call_id, True)]

    def test_error_closes_once_as_failed_and_propagates(self, proxy_client):
        with pytest.raises(RuntimeError):
            with proxy_client.tracked_call(proxy_client.lease, "https://example.com"):
                raise RuntimeError("boom")

        assert len(proxy_client.closed()) == 1
        assert proxy_client.closed()[0][2] is False

    def test_cancellation_closes_as_failed(self, proxy_client):
        with pytest.raises(KeyboardInterrupt):
            with proxy_client.tracked_call(proxy_client.lease, "https://example.com"):
                raise KeyboardInterrupt

        assert [e[2] for e in proxy_client.closed()] == [False]

    def test_failed_close_does_not_replace_the_request_error(self, monkeypatch, proxy_client):
        close = MagicMock(side_effect=ProviderError("provider down", code=503))
        monkeypatch.setattr(proxy_client, "close_call_record", close)

        with pytest.raises(TransportError, match="connection reset"):
            with proxy_client.tracked_call(proxy_client.lease, "https://example.com"):
                raise TransportError("connection reset", strategy="curl_cffi")

        close.assert_called_once()
        assert close.call_args.kwargs == {"succeeded": False}

    @pytest.mark.parametrize("lease", [None, ProxyLease.not_existing()])
    def test_no_record_without_existing_lease(self, proxy_client, lease):
        with proxy_client.tracked_call(lease, "https://example.com") as call_id:
            assert call_id is None

        assert proxy_client.events == []


# ---------------------------------------------------------------------------
# ProxyLease rendering
# ---------------------------------------------------------------------------
class TestProxyLease:
    def test_proxy_string_with_auth(self):
        lease = ProxyLeaseFactory(ip="10.0.0.9", port=8000, username="u", password="p")
        assert lease.proxy_string() == "u:p@10.0.0.9:8000"
        assert lease.proxy_string(with_auth=False) == "10.0.0.9:8000"

    def test_proxy_string_without_credentials(self):
        lease = ProxyLeaseFactory(ip="10.0.0.9", port=8000, username=None, password=None)
        assert lease.proxy_string() == "10.0.0.9:8000"
        assert lease.credentials is None
