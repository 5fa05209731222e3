"""Tests for cookie harvesting."""

from unittest.mock import MagicMock

import pytest

from fetchgate.exceptions import TransportError
from fetchgate.fetchers.base import FetchResult
from fetchgate.fetchers.cookies import CookiePrefetcher, cookie_pairs
from fetchgate.fetchers.curl_cffi_fetcher import CurlCffiFetcher


def fetcher_returning(result):
    fetcher = MagicMock()
    fetcher.name = "curl_cffi"
    fetcher.fetch.return_value = result
    return fetcher


class TestCookiePairs:
    def test_attributes_are_dropped(self):
        values = ["sid=abc; Path=/; HttpOnly", "lang=pl;Secure", " theme=dark "]
        assert cookie_pairs(values) == ["sid=abc", "lang=pl", "theme=dark"]

    def test_empty_values_are_skipped(self):
        assert cookie_pairs(["", "; Path=/"]) == []


class TestCookiePrefetcher:
    def test_harvest_joins_pairs(self):
        fetcher = fetcher_returning(
            FetchResult(body="", headers={"set-cookie": ["a=1; Path=/", "b=2; Secure"]})
        )

        assert CookiePrefetcher(fetcher).harvest("https://example.com/") == "a=1;b=2"

    def test_harvest_without_cookies_is_empty(self):
        fetcher = fetcher_returning(FetchResult(body="<html></html>", headers={"server": ["nginx"]}))

        assert CookiePrefetcher(fetcher).harvest("https://example.com/") == ""

    def test_harvest_fetches_source_url_without_proxy_or_escalation(self):
        fetcher = fetcher_returning(FetchResult(body=""))

        CookiePrefetcher(fetcher).harvest("https://example.com/home")

        config = fetcher.fetch.call_args.args[0]
        assert config.target_url == "https://example.com/home"
        assert config.proxy.enabled is False
        assert config.allow_unlock_escalation is False

    def test_fetch_errors_propagate(self):
        fetcher = MagicMock()
        fetcher.name = "curl_cffi"
        fetcher.fetch.side_effect = TransportError("refused", strategy="curl_cffi")

        with pytest.raises(TransportError):
            CookiePrefetcher(fetcher).harvest("https://example.com/")

    def test_blocked_looking_source_is_not_retried(self, monkeypatch, proxy_client, prod_mode):
        response = MagicMock(
            text="suspicious activity",
            status_code=403,
            headers=[("CF-Ray", "1"), ("Set-Cookie", "__cf_bm=xyz; HttpOnly")],
        )
        request = MagicMock(return_value=response)
        monkeypatch.setattr("fetchgate.fetchers.curl_cffi_fetcher.curl_requests.request", request)

        cookies = CookiePrefetcher(CurlCffiFetcher(proxy_client)).harvest("https://example.com/")

        assert cookies == "__cf_bm=xyz"
        assert request.call_count == 1
        assert proxy_client.events == []
