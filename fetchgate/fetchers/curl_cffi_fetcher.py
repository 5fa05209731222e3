"""CurlCffiFetcher: library HTTP engine with browser TLS impersonation via curl-cffi."""

from __future__ import annotations

from curl_cffi import requests as curl_requests
from curl_cffi.requests.exceptions import RequestException
from loguru import logger

from fetchgate.config import FetchConfiguration
from fetchgate.exceptions import TransportError
from fetchgate.proxy import ProxyLease, ProxyLeaseClient

from .base import Escalatable, FetchResult, normalize_headers


class CurlCffiFetcher(Escalatable):
    """Fetcher using curl-cffi with browser TLS fingerprint impersonation."""

    name = "curl_cffi"

    # None lets the impersonation profile supply a matching user agent.
    default_user_agent: str | None = None

    def __init__(self, proxy_client: ProxyLeaseClient | None = None, impersonate: str = "chrome"):
        self.proxy_client = proxy_client or ProxyLeaseClient()
        self.impersonate = impersonate

    def fetch(self, config: FetchConfiguration) -> FetchResult:
        """Fetch ``config.target_url``. Raises TransportError on connection failure.

        HTTP error statuses are not failures: the body is returned with its status.
        """
        url = config.target_url
        lease = self.proxy_client.lease_for(config.proxy)
        request_kwargs = self._build_request_kwargs(config, lease)

        logger.debug(f"Fetching {url} with curl-cffi (proxy={'yes' if request_kwargs.get('proxies') else 'no'})")
        with self.proxy_client.tracked_call(lease, url):
            try:
                response = curl_requests.request(config.method, url, **request_kwargs)
            except RequestException as exc:
                raise TransportError(
                    f"curl-cffi connection failed: {exc}", strategy=self.name
                ) from exc

        return FetchResult(
            body=response.text,
            headers=normalize_headers(response.headers),
            status_code=response.status_code,
            strategy_used=self.name,
            url=url,
        )

    def _build_request_kwargs(self, config: FetchConfiguration, lease: ProxyLease | None) -> dict:
        headers = config.request_headers()
        user_agent = config.user_agent or config.header("user-agent") or self.default_user_agent
        if user_agent:
            headers = {k: v for k, v in headers.items() if k.lower() != "user-agent"}
            headers["User-Agent"] = user_agent

        kwargs = {
            "headers": headers,
            "impersonate": self.impersonate,
            "timeout": config.connection_timeout_seconds,
            "allow_redirects": config.max_redirects > 0,
            "max_redirects": config.max_redirects,
            "verify": False,
        }
        if config.json_body is not None:
            kwargs["json"] = config.json_body
        if lease is not None and lease.exists:
            proxy_url = f"http://{lease.proxy_string()}"
            kwargs["proxies"] = {"http": proxy_url, "https": proxy_url}
        return kwargs
