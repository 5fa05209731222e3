"""CliCurlFetcher: direct fetch by invoking the curl executable.

Sometimes yields content where library clients get blocked, even though the
request is nominally the same.
"""

from __future__ import annotations

import json
import os
import tempfile

import sh
from loguru import logger

from fetchgate import settings
from fetchgate.config import FetchConfiguration
from fetchgate.exceptions import DependencyUnavailableError, TransportError
from fetchgate.proxy import ProxyLease, ProxyLeaseClient
from fetchgate.urls import encode_query_params
from fetchgate.user_agents import CHROME_43

from .base import Escalatable, FetchResult, parse_header_block, parse_status_line


class CliCurlFetcher(Escalatable):
    """Fetcher that shells out to ``curl`` via sh."""

    name = "cli_curl"

    default_user_agent = CHROME_43

    def __init__(self, proxy_client: ProxyLeaseClient | None = None):
        self.proxy_client = proxy_client or ProxyLeaseClient()

    def fetch(self, config: FetchConfiguration) -> FetchResult:
        """Fetch ``config.target_url`` with curl. Raises TransportError on a failed run."""
        curl = self._resolve_executable()
        url = config.target_url
        lease = self.proxy_client.lease_for(config.proxy)

        with tempfile.NamedTemporaryFile(suffix=".headers", delete=False) as tf:
            header_file = tf.name

        try:
            args = self.build_arguments(config, lease, header_file)
            logger.debug(f"Fetching {url} with curl: {' '.join(args)}")

            with self.proxy_client.tracked_call(lease, url):
                try:
                    # Exceeding -m makes curl exit non-zero; _timeout is a backstop.
                    body = curl(
                        *args,
                        _timeout=config.connection_timeout_seconds + 5,
                        _decode_errors="replace",
                    )
                except sh.ErrorReturnCode as exc:
                    raise TransportError(
                        f"curl exited with {exc.exit_code} for {url}", strategy=self.name
                    ) from exc
                except sh.TimeoutException as exc:
                    raise TransportError(f"curl timed out for {url}", strategy=self.name) from exc

                if not body:
                    raise TransportError(f"curl returned no content for {url}", strategy=self.name)

            with open(header_file, "r", encoding="utf-8", errors="replace") as f:
                raw_headers = f.read()
        finally:
            os.remove(header_file)

        return FetchResult(
            body=str(body),
            headers=parse_header_block(raw_headers),
            status_code=parse_status_line(raw_headers),
            strategy_used=self.name,
            url=url,
        )

    def build_arguments(
        self,
        config: FetchConfiguration,
        lease: ProxyLease | None,
        header_file: str,
    ) -> list[str]:
        """Build the curl argument list. The URL is always last."""
        args = [
            "-sL",
            "-X", config.method,
            "-m", str(config.connection_timeout_seconds),
            "--insecure",
            "--max-redirs", str(config.max_redirects),
            "-D", header_file,
        ]

        headers = config.request_headers()
        for name, value in headers.items():
            if name.lower() == "user-agent":
                continue
            args += ["-H", f"{name}: {value}"]

        user_agent = config.user_agent or config.header("user-agent") or self.default_user_agent
        if user_agent:
            args += ["-H", f"user-agent: {user_agent}"]

        if config.json_body is not None:
            args += ["-H", "Content-Type: application/json", "-d", json.dumps(config.json_body)]

        if lease is not None and lease.exists:
            args += ["-x", lease.proxy_string()]

        args.append(encode_query_params(config.target_url))
        return args

    def _resolve_executable(self) -> sh.Command:
        binary = settings.curl_binary()
        try:
            return sh.Command(binary)
        except sh.CommandNotFound as exc:
            raise DependencyUnavailableError(
                f"`{binary}` executable was not found, is curl installed?", strategy=self.name
            ) from exc
