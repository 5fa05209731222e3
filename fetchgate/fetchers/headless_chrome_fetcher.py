"""HeadlessChromeFetcher: JS-rendered page content via headless Chrome ``--dump-dom``.

Flags reference: https://github.com/GoogleChrome/chrome-launcher/blob/main/docs/chrome-flags-for-tools.md

Known limitations:
- ``--dump-dom`` occasionally returns nothing (a Chrome issue); that surfaces
  as a TransportError.
- Chrome cannot authenticate against a proxy, so the proxy is passed without
  credentials and this engine is never routed through the unlocking tier.
  Beyond that, the unlocking tier bills every asset Chrome pulls in.
"""

from __future__ import annotations

import sh
from loguru import logger

from fetchgate import settings
from fetchgate.antibot import AntiBotDetector, default_detector
from fetchgate.config import FetchConfiguration
from fetchgate.exceptions import ConfigurationError, DependencyUnavailableError, TransportError
from fetchgate.proxy import ProxyLease, ProxyLeaseClient
from fetchgate.user_agents import CHROME_114

from .base import FetchResult

EMPTY_DOM = "<html><head></head><body></body></html>"

VIRTUAL_TIME_BUDGET_MS = 20000

DEFAULT_OPTIONS: dict[str, str | int | None] = {
    "headless": None,
    "no-sandbox": None,
    "disable-setuid-sandbox": None,
    "ignore-certificate-errors": None,
    "ignore-certificate-errors-spki-list": None,
    "blink-settings": "imagesEnabled=false",
    "hide-scrollbars": None,
    "mute-audio": None,
    "disable-gl-drawing-for-tests": None,
    "disable-canvas-aa": None,
    "disable-2d-canvas-clip-aa": None,
    "disable-dev-shm-usage": None,
    "no-zygote": None,
    "use-gl": "desktop",
    "disable-infobars": None,
    "disable-breakpad": None,
    "window-size": "10,10",
    "disable-gpu": None,
    "disable-software-rasterizer": None,
    "allow-running-insecure-content": None,
    "disable-extensions": None,
    "log-level": 3,
}

# Needed for usable content through a proxy
PROXY_OPTIONS: dict[str, str | int | None] = {
    "remote-allow-origins": "*",
    "allow-insecure-localhost": None,
    "disable-content-security-policy": None,
    "ignore-ssl-errors": None,
}


class HeadlessChromeFetcher:
    """Fetcher that runs headless Chrome and returns the rendered DOM."""

    name = "headless_chrome"

    default_user_agent = CHROME_114

    def __init__(
        self,
        proxy_client: ProxyLeaseClient | None = None,
        detector: AntiBotDetector | None = None,
    ):
        self.proxy_client = proxy_client or ProxyLeaseClient()
        self.detector = detector or default_detector

    def fetch(self, config: FetchConfiguration) -> FetchResult:
        url = config.target_url
        if self.detector.is_blocked_domain(url) and not settings.is_dev():
            raise ConfigurationError(
                f"{url} is behind known anti-bot protection and headless Chrome cannot use the unlocking proxy",
                strategy=self.name,
            )

        chrome = self._resolve_executable()
        lease = self.proxy_client.lease_for(config.proxy)
        args = self.build_arguments(config, lease)

        logger.debug(f"Fetching {url} with headless Chrome")
        with self.proxy_client.tracked_call(lease, url):
            try:
                result = chrome(*args, _timeout=config.connection_timeout_seconds, _decode_errors="replace")
            except sh.ErrorReturnCode as exc:
                raise TransportError(
                    f"Chrome exited with {exc.exit_code} for {url}", strategy=self.name
                ) from exc
            except sh.TimeoutException as exc:
                raise TransportError(f"Chrome timed out for {url}", strategy=self.name) from exc

            if not result or not str(result).strip():
                raise TransportError(f"Chrome returned no content for {url}", strategy=self.name)
            if str(result).strip() == EMPTY_DOM:
                raise TransportError(
                    f"Chrome returned an empty DOM for {url}, possibly a proxy issue",
                    strategy=self.name,
                )

        return FetchResult(body=str(result), strategy_used=self.name, url=url)

    def build_options(
        self, config: FetchConfiguration, lease: ProxyLease | None
    ) -> dict[str, str | int | None]:
        options = dict(DEFAULT_OPTIONS)
        options["user-agent"] = config.user_agent or config.header("user-agent") or self.default_user_agent

        if config.use_virtual_time_budget:
            # Lets pending XHRs settle before the DOM is dumped.
            options["run-all-compositor-stages-before-draw"] = None
            options["virtual-time-budget"] = VIRTUAL_TIME_BUDGET_MS

        if lease is not None and lease.exists:
            options["proxy-server"] = lease.proxy_string(with_auth=False)
            options.update(PROXY_OPTIONS)
        else:
            options["proxy-bypass-list"] = "*"
            options["proxy-server"] = "direct://"

        return options

    def build_arguments(self, config: FetchConfiguration, lease: ProxyLease | None) -> list[str]:
        """Chrome argument list. ``--dump-dom`` and the URL must come last."""
        args = [
            f"--{option}" if value is None else f"--{option}={value}"
            for option, value in self.build_options(config, lease).items()
        ]
        args += ["--dump-dom", config.target_url]
        return args

    def _resolve_executable(self) -> sh.Command:
        binary = settings.chrome_binary()
        try:
            return sh.Command(binary)
        except sh.CommandNotFound as exc:
            raise DependencyUnavailableError(
                f"`{binary}` executable was not found, is Chrome installed?", strategy=self.name
            ) from exc
