"""FetchStrategyManager: dispatches a configured fetch to its engine."""

from __future__ import annotations

import time

from loguru import logger

from fetchgate.antibot import AntiBotDetector, default_detector
from fetchgate.config import EngineName, FetchConfiguration
from fetchgate.exceptions import ConfigurationError
from fetchgate.proxy import ProxyLeaseClient

from .base import BaseFetcher, FetchResult
from .cli_curl_fetcher import CliCurlFetcher
from .cookies import CookiePrefetcher
from .curl_cffi_fetcher import CurlCffiFetcher
from .headless_chrome_fetcher import HeadlessChromeFetcher
from .unlocker import UnlockRetryCoordinator


class FetchStrategyManager:
    """Runs one fetch per call through the engine named in its configuration.

    Escalatable engines are wrapped in an UnlockRetryCoordinator; headless
    Chrome is called directly since it cannot use the unlocking tier.
    """

    def __init__(
        self,
        proxy_client: ProxyLeaseClient | None = None,
        detector: AntiBotDetector | None = None,
    ) -> None:
        self.proxy_client = proxy_client or ProxyLeaseClient()
        self.detector = detector or default_detector

        curl_cffi = CurlCffiFetcher(self.proxy_client)
        self._fetchers: dict[EngineName, BaseFetcher] = {
            EngineName.CURL_CFFI: UnlockRetryCoordinator(curl_cffi, self.detector),
            EngineName.CLI_CURL: UnlockRetryCoordinator(CliCurlFetcher(self.proxy_client), self.detector),
            EngineName.HEADLESS_CHROME: HeadlessChromeFetcher(self.proxy_client, self.detector),
        }
        self.cookie_prefetcher = CookiePrefetcher(curl_cffi)

    def fetch(self, config: FetchConfiguration) -> FetchResult:
        """Fetch ``config.target_url``.

        Honors the crawl delay before anything else, then harvests cookies from
        ``cookie_source_url`` if set, then hands over to the engine.
        """
        if config.crawl_delay_millis:
            time.sleep(config.crawl_delay_millis / 1000)

        fetcher = self._fetchers.get(config.engine)
        if fetcher is None:
            allowed = ", ".join(e.value for e in self._fetchers)
            raise ConfigurationError(
                f"Unsupported fetch engine: {config.engine!r}. Allowed are: {allowed}."
            )

        if config.cookie_source_url:
            config.prefetched_cookies = self.cookie_prefetcher.harvest(config.cookie_source_url)
        else:
            config.prefetched_cookies = ""

        logger.info(f"Fetching {config.target_url} with {fetcher.name}")
        return fetcher.fetch(config)


def fetch_page(config: FetchConfiguration, proxy_client: ProxyLeaseClient | None = None) -> FetchResult:
    """Convenience wrapper for a single fetch with a fresh manager."""
    return FetchStrategyManager(proxy_client=proxy_client).fetch(config)
