"""CookiePrefetcher: harvest session cookies from a landing page before the main fetch.

Some pages refuse to serve content unless the request already carries the
cookies set by another page on the site (e.g. a job detail page that needs
the cookies of the site's home page). Only cookies sent via ``Set-Cookie``
are captured; cookies set by JavaScript are out of reach.
"""

from __future__ import annotations

from loguru import logger

from fetchgate.config import FetchConfiguration, ProxySelector, merge_cookie_header

from .base import BaseFetcher
from .curl_cffi_fetcher import CurlCffiFetcher

SET_COOKIE_HEADER = "set-cookie"

__all__ = ["CookiePrefetcher", "merge_cookie_header", "cookie_pairs"]


def cookie_pairs(set_cookie_values: list[str]) -> list[str]:
    """Keep the ``name=value`` part of each Set-Cookie value, dropping attributes."""
    pairs = []
    for value in set_cookie_values:
        pair = value.split(";", 1)[0].strip()
        if pair:
            pairs.append(pair)
    return pairs


class CookiePrefetcher:
    """Performs one plain fetch purely to collect Set-Cookie headers."""

    def __init__(self, fetcher: BaseFetcher | None = None):
        self.fetcher = fetcher or CurlCffiFetcher()

    def harvest(self, source_url: str, proxy: ProxySelector | None = None) -> str:
        """Fetch *source_url* and return its cookies joined as ``a=1;b=2``.

        No anti-bot check and no unlock retry happen here; fetch errors
        propagate to the caller.
        """
        config = FetchConfiguration(
            target_url=source_url,
            engine=self.fetcher.name,
            proxy=proxy or ProxySelector(),
        )
        result = self.fetcher.fetch(config)

        cookies = ";".join(cookie_pairs(result.headers.get(SET_COOKIE_HEADER, [])))
        logger.debug(f"Harvested {len(cookies.split(';')) if cookies else 0} cookies from {source_url}")
        return cookies
