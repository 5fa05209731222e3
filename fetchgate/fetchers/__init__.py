"""Fetch engines: curl-cffi, CLI curl and headless Chrome, with a single unlock retry."""

from .base import FetchResult
from .cookies import CookiePrefetcher
from .manager import FetchStrategyManager, fetch_page
from .unlocker import UnlockRetryCoordinator

__all__ = [
    "FetchStrategyManager",
    "FetchResult",
    "CookiePrefetcher",
    "UnlockRetryCoordinator",
    "fetch_page",
]
