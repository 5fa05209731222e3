"""Per-call fetch configuration: target, engine, headers and proxy selection."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from . import settings
from .exceptions import ConfigurationError
from .urls import validate_target_url

COOKIE_HEADER = "Cookie"

DEFAULT_MAX_REDIRECTS = 10


class EngineName(str, Enum):
    """Registered fetch engines."""

    CLI_CURL = "cli_curl"
    CURL_CFFI = "curl_cffi"
    HEADLESS_CHROME = "headless_chrome"

    @classmethod
    def parse(cls, value: EngineName | str) -> EngineName:
        """Resolve *value* to an engine, failing fast on unknown names."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError as exc:
            allowed = ", ".join(e.value for e in cls)
            raise ConfigurationError(
                f"Unsupported fetch engine: {value!r}. Allowed are: {allowed}."
            ) from exc


@dataclass
class ProxySelector:
    """Describes which class of proxy to lease for a call."""

    enabled: bool = False
    identifier: str | None = None
    usage_tag: str | None = None
    country_code: str | None = None
    provider_name: str | None = None

    def use_unlocker(self) -> None:
        """Point this selector at the unlocking tier.

        Hard overwrite: pinning, country and provider are dropped, not merged.
        ``enabled`` is left as the caller set it.
        """
        self.usage_tag = settings.UNLOCKER_USAGE_TAG
        self.identifier = None
        self.country_code = None
        self.provider_name = None

    @property
    def is_unlocker(self) -> bool:
        return self.usage_tag == settings.UNLOCKER_USAGE_TAG


@dataclass
class FetchConfiguration:
    """One fetch request.

    Owned by the caller. During an escalated call the unlock coordinator
    rewrites ``proxy`` on this same object, so treat it as mutated afterwards.
    """

    target_url: str
    engine: EngineName | str = EngineName.CURL_CFFI
    headers: dict[str, str] = field(default_factory=dict)
    user_agent: str | None = None
    max_redirects: int = DEFAULT_MAX_REDIRECTS
    connection_timeout_seconds: int = field(default_factory=settings.max_timeout_seconds)
    crawl_delay_millis: int | None = None
    cookie_source_url: str | None = None
    proxy: ProxySelector = field(default_factory=ProxySelector)
    allow_unlock_escalation: bool = False
    method: str = "GET"
    json_body: dict[str, Any] | None = None
    use_virtual_time_budget: bool = False

    prefetched_cookies: str = field(default="", init=False, repr=False)

    def __post_init__(self) -> None:
        self.engine = EngineName.parse(self.engine)
        self.target_url = validate_target_url(self.target_url)
        self.method = self.method.upper()
        if self.max_redirects < 0:
            raise ConfigurationError(f"max_redirects must be >= 0, got {self.max_redirects}")
        if self.connection_timeout_seconds <= 0:
            raise ConfigurationError(
                f"connection_timeout_seconds must be > 0, got {self.connection_timeout_seconds}"
            )

    def header(self, name: str) -> str | None:
        """Case-insensitive lookup in the caller-supplied headers."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None

    def request_headers(self) -> dict[str, str]:
        """Headers to send: caller headers with any prefetched cookies merged in."""
        return merge_cookie_header(self.headers, self.prefetched_cookies)


def merge_cookie_header(headers: dict[str, str], cookies: str) -> dict[str, str]:
    """Return a copy of *headers* with *cookies* appended to the Cookie header.

    The existing key keeps its original casing. An existing value gets a
    trailing ``;`` before the new cookies are appended.
    """
    merged = dict(headers)
    if not cookies:
        return merged

    for key, value in merged.items():
        if key.lower() == COOKIE_HEADER.lower():
            existing = value or ""
            if existing and not existing.endswith(";"):
                existing += ";"
            merged[key] = existing + cookies
            return merged

    merged[COOKIE_HEADER] = cookies
    return merged
