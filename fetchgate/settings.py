"""Environment-driven settings.

Values are read from ``os.environ`` at call time (after ``.env`` is loaded) so
that tests and long-running workers can change them without re-importing.
"""

from __future__ import annotations

import os
from enum import Enum

from dotenv import load_dotenv

from .exceptions import ConfigurationError

load_dotenv()

APP_ENV_VAR = "APP_ENV"

UNLOCKER_USAGE_TAG = "unlocker"

DEFAULT_MAX_TIMEOUT_SECONDS = 30


class RuntimeMode(str, Enum):
    DEV = "dev"
    PROD = "prod"


def runtime_mode() -> RuntimeMode:
    """Return the current runtime mode. Anything other than ``prod`` is dev."""
    raw = os.environ.get(APP_ENV_VAR, RuntimeMode.DEV.value).strip().lower()
    if raw == RuntimeMode.PROD.value:
        return RuntimeMode.PROD
    return RuntimeMode.DEV


def is_dev() -> bool:
    return runtime_mode() is RuntimeMode.DEV


def max_timeout_seconds() -> int:
    raw = os.environ.get("FETCHGATE_MAX_TIMEOUT_SECONDS")
    if not raw:
        return DEFAULT_MAX_TIMEOUT_SECONDS
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(
            f"FETCHGATE_MAX_TIMEOUT_SECONDS must be an integer, got {raw!r}"
        ) from exc


def proxy_provider_url() -> str:
    url = os.environ.get("PROXY_PROVIDER_URL")
    if not url:
        raise ConfigurationError("PROXY_PROVIDER_URL not set")
    return url.rstrip("/")


def proxy_provider_token() -> str | None:
    return os.environ.get("PROXY_PROVIDER_TOKEN") or None


def curl_binary() -> str:
    return os.environ.get("FETCHGATE_CURL_BINARY", "curl")


def chrome_binary() -> str:
    return os.environ.get("FETCHGATE_CHROME_BINARY", "google-chrome")
