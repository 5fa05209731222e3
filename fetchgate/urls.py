"""Target URL validation and encoding using w3lib.

- Rejects relative or scheme-less targets before any lease is taken
- Extracts the lower-cased host used by domain blocklist checks
- Percent-encodes query values for handing the URL to a CLI process
"""

from urllib.parse import urlparse

from w3lib.url import safe_url_string

from .exceptions import ConfigurationError

ALLOWED_SCHEMES = ("http", "https")


def validate_target_url(url: str) -> str:
    """Ensure *url* is an absolute http(s) URL.

    Args:
        url: The URL to validate.

    Returns:
        The URL with surrounding whitespace stripped.

    Raises:
        ConfigurationError: If the URL has no scheme, an unsupported scheme or no host.
    """
    if not isinstance(url, str) or not url.strip():
        raise ConfigurationError(f"Target URL must be a non-empty string, got {url!r}")

    url = url.strip()
    try:
        parsed = urlparse(url)
    except ValueError as exc:
        raise ConfigurationError(f"Malformed target URL {url!r}: {exc}") from exc

    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        raise ConfigurationError(f"Target URL must be http(s), got {url!r}")
    if not parsed.hostname:
        raise ConfigurationError(f"Target URL has no host: {url!r}")

    return url


def extract_host(url: str) -> str:
    """Return the lower-cased host of *url*, or an empty string when there is none."""
    try:
        return (urlparse(url).hostname or "").lower()
    except (ValueError, TypeError, AttributeError):
        return ""


def encode_query_params(url: str) -> str:
    """Return *url* with its path and query safely percent-encoded as UTF-8.

    Command-line transports receive the URL as a raw argument, so non-ASCII or
    reserved characters in query values have to be encoded up front.
    """
    return safe_url_string(url, encoding="utf-8")
