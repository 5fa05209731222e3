"""Custom exceptions for fetchgate."""

from __future__ import annotations


class FetchError(Exception):
    """A fetch could not be completed."""

    def __init__(self, message: str, strategy: str | None = None):
        self.strategy = strategy
        super().__init__(message)


class ConfigurationError(FetchError):
    """The request is malformed (unknown engine, bad URL, missing setting). Never retried."""


class DependencyUnavailableError(FetchError):
    """A required executable or tool is missing on this host. Never retried."""


class TransportError(FetchError):
    """The physical transfer failed: timeout, refused connection, empty output."""


class ProviderError(FetchError):
    """The proxy provider rejected or failed a lease / call-record request."""

    def __init__(self, message: str, code: int | None = None):
        self.code = code
        super().__init__(message, strategy=None)
