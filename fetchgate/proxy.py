"""ProxyLeaseClient: proxy leases and call-record reporting against the proxy provider.

Every physical request made through a leased proxy is bracketed by a call
record on the provider side (open before the request, close with the outcome
after it). The provider bills and tracks health from these records, so a
record must be closed exactly once and never opened for a request that is not
actually made.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Iterator

import requests
from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from . import settings
from .exceptions import ProviderError

if TYPE_CHECKING:
    from .config import ProxySelector

NOT_FOUND_CODE = 404

DEFAULT_PROVIDER_TIMEOUT = 15.0


class ProxyLease(BaseModel):
    """Connection descriptor for one leased proxy."""

    exists: bool = True
    ip: str = ""
    port: int = Field(0, ge=0, le=65535)
    username: str | None = None
    password: str | None = None

    @classmethod
    def not_existing(cls) -> ProxyLease:
        return cls(exists=False)

    @property
    def credentials(self) -> tuple[str, str] | None:
        if self.username and self.password:
            return self.username, self.password
        return None

    def proxy_string(self, with_auth: bool = True) -> str:
        """Render as ``[user:pass@]ip:port``. Some transports cannot take credentials."""
        address = f"{self.ip}:{self.port}"
        if with_auth and self.credentials:
            user, password = self.credentials
            return f"{user}:{password}@{address}"
        return address


class ProviderResponse(BaseModel):
    """Envelope returned by every proxy provider endpoint."""

    success: bool
    message: str = ""
    code: int = 200
    data: dict[str, Any] | None = None


class ProxyLeaseClient:
    """Client for the remote proxy provider."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float = DEFAULT_PROVIDER_TIMEOUT,
    ):
        self._base_url = base_url.rstrip("/") if base_url else None
        self._token = token
        self.timeout = timeout

    @property
    def base_url(self) -> str:
        return self._base_url or settings.proxy_provider_url()

    def acquire_lease(self, selector: ProxySelector) -> ProxyLease:
        """Request connection data for the proxy class described by *selector*.

        A not-found answer in dev mode yields a non-existing lease so local
        work can proceed without a proxy inventory. Everything else that is not
        a success raises ProviderError.
        """
        response = self._post(
            "/connection-data",
            {
                "proxy_internal_id": selector.identifier,
                "usage": selector.usage_tag,
                "country_iso_code": selector.country_code,
                "provider": selector.provider_name,
            },
        )

        if response.code == NOT_FOUND_CODE and settings.is_dev():
            logger.info(f"No proxy found for usage={selector.usage_tag!r} (dev mode), continuing without proxy")
            return ProxyLease.not_existing()

        self._raise_for_failure(response)

        try:
            lease = ProxyLease.model_validate(response.data or {})
        except ValidationError as exc:
            raise ProviderError(
                f"Proxy provider returned malformed connection data: {exc}",
                code=response.code,
            ) from exc

        logger.info(f"Leased proxy {lease.ip}:{lease.port} (usage={selector.usage_tag!r})")
        return lease

    def open_call_record(self, ip: str, port: int, url: str) -> int:
        """Register a call about to be made through ``ip:port`` and return its id."""
        response = self._post("/call-data", {"proxy_ip": ip, "proxy_port": port, "url": url})
        self._raise_for_failure(response)

        call_id = (response.data or {}).get("call_id")
        if not isinstance(call_id, int):
            raise ProviderError(
                f"Proxy provider returned no call id for {url}", code=response.code
            )
        return call_id

    def close_call_record(self, call_id: int, succeeded: bool) -> None:
        """Report the outcome of a previously opened call. Call exactly once per record."""
        response = self._post(f"/call-data/{call_id}", {"id": call_id, "success": succeeded})
        self._raise_for_failure(response)

    def lease_for(self, selector: ProxySelector) -> ProxyLease | None:
        """Acquire a lease only when the selector asks for a proxy."""
        if not selector.enabled:
            return None
        return self.acquire_lease(selector)

    @contextmanager
    def tracked_call(self, lease: ProxyLease | None, url: str) -> Iterator[int | None]:
        """Bracket one physical request with a call record.

        Yields the call id, or None when no proxy lease exists. The record is
        closed as failed on any exception (cancellation included) and as
        succeeded on a clean exit. A provider error while closing as failed is
        logged; the original exception still propagates.
        """
        if lease is None or not lease.exists:
            yield None
            return

        call_id = self.open_call_record(lease.ip, lease.port, url)
        try:
            yield call_id
        except BaseException:
            try:
                self.close_call_record(call_id, succeeded=False)
            except ProviderError as close_exc:
                logger.error(f"Could not close call record {call_id} as failed: {close_exc}")
            raise
        self.close_call_record(call_id, succeeded=True)

    def _post(self, path: str, payload: dict[str, Any]) -> ProviderResponse:
        url = f"{self.base_url}{path}"
        token = self._token or settings.proxy_provider_token()
        headers = {"Authorization": f"Bearer {token}"} if token else {}

        try:
            api_response = requests.post(url, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error(f"Proxy provider request to {path} failed: {exc}")
            raise ProviderError(f"Proxy provider request to {path} failed: {exc}") from exc

        try:
            return ProviderResponse.model_validate(api_response.json())
        except (ValueError, ValidationError) as exc:
            logger.error(f"Proxy provider returned unreadable response for {path}: {exc}")
            raise ProviderError(
                f"Proxy provider returned unreadable response for {path} (status={api_response.status_code})",
                code=api_response.status_code,
            ) from exc

    @staticmethod
    def _raise_for_failure(response: ProviderResponse) -> None:
        if not response.success:
            raise ProviderError(
                f"Proxy provider returned failure response: {response.message}, code: {response.code}",
                code=response.code,
            )
