import pytest

from fetchgate.factories import FetchConfigurationFactory, ProxyLeaseFactory, ProxySelectorFactory
from fetchgate.proxy import ProxyLease, ProxyLeaseClient


class RecordingProxyClient(ProxyLeaseClient):
    """ProxyLeaseClient with the remote calls replaced by an in-memory log."""

    def __init__(self, lease: ProxyLease | None = None):
        super().__init__(base_url="http://proxy-provider.test")
        self.lease = lease if lease is not None else ProxyLeaseFactory()
        self.events: list[tuple] = []
        self.selectors: list[dict] = []
        self._next_call_id = 100

    def acquire_lease(self, selector):
        self.selectors.append(
            {
                "identifier": selector.identifier,
                "usage_tag": selector.usage_tag,
                "country_code": selector.country_code,
                "provider_name": selector.provider_name,
            }
        )
        self.events.append(("acquire", selector.usage_tag))
        return self.lease

    def open_call_record(self, ip, port, url):
        self._next_call_id += 1
        self.events.append(("open", self._next_call_id, ip, port, url))
        return self._next_call_id

    def close_call_record(self, call_id, succeeded):
        self.events.append(("close", call_id, succeeded))

    def opened(self) -> list[tuple]:
        return [e for e in self.events if e[0] == "open"]

    def closed(self) -> list[tuple]:
        return [e for e in self.events if e[0] == "close"]


@pytest.fixture(autouse=True)
def dev_mode(monkeypatch):
    monkeypatch.setenv("APP_ENV", "dev")


@pytest.fixture
def prod_mode(monkeypatch):
    monkeypatch.setenv("APP_ENV", "prod")


@pytest.fixture
def proxy_client():
    return RecordingProxyClient()


@pytest.fixture
def config():
    return FetchConfigurationFactory()


@pytest.fixture
def proxied_config():
    return FetchConfigurationFactory(proxy=ProxySelectorFactory(enabled=True))


@pytest.fixture
def make_proxy_client():
    """Build a RecordingProxyClient handing out a specific lease."""
    return RecordingProxyClient
