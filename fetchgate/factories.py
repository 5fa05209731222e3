import factory

from fetchgate.config import EngineName, FetchConfiguration, ProxySelector
from fetchgate.proxy import ProxyLease


class ProxySelectorFactory(factory.Factory):
    class Meta:
        model = ProxySelector

    enabled = True
    identifier = factory.Sequence(lambda n: f"proxy-{n}")
    usage_tag = "detail-page"
    country_code = "PL"
    provider_name = "brightdata"


class FetchConfigurationFactory(factory.Factory):
    class Meta:
        model = FetchConfiguration

    target_url = factory.Sequence(lambda n: f"https://example-{n}.com/page")
    engine = EngineName.CURL_CFFI
    headers = factory.LazyFunction(dict)
    connection_timeout_seconds = 10
    proxy = factory.SubFactory(ProxySelectorFactory, enabled=False)
    allow_unlock_escalation = False


class ProxyLeaseFactory(factory.Factory):
    class Meta:
        model = ProxyLease

    exists = True
    ip = factory.Sequence(lambda n: f"10.0.0.{n % 250 + 1}")
    port = 8080
    username = "user"
    password = "secret"
