"""Command line entry point: fetch one page, or harvest the cookies a page sets."""

from __future__ import annotations

import argparse
import sys

from loguru import logger

from fetchgate.config import EngineName, FetchConfiguration, ProxySelector
from fetchgate.exceptions import FetchError
from fetchgate.fetchers.manager import FetchStrategyManager


def parse_header(value: str) -> tuple[str, str]:
    name, sep, header_value = value.partition(":")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"Header must look like 'Name: value', got {value!r}")
    return name.strip(), header_value.strip()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fetchgate", description=__doc__)
    subparsers = parser.add_subparsers(dest="command", required=True)

    fetch = subparsers.add_parser("fetch", help="Fetch a single URL and print its body.")
    fetch.add_argument("url", type=str)
    fetch.add_argument(
        "--engine",
        choices=[e.value for e in EngineName],
        default=EngineName.CURL_CFFI.value,
    )
    fetch.add_argument("--header", dest="headers", action="append", type=parse_header, default=[])
    fetch.add_argument("--user-agent", default=None)
    fetch.add_argument("--timeout", type=int, default=None, help="Connection timeout in seconds")
    fetch.add_argument("--max-redirects", type=int, default=None)
    fetch.add_argument("--crawl-delay", type=int, default=None, help="Delay before the call, in ms")
    fetch.add_argument("--cookie-source", default=None, help="URL to harvest cookies from first")
    fetch.add_argument("--proxy", action="store_true", help="Lease a proxy for the call")
    fetch.add_argument("--proxy-usage", default=None)
    fetch.add_argument("--proxy-country", default=None)
    fetch.add_argument("--proxy-provider", default=None)
    fetch.add_argument("--proxy-id", default=None)
    fetch.add_argument("--allow-unlock", action="store_true", help="Allow one retry through the unlocker")

    cookies = subparsers.add_parser("cookies", help="Print the cookies a URL sets.")
    cookies.add_argument("url", type=str)

    return parser


def build_configuration(options: argparse.Namespace) -> FetchConfiguration:
    extra = {}
    if options.timeout is not None:
        extra["connection_timeout_seconds"] = options.timeout
    if options.max_redirects is not None:
        extra["max_redirects"] = options.max_redirects

    return FetchConfiguration(
        target_url=options.url,
        engine=options.engine,
        headers=dict(options.headers),
        user_agent=options.user_agent,
        crawl_delay_millis=options.crawl_delay,
        cookie_source_url=options.cookie_source,
        proxy=ProxySelector(
            enabled=options.proxy,
            identifier=options.proxy_id,
            usage_tag=options.proxy_usage,
            country_code=options.proxy_country,
            provider_name=options.proxy_provider,
        ),
        allow_unlock_escalation=options.allow_unlock,
        **extra,
    )


def main(argv: list[str] | None = None) -> int:
    options = build_parser().parse_args(argv)

    try:
        manager = FetchStrategyManager()
        if options.command == "cookies":
            sys.stdout.write(manager.cookie_prefetcher.harvest(options.url) + "\n")
            return 0

        result = manager.fetch(build_configuration(options))
    except FetchError as exc:
        logger.error(f"{options.command} failed for {options.url}: {exc}")
        return 1

    logger.info(
        f"Fetched {result.url} with {result.strategy_used} "
        f"(status={result.status_code}, unlocked={result.unlocked})"
    )
    sys.stdout.write(result.body)
    return 0


if __name__ == "__main__":
    sys.exit(main())
