"""Anti-bot detection: decides whether a fetched page is a block or challenge page.

Signals are checked fastest first and the first one that fires wins:

1. target domain is on the known-protected list
2. a response header carries a protection-provider fingerprint
3. the body matches a challenge / block-page pattern (case-sensitive)

The rule tables are immutable and shared process-wide; the detector keeps no
state and can be called from any number of threads.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Mapping

from .urls import extract_host

# Calls toward these domains go straight to the unlocking tier: a cheaper
# first attempt is known to be wasted. Keep exact entries; partial matches of
# these strings are caught by the substring pass.
BLOCKED_DOMAINS = (
    "indeed.com",
    "pracuj.pl",
    "es.talent.com",
    "infojobs.net.esp",
    "crunchbase.com",
    "jooble.org",
)

# Cloudflare: https://developers.cloudflare.com/fundamentals/reference/http-request-headers/
HEADER_FINGERPRINTS = (
    "cf-connecting-ip",
    "cf-ew-via",
    "cf-pseudo-ipv4",
    "true-client-ip",
    "cf-ray",
    "cf-ipcountry",
    "cf-visitor",
    "cf-sorker",
)

BODY_PATTERNS = (
    # generic
    "suspicious activity",
    "bot in network",
    # cloudflare
    "challenge-error-title",
    "cf-browser-verification",
)


class DetectionSignal(str, Enum):
    DOMAIN = "domain"
    HEADER = "header"
    BODY = "body"


@dataclass(frozen=True)
class DetectionRules:
    """Read-only rule tables for the detector."""

    blocked_domains: tuple[str, ...] = BLOCKED_DOMAINS
    header_fingerprints: tuple[str, ...] = HEADER_FINGERPRINTS
    body_patterns: tuple[str, ...] = BODY_PATTERNS


DEFAULT_RULES = DetectionRules()


@dataclass(frozen=True)
class DetectionVerdict:
    blocked: bool
    signal: DetectionSignal | None = None
    detail: str | None = None

    def __bool__(self) -> bool:
        return self.blocked


NOT_BLOCKED = DetectionVerdict(blocked=False)


class AntiBotDetector:
    """Stateless classifier over domain, response headers and body."""

    def __init__(self, rules: DetectionRules = DEFAULT_RULES):
        self.rules = rules
        self._domains = tuple(d.lower() for d in rules.blocked_domains)
        self._fingerprints = frozenset(h.lower() for h in rules.header_fingerprints)

    def is_blocked_domain(self, url: str) -> bool:
        """Check the URL's host against the known-protected domain list."""
        return self._match_domain(extract_host(url)) is not None

    def detect(
        self,
        url: str,
        headers: Mapping[str, Iterable[str] | str] | None,
        body: str | None,
    ) -> DetectionVerdict:
        """Classify a fetch result. See the module docstring for the order of checks."""
        domain = self._match_domain(extract_host(url))
        if domain is not None:
            return DetectionVerdict(True, DetectionSignal.DOMAIN, domain)

        for name in headers or {}:
            if str(name).lower() in self._fingerprints:
                return DetectionVerdict(True, DetectionSignal.HEADER, str(name).lower())

        for pattern in self.rules.body_patterns:
            try:
                if re.search(pattern, body):
                    return DetectionVerdict(True, DetectionSignal.BODY, pattern)
            except (TypeError, re.error):
                # Missing or non-text body (failed transfer): nothing to match.
                continue

        return NOT_BLOCKED

    def is_blocked(
        self,
        url: str,
        headers: Mapping[str, Iterable[str] | str] | None,
        body: str | None,
    ) -> bool:
        return self.detect(url, headers, body).blocked

    def _match_domain(self, host: str) -> str | None:
        if not host:
            return None

        # Exact pass first, kept apart from the looser substring pass.
        for domain in self._domains:
            if domain == host:
                return domain

        for domain in self._domains:
            if domain in host:
                return domain

        return None


default_detector = AntiBotDetector()


def is_blocked_domain(url: str) -> bool:
    return default_detector.is_blocked_domain(url)


def is_blocked(url: str, headers, body) -> bool:
    return default_detector.is_blocked(url, headers, body)


def detect(url: str, headers, body) -> DetectionVerdict:
    return default_detector.detect(url, headers, body)
