"""UnlockRetryCoordinator: one bounded re-fetch through the unlocking proxy tier.

The unlocking tier is materially more expensive per request, so a logical
call escalates at most once. Whatever the escalated attempt returns is final,
even if it is still blocked.
"""

from __future__ import annotations

from dataclasses import replace
from enum import Enum

from loguru import logger

from fetchgate import settings
from fetchgate.antibot import AntiBotDetector, default_detector
from fetchgate.config import FetchConfiguration

from .base import Escalatable, FetchResult


class UnlockState(str, Enum):
    INITIAL = "initial"
    ATTEMPTED = "attempted"
    ESCALATING = "escalating"
    DONE = "done"


def apply_unlocker(config: FetchConfiguration) -> bool:
    """Switch *config*'s proxy selector to the unlocking tier, in place.

    Outside production the unlocker is never used: the request is accepted
    and the configuration left as it is. Returns whether the selector changed.
    """
    if settings.is_dev():
        logger.info(f"Unlocker requested for {config.target_url} but disabled outside production")
        return False

    config.proxy.use_unlocker()
    return True


class UnlockRetryCoordinator:
    """Wraps an escalatable engine with anti-bot detection and a single unlock retry.

    Holds no per-call state, so one instance can serve many sequential or
    concurrent calls.
    """

    def __init__(self, fetcher: Escalatable, detector: AntiBotDetector | None = None):
        self.fetcher = fetcher
        self.detector = detector or default_detector

    @property
    def name(self) -> str:
        return self.fetcher.name

    def fetch(self, config: FetchConfiguration) -> FetchResult:
        url = config.target_url
        escalated = False
        unlocked = False
        state = UnlockState.INITIAL

        # Known-protected domains skip the cheap attempt that would certainly be blocked.
        if config.allow_unlock_escalation and self.detector.is_blocked_domain(url):
            logger.info(f"{url} is a known protected domain, using unlocker from the first attempt")
            unlocked = apply_unlocker(config)
            escalated = True

        result = self.fetcher.fetch(config)
        state = UnlockState.ATTEMPTED

        verdict = self.detector.detect(url, result.headers, result.body)
        if not verdict.blocked:
            logger.debug(f"{url}: {state.value} -> {UnlockState.DONE.value} (not blocked)")
            return replace(result, unlocked=unlocked)

        if escalated or not config.allow_unlock_escalation:
            logger.warning(
                f"Anti-bot protection detected for {url} via {verdict.signal.value} "
                f"({verdict.detail}), not escalating "
                f"({'already escalated' if escalated else 'escalation not allowed'})"
            )
            return replace(result, unlocked=unlocked)

        state = UnlockState.ESCALATING
        logger.info(
            f"Anti-bot protection detected for {url} via {verdict.signal.value} "
            f"({verdict.detail}), re-fetching through unlocker"
        )
        unlocked = apply_unlocker(config)
        result = self.fetcher.fetch(config)

        logger.debug(f"{url}: {state.value} -> {UnlockState.DONE.value}")
        return replace(result, unlocked=unlocked)
