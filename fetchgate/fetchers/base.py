"""Base types for the fetch engines."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from fetchgate.config import FetchConfiguration


@dataclass
class FetchResult:
    """Result of one fetch.

    ``headers`` maps lower-cased header names to every value received, since
    headers such as ``set-cookie`` repeat. Transports that do not expose
    headers leave it empty.
    """

    body: str
    headers: dict[str, list[str]] = field(default_factory=dict)
    status_code: int | None = None
    strategy_used: str = ""
    url: str = ""
    unlocked: bool = False


class BaseFetcher(Protocol):
    """Protocol that all fetch engines must implement."""

    name: str

    def fetch(self, config: FetchConfiguration) -> FetchResult:
        """Fetch ``config.target_url``. Raises FetchError subclasses on failure."""
        ...


class Escalatable(BaseFetcher, Protocol):
    """Engine that may be re-invoked through the unlocking proxy tier.

    Engines subclass this explicitly to be wrapped by the unlock retry
    coordinator. They must embed proxy credentials in their transport, since
    the unlocking tier always authenticates.
    """


def normalize_headers(raw: Any) -> dict[str, list[str]]:
    """Lower-case header names and collect repeated values into lists.

    Accepts a multi-dict exposing ``multi_items()``, a mapping of name to
    value, a mapping of name to list of values, or an iterable of pairs.
    """
    if raw is None:
        return {}

    if hasattr(raw, "multi_items"):
        items = raw.multi_items()
    elif hasattr(raw, "items"):
        items = raw.items()
    else:
        items = raw

    normalized: dict[str, list[str]] = {}
    for name, value in items:
        values = value if isinstance(value, (list, tuple)) else [value]
        normalized.setdefault(str(name).strip().lower(), []).extend(
            str(v).strip() for v in values
        )
    return normalized


def parse_header_block(text: str) -> dict[str, list[str]]:
    """Parse raw ``Name: value`` header lines as dumped by curl.

    With redirects curl writes one block per response; only the last block,
    the one belonging to the returned body, is kept.
    """
    blocks: list[list[tuple[str, str]]] = []
    current: list[tuple[str, str]] = []

    for line in text.splitlines():
        line = line.strip()
        if line.upper().startswith("HTTP/"):
            current = []
            blocks.append(current)
            continue
        name, sep, value = line.partition(":")
        if not sep or not name.strip():
            continue
        current.append((name, value))

    return normalize_headers(blocks[-1] if blocks else current)


def parse_status_line(text: str) -> int | None:
    """Return the status code of the last ``HTTP/...`` line in a curl header dump."""
    status = None
    for line in text.splitlines():
        parts = line.strip().split()
        if len(parts) >= 2 and parts[0].upper().startswith("HTTP/") and parts[1].isdigit():
            status = int(parts[1])
    return status
