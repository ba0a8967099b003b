from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from freebie_discordbot.models import FreebieItem

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 20
DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


@dataclass(slots=True)
class FetchResult:
    source_id: str
    items: list[FreebieItem] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Source(ABC):
    def __init__(self, source_id: str) -> None:
        self.source_id = source_id

    @abstractmethod
    def fetch(self) -> list[FreebieItem]:
        """Fetch and normalize the currently free items from the source."""

    def fetch_safely(self) -> FetchResult:
        """Run ``fetch`` and turn any failure into an empty, failed result."""
        try:
            items = self.fetch()
        except Exception as exc:  # noqa: BLE001
            logger.exception("Error fetching %s freebies: %s", self.source_id, exc)
            return FetchResult(source_id=self.source_id, error=str(exc) or type(exc).__name__)
        return FetchResult(source_id=self.source_id, items=items)
