from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Storefront(str, Enum):
    EPIC = "Epic Games"
    STEAM = "Steam"

    @property
    def key_prefix(self) -> str:
        return _KEY_PREFIXES[self]


_KEY_PREFIXES = {
    Storefront.EPIC: "epic",
    Storefront.STEAM: "steam",
}


@dataclass(slots=True)
class FreebieItem:
    source: Storefront
    title: str
    url: str
    image_url: str | None = None
    price_text: str = "Free"
    ends_at: datetime | None = None


@dataclass(slots=True)
class PendingFreebie:
    """A freebie that has not been announced yet, tagged with its dedupe key."""

    item: FreebieItem
    internal_key: str
