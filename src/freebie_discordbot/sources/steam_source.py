from __future__ import annotations

import logging
import re

import requests
from bs4 import BeautifulSoup, Tag

from freebie_discordbot.config import SourceSettings
from freebie_discordbot.models import FreebieItem, Storefront

from .base import DEFAULT_HEADERS, DEFAULT_TIMEOUT_SECONDS, Source
from .registry import register_source

logger = logging.getLogger(__name__)

STEAM_FREE_SEARCH_URL = (
    "https://store.steampowered.com/search/"
    "?sort_by=Price_ASC&maxprice=free&specials=1&ndl=1"
)

_ZERO_PRICE_TEXTS = {"$0.00", "0"}
_MULTISPACE = re.compile(r"\s+")


class SteamSpecialsSource(Source):
    def __init__(self, settings: SourceSettings) -> None:
        super().__init__(source_id=settings.id)
        self.url = settings.url or STEAM_FREE_SEARCH_URL
        timeout_raw = settings.options.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS)
        self.timeout_seconds = (
            int(timeout_raw) if timeout_raw is not None else DEFAULT_TIMEOUT_SECONDS
        )

    def fetch(self) -> list[FreebieItem]:
        response = requests.get(self.url, headers=DEFAULT_HEADERS, timeout=self.timeout_seconds)
        response.raise_for_status()
        return parse_search_results(response.text)


def parse_search_results(page_text: str) -> list[FreebieItem]:
    """Map every row of a search results page to a freebie.

    The search URL is already filtered to discounted items sorted by price, so
    rows are not checked for a zero price beyond normalizing the price text.
    """
    soup = BeautifulSoup(page_text, "html.parser")
    items: list[FreebieItem] = []
    for row in soup.select("#search_resultsRows a.search_result_row"):
        item = _row_to_item(row)
        if item is not None:
            items.append(item)
    logger.debug("Parsed %d Steam search rows", len(items))
    return items


def _row_to_item(row: Tag) -> FreebieItem | None:
    url = str(row.get("href") or "").strip()
    if not url:
        return None

    title_tag = row.select_one(".search_name .title")
    title = title_tag.get_text(strip=True) if title_tag else ""

    image_tag = row.select_one(".search_capsule img")
    image_url = str(image_tag.get("src") or "").strip() if image_tag else ""

    return FreebieItem(
        source=Storefront.STEAM,
        title=title or "Unknown Title",
        url=url,
        image_url=image_url or None,
        price_text=_resolve_price_text(row),
        ends_at=None,
    )


def _resolve_price_text(row: Tag) -> str:
    final_price = row.select_one(".discount_final_price")
    raw_price = final_price.get_text(strip=True) if final_price else ""
    if not raw_price:
        price_column = row.select_one(".col.search_price")
        if price_column:
            raw_price = _MULTISPACE.sub(" ", price_column.get_text()).strip()

    if raw_price in _ZERO_PRICE_TEXTS or _has_zero_price_attribute(row):
        return "Free"
    return raw_price or "Free"


def _has_zero_price_attribute(row: Tag) -> bool:
    if row.get("data-price-final") == "0":
        return True
    return row.select_one('[data-price-final="0"]') is not None


@register_source("steam_specials", Storefront.STEAM)
def _build_steam_source(settings: SourceSettings) -> Source:
    return SteamSpecialsSource(settings)
