from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable

import requests

from freebie_discordbot.config import SourceSettings
from freebie_discordbot.models import FreebieItem, Storefront
from freebie_discordbot.utils.datetime_utils import parse_datetime_utc, utc_now

from .base import DEFAULT_HEADERS, DEFAULT_TIMEOUT_SECONDS, Source
from .registry import register_source

logger = logging.getLogger(__name__)

EPIC_PROMOTIONS_URL = (
    "https://store-site-backend-static.ak.epicgames.com/freeGamesPromotions"
)
EPIC_PRODUCT_URL = "https://store.epicgames.com/en-US/p/{slug}"

_PREFERRED_IMAGE_TYPES = (
    "DieselStoreFrontWide",
    "OfferImageWide",
    "OfferImageTall",
    "DieselStoreFrontTall",
)


class EpicFreeGamesSource(Source):
    def __init__(
        self,
        settings: SourceSettings,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(source_id=settings.id)
        self.url = settings.url or EPIC_PROMOTIONS_URL
        timeout_raw = settings.options.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS)
        self.timeout_seconds = (
            int(timeout_raw) if timeout_raw is not None else DEFAULT_TIMEOUT_SECONDS
        )
        self.params = {
            "locale": str(settings.options.get("locale", "en-US")),
            "country": str(settings.options.get("country", "US")),
            "allowCountries": str(settings.options.get("allow_countries", "US")),
        }
        self.clock = clock

    def fetch(self) -> list[FreebieItem]:
        headers = {**DEFAULT_HEADERS, "Accept": "application/json"}
        response = requests.get(
            self.url,
            params=self.params,
            headers=headers,
            timeout=self.timeout_seconds,
        )
        response.raise_for_status()
        return parse_promotions(response.json(), now=self.clock())


def parse_promotions(payload: Any, *, now: datetime) -> list[FreebieItem]:
    """Map a promotions payload to the offers that are 100% off right now."""
    offers = _dig(payload, "data", "Catalog", "searchStore", "elements")
    if not isinstance(offers, list):
        return []

    by_url: dict[str, FreebieItem] = {}
    for offer in offers:
        if not isinstance(offer, dict):
            continue
        item = _offer_to_item(offer, now)
        if item is not None:
            by_url[item.url] = item

    return list(by_url.values())


def _offer_to_item(offer: dict[str, Any], now: datetime) -> FreebieItem | None:
    active = find_active_free_promotion(offer, now)
    if active is None:
        return None

    slug = _resolve_page_slug(offer)
    if not slug:
        logger.debug("Skipping Epic offer without a page slug: %s", offer.get("title"))
        return None

    return FreebieItem(
        source=Storefront.EPIC,
        title=str(offer.get("title") or "Unknown Title"),
        url=EPIC_PRODUCT_URL.format(slug=slug),
        image_url=_pick_image_url(offer.get("keyImages")),
        price_text="Free",
        ends_at=parse_datetime_utc(active.get("endDate")),
    )


def find_active_free_promotion(offer: dict[str, Any], now: datetime) -> dict[str, Any] | None:
    promotions = offer.get("promotions") or {}
    groups = promotions.get("promotionalOffers") if isinstance(promotions, dict) else None
    if not isinstance(groups, list):
        return None

    for group in groups:
        if not isinstance(group, dict):
            continue
        promotions_in_group = group.get("promotionalOffers")
        if not isinstance(promotions_in_group, list):
            continue
        for promotion in promotions_in_group:
            if isinstance(promotion, dict) and _is_active_and_free(promotion, now):
                return promotion
    return None


def _is_active_and_free(promotion: dict[str, Any], now: datetime) -> bool:
    start = parse_datetime_utc(promotion.get("startDate"))
    end = parse_datetime_utc(promotion.get("endDate"))
    if start is None or end is None:
        return False
    if not start <= now < end:
        return False

    discount = _dig(promotion, "discountSetting", "discountPercentage")
    if isinstance(discount, bool):
        return False
    try:
        return float(discount) == 0
    except (TypeError, ValueError):
        return False


def _resolve_page_slug(offer: dict[str, Any]) -> str | None:
    product_slug = str(offer.get("productSlug") or "")
    if product_slug.startswith("p/"):
        return product_slug[2:] or None

    mappings = _dig(offer, "catalogNs", "mappings")
    if not isinstance(mappings, list):
        return None
    for mapping in mappings:
        if not isinstance(mapping, dict):
            continue
        if mapping.get("pageType") == "productHome" and mapping.get("pageSlug"):
            return str(mapping["pageSlug"])
    return None


def _pick_image_url(key_images: Any) -> str | None:
    if not isinstance(key_images, list):
        return None
    images = [image for image in key_images if isinstance(image, dict)]

    for image_type in _PREFERRED_IMAGE_TYPES:
        for image in images:
            if image.get("type") == image_type and image.get("url"):
                return str(image["url"])

    for image in images:
        if image.get("type") != "Thumbnail" and image.get("url"):
            return str(image["url"])

    if images and images[0].get("url"):
        return str(images[0]["url"])
    return None


def _dig(value: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


@register_source("epic_free_games", Storefront.EPIC)
def _build_epic_source(settings: SourceSettings) -> Source:
    return EpicFreeGamesSource(settings)
