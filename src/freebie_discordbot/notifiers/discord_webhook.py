from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any, TypeVar

import requests

from freebie_discordbot.models import FreebieItem, PendingFreebie, Storefront
from freebie_discordbot.utils.datetime_utils import to_unix_seconds

from .base import DeliveryError, Notifier

logger = logging.getLogger(__name__)

MAX_EMBEDS_PER_MESSAGE = 10

_SOURCE_COLORS = {
    Storefront.EPIC: 16753920,
    Storefront.STEAM: 3447003,
}
# Epic key art is wide, Steam capsules are small
_BANNER_SOURCES = {Storefront.EPIC}

T = TypeVar("T")


class DiscordWebhookNotifier(Notifier):
    def __init__(
        self,
        webhook_url: str,
        mention_role_id: str | None = None,
        timeout_seconds: int = 15,
    ) -> None:
        self.webhook_url = webhook_url
        self.mention_role_id = mention_role_id
        self.timeout_seconds = timeout_seconds

    def deliver(self, messages: list[dict[str, Any]]) -> int:
        return deliver_embeds(
            self.webhook_url,
            messages,
            self.mention_role_id,
            timeout_seconds=self.timeout_seconds,
        )


def deliver_embeds(
    webhook_url: str,
    embeds: Sequence[dict[str, Any]],
    mention_role_id: str | None = None,
    *,
    timeout_seconds: int = 15,
) -> int:
    """Post embeds in order, at most ten per webhook call.

    Only the first call mentions the role. A failed call raises
    ``DeliveryError`` carrying the number of embeds already delivered.
    """
    if not embeds:
        return 0

    delivered = 0
    batches = chunk(embeds, MAX_EMBEDS_PER_MESSAGE)
    for index, batch in enumerate(batches):
        payload = build_webhook_payload(batch, mention_role_id if index == 0 else None)
        try:
            response = requests.post(webhook_url, json=payload, timeout=timeout_seconds)
        except requests.RequestException as exc:
            raise DeliveryError(
                f"Discord webhook request failed on batch {index + 1}/{len(batches)}: {exc}",
                delivered=delivered,
            ) from exc
        if response.status_code >= 400:
            raise DeliveryError(
                f"Discord webhook returned {response.status_code}: {response.text}",
                delivered=delivered,
            )
        delivered += len(batch)
        logger.debug("Delivered batch %d/%d (%d embeds)", index + 1, len(batches), len(batch))

    return delivered


def build_webhook_payload(
    embeds: Sequence[dict[str, Any]],
    mention_role_id: str | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {"embeds": list(embeds)}
    if mention_role_id:
        payload["content"] = f"<@&{mention_role_id}>"
        payload["allowed_mentions"] = {"roles": [str(mention_role_id)]}
    return payload


def chunk(values: Sequence[T], size: int) -> list[list[T]]:
    if size < 1:
        raise ValueError("chunk size must be >= 1")
    return [list(values[start : start + size]) for start in range(0, len(values), size)]


def build_discord_embeds(items: Iterable[FreebieItem | PendingFreebie]) -> list[dict[str, Any]]:
    return [build_discord_embed(_unwrap(item)) for item in items]


def build_discord_embed(item: FreebieItem) -> dict[str, Any]:
    fields = [{"name": "Price", "value": item.price_text or "Free", "inline": False}]

    if item.ends_at is not None:
        unix = to_unix_seconds(item.ends_at)
        fields.append({"name": "Ends", "value": f"<t:{unix}:F> (<t:{unix}:R>)", "inline": False})

    embed: dict[str, Any] = {
        "title": item.title,
        "url": item.url,
        "color": _SOURCE_COLORS.get(item.source, _SOURCE_COLORS[Storefront.STEAM]),
        "footer": {"text": item.source.value},
        "fields": fields,
    }
    if item.image_url:
        placement = "image" if item.source in _BANNER_SOURCES else "thumbnail"
        embed[placement] = {"url": item.image_url}
    return embed


def render_embed_text(embed: dict[str, Any]) -> str:
    lines = [f"{embed.get('title', '')} ({embed.get('url', '')})"]
    footer = embed.get("footer")
    if isinstance(footer, dict) and footer.get("text"):
        lines.append(f"Source: {footer['text']}")
    for embed_field in embed.get("fields") or []:
        if isinstance(embed_field, dict):
            lines.append(f"{embed_field.get('name')}: {embed_field.get('value')}")
    for placement in ("image", "thumbnail"):
        media = embed.get(placement)
        if isinstance(media, dict) and media.get("url"):
            lines.append(f"{placement.capitalize()}: {media['url']}")
    return "\n".join(lines)


def _unwrap(item: FreebieItem | PendingFreebie) -> FreebieItem:
    if isinstance(item, PendingFreebie):
        return item.item
    return item
