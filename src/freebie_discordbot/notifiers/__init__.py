"""Notifier implementations."""

from .base import DeliveryError, Notifier
from .discord_webhook import (
    DiscordWebhookNotifier,
    build_discord_embeds,
    render_embed_text,
)

__all__ = [
    "DeliveryError",
    "DiscordWebhookNotifier",
    "Notifier",
    "build_discord_embeds",
    "render_embed_text",
]
