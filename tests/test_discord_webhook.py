from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest
import requests

from freebie_discordbot.models import FreebieItem, PendingFreebie, Storefront
from freebie_discordbot.notifiers import DeliveryError, DiscordWebhookNotifier
from freebie_discordbot.notifiers.discord_webhook import (
    build_discord_embed,
    build_discord_embeds,
    chunk,
    deliver_embeds,
    render_embed_text,
)

WEBHOOK_URL = "https://discord.test/api/webhooks/1/token"


class _DummyResponse:
    def __init__(self, status_code: int = 204, text: str = "") -> None:
        self.status_code = status_code
        self.text = text


class _RecordingPost:
    def __init__(self, responses: list[_DummyResponse] | None = None) -> None:
        self.calls: list[dict[str, Any]] = []
        self._responses = list(responses or [])

    def __call__(self, url: str, **kwargs: Any) -> _DummyResponse:
        self.calls.append({"url": url, **kwargs})
        if self._responses:
            return self._responses.pop(0)
        return _DummyResponse()


def _item(**overrides: object) -> FreebieItem:
    base = FreebieItem(
        source=Storefront.EPIC,
        title="Free Game",
        url="https://store.epicgames.com/en-US/p/free-game",
        image_url="https://cdn.test/wide.jpg",
        price_text="Free",
        ends_at=datetime(2026, 5, 21, 15, 0, tzinfo=timezone.utc),
    )
    for key, value in overrides.items():
        setattr(base, key, value)
    return base


def _embeds(count: int) -> list[dict[str, Any]]:
    return [{"title": f"Game {index}"} for index in range(count)]


def test_epic_embed_has_banner_image_and_expiry_field() -> None:
    embed = build_discord_embed(_item())

    assert embed == {
        "title": "Free Game",
        "url": "https://store.epicgames.com/en-US/p/free-game",
        "color": 16753920,
        "footer": {"text": "Epic Games"},
        "fields": [
            {"name": "Price", "value": "Free", "inline": False},
            {"name": "Ends", "value": "<t:1779375600:F> (<t:1779375600:R>)", "inline": False},
        ],
        "image": {"url": "https://cdn.test/wide.jpg"},
    }


def test_steam_embed_uses_thumbnail_and_skips_missing_expiry() -> None:
    embed = build_discord_embed(
        _item(
            source=Storefront.STEAM,
            url="https://store.steampowered.com/app/111/Free_Shooter/",
            image_url="https://cdn.test/111.jpg",
            ends_at=None,
            price_text="",
        )
    )

    assert embed["color"] == 3447003
    assert embed["footer"] == {"text": "Steam"}
    assert embed["thumbnail"] == {"url": "https://cdn.test/111.jpg"}
    assert "image" not in embed
    assert embed["fields"] == [{"name": "Price", "value": "Free", "inline": False}]


def test_embed_without_image_has_no_media() -> None:
    embed = build_discord_embed(_item(image_url=None))

    assert "image" not in embed
    assert "thumbnail" not in embed


def test_build_embeds_accepts_tagged_items_in_order() -> None:
    pending = [
        PendingFreebie(item=_item(title="One"), internal_key="a"),
        PendingFreebie(item=_item(title="Two"), internal_key="b"),
    ]

    assert [embed["title"] for embed in build_discord_embeds(pending)] == ["One", "Two"]


def test_chunk_splits_in_order() -> None:
    assert chunk([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
    assert chunk([], 10) == []
    with pytest.raises(ValueError):
        chunk([1], 0)


def test_nothing_to_send_makes_no_calls(monkeypatch: pytest.MonkeyPatch) -> None:
    post = _RecordingPost()
    monkeypatch.setattr("requests.post", post)

    assert deliver_embeds(WEBHOOK_URL, [], "42") == 0
    assert post.calls == []


def test_batches_of_ten_with_mention_only_on_first(monkeypatch: pytest.MonkeyPatch) -> None:
    post = _RecordingPost()
    monkeypatch.setattr("requests.post", post)

    notifier = DiscordWebhookNotifier(WEBHOOK_URL, mention_role_id="12345")
    delivered = notifier.deliver(_embeds(23))

    assert delivered == 23
    assert [len(call["json"]["embeds"]) for call in post.calls] == [10, 10, 3]
    assert post.calls[0]["json"]["content"] == "<@&12345>"
    assert post.calls[0]["json"]["allowed_mentions"] == {"roles": ["12345"]}
    for call in post.calls[1:]:
        assert "content" not in call["json"]
        assert "allowed_mentions" not in call["json"]
    assert [call["json"]["embeds"][0]["title"] for call in post.calls] == [
        "Game 0",
        "Game 10",
        "Game 20",
    ]
    assert all(call["url"] == WEBHOOK_URL for call in post.calls)
    assert all(call["timeout"] == 15 for call in post.calls)


def test_no_mention_without_role(monkeypatch: pytest.MonkeyPatch) -> None:
    post = _RecordingPost()
    monkeypatch.setattr("requests.post", post)

    deliver_embeds(WEBHOOK_URL, _embeds(3))

    assert post.calls[0]["json"] == {"embeds": _embeds(3)}


def test_failed_batch_stops_delivery_and_reports_progress(monkeypatch: pytest.MonkeyPatch) -> None:
    post = _RecordingPost([_DummyResponse(204), _DummyResponse(429, "rate limited")])
    monkeypatch.setattr("requests.post", post)

    with pytest.raises(DeliveryError) as excinfo:
        deliver_embeds(WEBHOOK_URL, _embeds(25))

    assert excinfo.value.delivered == 10
    assert "429" in str(excinfo.value)
    assert len(post.calls) == 2


def test_transport_error_is_wrapped(monkeypatch: pytest.MonkeyPatch) -> None:
    def failing_post(*args: Any, **kwargs: Any) -> _DummyResponse:
        raise requests.Timeout("slow")

    monkeypatch.setattr("requests.post", failing_post)

    with pytest.raises(DeliveryError) as excinfo:
        deliver_embeds(WEBHOOK_URL, _embeds(1))

    assert excinfo.value.delivered == 0


def test_render_embed_text_lists_fields() -> None:
    rendered = render_embed_text(build_discord_embed(_item()))

    assert rendered == "\n".join(
        [
            "Free Game (https://store.epicgames.com/en-US/p/free-game)",
            "Source: Epic Games",
            "Price: Free",
            "Ends: <t:1779375600:F> (<t:1779375600:R>)",
            "Image: https://cdn.test/wide.jpg",
        ]
    )


def test_dry_run_preview_prints_exact_rendered_text(capsys: pytest.CaptureFixture[str]) -> None:
    from freebie_discordbot.service import print_embed_preview

    embed = build_discord_embed(_item())

    print_embed_preview(embed)

    expected = f"[DRY RUN] WOULD POST EMBED:\n{render_embed_text(embed)}\n\n"
    assert capsys.readouterr().out == expected
