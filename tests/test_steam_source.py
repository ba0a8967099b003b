from __future__ import annotations

from typing import Any

import pytest

from freebie_discordbot.config import SourceSettings
from freebie_discordbot.models import Storefront
from freebie_discordbot.sources.steam_source import (
    STEAM_FREE_SEARCH_URL,
    SteamSpecialsSource,
    parse_search_results,
)

SEARCH_PAGE = """
<html><body>
<div id="search_resultsRows">
  <a href="https://store.steampowered.com/app/111/Free_Shooter/?snr=1_7_7" class="search_result_row ds_collapse_flag">
    <div class="col search_capsule"><img src="https://cdn.test/111.jpg"></div>
    <div class="responsive_search_name_combined">
      <div class="col search_name ellipsis"><span class="title">Free Shooter</span></div>
      <div class="col search_price_discount_combined" data-price-final="0">
        <div class="discount_block">
          <div class="discount_pct">-100%</div>
          <div class="discount_prices">
            <div class="discount_original_price">$19.99</div>
            <div class="discount_final_price">$0.00</div>
          </div>
        </div>
      </div>
    </div>
  </a>
  <a href="https://store.steampowered.com/app/222/Attribute_Only/" class="search_result_row" data-price-final="0">
    <div class="col search_name ellipsis"><span class="title">Attribute Only</span></div>
    <div class="col search_price">  Free
       To Play </div>
  </a>
  <a href="https://store.steampowered.com/app/333/Cheap_Game/" class="search_result_row">
    <div class="col search_name ellipsis"><span class="title">Cheap Game</span></div>
    <div class="col search_price">
       $4.99
    </div>
  </a>
  <a href="https://store.steampowered.com/app/444/No_Price/" class="search_result_row">
    <div class="col search_capsule"><img></div>
  </a>
  <a class="search_result_row">
    <div class="col search_name ellipsis"><span class="title">Missing Link</span></div>
  </a>
</div>
<a href="https://store.steampowered.com/app/999/Outside/" class="search_result_row">outside</a>
</body></html>
"""


class _DummyResponse:
    def __init__(self, text: str) -> None:
        self.text = text
        self.status_code = 200

    def raise_for_status(self) -> None:
        return None


def test_rows_map_to_freebies() -> None:
    items = parse_search_results(SEARCH_PAGE)

    assert [item.title for item in items] == [
        "Free Shooter",
        "Attribute Only",
        "Cheap Game",
        "Unknown Title",
    ]
    first = items[0]
    assert first.source is Storefront.STEAM
    assert first.url == "https://store.steampowered.com/app/111/Free_Shooter/?snr=1_7_7"
    assert first.image_url == "https://cdn.test/111.jpg"
    assert first.ends_at is None


def test_price_text_heuristics() -> None:
    items = parse_search_results(SEARCH_PAGE)

    assert [item.price_text for item in items] == ["Free", "Free", "$4.99", "Free"]


def test_row_without_image_source_has_no_image() -> None:
    items = parse_search_results(SEARCH_PAGE)

    assert items[3].image_url is None


def test_page_without_results_yields_nothing() -> None:
    assert parse_search_results("<html><body><p>No results</p></body></html>") == []


def test_fetch_uses_search_url(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict[str, Any]] = []

    def fake_get(url: str, **kwargs: Any) -> _DummyResponse:
        calls.append({"url": url, **kwargs})
        return _DummyResponse(SEARCH_PAGE)

    monkeypatch.setattr("requests.get", fake_get)

    items = SteamSpecialsSource(SourceSettings(id="steam", type="steam_specials")).fetch()

    assert len(items) == 4
    assert calls[0]["url"] == STEAM_FREE_SEARCH_URL
    assert calls[0]["timeout"] == 20
    assert "User-Agent" in calls[0]["headers"]


def test_fetch_safely_swallows_parse_failures(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken_get(*args: Any, **kwargs: Any) -> _DummyResponse:
        raise TimeoutError("timed out")

    monkeypatch.setattr("requests.get", broken_get)

    result = SteamSpecialsSource(SourceSettings(id="steam", type="steam_specials")).fetch_safely()

    assert result.items == []
    assert result.ok is False
