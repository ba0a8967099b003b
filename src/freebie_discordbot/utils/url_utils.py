from __future__ import annotations

import re
from urllib.parse import urlsplit

from freebie_discordbot.models import FreebieItem

_APP_ID_PATTERN = re.compile(r"/app/(\d+)(?:/|$)")


def extract_app_id(url: str) -> str | None:
    path = urlsplit((url or "").strip()).path
    match = _APP_ID_PATTERN.search(path)
    if match is None:
        return None
    return match.group(1)


def derive_item_key(item: FreebieItem) -> str:
    """Return the dedupe key for an item.

    Store pages addressed by a numeric app id keep the same key when the
    locale, slug or tracking query of the URL changes.
    """
    app_id = extract_app_id(item.url)
    if app_id:
        return f"{item.source.key_prefix}_app_{app_id}"
    return f"{item.source.value}:{item.url}"
