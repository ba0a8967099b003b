from __future__ import annotations

from collections.abc import Iterable

from freebie_discordbot.models import FreebieItem, PendingFreebie
from freebie_discordbot.store.base import NotifiedState
from freebie_discordbot.utils.url_utils import derive_item_key


def filter_new_items(items: Iterable[FreebieItem], state: NotifiedState) -> list[PendingFreebie]:
    """Return the items whose key is not in ``state``, in input order.

    A key seen twice in the same batch is only returned once.
    """
    pending: list[PendingFreebie] = []
    emitted: set[str] = set()
    for item in items:
        key = derive_item_key(item)
        if key in state or key in emitted:
            continue
        emitted.add(key)
        pending.append(PendingFreebie(item=item, internal_key=key))
    return pending
