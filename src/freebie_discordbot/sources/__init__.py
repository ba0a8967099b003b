"""Source implementations and registry."""

from .base import FetchResult, Source
from .epic_source import EpicFreeGamesSource
from .registry import (
    SourceRegistrationError,
    create_source,
    create_sources,
    register_source,
    registered_source_types,
    storefront_for,
)
from .steam_source import SteamSpecialsSource

__all__ = [
    "EpicFreeGamesSource",
    "FetchResult",
    "Source",
    "SourceRegistrationError",
    "SteamSpecialsSource",
    "create_source",
    "create_sources",
    "register_source",
    "registered_source_types",
    "storefront_for",
]
