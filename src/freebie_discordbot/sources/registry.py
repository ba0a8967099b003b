from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from freebie_discordbot.config import SourceSettings
from freebie_discordbot.models import Storefront

from .base import Source

SourceFactory = Callable[[SourceSettings], Source]


@dataclass(frozen=True, slots=True)
class SourceRegistration:
    source_type: str
    storefront: Storefront
    factory: SourceFactory


_REGISTRY: dict[str, SourceRegistration] = {}


class SourceRegistrationError(ValueError):
    """Raised for unknown, duplicate or conflicting source types and ids."""


def register_source(
    source_type: str,
    storefront: Storefront,
) -> Callable[[SourceFactory], SourceFactory]:
    def decorator(factory: SourceFactory) -> SourceFactory:
        if source_type in _REGISTRY:
            raise SourceRegistrationError(f"Source type '{source_type}' is already registered")
        _REGISTRY[source_type] = SourceRegistration(
            source_type=source_type,
            storefront=storefront,
            factory=factory,
        )
        return factory

    return decorator


def storefront_for(source_type: str) -> Storefront:
    return _lookup(source_type).storefront


def create_source(settings: SourceSettings) -> Source:
    return _lookup(settings.type).factory(settings)


def create_sources(settings_list: list[SourceSettings]) -> list[Source]:
    """Build every configured source, rejecting repeated ids and storefronts.

    Two entries for one storefront would announce the same games twice under
    different ids, so each storefront may be configured at most once.
    """
    seen_ids: set[str] = set()
    seen_storefronts: dict[Storefront, str] = {}
    for settings in settings_list:
        storefront = storefront_for(settings.type)
        if settings.id in seen_ids:
            raise SourceRegistrationError(f"Duplicate source id '{settings.id}'")
        if storefront in seen_storefronts:
            raise SourceRegistrationError(
                f"Sources '{seen_storefronts[storefront]}' and '{settings.id}' "
                f"both read {storefront.value}"
            )
        seen_ids.add(settings.id)
        seen_storefronts[storefront] = settings.id

    return [create_source(settings) for settings in settings_list]


def registered_source_types() -> list[str]:
    return sorted(_REGISTRY)


def _lookup(source_type: str) -> SourceRegistration:
    registration = _REGISTRY.get(source_type)
    if registration is None:
        available = ", ".join(sorted(_REGISTRY)) or "none"
        raise SourceRegistrationError(
            f"Unknown source type '{source_type}'. Registered source types: {available}"
        )
    return registration
