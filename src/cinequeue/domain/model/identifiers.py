"""Item identifiers.

Three namespaces coexist for the same title: a catalog reference handed out by
search/browse (``tmdb-603``), the store's own record id (a UUID) and the display
title. The first two form the ``ItemId`` tagged union; titles only take part in
identity resolution.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final
from uuid import UUID

from cinequeue.domain.model.enums import Provider

_PREFIX_SEPARATOR: Final[str] = "-"

_PREFIXES: Final[dict[Provider, str]] = {
    provider: f"{provider.value}{_PREFIX_SEPARATOR}" for provider in Provider
}


class InvalidItemIdError(ValueError):
    """Raised when a raw identifier belongs to no known namespace."""


@dataclass(frozen=True, slots=True)
class CatalogRef:
    """Reference into an external catalog; not votable until materialized."""

    provider: Provider
    external_id: str

    def __post_init__(self) -> None:
        if not self.external_id.strip():
            raise InvalidItemIdError("catalog reference requires a non-blank external id")

    def __str__(self) -> str:
        return f"{_PREFIXES[self.provider]}{self.external_id}"


@dataclass(frozen=True, slots=True)
class PersistedId:
    """Identifier of a record owned by the store."""

    value: UUID

    def __str__(self) -> str:
        return str(self.value)


type ItemId = CatalogRef | PersistedId


def canonicalize(raw_id: str | ItemId) -> ItemId:
    """Parse a wire identifier into the tagged union.

    Already-parsed identifiers pass through unchanged.
    """

    if isinstance(raw_id, CatalogRef | PersistedId):
        return raw_id
    candidate = raw_id.strip()
    for provider, prefix in _PREFIXES.items():
        if candidate.startswith(prefix):
            return CatalogRef(provider=provider, external_id=candidate[len(prefix) :])
    try:
        return PersistedId(UUID(candidate))
    except ValueError as exc:
        raise InvalidItemIdError(f"Unrecognised item id: {raw_id!r}") from exc


def format_item_id(item_id: ItemId) -> str:
    """Render an identifier in its wire form (``tmdb-603`` or the UUID)."""

    return str(item_id)


def catalog_ref_of(item_id: ItemId, external_ref: CatalogRef | None = None) -> CatalogRef | None:
    """Return the catalog reference an identifier is known by, if any."""

    match item_id:
        case CatalogRef():
            return item_id
        case PersistedId():
            return external_ref
