"""Identity resolution across catalog references, persisted ids and titles.

The same title can be referenced by its catalog id before materialization and by
its persisted id afterwards, and both forms may sit in the caller's working set
at once. ``resolve`` recognises them as the same list entry without a network
round trip:

1. canonical ids are equal;
2. both sides are known by the same catalog reference (either as their id or as
   the ``external_ref`` of a persisted item);
3. last resort: the display titles are equal ignoring case. A blank title never
   matches anything, and neither do two items known by different catalog
   references (a remake shares its title with the original).
"""

from __future__ import annotations

from dataclasses import dataclass

from cinequeue.domain.model import (
    CatalogRef,
    Identified,
    ItemId,
    MatchResult,
    canonicalize,
    catalog_ref_of,
)

__all__ = ["IdentityKey", "canonicalize", "identity_key", "normalize_title", "resolve"]


@dataclass(frozen=True, slots=True)
class IdentityKey:
    """The comparable parts of an item's identity."""

    item_id: ItemId
    catalog_ref: CatalogRef | None
    title_key: str | None


type Resolvable = Identified | IdentityKey | str | ItemId


def normalize_title(title: str | None) -> str | None:
    if title is None:
        return None
    normalized = " ".join(title.split()).casefold()
    return normalized or None


def identity_key(value: Resolvable) -> IdentityKey:
    if isinstance(value, IdentityKey):
        return value
    if isinstance(value, Identified):
        return IdentityKey(
            item_id=value.item_id,
            catalog_ref=catalog_ref_of(value.item_id, value.external_ref),
            title_key=normalize_title(value.title),
        )
    item_id = canonicalize(value)
    return IdentityKey(item_id=item_id, catalog_ref=catalog_ref_of(item_id), title_key=None)


def resolve(a: Resolvable, b: Resolvable) -> MatchResult:
    """Decide whether ``a`` and ``b`` denote the same logical title."""

    left = identity_key(a)
    right = identity_key(b)

    if left.item_id == right.item_id:
        return MatchResult.MATCH
    if left.catalog_ref is not None and left.catalog_ref == right.catalog_ref:
        return MatchResult.MATCH
    if left.catalog_ref is not None and right.catalog_ref is not None:
        return MatchResult.NO_MATCH
    if left.title_key is not None and left.title_key == right.title_key:
        return MatchResult.MATCH
    return MatchResult.NO_MATCH
