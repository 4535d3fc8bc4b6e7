"""Public domain model surface."""

from __future__ import annotations

from cinequeue.domain.model.entries import (
    PERSONAL_LIST,
    Identified,
    ItemDescriptor,
    ListEntry,
    ListId,
    PersistedItem,
)
from cinequeue.domain.model.enums import MatchResult, MutationAction, Provider, VoteDirection
from cinequeue.domain.model.identifiers import (
    CatalogRef,
    InvalidItemIdError,
    ItemId,
    PersistedId,
    canonicalize,
    catalog_ref_of,
    format_item_id,
)

__all__ = [  # noqa: RUF022
    # identifiers
    "CatalogRef",
    "PersistedId",
    "ItemId",
    "InvalidItemIdError",
    "canonicalize",
    "catalog_ref_of",
    "format_item_id",
    # entries
    "PERSONAL_LIST",
    "Identified",
    "ItemDescriptor",
    "ListEntry",
    "ListId",
    "PersistedItem",
    # enums
    "MatchResult",
    "MutationAction",
    "Provider",
    "VoteDirection",
]
