"""Persisted items and list entries.

The store owns these records; the client only keeps immutable copies, which is
what lets a pre-mutation snapshot be compared with ``==`` after a rollback.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Final, Protocol, runtime_checkable

from cinequeue.domain.model.identifiers import CatalogRef, PersistedId, canonicalize

if TYPE_CHECKING:
    from cinequeue.domain.model.enums import VoteDirection
    from cinequeue.domain.model.identifiers import ItemId

type ListId = str

PERSONAL_LIST: Final[ListId] = "personal"


@runtime_checkable
class Identified(Protocol):
    """Anything the identity resolver can compare."""

    @property
    def item_id(self) -> ItemId: ...

    @property
    def title(self) -> str: ...

    @property
    def external_ref(self) -> CatalogRef | None: ...


@dataclass(frozen=True, slots=True)
class ItemDescriptor:
    """What a caller knows about a title it wants to mutate."""

    item_id: ItemId
    title: str = ""
    external_ref: CatalogRef | None = None

    @classmethod
    def parse(cls, raw_id: str | ItemId, *, title: str = "") -> ItemDescriptor:
        item_id = canonicalize(raw_id)
        external_ref = item_id if isinstance(item_id, CatalogRef) else None
        return cls(item_id=item_id, title=title, external_ref=external_ref)

    @classmethod
    def of(cls, value: Identified | str | ItemId) -> ItemDescriptor:
        if isinstance(value, ItemDescriptor):
            return value
        if isinstance(value, Identified):
            return cls(item_id=value.item_id, title=value.title, external_ref=value.external_ref)
        return cls.parse(value)


@dataclass(frozen=True, slots=True)
class PersistedItem:
    id: PersistedId
    title: str
    external_ref: CatalogRef | None = None

    @property
    def item_id(self) -> PersistedId:
        return self.id


@dataclass(frozen=True, slots=True, kw_only=True)
class ListEntry:
    """A title's row in one list, with its vote tally and the caller's own vote."""

    list_id: ListId
    item_id: ItemId
    title: str = ""
    external_ref: CatalogRef | None = None
    upvotes: int = 0
    downvotes: int = 0
    user_vote: VoteDirection | None = None

    def __post_init__(self) -> None:
        if self.upvotes < 0 or self.downvotes < 0:
            raise ValueError("vote counts must be non-negative")

    @property
    def score(self) -> int:
        return self.upvotes - self.downvotes

    @classmethod
    def fresh(cls, list_id: ListId, item: Identified) -> ListEntry:
        """A zero-vote entry for an item that is about to join ``list_id``."""

        return cls(
            list_id=list_id,
            item_id=item.item_id,
            title=item.title,
            external_ref=item.external_ref,
        )

    def with_identity_from(self, other: Identified) -> ListEntry:
        """Fill blank identity fields (title, catalog ref) from ``other``."""

        return replace(
            self,
            title=self.title or other.title,
            external_ref=self.external_ref or other.external_ref,
        )
