"""Port for the authoritative list store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from cinequeue.domain.model import (
        CatalogRef,
        ListEntry,
        ListId,
        PersistedId,
        PersistedItem,
        VoteDirection,
    )


@runtime_checkable
class ItemCatalogStore(Protocol):
    """The slice of the store the catalog materializer needs."""

    async def find_or_create_item(
        self, ref: CatalogRef, *, title: str | None = None
    ) -> PersistedItem:
        """Return the persisted item for ``ref``, creating it on first use.

        Must return the same id for the same reference across repeated and
        concurrent calls; the client does not enforce this.
        """
        ...


@runtime_checkable
class ListStore(ItemCatalogStore, Protocol):
    """Authoritative list operations.

    Failures are reported with the ``cinequeue.domain.errors`` taxonomy:
    ``NotAMemberError`` for votes/removals on absent entries,
    ``AlreadyAMemberError`` for duplicate adds, ``RemoteError`` otherwise.
    """

    async def apply_vote(
        self, list_id: ListId, item_id: PersistedId, action: VoteDirection
    ) -> ListEntry: ...

    async def add_item(self, list_id: ListId, item_id: PersistedId) -> ListEntry: ...

    async def remove_item(self, list_id: ListId, item_id: PersistedId) -> None: ...

    async def fetch_list(self, list_id: ListId) -> Sequence[ListEntry]: ...
