"""Local ``ListStore`` on top of the SQLAlchemy unit of work.

Used for offline lists and as a stand-in for the watchlist API. The store
applies the same vote arithmetic as the client, so optimistic guesses and
store answers agree unless another user voted in between. Calls run inline on
the event loop; the sessions are short and local.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from logging import getLogger
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError

from cinequeue.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork
from cinequeue.config.storage import DEFAULT_LOCAL_USER_ID
from cinequeue.domain.errors import AlreadyAMemberError, NotAMemberError, RemoteError
from cinequeue.domain.model import ListEntry, PersistedId
from cinequeue.domain.ports import ListStore
from cinequeue.domain.voting import vote_transition

if TYPE_CHECKING:
    import uuid
    from collections.abc import Callable, Sequence

    from cinequeue.adapters.sqlalchemy.repositories import EntryRow
    from cinequeue.domain.model import CatalogRef, ListId, PersistedItem, VoteDirection

log = getLogger(__name__)


@dataclass(slots=True)
class SqlAlchemyListStore:
    user_id: uuid.UUID = DEFAULT_LOCAL_USER_ID
    unit_of_work_factory: Callable[..., SqlAlchemyUnitOfWork] = field(default=SqlAlchemyUnitOfWork)

    def _unit_of_work(self) -> SqlAlchemyUnitOfWork:
        return self.unit_of_work_factory(user_id=self.user_id)

    async def find_or_create_item(self, ref: CatalogRef, *, title: str | None = None) -> PersistedItem:
        with self._unit_of_work() as uow:
            items = uow.repositories.items
            existing = items.get_by_ref(ref)
            if existing is not None:
                if title and not existing.title:
                    items.set_title(existing.id.value, title)
                    uow.commit()
                    return replace(existing, title=title)
                return existing
            try:
                created = items.add(ref, title=title or "")
                uow.commit()
            except IntegrityError:
                # Lost a race on (provider, external_id); the winner's row is the answer.
                uow.rollback()
                winner = items.get_by_ref(ref)
                if winner is None:
                    raise
                return winner
        log.debug("Created media item %s for %s", created.id, ref)
        return created

    async def apply_vote(
        self, list_id: ListId, item_id: PersistedId, action: VoteDirection
    ) -> ListEntry:
        with self._unit_of_work() as uow:
            entries = uow.repositories.entries
            row = entries.find(list_id, item_id.value)
            if row is None:
                raise NotAMemberError("Item not found in watchlist", status_code=404)
            transition = vote_transition(row.user_vote, action)
            upvotes = max(0, row.upvotes + transition.upvote_delta)
            downvotes = max(0, row.downvotes + transition.downvote_delta)
            entries.set_counts(row.id, upvotes=upvotes, downvotes=downvotes)
            entries.set_vote(row.id, transition.new_vote)
            uow.commit()
            item = uow.repositories.items.get(item_id.value)
        return ListEntry(
            list_id=list_id,
            item_id=item_id,
            title=item.title if item else "",
            external_ref=item.external_ref if item else None,
            upvotes=upvotes,
            downvotes=downvotes,
            user_vote=transition.new_vote,
        )

    async def add_item(self, list_id: ListId, item_id: PersistedId) -> ListEntry:
        with self._unit_of_work() as uow:
            item = uow.repositories.items.get(item_id.value)
            if item is None:
                raise RemoteError("Media not found", status_code=404)
            entries = uow.repositories.entries
            if entries.find(list_id, item_id.value) is not None:
                raise AlreadyAMemberError("Already in watchlist", status_code=400)
            row = entries.add(list_id, item_id.value)
            uow.commit()
        log.debug("Added %s to %s", item_id, list_id)
        return _entry_from_row(row, item)

    async def remove_item(self, list_id: ListId, item_id: PersistedId) -> None:
        with self._unit_of_work() as uow:
            entries = uow.repositories.entries
            row = entries.find(list_id, item_id.value)
            if row is None:
                raise NotAMemberError("Item not found in watchlist", status_code=404)
            entries.remove(row.id)
            uow.commit()
        log.debug("Removed %s from %s", item_id, list_id)

    async def fetch_list(self, list_id: ListId) -> Sequence[ListEntry]:
        with self._unit_of_work() as uow:
            return uow.repositories.entries.entries(list_id)


def _entry_from_row(row: EntryRow, item: PersistedItem) -> ListEntry:
    return ListEntry(
        list_id=row.list_id,
        item_id=PersistedId(row.item_id),
        title=item.title,
        external_ref=item.external_ref,
        upvotes=row.upvotes,
        downvotes=row.downvotes,
        user_vote=row.user_vote,
    )


if TYPE_CHECKING:
    _store_check: ListStore = SqlAlchemyListStore()
