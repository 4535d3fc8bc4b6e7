"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import and_, delete, insert, select, update

from cinequeue.adapters.sqlalchemy.mappings import (
    list_entry_table,
    list_vote_table,
    media_item_table,
    utc_now,
)
from cinequeue.domain.model import CatalogRef, ListEntry, PersistedId, PersistedItem

if TYPE_CHECKING:
    from typing import Any

    from sqlalchemy import ColumnElement, Row
    from sqlalchemy.orm import Session

    from cinequeue.domain.model import ListId, VoteDirection


@dataclass(frozen=True, slots=True)
class EntryRow:
    """A ``list_entry`` row plus the acting user's vote on it."""

    id: uuid.UUID
    list_id: ListId
    item_id: uuid.UUID
    upvotes: int
    downvotes: int
    user_vote: VoteDirection | None


def _item_from_row(row: Row[Any]) -> PersistedItem:
    item_id, provider, external_id, title = row
    external_ref = (
        CatalogRef(provider, external_id)
        if provider is not None and external_id is not None
        else None
    )
    return PersistedItem(id=PersistedId(item_id), title=title, external_ref=external_ref)


class SqlAlchemyMediaItemRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, item_id: uuid.UUID) -> PersistedItem | None:
        stmt = select(
            media_item_table.c.id,
            media_item_table.c.provider,
            media_item_table.c.external_id,
            media_item_table.c.title,
        ).where(media_item_table.c.id == item_id)
        row = self.session.execute(stmt).one_or_none()
        return None if row is None else _item_from_row(row)

    def get_by_ref(self, ref: CatalogRef) -> PersistedItem | None:
        stmt = (
            select(
                media_item_table.c.id,
                media_item_table.c.provider,
                media_item_table.c.external_id,
                media_item_table.c.title,
            )
            .where(media_item_table.c.provider == ref.provider)
            .where(media_item_table.c.external_id == ref.external_id)
            .limit(1)
        )
        row = self.session.execute(stmt).one_or_none()
        return None if row is None else _item_from_row(row)

    def add(self, ref: CatalogRef | None, *, title: str = "") -> PersistedItem:
        item_id = uuid.uuid4()
        self.session.execute(
            insert(media_item_table).values(
                id=item_id,
                provider=None if ref is None else ref.provider,
                external_id=None if ref is None else ref.external_id,
                title=title,
                created_at=utc_now(),
            )
        )
        return PersistedItem(id=PersistedId(item_id), title=title, external_ref=ref)

    def set_title(self, item_id: uuid.UUID, title: str) -> None:
        self.session.execute(
            update(media_item_table).where(media_item_table.c.id == item_id).values(title=title)
        )


class SqlAlchemyListEntryRepository:
    """List entries and the votes of one user on them."""

    def __init__(self, session: Session, *, user_id: uuid.UUID) -> None:
        self.session = session
        self.user_id = user_id

    def find(self, list_id: ListId, item_id: uuid.UUID) -> EntryRow | None:
        stmt = (
            select(
                list_entry_table.c.id,
                list_entry_table.c.list_id,
                list_entry_table.c.item_id,
                list_entry_table.c.upvotes,
                list_entry_table.c.downvotes,
                list_vote_table.c.vote,
            )
            .outerjoin(list_vote_table, self._own_vote_clause())
            .where(list_entry_table.c.list_id == list_id)
            .where(list_entry_table.c.item_id == item_id)
        )
        row = self.session.execute(stmt).one_or_none()
        if row is None:
            return None
        return EntryRow(*row)

    def add(self, list_id: ListId, item_id: uuid.UUID) -> EntryRow:
        entry_id = uuid.uuid4()
        self.session.execute(
            insert(list_entry_table).values(
                id=entry_id,
                list_id=list_id,
                item_id=item_id,
                upvotes=0,
                downvotes=0,
                added_at=utc_now(),
            )
        )
        return EntryRow(entry_id, list_id, item_id, 0, 0, None)

    def remove(self, entry_id: uuid.UUID) -> None:
        self.session.execute(delete(list_vote_table).where(list_vote_table.c.entry_id == entry_id))
        self.session.execute(delete(list_entry_table).where(list_entry_table.c.id == entry_id))

    def set_counts(self, entry_id: uuid.UUID, *, upvotes: int, downvotes: int) -> None:
        self.session.execute(
            update(list_entry_table)
            .where(list_entry_table.c.id == entry_id)
            .values(upvotes=upvotes, downvotes=downvotes)
        )

    def set_vote(self, entry_id: uuid.UUID, vote: VoteDirection | None) -> None:
        self.session.execute(
            delete(list_vote_table)
            .where(list_vote_table.c.entry_id == entry_id)
            .where(list_vote_table.c.user_id == self.user_id)
        )
        if vote is not None:
            self.session.execute(
                insert(list_vote_table).values(entry_id=entry_id, user_id=self.user_id, vote=vote)
            )

    def entries(self, list_id: ListId) -> tuple[ListEntry, ...]:
        """Entries of ``list_id``, highest score first, newest first on ties."""

        score = list_entry_table.c.upvotes - list_entry_table.c.downvotes
        stmt = (
            select(
                list_entry_table.c.item_id,
                media_item_table.c.title,
                media_item_table.c.provider,
                media_item_table.c.external_id,
                list_entry_table.c.upvotes,
                list_entry_table.c.downvotes,
                list_vote_table.c.vote,
            )
            .join(media_item_table, media_item_table.c.id == list_entry_table.c.item_id)
            .outerjoin(list_vote_table, self._own_vote_clause())
            .where(list_entry_table.c.list_id == list_id)
            .order_by(score.desc(), list_entry_table.c.added_at.desc(), media_item_table.c.title)
        )
        entries: list[ListEntry] = []
        for item_id, title, provider, external_id, upvotes, downvotes, vote in self.session.execute(stmt):
            entries.append(
                ListEntry(
                    list_id=list_id,
                    item_id=PersistedId(item_id),
                    title=title,
                    external_ref=(
                        CatalogRef(provider, external_id)
                        if provider is not None and external_id is not None
                        else None
                    ),
                    upvotes=upvotes,
                    downvotes=downvotes,
                    user_vote=vote,
                )
            )
        return tuple(entries)

    def _own_vote_clause(self) -> ColumnElement[bool]:
        return and_(
            list_vote_table.c.entry_id == list_entry_table.c.id,
            list_vote_table.c.user_id == self.user_id,
        )
