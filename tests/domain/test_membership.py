from __future__ import annotations

from uuid import uuid4

from cinequeue.domain.membership import find_member, is_member, without_member
from cinequeue.domain.model import (
    CatalogRef,
    ItemDescriptor,
    ListEntry,
    PersistedId,
    Provider,
)


def _entries() -> tuple[ListEntry, ...]:
    return (
        ListEntry(
            list_id="personal",
            item_id=PersistedId(uuid4()),
            title="The Matrix",
            external_ref=CatalogRef(Provider.TMDB, "603"),
        ),
        ListEntry(list_id="personal", item_id=CatalogRef(Provider.TMDB, "78"), title="Blade Runner"),
        ListEntry(list_id="personal", item_id=PersistedId(uuid4()), title="Alien"),
    )


def test_membership_sees_through_id_forms() -> None:
    entries = _entries()

    assert is_member("tmdb-603", entries)
    assert find_member("tmdb-78", entries) == 1
    assert find_member(entries[2].item_id, entries) == 2
    assert not is_member("tmdb-1", entries)


def test_membership_falls_back_to_titles() -> None:
    entries = _entries()

    assert find_member(ItemDescriptor.parse("tmdb-348", title="alien"), entries) == 2


def test_without_member_removes_every_match() -> None:
    entries = (*_entries(), ListEntry(list_id="personal", item_id=PersistedId(uuid4()), title="ALIEN"))

    remaining = without_member(ItemDescriptor.parse("tmdb-348", title="Alien"), entries)

    assert [entry.title for entry in remaining] == ["The Matrix", "Blade Runner"]


def test_empty_list_has_no_members() -> None:
    assert find_member("tmdb-603", ()) is None
    assert without_member("tmdb-603", ()) == ()
