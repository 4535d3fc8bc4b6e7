"""Reactive in-memory cache of list snapshots."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from cinequeue.domain.model import ListEntry, ListId

log = getLogger(__name__)

type ListListener = Callable[[ListId, tuple[ListEntry, ...]], None]


class ListCache:
    """Holds the latest known entries of every list and tells watchers about changes.

    One instance is shared by everything rendering lists; only the mutation
    coordinator writes to it.
    """

    def __init__(self) -> None:
        self._lists: dict[ListId, tuple[ListEntry, ...]] = {}
        self._listeners: dict[ListId | None, list[ListListener]] = {}

    def get(self, list_id: ListId) -> tuple[ListEntry, ...]:
        return self._lists.get(list_id, ())

    def is_loaded(self, list_id: ListId) -> bool:
        return list_id in self._lists

    @property
    def list_ids(self) -> tuple[ListId, ...]:
        return tuple(self._lists)

    def publish(self, list_id: ListId, entries: Sequence[ListEntry]) -> None:
        snapshot = tuple(entries)
        if self._lists.get(list_id) == snapshot and list_id in self._lists:
            return
        self._lists[list_id] = snapshot
        self._emit(list_id, snapshot)

    def update(
        self,
        list_id: ListId,
        change: Callable[[tuple[ListEntry, ...]], Sequence[ListEntry]],
    ) -> tuple[ListEntry, ...]:
        """Read-modify-write one list and publish the result."""

        self.publish(list_id, change(self.get(list_id)))
        return self.get(list_id)

    def subscribe(self, listener: ListListener, *, list_id: ListId | None = None) -> Callable[[], None]:
        """Register ``listener`` for one list, or for all lists when ``list_id`` is None."""

        bucket = self._listeners.setdefault(list_id, [])
        bucket.append(listener)

        def unsubscribe() -> None:
            if listener in bucket:
                bucket.remove(listener)

        return unsubscribe

    def _emit(self, list_id: ListId, entries: tuple[ListEntry, ...]) -> None:
        for listener in (*self._listeners.get(list_id, ()), *self._listeners.get(None, ())):
            try:
                listener(list_id, entries)
            except Exception:
                log.exception("List listener failed for %s", list_id)
