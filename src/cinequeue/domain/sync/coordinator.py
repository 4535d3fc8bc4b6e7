"""Optimistic mutation coordinator.

Every mutation is applied to the cached list before the store confirms it,
then either overwritten with what the store returned or rolled back to the
state captured just before the speculative write. Mutations on the same item
are serialised by refusing new ones while one is in flight.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from cinequeue.config.store import SyncConfig
from cinequeue.domain.errors import AlreadyAMemberError, MutationTimeoutError, NotAMemberError
from cinequeue.domain.identity import identity_key, resolve
from cinequeue.domain.materialize import CatalogMaterializer
from cinequeue.domain.membership import find_member, without_member
from cinequeue.domain.model import ItemDescriptor, ListEntry, MutationAction
from cinequeue.domain.sync.cache import ListCache
from cinequeue.domain.sync.outcomes import MutationOutcome, OutcomeStatus
from cinequeue.domain.sync.sessions import VotingSessionTable
from cinequeue.domain.voting import apply_vote

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from cinequeue.domain.model import Identified, ItemId, ListId, PersistedId, VoteDirection
    from cinequeue.domain.ports import ListStore
    from cinequeue.domain.sync.cache import ListListener
    from cinequeue.domain.sync.sessions import VotingSession

log = getLogger(__name__)

type ItemLike = Identified | str | ItemId
type OutcomeListener = Callable[[MutationOutcome], None]
type ResyncErrorHook = Callable[[ListId, Exception], None]


@dataclass(frozen=True, slots=True)
class OptimisticSnapshot:
    """Every cached entry matching the item, with its position, before the speculative write."""

    list_id: ListId
    item: ItemDescriptor
    matches: tuple[tuple[int, ListEntry], ...]

    def restore(self, entries: Sequence[ListEntry]) -> tuple[ListEntry, ...]:
        restored = list(without_member(self.item, entries))
        for index, entry in self.matches:
            restored.insert(min(index, len(restored)), entry)
        return tuple(restored)


class OptimisticMutationCoordinator:
    def __init__(
        self,
        *,
        store: ListStore,
        cache: ListCache | None = None,
        materializer: CatalogMaterializer | None = None,
        config: SyncConfig | None = None,
        on_resync_error: ResyncErrorHook | None = None,
    ) -> None:
        config = config or SyncConfig()
        self._store = store
        self._cache = cache if cache is not None else ListCache()
        self._materializer = materializer or CatalogMaterializer(
            store, coalesce=config.coalesce_materialize
        )
        self._resync_delay = config.resync_delay_seconds
        self._timeout = config.mutation_timeout
        self._on_resync_error = on_resync_error
        self._sessions = VotingSessionTable()
        self._listeners: list[OutcomeListener] = []
        self._background: set[asyncio.Task[None]] = set()

    @property
    def cache(self) -> ListCache:
        return self._cache

    # ------------------------------------------------------------------
    # Read surface

    def entries(self, list_id: ListId) -> tuple[ListEntry, ...]:
        return self._cache.get(list_id)

    def entry_for(self, list_id: ListId, item: ItemLike) -> ListEntry | None:
        entries = self._cache.get(list_id)
        index = find_member(ItemDescriptor.of(item), entries)
        return None if index is None else entries[index]

    def is_member(self, list_id: ListId, item: ItemLike) -> bool:
        return self.entry_for(list_id, item) is not None

    def in_flight(self, item: ItemLike) -> bool:
        return self._sessions.in_flight(ItemDescriptor.of(item).item_id)

    def watch(self, list_id: ListId, callback: ListListener) -> Callable[[], None]:
        return self._cache.subscribe(callback, list_id=list_id)

    def subscribe(self, listener: OutcomeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def refresh(self, list_id: ListId) -> tuple[ListEntry, ...]:
        entries = tuple(await self._bounded(self._store.fetch_list(list_id)))
        self._cache.publish(list_id, entries)
        log.debug("Refreshed %s with %d entries", list_id, len(entries))
        return entries

    # ------------------------------------------------------------------
    # Mutations

    def mutate(
        self, list_id: ListId, item: ItemLike, action: MutationAction
    ) -> asyncio.Task[MutationOutcome] | None:
        """Apply ``action`` to the cached list right away and settle it in the background.

        Returns the settling task, or None, without touching any state, when a
        mutation on the same item is still in flight. Must be called from inside
        a running loop.
        """

        descriptor = ItemDescriptor.of(item)
        loop = asyncio.get_running_loop()
        session = self._sessions.try_open(descriptor.item_id)
        if session is None:
            log.debug("Ignoring %s on %s: already in flight", action, descriptor.item_id)
            return None

        concrete = self._concrete_action(list_id, descriptor, action)
        snapshot = self._take_snapshot(list_id, descriptor)
        self._cache.update(list_id, lambda entries: _speculate(list_id, descriptor, concrete, entries))
        log.debug("Mutation %s on %s in %s started", concrete, descriptor.item_id, list_id)

        task = loop.create_task(
            self._execute(session, snapshot, concrete),
            name=f"mutate:{list_id}:{descriptor.item_id}",
        )
        session.task = task
        task.add_done_callback(lambda done: self._on_done(session, snapshot, done))
        return task

    async def run(self, list_id: ListId, item: ItemLike, action: MutationAction) -> MutationOutcome:
        task = self.mutate(list_id, item, action)
        if task is None:
            descriptor = ItemDescriptor.of(item)
            return MutationOutcome(
                list_id=list_id,
                item=descriptor,
                action=action,
                status=OutcomeStatus.REJECTED,
                entry=self.entry_for(list_id, descriptor),
            )
        return await task

    async def drain(self) -> None:
        """Wait for every running mutation and scheduled resync to finish."""

        while pending := (*self._sessions.tasks(), *self._background):
            await asyncio.gather(*pending, return_exceptions=True)

    def _concrete_action(
        self, list_id: ListId, item: ItemDescriptor, action: MutationAction
    ) -> MutationAction:
        if action is not MutationAction.TOGGLE:
            return action
        return MutationAction.REMOVE if self.is_member(list_id, item) else MutationAction.ADD

    async def _execute(
        self, session: VotingSession, snapshot: OptimisticSnapshot, action: MutationAction
    ) -> MutationOutcome:
        try:
            outcome = await self._settle(snapshot, action)
        except asyncio.CancelledError:
            self._roll_back_cancelled(session, snapshot)
            raise
        finally:
            self._sessions.close(session)

        self._notify(outcome)
        if outcome.succeeded:
            self._schedule_resync(snapshot.list_id)
        return outcome

    def _on_done(
        self,
        session: VotingSession,
        snapshot: OptimisticSnapshot,
        task: asyncio.Task[MutationOutcome],
    ) -> None:
        # A task cancelled before its first step never enters _execute.
        if task.cancelled():
            self._roll_back_cancelled(session, snapshot)
        self._sessions.close(session)

    def _roll_back_cancelled(self, session: VotingSession, snapshot: OptimisticSnapshot) -> None:
        if session.rolled_back:
            return
        session.rolled_back = True
        self._cache.update(snapshot.list_id, snapshot.restore)
        log.warning("Mutation on %s cancelled, rolled back", snapshot.item.item_id)

    def _take_snapshot(self, list_id: ListId, item: ItemDescriptor) -> OptimisticSnapshot:
        key = identity_key(item)
        matches = tuple(
            (index, entry)
            for index, entry in enumerate(self._cache.get(list_id))
            if resolve(key, entry)
        )
        return OptimisticSnapshot(list_id=list_id, item=item, matches=matches)

    async def _settle(self, snapshot: OptimisticSnapshot, action: MutationAction) -> MutationOutcome:
        list_id, item = snapshot.list_id, snapshot.item
        status = OutcomeStatus.APPLIED
        used_fallback = False
        try:
            persisted_id = await self._bounded(
                self._materializer.materialize(item.item_id, title=item.title or None)
            )
            server_entry: ListEntry | None = None
            match action:
                case MutationAction.UPVOTE | MutationAction.DOWNVOTE:
                    server_entry, used_fallback = await self._vote(list_id, persisted_id, action.vote)
                case MutationAction.ADD:
                    try:
                        server_entry = await self._bounded(self._store.add_item(list_id, persisted_id))
                    except AlreadyAMemberError:
                        log.info("%s is already in %s", item.item_id, list_id)
                        status = OutcomeStatus.ALREADY_MEMBER
                case MutationAction.REMOVE:
                    await self._bounded(self._store.remove_item(list_id, persisted_id))
        except Exception as exc:
            entries = self._cache.update(list_id, snapshot.restore)
            log.warning(
                "Mutation %s on %s in %s failed, rolled back: %s", action, item.item_id, list_id, exc
            )
            index = find_member(item, entries)
            return MutationOutcome(
                list_id=list_id,
                item=item,
                action=action,
                status=OutcomeStatus.ROLLED_BACK,
                entry=None if index is None else entries[index],
                error=exc,
                used_fallback=used_fallback,
            )

        if server_entry is not None:
            self._cache.update(list_id, lambda entries: _reconcile(item, server_entry, entries))
        log.debug("Mutation %s on %s in %s settled: %s", action, item.item_id, list_id, status)
        return MutationOutcome(
            list_id=list_id,
            item=item,
            action=action,
            status=status,
            entry=self.entry_for(list_id, item),
            used_fallback=used_fallback,
        )

    async def _vote(
        self, list_id: ListId, item_id: PersistedId, direction: VoteDirection | None
    ) -> tuple[ListEntry, bool]:
        assert direction is not None
        try:
            return await self._bounded(self._store.apply_vote(list_id, item_id, direction)), False
        except NotAMemberError:
            log.info("%s is not in %s yet; adding it before voting", item_id, list_id)

        try:
            await self._bounded(self._store.add_item(list_id, item_id))
        except AlreadyAMemberError:
            log.debug("%s was added to %s concurrently", item_id, list_id)
        return await self._bounded(self._store.apply_vote(list_id, item_id, direction)), True

    async def _bounded[T](self, call: Awaitable[T]) -> T:
        if self._timeout is None:
            return await call
        try:
            async with asyncio.timeout(self._timeout):
                return await call
        except TimeoutError as exc:
            raise MutationTimeoutError(f"store call exceeded {self._timeout:g}s") from exc

    # ------------------------------------------------------------------
    # Notifications and resync

    def _notify(self, outcome: MutationOutcome) -> None:
        for listener in tuple(self._listeners):
            try:
                listener(outcome)
            except Exception:
                log.exception("Outcome listener failed for %s", outcome.item.item_id)

    def _schedule_resync(self, list_id: ListId) -> None:
        task = asyncio.get_running_loop().create_task(
            self._resync(list_id), name=f"resync:{list_id}"
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _resync(self, list_id: ListId) -> None:
        await asyncio.sleep(self._resync_delay)
        try:
            await self.refresh(list_id)
        except Exception as exc:
            log.warning("Background resync of %s failed: %s", list_id, exc)
            if self._on_resync_error is not None:
                try:
                    self._on_resync_error(list_id, exc)
                except Exception:
                    log.exception("Resync error hook failed for %s", list_id)


def _speculate(
    list_id: ListId,
    item: ItemDescriptor,
    action: MutationAction,
    entries: tuple[ListEntry, ...],
) -> tuple[ListEntry, ...]:
    index = find_member(item, entries)
    match action:
        case MutationAction.UPVOTE | MutationAction.DOWNVOTE:
            direction = action.vote
            assert direction is not None
            if index is None:
                return (*entries, apply_vote(ListEntry.fresh(list_id, item), direction))
            return (*entries[:index], apply_vote(entries[index], direction), *entries[index + 1 :])
        case MutationAction.ADD:
            if index is None:
                return (*entries, ListEntry.fresh(list_id, item))
            return entries
        case MutationAction.REMOVE:
            return without_member(item, entries)
        case MutationAction.TOGGLE:
            raise ValueError("toggle must be resolved before it is applied")


def _reconcile(
    item: ItemDescriptor, server_entry: ListEntry, entries: tuple[ListEntry, ...]
) -> tuple[ListEntry, ...]:
    merged = server_entry.with_identity_from(item)
    index = find_member(item, entries)
    if index is None:
        return (*entries, merged)
    return (*entries[:index], merged, *entries[index + 1 :])
