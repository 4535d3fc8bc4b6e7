from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest

from cinequeue.config import SyncConfig
from cinequeue.domain.errors import (
    AlreadyAMemberError,
    MaterializationError,
    MutationTimeoutError,
    NotAMemberError,
    RemoteError,
)
from cinequeue.domain.materialize import CatalogMaterializer
from cinequeue.domain.model import (
    PERSONAL_LIST,
    CatalogRef,
    ItemDescriptor,
    ListEntry,
    MutationAction,
    PersistedId,
    Provider,
    VoteDirection,
)
from cinequeue.domain.sync import ListCache, OptimisticMutationCoordinator, OutcomeStatus

if TYPE_CHECKING:
    from cinequeue.domain.model import PersistedItem
    from cinequeue.domain.sync import MutationOutcome
    from tests.fakes import FakeListStore

TEAM = "team-1"


def _coordinator(store: FakeListStore, **config: object) -> OptimisticMutationCoordinator:
    return OptimisticMutationCoordinator(
        store=store,
        config=SyncConfig(resync_delay_seconds=0, **config),  # type: ignore[arg-type]
    )


def _seed(
    store: FakeListStore,
    ref: CatalogRef,
    *,
    title: str = "The Matrix",
    upvotes: int = 0,
    downvotes: int = 0,
    user_vote: VoteDirection | None = None,
) -> tuple[PersistedItem, ListEntry]:
    item = store.seed_item(ref, title)
    entry = store.seed_entry(
        TEAM,
        ListEntry(
            list_id=TEAM,
            item_id=item.id,
            title=title,
            external_ref=ref,
            upvotes=upvotes,
            downvotes=downvotes,
            user_vote=user_vote,
        ),
    )
    return item, entry


def _counts(entry: ListEntry | None) -> tuple[int, int, VoteDirection | None] | None:
    if entry is None:
        return None
    return entry.upvotes, entry.downvotes, entry.user_vote


def test_upvote_is_visible_before_the_store_answers(
    fake_store: FakeListStore, matrix_ref: CatalogRef
) -> None:
    item, _ = _seed(fake_store, matrix_ref)
    coordinator = _coordinator(fake_store)

    async def scenario() -> tuple[object, MutationOutcome]:
        await coordinator.refresh(TEAM)
        task = coordinator.mutate(TEAM, item, MutationAction.UPVOTE)
        assert task is not None
        optimistic = _counts(coordinator.entry_for(TEAM, item))
        outcome = await task
        await coordinator.drain()
        return optimistic, outcome

    optimistic, outcome = asyncio.run(scenario())

    assert optimistic == (1, 0, VoteDirection.UP)
    assert outcome.status is OutcomeStatus.APPLIED
    assert _counts(outcome.entry) == (1, 0, VoteDirection.UP)
    assert _counts(coordinator.entry_for(TEAM, item)) == (1, 0, VoteDirection.UP)
    assert fake_store.count("find_or_create_item") == 0
    assert not outcome.used_fallback


def test_vote_on_fresh_catalog_item_adds_it_first(
    fake_store: FakeListStore, matrix_ref: CatalogRef
) -> None:
    coordinator = _coordinator(fake_store)
    searched = ItemDescriptor.parse("tmdb-603", title="The Matrix")

    async def scenario() -> MutationOutcome:
        await coordinator.refresh(TEAM)
        return await coordinator.run(TEAM, searched, MutationAction.UPVOTE)

    outcome = asyncio.run(scenario())

    assert [name for name, _ in fake_store.calls] == [
        "fetch_list",
        "find_or_create_item",
        "apply_vote",
        "add_item",
        "apply_vote",
    ]
    assert outcome.status is OutcomeStatus.APPLIED
    assert outcome.used_fallback
    entry = coordinator.entry_for(TEAM, searched)
    assert _counts(entry) == (1, 0, VoteDirection.UP)
    assert entry is not None
    assert entry.item_id == fake_store.items[matrix_ref].id
    assert entry.title == "The Matrix"
    assert len(coordinator.entries(TEAM)) == 1


def test_failed_vote_restores_the_snapshot(
    fake_store: FakeListStore, matrix_ref: CatalogRef
) -> None:
    item, _ = _seed(fake_store, matrix_ref, upvotes=3, downvotes=1, user_vote=VoteDirection.UP)
    fake_store.failures["apply_vote"] = [RemoteError("Internal Server Error", status_code=500)]
    coordinator = _coordinator(fake_store)

    async def scenario() -> tuple[tuple[ListEntry, ...], object, MutationOutcome]:
        before = await coordinator.refresh(TEAM)
        task = coordinator.mutate(TEAM, item, MutationAction.DOWNVOTE)
        assert task is not None
        optimistic = _counts(coordinator.entry_for(TEAM, item))
        return before, optimistic, await task

    before, optimistic, outcome = asyncio.run(scenario())

    assert optimistic == (2, 2, VoteDirection.DOWN)
    assert coordinator.entries(TEAM) == before
    assert outcome.status is OutcomeStatus.ROLLED_BACK
    assert outcome.message == "Failed to vote. Please try again."
    assert _counts(outcome.entry) == (3, 1, VoteDirection.UP)
    assert isinstance(outcome.error, RemoteError)


def test_second_mutation_on_same_item_is_ignored_while_in_flight(
    fake_store: FakeListStore, matrix_ref: CatalogRef
) -> None:
    item, _ = _seed(fake_store, matrix_ref)
    coordinator = _coordinator(fake_store)

    async def scenario() -> MutationOutcome:
        await coordinator.refresh(TEAM)
        first = coordinator.mutate(TEAM, item, MutationAction.UPVOTE)
        second = coordinator.mutate(TEAM, item, MutationAction.UPVOTE)
        rejected = await coordinator.run(TEAM, item, MutationAction.DOWNVOTE)
        assert first is not None
        assert second is None
        assert coordinator.in_flight(item)
        await first
        assert not coordinator.in_flight(item)
        await coordinator.drain()
        return rejected

    rejected = asyncio.run(scenario())

    assert fake_store.count("apply_vote") == 1
    assert rejected.status is OutcomeStatus.REJECTED
    assert _counts(coordinator.entry_for(TEAM, item)) == (1, 0, VoteDirection.UP)


def test_mutations_on_different_items_run_concurrently(fake_store: FakeListStore) -> None:
    matrix, _ = _seed(fake_store, CatalogRef(Provider.TMDB, "603"))
    heat, _ = _seed(fake_store, CatalogRef(Provider.TMDB, "949"), title="Heat")
    coordinator = _coordinator(fake_store)

    async def scenario() -> list[MutationOutcome]:
        await coordinator.refresh(TEAM)
        tasks = [
            coordinator.mutate(TEAM, matrix, MutationAction.UPVOTE),
            coordinator.mutate(TEAM, heat, MutationAction.DOWNVOTE),
        ]
        assert all(task is not None for task in tasks)
        outcomes = await asyncio.gather(*(task for task in tasks if task is not None))
        await coordinator.drain()
        return outcomes

    outcomes = asyncio.run(scenario())

    assert [outcome.status for outcome in outcomes] == [OutcomeStatus.APPLIED] * 2
    assert _counts(coordinator.entry_for(TEAM, heat)) == (0, 1, VoteDirection.DOWN)


def test_materialization_failure_rolls_back_without_mutating(fake_store: FakeListStore) -> None:
    fake_store.failures["find_or_create_item"] = [RemoteError("Movie not found in TMDB")]
    coordinator = _coordinator(fake_store)

    async def scenario() -> MutationOutcome:
        await coordinator.refresh(TEAM)
        return await coordinator.run(TEAM, "tmdb-603", MutationAction.ADD)

    outcome = asyncio.run(scenario())

    assert outcome.status is OutcomeStatus.ROLLED_BACK
    assert isinstance(outcome.error, MaterializationError)
    assert outcome.message == "Failed to add movie. Please try again."
    assert coordinator.entries(TEAM) == ()
    assert fake_store.count("add_item") == 0


def test_failed_fallback_add_rolls_back(fake_store: FakeListStore) -> None:
    fake_store.failures["add_item"] = [RemoteError("Not a team member", status_code=403)]
    coordinator = _coordinator(fake_store)

    async def scenario() -> MutationOutcome:
        await coordinator.refresh(TEAM)
        return await coordinator.run(TEAM, "tmdb-603", MutationAction.UPVOTE)

    outcome = asyncio.run(scenario())

    assert outcome.status is OutcomeStatus.ROLLED_BACK
    assert fake_store.count("apply_vote") == 1
    assert coordinator.entries(TEAM) == ()


def test_fallback_treats_concurrent_add_as_success(
    fake_store: FakeListStore, matrix_ref: CatalogRef
) -> None:
    item = fake_store.seed_item(matrix_ref, "The Matrix")
    fake_store.failures["apply_vote"] = [NotAMemberError("Item not found in watchlist")]
    fake_store.seed_entry(TEAM, ListEntry(list_id=TEAM, item_id=item.id, title="The Matrix"))
    coordinator = _coordinator(fake_store)

    outcome = asyncio.run(coordinator.run(TEAM, item, MutationAction.UPVOTE))

    assert outcome.status is OutcomeStatus.APPLIED
    assert outcome.used_fallback
    assert fake_store.count("apply_vote") == 2


def test_add_of_existing_member_is_benign(
    fake_store: FakeListStore, matrix_ref: CatalogRef
) -> None:
    _, stored = _seed(fake_store, matrix_ref, upvotes=2)
    coordinator = _coordinator(fake_store)

    async def scenario() -> MutationOutcome:
        # The cache has not been loaded, so the client believes the item is absent.
        outcome = await coordinator.run(TEAM, "tmdb-603", MutationAction.ADD)
        await coordinator.drain()
        return outcome

    outcome = asyncio.run(scenario())

    assert outcome.status is OutcomeStatus.ALREADY_MEMBER
    assert outcome.message == "This movie is already in your watchlist"
    assert coordinator.entries(TEAM) == (stored,)


def test_remove_of_absent_item_rolls_back(
    fake_store: FakeListStore, matrix_ref: CatalogRef
) -> None:
    item, _ = _seed(fake_store, matrix_ref)
    coordinator = _coordinator(fake_store)

    async def scenario() -> tuple[tuple[ListEntry, ...], MutationOutcome]:
        before = await coordinator.refresh(TEAM)
        fake_store.lists[TEAM].clear()
        return before, await coordinator.run(TEAM, item, MutationAction.REMOVE)

    before, outcome = asyncio.run(scenario())

    assert outcome.status is OutcomeStatus.ROLLED_BACK
    assert outcome.message == "Failed to remove from watchlist. Please try again."
    assert coordinator.entries(TEAM) == before


def test_toggle_resolves_against_cached_membership(
    fake_store: FakeListStore, matrix_ref: CatalogRef
) -> None:
    item, _ = _seed(fake_store, matrix_ref)
    coordinator = _coordinator(fake_store)

    async def scenario() -> tuple[MutationOutcome, MutationOutcome]:
        await coordinator.refresh(TEAM)
        removed = await coordinator.run(TEAM, "tmdb-603", MutationAction.TOGGLE)
        await coordinator.drain()
        added = await coordinator.run(TEAM, "tmdb-603", MutationAction.TOGGLE)
        await coordinator.drain()
        return removed, added

    removed, added = asyncio.run(scenario())

    assert removed.action is MutationAction.REMOVE
    assert added.action is MutationAction.ADD
    assert coordinator.is_member(TEAM, item)
    assert coordinator.is_member(TEAM, "tmdb-603")


def test_failed_remove_restores_every_matching_entry_in_place(fake_store: FakeListStore) -> None:
    fake_store.failures["remove_item"] = [RemoteError("boom")]
    entries = (
        ListEntry(list_id=TEAM, item_id=PersistedId(uuid4()), title="Alien"),
        ListEntry(list_id=TEAM, item_id=PersistedId(uuid4()), title="Heat"),
        ListEntry(list_id=TEAM, item_id=PersistedId(uuid4()), title="ALIEN"),
    )
    cache = ListCache()
    cache.publish(TEAM, entries)
    coordinator = OptimisticMutationCoordinator(
        store=fake_store, cache=cache, config=SyncConfig(resync_delay_seconds=0)
    )

    async def scenario() -> tuple[ListEntry, ...]:
        task = coordinator.mutate(TEAM, entries[0], MutationAction.REMOVE)
        assert task is not None
        optimistic = coordinator.entries(TEAM)
        await task
        return optimistic

    optimistic = asyncio.run(scenario())

    assert [entry.title for entry in optimistic] == ["Heat"]
    assert cache.get(TEAM) == entries


def test_timeout_rolls_back_and_frees_the_item(
    fake_store: FakeListStore, matrix_ref: CatalogRef
) -> None:
    item, _ = _seed(fake_store, matrix_ref)
    coordinator = _coordinator(fake_store, mutation_timeout=0.01)

    async def scenario() -> tuple[tuple[ListEntry, ...], MutationOutcome]:
        before = await coordinator.refresh(TEAM)
        fake_store.gates["apply_vote"] = asyncio.Event()
        return before, await coordinator.run(TEAM, item, MutationAction.UPVOTE)

    before, outcome = asyncio.run(scenario())

    assert outcome.status is OutcomeStatus.ROLLED_BACK
    assert isinstance(outcome.error, MutationTimeoutError)
    assert coordinator.entries(TEAM) == before
    assert not coordinator.in_flight(item)


def test_cancellation_rolls_back_before_propagating(
    fake_store: FakeListStore, matrix_ref: CatalogRef
) -> None:
    item, _ = _seed(fake_store, matrix_ref)
    coordinator = _coordinator(fake_store)

    async def scenario() -> tuple[ListEntry, ...]:
        before = await coordinator.refresh(TEAM)
        fake_store.gates["apply_vote"] = asyncio.Event()
        task = coordinator.mutate(TEAM, item, MutationAction.UPVOTE)
        assert task is not None
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        return before

    before = asyncio.run(scenario())

    assert coordinator.entries(TEAM) == before
    assert not coordinator.in_flight(item)


def test_cancellation_before_first_step_rolls_back(
    fake_store: FakeListStore, matrix_ref: CatalogRef
) -> None:
    item, _ = _seed(fake_store, matrix_ref)
    coordinator = _coordinator(fake_store)

    async def scenario() -> tuple[ListEntry, ...]:
        before = await coordinator.refresh(TEAM)
        task = coordinator.mutate(TEAM, item, MutationAction.UPVOTE)
        assert task is not None
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        return before

    before = asyncio.run(scenario())

    assert coordinator.entries(TEAM) == before
    assert fake_store.count("apply_vote") == 0
    assert not coordinator.in_flight(item)


def test_success_schedules_a_resync(fake_store: FakeListStore, matrix_ref: CatalogRef) -> None:
    item, _ = _seed(fake_store, matrix_ref)
    coordinator = _coordinator(fake_store)

    async def scenario() -> None:
        await coordinator.refresh(TEAM)
        await coordinator.run(TEAM, item, MutationAction.UPVOTE)
        # Somebody else voted meanwhile; the resync picks it up.
        stored = fake_store.lists[TEAM][0]
        fake_store.lists[TEAM][0] = ListEntry(
            list_id=TEAM,
            item_id=stored.item_id,
            title=stored.title,
            external_ref=stored.external_ref,
            upvotes=stored.upvotes + 1,
            user_vote=stored.user_vote,
        )
        await coordinator.drain()

    asyncio.run(scenario())

    assert fake_store.count("fetch_list") == 2
    assert _counts(coordinator.entry_for(TEAM, item)) == (2, 0, VoteDirection.UP)


def test_failure_does_not_resync(fake_store: FakeListStore, matrix_ref: CatalogRef) -> None:
    item, _ = _seed(fake_store, matrix_ref)
    fake_store.failures["apply_vote"] = [RemoteError("boom")]
    coordinator = _coordinator(fake_store)

    async def scenario() -> None:
        await coordinator.refresh(TEAM)
        await coordinator.run(TEAM, item, MutationAction.UPVOTE)
        await coordinator.drain()

    asyncio.run(scenario())

    assert fake_store.count("fetch_list") == 1


def test_resync_failure_goes_to_the_hook_only(
    fake_store: FakeListStore, matrix_ref: CatalogRef
) -> None:
    item, _ = _seed(fake_store, matrix_ref)
    reported: list[tuple[str, Exception]] = []
    outcomes: list[MutationOutcome] = []
    coordinator = OptimisticMutationCoordinator(
        store=fake_store,
        config=SyncConfig(resync_delay_seconds=0),
        on_resync_error=lambda list_id, exc: reported.append((list_id, exc)),
    )
    coordinator.subscribe(outcomes.append)

    async def scenario() -> None:
        await coordinator.refresh(TEAM)
        fake_store.failures["fetch_list"] = [RemoteError("Failed to fetch watchlist")]
        await coordinator.run(TEAM, item, MutationAction.UPVOTE)
        await coordinator.drain()

    asyncio.run(scenario())

    assert [list_id for list_id, _ in reported] == [TEAM]
    assert isinstance(reported[0][1], RemoteError)
    assert [outcome.status for outcome in outcomes] == [OutcomeStatus.APPLIED]
    assert _counts(coordinator.entry_for(TEAM, item)) == (1, 0, VoteDirection.UP)


def test_watchers_see_optimistic_then_confirmed_state(
    fake_store: FakeListStore, matrix_ref: CatalogRef
) -> None:
    item, _ = _seed(fake_store, matrix_ref, upvotes=3, downvotes=1, user_vote=VoteDirection.UP)
    fake_store.failures["apply_vote"] = [RemoteError("boom")]
    coordinator = _coordinator(fake_store)
    seen: list[object] = []
    unsubscribe = coordinator.watch(TEAM, lambda _, entries: seen.append(_counts(entries[0])))

    async def scenario() -> None:
        await coordinator.refresh(TEAM)
        await coordinator.run(TEAM, item, MutationAction.DOWNVOTE)
        await coordinator.drain()

    asyncio.run(scenario())
    unsubscribe()

    assert seen == [
        (3, 1, VoteDirection.UP),
        (2, 2, VoteDirection.DOWN),
        (3, 1, VoteDirection.UP),
    ]


def test_unsubscribed_listeners_are_not_notified(
    fake_store: FakeListStore, matrix_ref: CatalogRef
) -> None:
    item, _ = _seed(fake_store, matrix_ref)
    outcomes: list[MutationOutcome] = []
    coordinator = _coordinator(fake_store)
    unsubscribe = coordinator.subscribe(outcomes.append)
    unsubscribe()

    asyncio.run(coordinator.run(TEAM, item, MutationAction.UPVOTE))

    assert outcomes == []


def test_already_member_error_is_not_raised_to_callers(
    fake_store: FakeListStore, matrix_ref: CatalogRef
) -> None:
    item, _ = _seed(fake_store, matrix_ref)
    fake_store.failures["add_item"] = [AlreadyAMemberError("Already in watchlist")]
    coordinator = _coordinator(fake_store)

    outcome = asyncio.run(coordinator.run(TEAM, item, MutationAction.ADD))

    assert outcome.succeeded
    assert outcome.error is None


def test_remake_with_shared_title_is_added_not_removed(fake_store: FakeListStore) -> None:
    _seed(fake_store, CatalogRef(Provider.TMDB, "841"), title="Dune")
    coordinator = _coordinator(fake_store)
    remake = ItemDescriptor.parse("tmdb-438631", title="Dune")

    async def scenario() -> MutationOutcome:
        await coordinator.refresh(TEAM)
        outcome = await coordinator.run(TEAM, remake, MutationAction.TOGGLE)
        await coordinator.drain()
        return outcome

    outcome = asyncio.run(scenario())

    assert outcome.action is MutationAction.ADD
    assert outcome.status is OutcomeStatus.APPLIED
    assert [entry.external_ref for entry in coordinator.entries(TEAM)] == [
        CatalogRef(Provider.TMDB, "841"),
        CatalogRef(Provider.TMDB, "438631"),
    ]


def test_timed_out_leader_does_not_cancel_coalesced_joiner(fake_store: FakeListStore) -> None:
    materializer = CatalogMaterializer(fake_store, coalesce=True)
    leader = OptimisticMutationCoordinator(
        store=fake_store,
        materializer=materializer,
        config=SyncConfig(resync_delay_seconds=0, mutation_timeout=0.01),
    )
    joiner = OptimisticMutationCoordinator(
        store=fake_store,
        materializer=materializer,
        config=SyncConfig(resync_delay_seconds=0, mutation_timeout=5),
    )
    notified: list[MutationOutcome] = []
    joiner.subscribe(notified.append)

    async def scenario() -> list[MutationOutcome]:
        fake_store.gates["find_or_create_item"] = asyncio.Event()
        first = leader.mutate(TEAM, "tmdb-603", MutationAction.ADD)
        second = joiner.mutate(PERSONAL_LIST, "tmdb-603", MutationAction.ADD)
        assert first is not None
        assert second is not None
        return await asyncio.gather(first, second)

    led, joined = asyncio.run(scenario())

    assert fake_store.count("find_or_create_item") == 1
    assert led.status is OutcomeStatus.ROLLED_BACK
    assert isinstance(led.error, MutationTimeoutError)
    assert joined.status is OutcomeStatus.ROLLED_BACK
    assert isinstance(joined.error, MaterializationError)
    assert notified == [joined]
    assert joiner.entries(PERSONAL_LIST) == ()


def test_failing_resync_hook_is_contained(
    fake_store: FakeListStore, matrix_ref: CatalogRef, caplog: pytest.LogCaptureFixture
) -> None:
    item, _ = _seed(fake_store, matrix_ref)

    def hook(_list_id: str, _exc: Exception) -> None:
        raise RuntimeError("hook broke")

    coordinator = OptimisticMutationCoordinator(
        store=fake_store, config=SyncConfig(resync_delay_seconds=0), on_resync_error=hook
    )

    async def scenario() -> tuple[asyncio.Task[None], ...]:
        await coordinator.refresh(TEAM)
        fake_store.failures["fetch_list"] = [RemoteError("Failed to fetch watchlist")]
        await coordinator.run(TEAM, item, MutationAction.UPVOTE)
        resyncs = tuple(coordinator._background)  # noqa: SLF001  # type: ignore[reportPrivateUsage]
        await coordinator.drain()
        return resyncs

    resyncs = asyncio.run(scenario())

    assert len(resyncs) == 1
    assert resyncs[0].exception() is None
    assert "Resync error hook failed" in caplog.text
