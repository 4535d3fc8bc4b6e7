"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import TYPE_CHECKING

from cinequeue.adapters.rest import RestListStore
from cinequeue.adapters.sqlalchemy import SqlAlchemyListStore
from cinequeue.adapters.sqlalchemy.unit_of_work import is_started, startup
from cinequeue.config import get_database_config, get_store_api_config, get_sync_config
from cinequeue.domain.materialize import CatalogMaterializer
from cinequeue.domain.model import ItemDescriptor
from cinequeue.domain.sync import OptimisticMutationCoordinator

if TYPE_CHECKING:
    import uuid
    from collections.abc import Callable

    from cinequeue.adapters.http_resilience import ResilienceConfig, ResilientClient
    from cinequeue.config import StoreApiConfig, SyncConfig
    from cinequeue.domain.model import ListEntry, ListId, MutationAction
    from cinequeue.domain.ports import ListStore
    from cinequeue.domain.sync import ListCache, MutationOutcome
    from cinequeue.domain.sync.coordinator import ResyncErrorHook

log = getLogger(__name__)


def build_rest_store(
    *,
    config: StoreApiConfig | None = None,
    client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
) -> RestListStore:
    effective_config = config or get_store_api_config()
    if client_factory is None:
        return RestListStore(config=effective_config)
    return RestListStore(config=effective_config, client_factory=client_factory)


def build_local_store(
    *,
    user_id: uuid.UUID | None = None,
    database_uri: str | None = None,
) -> SqlAlchemyListStore:
    """Local store; starts the SQLAlchemy adapter on first use."""

    database = get_database_config()
    if not is_started():
        startup(database_uri=database_uri or database.uri)
    return SqlAlchemyListStore(user_id=user_id or database.user_id)


def build_coordinator(
    store: ListStore,
    *,
    config: SyncConfig | None = None,
    cache: ListCache | None = None,
    materializer: CatalogMaterializer | None = None,
    on_resync_error: ResyncErrorHook | None = None,
) -> OptimisticMutationCoordinator:
    """Coordinator over ``store``.

    Coordinators only coalesce materializations when they share ``materializer``;
    one coordinator never runs two mutations on the same catalog reference at once.
    """

    return OptimisticMutationCoordinator(
        store=store,
        cache=cache,
        materializer=materializer,
        config=config or get_sync_config(),
        on_resync_error=on_resync_error,
    )


def build_materializer(store: ListStore, *, config: SyncConfig | None = None) -> CatalogMaterializer:
    effective_config = config or get_sync_config()
    return CatalogMaterializer(store, coalesce=effective_config.coalesce_materialize)


def show_list(list_id: ListId, *, store: ListStore) -> tuple[ListEntry, ...]:
    """Load ``list_id`` from the store."""

    return asyncio.run(_show_list(list_id, store))


def mutate_item(
    list_id: ListId,
    raw_item_id: str,
    action: MutationAction,
    *,
    store: ListStore,
    title: str = "",
    sync_config: SyncConfig | None = None,
) -> tuple[MutationOutcome, tuple[ListEntry, ...]]:
    """Run one optimistic mutation to completion.

    The list is loaded first so toggles resolve against real membership, and the
    post-mutation resync is awaited so the returned entries are authoritative
    whenever it succeeds.
    """

    item = ItemDescriptor.parse(raw_item_id, title=title)
    return asyncio.run(_mutate_item(list_id, item, action, store, sync_config))


async def _show_list(list_id: ListId, store: ListStore) -> tuple[ListEntry, ...]:
    try:
        return tuple(await store.fetch_list(list_id))
    finally:
        await _close(store)


async def _mutate_item(
    list_id: ListId,
    item: ItemDescriptor,
    action: MutationAction,
    store: ListStore,
    sync_config: SyncConfig | None,
) -> tuple[MutationOutcome, tuple[ListEntry, ...]]:
    coordinator = build_coordinator(store, config=sync_config)
    try:
        await coordinator.refresh(list_id)
        log.info("Applying %s to %s in %s", action, item.item_id, list_id)
        outcome = await coordinator.run(list_id, item, action)
        await coordinator.drain()
    finally:
        await _close(store)
    log.info("Finished %s on %s: %s", outcome.action, item.item_id, outcome.status)
    return outcome, coordinator.entries(list_id)


async def _close(store: ListStore) -> None:
    if isinstance(store, RestListStore):
        await store.aclose()
