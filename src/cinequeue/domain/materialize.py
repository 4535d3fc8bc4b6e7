"""Catalog materialization: catalog reference -> persisted item id."""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import TYPE_CHECKING

from cinequeue.domain.errors import MaterializationError
from cinequeue.domain.model import CatalogRef, PersistedId

if TYPE_CHECKING:
    from cinequeue.domain.model import ItemId
    from cinequeue.domain.ports import ItemCatalogStore

log = getLogger(__name__)


class CatalogMaterializer:
    """Turns catalog references into persisted ids by asking the store.

    Idempotency is the store's job. By default every call goes to the store, so
    two concurrent mutations on the same fresh reference issue two
    find-or-create requests. With ``coalesce=True`` concurrent calls for the same
    reference share one in-flight request; nothing is remembered once it settles.
    """

    def __init__(self, store: ItemCatalogStore, *, coalesce: bool = False) -> None:
        self._store = store
        self._coalesce = coalesce
        self._pending: dict[CatalogRef, asyncio.Future[PersistedId]] = {}

    @property
    def coalescing(self) -> bool:
        return self._coalesce

    async def materialize(self, item_id: ItemId, *, title: str | None = None) -> PersistedId:
        match item_id:
            case PersistedId():
                return item_id
            case CatalogRef():
                if not self._coalesce:
                    return await self._find_or_create(item_id, title)
                return await self._shared(item_id, title)

    async def _shared(self, ref: CatalogRef, title: str | None) -> PersistedId:
        pending = self._pending.get(ref)
        if pending is not None:
            log.debug("Joining in-flight materialization of %s", ref)
            return await asyncio.shield(pending)

        future: asyncio.Future[PersistedId] = asyncio.get_running_loop().create_future()
        self._pending[ref] = future
        try:
            persisted = await self._find_or_create(ref, title)
        except asyncio.CancelledError:
            # Joiners were not cancelled themselves; they see a failed materialization.
            _fail(future, MaterializationError(f"Materialization of {ref} was cancelled"))
            raise
        except Exception as exc:
            _fail(future, exc)
            raise
        else:
            future.set_result(persisted)
            return persisted
        finally:
            self._pending.pop(ref, None)

    async def _find_or_create(self, ref: CatalogRef, title: str | None) -> PersistedId:
        try:
            item = await self._store.find_or_create_item(ref, title=title)
        except MaterializationError:
            raise
        except Exception as exc:
            raise MaterializationError(f"Could not materialize {ref}: {exc}") from exc
        log.debug("Materialized %s as %s", ref, item.id)
        return item.id


def _fail(future: asyncio.Future[PersistedId], exc: BaseException) -> None:
    future.set_exception(exc)
    # Mark retrieved so an unawaited failure does not warn at shutdown.
    future.exception()
