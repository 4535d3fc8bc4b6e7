"""Per-item voting sessions: at most one mutation in flight per item."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import asyncio

    from cinequeue.domain.model import ItemId
    from cinequeue.domain.sync.outcomes import MutationOutcome

log = getLogger(__name__)


@dataclass(slots=True)
class VotingSession:
    item_id: ItemId
    task: asyncio.Task[MutationOutcome] | None = None
    rolled_back: bool = False


class VotingSessionTable:
    """Sessions keyed by the item id exactly as the caller passed it.

    A catalog id and the persisted id of the same title are different keys.
    """

    def __init__(self) -> None:
        self._sessions: dict[ItemId, VotingSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def in_flight(self, item_id: ItemId) -> bool:
        return item_id in self._sessions

    def try_open(self, item_id: ItemId) -> VotingSession | None:
        """Open a session for ``item_id`` or return None when one is already open."""

        if item_id in self._sessions:
            return None
        session = VotingSession(item_id=item_id)
        self._sessions[item_id] = session
        return session

    def close(self, session: VotingSession) -> None:
        # Closing twice (finally block, then done callback) is a no-op.
        if self._sessions.get(session.item_id) is session:
            del self._sessions[session.item_id]
            log.debug("Closed voting session for %s", session.item_id)

    def tasks(self) -> tuple[asyncio.Task[MutationOutcome], ...]:
        return tuple(s.task for s in self._sessions.values() if s.task is not None)
