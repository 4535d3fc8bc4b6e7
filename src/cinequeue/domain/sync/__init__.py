"""Optimistic synchronisation of cached lists with the store."""

from __future__ import annotations

from .cache import ListCache, ListListener
from .coordinator import OptimisticMutationCoordinator, OptimisticSnapshot
from .outcomes import MutationOutcome, OutcomeStatus
from .sessions import VotingSession, VotingSessionTable

__all__ = [
    "ListCache",
    "ListListener",
    "MutationOutcome",
    "OptimisticMutationCoordinator",
    "OptimisticSnapshot",
    "OutcomeStatus",
    "VotingSession",
    "VotingSessionTable",
]
