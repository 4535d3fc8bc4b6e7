"""Terminal reports of optimistic mutations."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from cinequeue.domain.errors import MaterializationError, MutationTimeoutError
from cinequeue.domain.model import MutationAction

if TYPE_CHECKING:
    from cinequeue.domain.model import ItemDescriptor, ListEntry, ListId


class OutcomeStatus(StrEnum):
    APPLIED = "applied"
    ALREADY_MEMBER = "already_member"
    ROLLED_BACK = "rolled_back"
    REJECTED = "rejected"


@dataclass(frozen=True, slots=True, kw_only=True)
class MutationOutcome:
    """How a mutation ended.

    ``action`` is the concrete action that ran, so a toggle reports ``ADD`` or
    ``REMOVE``. ``entry`` is the cached entry after settling, None when the item
    is not (or no longer) in the list.
    """

    list_id: ListId
    item: ItemDescriptor
    action: MutationAction
    status: OutcomeStatus
    entry: ListEntry | None = None
    error: Exception | None = None
    used_fallback: bool = False

    @property
    def succeeded(self) -> bool:
        return self.status in (OutcomeStatus.APPLIED, OutcomeStatus.ALREADY_MEMBER)

    @property
    def message(self) -> str:
        return _message(self)


def _message(outcome: MutationOutcome) -> str:
    label = outcome.item.title or str(outcome.item.item_id)
    match outcome.status:
        case OutcomeStatus.REJECTED:
            return "A previous change to this movie is still being saved."
        case OutcomeStatus.ALREADY_MEMBER:
            return "This movie is already in your watchlist"
        case OutcomeStatus.APPLIED:
            return _success_message(outcome, label)
        case OutcomeStatus.ROLLED_BACK:
            return _failure_message(outcome)


def _success_message(outcome: MutationOutcome, label: str) -> str:
    match outcome.action:
        case MutationAction.ADD:
            return f"Added {label} to watchlist!"
        case MutationAction.REMOVE:
            return f"Removed {label} from watchlist"
        case MutationAction.UPVOTE | MutationAction.DOWNVOTE:
            if outcome.entry is None or outcome.entry.user_vote is None:
                return f"Vote on {label} removed"
            verb = "Upvoted" if outcome.action is MutationAction.UPVOTE else "Downvoted"
            return f"{verb} {label}"
        case _:
            return "Done"


def _failure_message(outcome: MutationOutcome) -> str:
    if isinstance(outcome.error, MaterializationError):
        return "Failed to add movie. Please try again."
    if isinstance(outcome.error, MutationTimeoutError):
        return "The server took too long to respond. Please try again."
    match outcome.action:
        case MutationAction.ADD:
            return "Failed to add to watchlist. Please try again."
        case MutationAction.REMOVE:
            return "Failed to remove from watchlist. Please try again."
        case _:
            return "Failed to vote. Please try again."
