"""Per-item vote state machine.

Pure and total. It computes the optimistic guess on the client and is the same
arithmetic the store applies, so the two only disagree when somebody else voted
in between.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from cinequeue.domain.model import VoteDirection

if TYPE_CHECKING:
    from cinequeue.domain.model import ListEntry


@dataclass(frozen=True, slots=True)
class VoteTransition:
    new_vote: VoteDirection | None
    upvote_delta: int
    downvote_delta: int

    @property
    def score_delta(self) -> int:
        return self.upvote_delta - self.downvote_delta


def vote_transition(current: VoteDirection | None, action: VoteDirection) -> VoteTransition:
    """Look up the transition for ``action`` given the caller's ``current`` vote.

    Repeating the current vote withdraws it; voting the other way switches in one
    step and moves the score by two.
    """

    same, other = _deltas(action, 1), _deltas(action.opposite, 1)
    if current is None:
        return VoteTransition(action, *same)
    if current is action:
        return VoteTransition(None, -same[0], -same[1])
    return VoteTransition(action, same[0] - other[0], same[1] - other[1])


def apply_vote(entry: ListEntry, action: VoteDirection) -> ListEntry:
    transition = vote_transition(entry.user_vote, action)
    return replace(
        entry,
        upvotes=max(0, entry.upvotes + transition.upvote_delta),
        downvotes=max(0, entry.downvotes + transition.downvote_delta),
        user_vote=transition.new_vote,
    )


def _deltas(direction: VoteDirection, amount: int) -> tuple[int, int]:
    if direction is VoteDirection.UP:
        return amount, 0
    return 0, amount
