"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class Provider(StrEnum):
    """External catalogs a title can be referenced from before it is persisted."""

    TMDB = "tmdb"
    YOUTUBE = "youtube"


class VoteDirection(StrEnum):
    UP = "upvote"
    DOWN = "downvote"

    @property
    def opposite(self) -> VoteDirection:
        return VoteDirection.DOWN if self is VoteDirection.UP else VoteDirection.UP


class MatchResult(StrEnum):
    MATCH = "match"
    NO_MATCH = "no_match"

    def __bool__(self) -> bool:
        return self is MatchResult.MATCH


class MutationAction(StrEnum):
    UPVOTE = "upvote"
    DOWNVOTE = "downvote"
    ADD = "add"
    REMOVE = "remove"
    TOGGLE = "toggle"

    @property
    def vote(self) -> VoteDirection | None:
        if self is MutationAction.UPVOTE:
            return VoteDirection.UP
        if self is MutationAction.DOWNVOTE:
            return VoteDirection.DOWN
        return None
