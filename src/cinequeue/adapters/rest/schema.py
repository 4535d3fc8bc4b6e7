"""Pydantic models describing the watchlist API payloads."""

from __future__ import annotations

from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

VoteType = Literal["upvote", "downvote"]


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


def _null_to_zero(value: object) -> object:
    return 0 if value is None else value


def _null_to_blank(value: object) -> object:
    return "" if value is None else value


class ApiBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class MediaRecord(ApiBaseModel):
    """A row of the ``media`` table as returned by ``POST /api/media/sync``."""

    id: UUID
    title: str = ""
    tmdb_id: int | None = None
    youtube_id: str | None = None

    _normalize_youtube_id = field_validator("youtube_id", mode="before")(_blank_to_none)
    _normalize_title = field_validator("title", mode="before")(_null_to_blank)


class VoteResponse(ApiBaseModel):
    upvotes: int = 0
    downvotes: int = 0
    score: int | None = None
    user_vote: VoteType | None = Field(default=None, alias="userVote")

    _normalize_counts = field_validator("upvotes", "downvotes", mode="before")(_null_to_zero)


class WatchlistMovie(ApiBaseModel):
    """A watchlist row flattened into the front-end movie shape.

    ``id`` is ``tmdb-<n>`` when the media has a TMDB id and the media UUID otherwise.
    """

    id: str
    title: str = ""
    upvotes: int = 0
    downvotes: int = 0
    user_vote: VoteType | None = Field(default=None, alias="userVote")

    _normalize_counts = field_validator("upvotes", "downvotes", mode="before")(_null_to_zero)
    _normalize_title = field_validator("title", mode="before")(_null_to_blank)


class DeleteResponse(ApiBaseModel):
    success: bool = True


class ErrorResponse(ApiBaseModel):
    error: str = ""
