"""Translate watchlist API payloads into domain entries."""

from __future__ import annotations

from typing import TYPE_CHECKING

from cinequeue.domain.model import (
    CatalogRef,
    ListEntry,
    PersistedId,
    PersistedItem,
    Provider,
    VoteDirection,
    canonicalize,
)

from .schema import MediaRecord, VoteResponse, WatchlistMovie

if TYPE_CHECKING:
    from collections.abc import Mapping

    from cinequeue.domain.model import ListId

    from .schema import VoteType


def sync_request_body(ref: CatalogRef) -> dict[str, object]:
    """Body of ``POST /api/media/sync`` for a catalog reference."""

    match ref.provider:
        case Provider.TMDB:
            try:
                tmdb_id = int(ref.external_id)
            except ValueError as exc:
                raise ValueError(f"TMDB ids are numeric, got {ref.external_id!r}") from exc
            return {"tmdbId": tmdb_id, "type": "movie"}
        case Provider.YOUTUBE:
            return {"youtubeId": ref.external_id, "type": "youtube"}


def parse_media_record(payload: Mapping[str, object] | MediaRecord) -> PersistedItem:
    record = payload if isinstance(payload, MediaRecord) else MediaRecord.model_validate(payload)
    external_ref: CatalogRef | None = None
    if record.tmdb_id is not None:
        external_ref = CatalogRef(Provider.TMDB, str(record.tmdb_id))
    elif record.youtube_id is not None:
        external_ref = CatalogRef(Provider.YOUTUBE, record.youtube_id)
    return PersistedItem(id=PersistedId(record.id), title=record.title, external_ref=external_ref)


def parse_vote_response(
    payload: Mapping[str, object], *, list_id: ListId, item_id: PersistedId
) -> ListEntry:
    # The vote endpoint only returns counts; identity fields are merged in by the caller.
    response = VoteResponse.model_validate(payload)
    return ListEntry(
        list_id=list_id,
        item_id=item_id,
        upvotes=response.upvotes,
        downvotes=response.downvotes,
        user_vote=_vote(response.user_vote),
    )


def parse_watchlist_movie(payload: Mapping[str, object] | WatchlistMovie, *, list_id: ListId) -> ListEntry:
    movie = payload if isinstance(payload, WatchlistMovie) else WatchlistMovie.model_validate(payload)
    item_id = canonicalize(movie.id)
    return ListEntry(
        list_id=list_id,
        item_id=item_id,
        title=movie.title,
        external_ref=item_id if isinstance(item_id, CatalogRef) else None,
        upvotes=movie.upvotes,
        downvotes=movie.downvotes,
        user_vote=_vote(movie.user_vote),
    )


def _vote(value: VoteType | None) -> VoteDirection | None:
    return None if value is None else VoteDirection(value)
