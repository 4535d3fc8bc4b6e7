"""Public interface for the watchlist REST adapter."""

from __future__ import annotations

from .client import RestListStore
from .schema import MediaRecord, VoteResponse, WatchlistMovie
from .translator import (
    parse_media_record,
    parse_vote_response,
    parse_watchlist_movie,
    sync_request_body,
)

__all__ = [
    "MediaRecord",
    "RestListStore",
    "VoteResponse",
    "WatchlistMovie",
    "parse_media_record",
    "parse_vote_response",
    "parse_watchlist_movie",
    "sync_request_body",
]
