"""HTTP client for the watchlist API."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from cinequeue.adapters.http_resilience import ResilienceConfig, ResilientClient
from cinequeue.config.store import get_store_api_config
from cinequeue.domain.errors import (
    AlreadyAMemberError,
    ConflictError,
    NotAMemberError,
    RemoteError,
)
from cinequeue.domain.model import PERSONAL_LIST, format_item_id
from cinequeue.domain.ports import ListStore

from .schema import DeleteResponse, ErrorResponse
from .translator import (
    parse_media_record,
    parse_vote_response,
    parse_watchlist_movie,
    sync_request_body,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from typing import Any
    from types import TracebackType

    from cinequeue.config.store import StoreApiConfig
    from cinequeue.domain.model import (
        CatalogRef,
        ListEntry,
        ListId,
        PersistedId,
        PersistedItem,
        VoteDirection,
    )

log = getLogger(__name__)

_ALREADY_MEMBER_MESSAGE = "Already in watchlist"


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


def _team_params(list_id: ListId) -> dict[str, str]:
    # The personal watchlist is addressed by omitting the team.
    return {} if list_id == PERSONAL_LIST else {"teamId": list_id}


@dataclass(slots=True)
class RestListStore:
    """``ListStore`` backed by the watchlist HTTP API.

    One HTTP client is opened lazily and reused until ``aclose``; use the store
    as an async context manager to scope it.
    """

    config: StoreApiConfig = field(default_factory=get_store_api_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    _client: ResilientClient | None = field(default=None, init=False, repr=False)

    async def __aenter__(self) -> RestListStore:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            client, self._client = self._client, None
            await client.aclose()

    # ListStore -----------------------------------------------------------

    async def find_or_create_item(self, ref: CatalogRef, *, title: str | None = None) -> PersistedItem:  # noqa: ARG002
        # The API looks the title up in the catalog itself.
        response = await self._request("POST", "/api/media/sync", json=sync_request_body(ref))
        item = self._parse(response, parse_media_record)
        log.debug("Catalog item %s is media %s", ref, item.id)
        return item

    async def apply_vote(
        self, list_id: ListId, item_id: PersistedId, action: VoteDirection
    ) -> ListEntry:
        response = await self._request(
            "POST",
            f"/api/watchlist/{format_item_id(item_id)}/{action.value}",
            params=_team_params(list_id),
        )
        return self._parse(
            response,
            lambda payload: parse_vote_response(payload, list_id=list_id, item_id=item_id),
        )

    async def add_item(self, list_id: ListId, item_id: PersistedId) -> ListEntry:
        body: dict[str, object] = {"mediaId": format_item_id(item_id)}
        body.update(_team_params(list_id))
        response = await self._request("POST", "/api/watchlist", json=body)
        entry = self._parse(response, lambda payload: parse_watchlist_movie(payload, list_id=list_id))
        # The response id may be the catalog form; callers address the item by media id.
        return replace(entry, item_id=item_id)

    async def remove_item(self, list_id: ListId, item_id: PersistedId) -> None:
        params = {"mediaId": format_item_id(item_id), **_team_params(list_id)}
        response = await self._request("DELETE", "/api/watchlist", params=params)
        if not self._parse(response, DeleteResponse.model_validate).success:
            raise RemoteError("Failed to remove from watchlist", status_code=response.status_code)

    async def fetch_list(self, list_id: ListId) -> Sequence[ListEntry]:
        response = await self._request("GET", "/api/watchlist", params=_team_params(list_id))
        return self._parse(response, lambda payload: _parse_watchlist(payload, list_id=list_id))

    # Transport -------------------------------------------------------------

    def _get_client(self) -> ResilientClient:
        if self._client is None:
            resilience = self.config.resilience
            headers = dict(resilience.default_headers or {})
            headers["Authorization"] = f"Bearer {self.config.api_token}"
            self._client = self.client_factory(replace(resilience, default_headers=headers))
        return self._client

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, str] | None = None,
        json: object = None,
    ) -> httpx.Response:
        log.debug("%s %s params=%s", method, url, params)
        try:
            response = await self._get_client().request(method, url, params=params, json=json)
        except httpx.HTTPError as exc:
            raise RemoteError(f"{method} {url} failed: {exc}") from exc
        if response.is_success:
            return response
        raise _error_for(response)

    @staticmethod
    def _payload(response: httpx.Response) -> object:
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteError(
                f"Invalid JSON from {response.request.url}", status_code=response.status_code
            ) from exc

    @classmethod
    def _parse[T](cls, response: httpx.Response, parse: Callable[[Any], T]) -> T:
        payload = cls._payload(response)
        try:
            return parse(payload)
        except ValueError as exc:
            # Covers pydantic validation errors and entries with impossible counts.
            raise RemoteError(
                f"Unexpected payload from {response.request.url}: {exc}",
                status_code=response.status_code,
            ) from exc


def _parse_watchlist(payload: object, *, list_id: ListId) -> tuple[ListEntry, ...]:
    if not isinstance(payload, list):
        raise ValueError("expected a list of movies")
    return tuple(parse_watchlist_movie(movie, list_id=list_id) for movie in payload)


def _error_for(response: httpx.Response) -> RemoteError:
    status = response.status_code
    message = _error_message(response)
    if status == httpx.codes.NOT_FOUND:
        return NotAMemberError(message, status_code=status)
    if status == httpx.codes.BAD_REQUEST and message == _ALREADY_MEMBER_MESSAGE:
        return AlreadyAMemberError(message, status_code=status)
    if status == httpx.codes.CONFLICT:
        return ConflictError(message, status_code=status)
    log.error(f"Watchlist API error {status}: {message}")
    return RemoteError(message, status_code=status)


def _error_message(response: httpx.Response) -> str:
    try:
        return ErrorResponse.model_validate(response.json()).error or response.reason_phrase
    except (ValueError, ValidationError):
        return response.reason_phrase


if TYPE_CHECKING:
    _store_check: ListStore = RestListStore()
