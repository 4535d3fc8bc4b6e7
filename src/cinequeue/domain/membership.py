"""List membership under identifier ambiguity.

A list may store a title by its persisted id while the caller's working set still
carries the catalog id (or the other way round), so membership goes through the
identity resolver instead of plain equality. Each call is a linear scan.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from cinequeue.domain.identity import identity_key, resolve

if TYPE_CHECKING:
    from collections.abc import Sequence

    from cinequeue.domain.identity import Resolvable
    from cinequeue.domain.model import ListEntry


def find_member(item: Resolvable, entries: Sequence[ListEntry]) -> int | None:
    key = identity_key(item)
    for index, entry in enumerate(entries):
        if resolve(key, entry):
            return index
    return None


def is_member(item: Resolvable, entries: Sequence[ListEntry]) -> bool:
    return find_member(item, entries) is not None


def without_member(item: Resolvable, entries: Sequence[ListEntry]) -> tuple[ListEntry, ...]:
    """Drop every entry that matches ``item``."""

    key = identity_key(item)
    return tuple(entry for entry in entries if not resolve(key, entry))
