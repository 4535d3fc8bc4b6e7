"""SQLAlchemy adapter package for the local list store."""

from __future__ import annotations

from .mappings import (
    create_all_tables,
    list_entry_table,
    list_vote_table,
    mapper_registry,
    media_item_table,
)
from .repositories import SqlAlchemyListEntryRepository, SqlAlchemyMediaItemRepository
from .unit_of_work import SqlAlchemyUnitOfWork, StartupError, shutdown, startup
from .store import SqlAlchemyListStore

__all__ = [
    "SqlAlchemyListEntryRepository",
    "SqlAlchemyListStore",
    "SqlAlchemyMediaItemRepository",
    "SqlAlchemyUnitOfWork",
    "StartupError",
    "create_all_tables",
    "list_entry_table",
    "list_vote_table",
    "mapper_registry",
    "media_item_table",
    "shutdown",
    "startup",
]
