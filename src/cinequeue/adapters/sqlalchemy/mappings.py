"""SQLAlchemy table metadata for the local watchlist store.

The domain records are frozen dataclasses, so the tables are used through
SQLAlchemy Core and translated explicitly by the repositories.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    Column,
    DateTime,
    Dialect,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    orm,
)

from cinequeue.domain.model import Provider, VoteDirection

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


def utc_now() -> datetime:
    return datetime.now(UTC)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

media_item_table = Table(
    "media_item",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("provider", Enum(Provider, native_enum=False), nullable=True),
    Column("external_id", String, nullable=True),
    Column("title", String, nullable=False, default=""),
    Column("created_at", UTCDateTime(), nullable=False, default=utc_now),
    UniqueConstraint("provider", "external_id", name="uq_media_item_catalog_ref"),
)

list_entry_table = Table(
    "list_entry",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("list_id", String, nullable=False),
    Column(
        "item_id",
        UUIDColumnType,
        ForeignKey("media_item.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("upvotes", Integer, nullable=False, default=0),
    Column("downvotes", Integer, nullable=False, default=0),
    Column("added_at", UTCDateTime(), nullable=False, default=utc_now),
    UniqueConstraint("list_id", "item_id", name="uq_list_entry_membership"),
    Index("ix_list_entry_list", "list_id"),
)

list_vote_table = Table(
    "list_vote",
    mapper_registry.metadata,
    Column(
        "entry_id",
        UUIDColumnType,
        ForeignKey("list_entry.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("user_id", UUIDColumnType, primary_key=True),
    Column("vote", Enum(VoteDirection, native_enum=False), nullable=False),
)


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the list store metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
