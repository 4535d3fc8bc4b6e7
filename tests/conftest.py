from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002

from cinequeue.adapters.sqlalchemy import SqlAlchemyListStore, create_all_tables
from cinequeue.adapters.sqlalchemy.unit_of_work import shutdown, startup
from cinequeue.domain.model import CatalogRef, Provider
from tests.fakes import FakeListStore

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture
def matrix_ref() -> CatalogRef:
    return CatalogRef(Provider.TMDB, "603")


@pytest.fixture
def fake_store() -> FakeListStore:
    return FakeListStore()


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    create_all_tables(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def local_store(sqlite_engine: Engine) -> Iterator[SqlAlchemyListStore]:
    startup(engine=sqlite_engine, force=True)
    try:
        yield SqlAlchemyListStore()
    finally:
        shutdown()
