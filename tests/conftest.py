from __future__ import annotations

import datetime
from collections.abc import AsyncIterator, Iterator

import pytest
import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from sqla_entitymeta import Registry, build_registry, build_tables, cache_clear

from .models import SCHEMAS


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(scope="session")
def registry() -> Registry:
    return build_registry(SCHEMAS)


@pytest.fixture(scope="session")
def sa_metadata(registry: Registry) -> sa.MetaData:
    return build_tables(registry)


@pytest.fixture(scope="session")
def db_url(tmp_path_factory: pytest.TempPathFactory) -> str:
    tmp = tmp_path_factory.mktemp("db")

    return f"sqlite+aiosqlite:///{tmp}/test.db"


@pytest.fixture(scope="session")
def engine(db_url: str) -> AsyncEngine:
    return create_async_engine(db_url, echo=False)


@pytest.fixture(scope="session")
async def _create_tables(engine: AsyncEngine, sa_metadata: sa.MetaData) -> AsyncIterator[None]:
    async with engine.begin() as conn:
        await conn.run_sync(sa_metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(sa_metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def connection(engine: AsyncEngine, _create_tables: None) -> AsyncIterator[AsyncConnection]:
    async with engine.connect() as conn:
        trans = await conn.begin()
        yield conn
        await trans.rollback()


@pytest.fixture
async def seed_data(connection: AsyncConnection, sa_metadata: sa.MetaData) -> dict[str, list[dict]]:
    tables = sa_metadata.tables
    created = datetime.datetime(2024, 1, 1, 12, 0, 0)

    bios = [{"id": 1, "text": "Alice writes about databases"}, {"id": 2, "text": "Bob writes about tests"}]
    profiles = [{"id": 1, "avatar_url": "https://example.com/alice.png"}]
    authors = [
        {"id": 1, "name": "alice", "bio_id": 1, "profile_ref": 1},
        {"id": 2, "name": "bob", "bio_id": 2, "profile_ref": None},
        {"id": 3, "name": "charlie", "bio_id": None, "profile_ref": None},
    ]
    posts = [
        {"id": 1, "title": "Alice Post 1", "views": 10, "created_at": created, "author_id": 1},
        {"id": 2, "title": "Alice Post 2", "views": 30, "created_at": created, "author_id": 1},
        {"id": 3, "title": "Bob Post 1", "views": 20, "created_at": created, "author_id": 2},
        {"id": 4, "title": "Orphan Post", "views": 0, "created_at": created, "author_id": None},
    ]
    categories = [{"id": 1, "name": "python"}, {"id": 2, "name": "sqlalchemy"}, {"id": 3, "name": "testing"}]
    post_categories = [
        {"post_id": 1, "category_id": 1},
        {"post_id": 1, "category_id": 2},
        {"post_id": 3, "category_id": 3},
    ]
    comments = [
        {"id": 1, "text": "Great post!", "post_id": 1},
        {"id": 2, "text": "Nice work", "post_id": 1},
        {"id": 3, "text": "Thanks", "post_id": 3},
    ]

    await connection.execute(tables["bio"].insert(), bios)
    await connection.execute(tables["profile"].insert(), profiles)
    await connection.execute(tables["author"].insert(), authors)
    await connection.execute(tables["post"].insert(), posts)
    await connection.execute(tables["category"].insert(), categories)
    await connection.execute(tables["post_categories_category"].insert(), post_categories)
    await connection.execute(tables["comment"].insert(), comments)

    return {
        "bios": bios,
        "profiles": profiles,
        "authors": authors,
        "posts": posts,
        "categories": categories,
        "comments": comments,
    }


@pytest.fixture(autouse=True)
def clear_lru_caches() -> Iterator[None]:
    yield
    cache_clear()
