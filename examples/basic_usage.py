"""Basic sqla-entitymeta usage examples.

Demonstrates building the registry, creating tables, loading relations,
explicit joins, conditions and pagination.

NOTE: This file is illustrative; it won't run standalone
without seeded data.
"""

from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncConnection, create_async_engine

from sqla_entitymeta import (
    FindManyOptions,
    JoinOptions,
    SelectQueryBuilder,
    apply_find_many_options_or_conditions,
    build_registry,
    build_tables,
)

from .schemas import SCHEMAS


# ── 1. Build metadata once at startup ────────────────────────────────

registry = build_registry(SCHEMAS)
sa_metadata = build_tables(registry)
engine = create_async_engine("sqlite+aiosqlite:///:memory:")


async def setup() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(sa_metadata.create_all)


async def fetch(conn: AsyncConnection, target: str, options: object) -> list[sa.RowMapping]:
    qb = apply_find_many_options_or_conditions(SelectQueryBuilder(registry[target]), options)
    result = await conn.execute(qb.to_select(sa_metadata))
    return list(result.mappings().all())


# ── 2. Relations ─────────────────────────────────────────────────────


async def get_posts_with_comments(conn: AsyncConnection) -> list[sa.RowMapping]:
    # the eager ``author`` relation of each post is joined as well
    return await fetch(conn, "Comment", {"relations": ["post"]})


async def get_users_with_roles(conn: AsyncConnection) -> list[sa.RowMapping]:
    # many-to-many goes through the synthesized ``users_roles_role`` table
    return await fetch(conn, "User", {"relations": ["roles"]})


# ── 3. Explicit joins ────────────────────────────────────────────────


async def get_commented_posts(conn: AsyncConnection) -> list[sa.RowMapping]:
    options = FindManyOptions(join=JoinOptions(inner_join={"c": "post.comments"}))
    return await fetch(conn, "Post", options)


# ── 4. Conditions, order and pagination ──────────────────────────────


async def get_active_users(conn: AsyncConnection) -> list[sa.RowMapping]:
    return await fetch(conn, "User", {"active": True})


async def get_latest_posts(conn: AsyncConnection, page: int, size: int = 10) -> list[sa.RowMapping]:
    return await fetch(
        conn,
        "Post",
        {"select": ["id", "title"], "order": {"created_at": "DESC"}, "skip": page * size, "take": size},
    )
