from __future__ import annotations

import datetime
import warnings
from typing import Any

import pytest
import sqlalchemy as sa
from sqlalchemy.types import NullType

from sqla_entitymeta import EntityMetadata, EntitySchema, Registry, build_registry
from sqla_entitymeta.metadata import ColumnMetadata
from sqla_entitymeta.tools import build_table, build_tables, column_type, get_table_key


def _column(**kwargs: Any) -> ColumnMetadata:
    return ColumnMetadata(EntityMetadata(target="Thing", table_name="thing"), "value", "value", **kwargs)


class TestColumnType:
    @pytest.mark.parametrize(
        ("declared", "expected"),
        [
            ("int", sa.Integer),
            ("INTEGER", sa.Integer),
            ("bigint", sa.BigInteger),
            ("varchar", sa.String),
            ("text", sa.Text),
            ("bool", sa.Boolean),
            ("timestamp", sa.DateTime),
            ("uuid", sa.Uuid),
            ("json", sa.JSON),
            ("blob", sa.LargeBinary),
            (int, sa.Integer),
            (str, sa.String),
            (datetime.date, sa.Date),
            (sa.Float, sa.Float),
        ],
    )
    def test_mapping(self, declared: object, expected: type) -> None:
        assert isinstance(column_type(_column(type=declared)), expected)

    def test_instance_passes_through(self) -> None:
        declared = sa.Numeric(12, 4)

        assert column_type(_column(type=declared)) is declared

    def test_length_and_precision(self) -> None:
        varchar = column_type(_column(type="varchar", length="64"))
        numeric = column_type(_column(type="decimal", precision=10, scale=2))

        assert isinstance(varchar, sa.String)
        assert varchar.length == 64
        assert isinstance(numeric, sa.Numeric)
        assert (numeric.precision, numeric.scale) == (10, 2)

    def test_mode_fallback(self) -> None:
        assert isinstance(column_type(_column(mode="createDate")), sa.DateTime)
        assert isinstance(column_type(_column(mode="version")), sa.Integer)

    def test_unknown_type_warns(self) -> None:
        with pytest.warns(UserWarning, match="Unknown column type 'geometry' for Thing.value"):
            result = column_type(_column(type="geometry"))

        assert isinstance(result, NullType)

    def test_untyped_regular_column(self) -> None:
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            assert isinstance(column_type(_column()), NullType)


class TestGetTableKey:
    def test_plain(self) -> None:
        assert get_table_key(EntityMetadata(target="Post", table_name="post")) == "post"

    def test_schema(self) -> None:
        assert get_table_key(EntityMetadata(target="Post", table_name="post", schema="blog")) == "blog.post"


class TestBuildTables:
    def test_all_tables(self, sa_metadata: sa.MetaData) -> None:
        assert sorted(sa_metadata.tables) == [
            "author",
            "bio",
            "category",
            "category_children_category",
            "comment",
            "post",
            "post_categories_category",
            "profile",
        ]

    def test_columns(self, sa_metadata: sa.MetaData) -> None:
        post = sa_metadata.tables["post"]

        assert list(post.c.keys()) == ["id", "title", "views", "created_at", "author_id"]
        assert post.c.id.primary_key
        assert post.c.id.autoincrement is True
        assert not post.c.title.nullable
        assert post.c.author_id.nullable
        assert isinstance(post.c.created_at.type, sa.DateTime)
        assert post.c.views.default.arg == 0

    def test_foreign_keys(self, sa_metadata: sa.MetaData) -> None:
        comment = sa_metadata.tables["comment"]
        (fk,) = comment.foreign_key_constraints

        assert fk.name == "fk_comment_post_id_post"
        assert fk.ondelete == "CASCADE"
        assert fk.referred_table is sa_metadata.tables["post"]
        assert [element.target_fullname for element in fk.elements] == ["post.id"]

    def test_junction_table(self, sa_metadata: sa.MetaData) -> None:
        junction = sa_metadata.tables["post_categories_category"]

        assert [column.name for column in junction.primary_key.columns] == ["post_id", "category_id"]
        assert {fk.referred_table.name for fk in junction.foreign_key_constraints} == {"post", "category"}
        assert {fk.ondelete for fk in junction.foreign_key_constraints} == {"CASCADE"}
        assert {index.name for index in junction.indexes} == {
            "ix_post_categories_category_post_id",
            "ix_post_categories_category_category_id",
        }

    def test_indices(self, sa_metadata: sa.MetaData) -> None:
        (title_index,) = sa_metadata.tables["post"].indexes
        (name_index,) = sa_metadata.tables["category"].indexes

        assert title_index.name == "ix_post_title"
        assert not title_index.unique
        assert name_index.unique

    def test_build_table_reuses_existing(self, registry: Registry, sa_metadata: sa.MetaData) -> None:
        assert build_table(registry["Post"], sa_metadata) is sa_metadata.tables["post"]

    def test_checks_and_unsynchronized_indices(self) -> None:
        registry = build_registry([
            EntitySchema({
                "name": "Seat",
                "columns": {"id": {"type": "int", "primary": True}, "row": {"type": "int"}},
                "checks": [{"name": "ck_seat_row", "expression": "row > 0"}],
                "indices": [
                    {"name": "ix_seat_row", "columns": ["row"], "synchronize": False},
                    {"name": "ix_seat_live", "columns": ["row"], "where": "row > 10"},
                ],
            })
        ])
        table = build_tables(registry).tables["seat"]
        checks = [c for c in table.constraints if isinstance(c, sa.CheckConstraint)]

        assert [check.name for check in checks] == ["ck_seat_row"]
        assert {index.name for index in table.indexes} == {"ix_seat_live"}

    def test_schema_qualified(self) -> None:
        registry = build_registry([
            EntitySchema({
                "name": "Ledger",
                "schema": "accounts",
                "columns": {"id": {"type": "int", "primary": True}},
            })
        ])

        assert "accounts.ledger" in build_tables(registry).tables
