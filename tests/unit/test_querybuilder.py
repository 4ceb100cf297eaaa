from __future__ import annotations

import pytest
import sqlalchemy as sa

from sqla_entitymeta import (
    ColumnNotFoundError,
    JoinPathError,
    Registry,
    RelationIdOptions,
    SelectQueryBuilder,
    build_tables,
    resolve_relations,
)
from sqla_entitymeta.querybuilder import CacheSettings, QueryState, RelationIdSettings


def _sql(query: sa.Select) -> str:
    return str(query)


class TestState:
    def test_defaults(self, registry: Registry) -> None:
        qb = SelectQueryBuilder(registry["Post"])

        assert qb.alias == "post"
        assert qb.metadata is registry["Post"]
        assert qb.state == QueryState()
        assert qb.join_attributes == ()

    def test_generative(self, registry: Registry) -> None:
        qb = SelectQueryBuilder(registry["Post"], "p")
        limited = qb.take(5).skip("10")

        assert qb.state.take is None
        assert limited.state.take == 5
        assert limited.state.skip == 10
        assert limited is not qb

    def test_select_replaces(self, registry: Registry) -> None:
        qb = SelectQueryBuilder(registry["Post"], "p").select(["p.id"]).add_select("p.title")

        assert qb.state.selection == ("p.id", "p.title")
        assert qb.select(["p.views"]).state.selection == ("p.views",)

    def test_where_replaces_and_where_appends(self, registry: Registry) -> None:
        qb = SelectQueryBuilder(registry["Post"], "p").where("views > 1").and_where("views < 10")

        assert qb.state.where == ("views > 1", "views < 10")
        assert qb.where("id = 1").state.where == ("id = 1",)

    def test_order_by(self, registry: Registry) -> None:
        qb = SelectQueryBuilder(registry["Post"], "p").order_by("p.id").add_order_by("p.title", "DESC")

        assert qb.state.order_bys == (("p.id", "ASC"), ("p.title", "DESC"))
        assert qb.order_by("p.views", "DESC").state.order_bys == (("p.views", "DESC"),)

    def test_repr(self, registry: Registry) -> None:
        assert repr(SelectQueryBuilder(registry["Post"], "p")) == "<SelectQueryBuilder Post as 'p'>"


class TestJoins:
    def test_left_join_and_select(self, registry: Registry) -> None:
        qb = SelectQueryBuilder(registry["Post"], "p").left_join_and_select("p.author", "a")
        (join,) = qb.join_attributes

        assert join.alias == "a"
        assert join.kind == "left"
        assert join.select
        assert qb.find_join("a") is join
        assert qb.metadata_for_alias("a") is registry["Author"]
        assert qb.metadata_for_alias("p") is registry["Post"]
        assert qb.metadata_for_alias("x") is None

    @pytest.mark.parametrize(
        ("method", "kind", "select"),
        [
            ("left_join", "left", False),
            ("inner_join", "inner", False),
            ("left_join_and_select", "left", True),
            ("inner_join_and_select", "inner", True),
        ],
    )
    def test_join_kinds(self, registry: Registry, method: str, kind: str, select: bool) -> None:
        qb = getattr(SelectQueryBuilder(registry["Post"], "p"), method)("p.comments", "c")
        (join,) = qb.join_attributes

        assert join.kind == kind
        assert join.select is select

    def test_chained_join(self, registry: Registry) -> None:
        qb = (
            SelectQueryBuilder(registry["Post"], "p")
            .left_join_and_select("p.author", "a")
            .left_join_and_select("a.profile", "pr")
        )

        assert qb.find_join("pr").parent_metadata is registry["Author"]  # type: ignore[union-attr]

    @pytest.mark.parametrize(
        ("expression", "alias", "message"),
        [
            ("author", "a", "expected 'alias.relation'"),
            ("p.", "a", "expected 'alias.relation'"),
            ("x.author", "a", "unknown alias 'x'"),
            ("p.ghost", "a", "Post has no relation 'ghost'"),
            ("p.author", "p", "alias 'p' is already in use"),
        ],
    )
    def test_invalid_join(self, registry: Registry, expression: str, alias: str, message: str) -> None:
        qb = SelectQueryBuilder(registry["Post"], "p")

        with pytest.raises(JoinPathError, match=message):
            qb.left_join(expression, alias)

    def test_add_joins(self, registry: Registry) -> None:
        graph = resolve_relations(["author"], "p", registry["Post"])
        qb = SelectQueryBuilder(registry["Post"], "p").add_joins(graph)

        assert tuple(join.alias for join in qb.join_attributes) == ("p__author", "p__author_bio")

    def test_add_joins_rejects_alias_in_use(self, registry: Registry) -> None:
        graph = resolve_relations(["author"], "p", registry["Post"])
        qb = SelectQueryBuilder(registry["Post"], "p").add_joins(graph)

        with pytest.raises(JoinPathError, match="alias 'p__author' is already in use"):
            qb.add_joins(graph)
        with pytest.raises(JoinPathError, match="alias 'p__author' is already in use"):
            qb.left_join("p.comments", "p__author")

    def test_add_joins_rejects_dotted_alias(self, registry: Registry) -> None:
        with pytest.raises(JoinPathError, match="alias 'a.b' contains a dot"):
            SelectQueryBuilder(registry["Post"], "p").left_join("p.author", "a.b")


class TestSettings:
    def test_cache_true(self, registry: Registry) -> None:
        qb = SelectQueryBuilder(registry["Post"]).cache(True)

        assert qb.state.cache == CacheSettings()

    def test_cache_milliseconds(self, registry: Registry) -> None:
        qb = SelectQueryBuilder(registry["Post"]).cache(1000)

        assert qb.state.cache == CacheSettings(milliseconds=1000)

    def test_cache_id(self, registry: Registry) -> None:
        qb = SelectQueryBuilder(registry["Post"]).cache("posts", 500)

        assert qb.state.cache == CacheSettings(id="posts", milliseconds=500)

    def test_relation_ids(self, registry: Registry) -> None:
        qb = SelectQueryBuilder(registry["Post"])

        assert qb.load_all_relation_ids().state.relation_ids == RelationIdSettings()
        assert qb.load_all_relation_ids(
            RelationIdOptions(relations=("author",), disable_mixed_map=True)
        ).state.relation_ids == RelationIdSettings(relations=("author",), disable_mixed_map=True)


class TestToSelect:
    def test_root_only(self, registry: Registry) -> None:
        sql = _sql(SelectQueryBuilder(registry["Post"], "p").to_select())

        assert "FROM post AS p" in sql
        assert 'p.id AS "p.id"' in sql
        assert 'p.author_id AS "p.author_id"' in sql
        assert "JOIN" not in sql

    def test_many_to_one(self, registry: Registry) -> None:
        qb = SelectQueryBuilder(registry["Post"], "p").left_join_and_select("p.author", "a")
        sql = _sql(qb.to_select())

        assert "LEFT OUTER JOIN author AS a ON p.author_id = a.id" in sql
        assert 'a.name AS "a.name"' in sql

    def test_one_to_many(self, registry: Registry) -> None:
        sql = _sql(SelectQueryBuilder(registry["Post"], "p").inner_join("p.comments", "c").to_select())

        assert "JOIN comment AS c ON c.post_id = p.id" in sql
        assert "LEFT OUTER JOIN comment" not in sql
        assert "c.text" not in sql

    def test_inverse_one_to_one(self, registry: Registry) -> None:
        qb = SelectQueryBuilder(registry["Profile"], "pr").left_join_and_select("pr.author", "a")
        sql = _sql(qb.to_select())

        assert "LEFT OUTER JOIN author AS a ON a.profile_ref = pr.id" in sql

    def test_many_to_many_owner(self, registry: Registry) -> None:
        sql = _sql(
            SelectQueryBuilder(registry["Post"], "p").left_join_and_select("p.categories", "c").to_select()
        )

        assert (
            "LEFT OUTER JOIN post_categories_category AS c_post_categories_category "
            "ON c_post_categories_category.post_id = p.id"
        ) in sql
        assert "LEFT OUTER JOIN category AS c ON c_post_categories_category.category_id = c.id" in sql

    def test_many_to_many_inverse(self, registry: Registry) -> None:
        sql = _sql(
            SelectQueryBuilder(registry["Category"], "c").left_join_and_select("c.posts", "p").to_select()
        )

        assert "ON c_post_categories_category.category_id = c.id" not in sql
        assert "ON p_post_categories_category.category_id = c.id" in sql
        assert "LEFT OUTER JOIN post AS p ON p_post_categories_category.post_id = p.id" in sql

    def test_self_referencing_many_to_many(self, registry: Registry) -> None:
        sql = _sql(
            SelectQueryBuilder(registry["Category"], "c").left_join_and_select("c.children", "ch").to_select()
        )

        assert "ON ch_category_children_category.category_id_1 = c.id" in sql
        assert "ON ch_category_children_category.category_id_2 = ch.id" in sql

    def test_labels_distinct_with_eager_joins(self, registry: Registry) -> None:
        graph = resolve_relations(["author"], "post", registry["Post"])
        query = SelectQueryBuilder(registry["Post"], "post").add_joins(graph).to_select()
        labels = [column.key for column in query.selected_columns]

        assert len(labels) == len(set(labels))
        assert {"post.author_id", "post__author.bio_id", "post__author_bio.id"} <= set(labels)

    def test_selection(self, registry: Registry) -> None:
        sql = _sql(SelectQueryBuilder(registry["Post"], "p").select(["p.id", "title"]).to_select())

        assert sql.startswith('SELECT p.id AS "p.id", p.title AS "p.title" \nFROM')

    def test_selection_unknown_column(self, registry: Registry) -> None:
        qb = SelectQueryBuilder(registry["Post"], "p").select(["p.bogus"])

        with pytest.raises(ColumnNotFoundError, match="bogus column was not found in the Post entity"):
            qb.to_select()

    def test_where_mapping(self, registry: Registry) -> None:
        sql = _sql(SelectQueryBuilder(registry["Post"], "p").where({"title": "x"}).to_select())

        assert "WHERE p.title = :title_1" in sql

    def test_where_list_is_or(self, registry: Registry) -> None:
        sql = _sql(SelectQueryBuilder(registry["Post"], "p").where([{"id": 1}, {"id": 2}]).to_select())

        assert "WHERE p.id = :id_1 OR p.id = :id_2" in sql

    def test_where_text_and_clause(self, registry: Registry) -> None:
        qb = SelectQueryBuilder(registry["Post"], "p").where("p.views > 10").and_where(sa.column("flag") == 1)
        sql = _sql(qb.to_select())

        assert "WHERE p.views > 10 AND flag = :flag_1" in sql

    def test_order_and_pagination(self, registry: Registry) -> None:
        qb = SelectQueryBuilder(registry["Post"], "p").add_order_by("p.views", "DESC").skip(5).take(10)
        query = qb.to_select()
        sql = _sql(query)

        assert "ORDER BY p.views DESC" in sql
        assert "LIMIT :param_1 OFFSET :param_2" in sql

    def test_execution_options(self, registry: Registry) -> None:
        query = SelectQueryBuilder(registry["Post"]).cache("posts").load_all_relation_ids().to_select()
        options = query.get_execution_options()

        assert options["entitymeta_cache"] == CacheSettings(id="posts")
        assert options["entitymeta_relation_ids"] == RelationIdSettings()

    def test_reuses_metadata(self, registry: Registry) -> None:
        sa_metadata = build_tables(registry)
        tables = dict(sa_metadata.tables)
        qb = SelectQueryBuilder(registry["Post"], "p").left_join_and_select("p.categories", "c")
        qb.to_select(sa_metadata)

        assert dict(sa_metadata.tables) == tables
