from __future__ import annotations

import dataclasses
import sys
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Literal, Protocol

import sqlalchemy as sa

from .errors import ColumnNotFoundError, JoinPathError
from .metadata import ColumnMetadata, EntityMetadata
from .naming import NamingStrategy
from .options import RelationIdOptions
from .resolver import JoinAttribute, JoinKind
from .tools import build_table


if sys.version_info >= (3, 11):
    from typing import Self
else:
    from typing_extensions import Self


OrderDirection = Literal["ASC", "DESC"]


@dataclass(slots=True, frozen=True)
class CacheSettings:
    enabled: bool = True
    id: str | None = None
    milliseconds: int | None = None


@dataclass(slots=True, frozen=True)
class RelationIdSettings:
    """``relations=None`` loads ids of every relation of the root entity."""

    relations: tuple[str, ...] | None = None
    disable_mixed_map: bool = False


@dataclass(slots=True, frozen=True)
class QueryState:
    selection: tuple[str, ...] = ()
    where: tuple[Any, ...] = ()
    skip: int | None = None
    take: int | None = None
    order_bys: tuple[tuple[str, OrderDirection], ...] = ()
    joins: tuple[JoinAttribute, ...] = ()
    cache: CacheSettings | None = None
    relation_ids: RelationIdSettings | None = None


class QueryBuilder(Protocol):
    """Query-building surface the find-options assembler drives.

    Implementations are generative: every method returns a new builder and
    leaves the receiver unchanged.
    """

    @property
    def alias(self) -> str: ...

    @property
    def metadata(self) -> EntityMetadata: ...

    @property
    def join_attributes(self) -> tuple[JoinAttribute, ...]: ...

    def select(self, selection: Sequence[str]) -> Self: ...

    def where(self, predicate: Any) -> Self: ...

    def skip(self, skip: int | str | None) -> Self: ...

    def take(self, take: int | str | None) -> Self: ...

    def add_order_by(self, sort: str, order: OrderDirection = "ASC") -> Self: ...

    def left_join(self, entity_or_property: str, alias: str) -> Self: ...

    def inner_join(self, entity_or_property: str, alias: str) -> Self: ...

    def left_join_and_select(self, entity_or_property: str, alias: str) -> Self: ...

    def inner_join_and_select(self, entity_or_property: str, alias: str) -> Self: ...

    def add_joins(self, joins: Iterable[JoinAttribute]) -> Self: ...

    def cache(self, enabled_or_id: bool | int | str, milliseconds: int | None = None) -> Self: ...

    def load_all_relation_ids(self, options: RelationIdOptions | None = None) -> Self: ...


class SelectQueryBuilder:
    """Generative SELECT builder over entity metadata.

    Collects selection, predicates, pagination, ordering and joins as an
    immutable :class:`QueryState`; :meth:`to_select` renders it as a
    ``sa.Select``. Every method returns a new builder, so a failure half way
    through assembling a query never affects a builder the caller holds.

    Example:
        >>> qb = SelectQueryBuilder(registry["Post"], "post")
        >>> qb = qb.left_join_and_select("post.author", "author").add_order_by("post.id", "DESC")
        >>> print(qb.take(10).to_select())
        SELECT post.id AS "post.id", ... FROM post AS post LEFT OUTER JOIN "user" AS author ...
    """

    __slots__ = ("_alias", "_metadata", "_naming_strategy", "_state")

    def __init__(
        self,
        metadata: EntityMetadata,
        alias: str | None = None,
        *,
        naming_strategy: NamingStrategy | None = None,
        state: QueryState | None = None,
    ) -> None:
        self._metadata = metadata
        self._alias = alias or metadata.table_name
        self._naming_strategy = naming_strategy
        self._state = state or QueryState()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._metadata.name} as {self._alias!r}>"

    def _replace(self, **changes: Any) -> Self:
        return type(self)(
            self._metadata,
            self._alias,
            naming_strategy=self._naming_strategy,
            state=dataclasses.replace(self._state, **changes),
        )

    # ------------------------------------------------------------------
    # read-back

    @property
    def alias(self) -> str:
        return self._alias

    @property
    def metadata(self) -> EntityMetadata:
        return self._metadata

    @property
    def state(self) -> QueryState:
        return self._state

    @property
    def join_attributes(self) -> tuple[JoinAttribute, ...]:
        return self._state.joins

    def find_join(self, alias: str) -> JoinAttribute | None:
        return next((join for join in self._state.joins if join.alias == alias), None)

    def metadata_for_alias(self, alias: str) -> EntityMetadata | None:
        if alias == self._alias:
            return self._metadata

        join = self.find_join(alias)
        return join.metadata if join else None

    # ------------------------------------------------------------------
    # query shape

    def select(self, selection: Sequence[str]) -> Self:
        """Replace the selection with *selection* (``"alias.property"`` entries).

        An empty selection renders every root column.
        """
        return self._replace(selection=tuple(selection))

    def add_select(self, selection: str) -> Self:
        return self._replace(selection=(*self._state.selection, selection))

    def where(self, predicate: Any) -> Self:
        return self._replace(where=(predicate,))

    def and_where(self, predicate: Any) -> Self:
        return self._replace(where=(*self._state.where, predicate))

    def skip(self, skip: int | str | None) -> Self:
        return self._replace(skip=None if skip is None else int(skip))

    def take(self, take: int | str | None) -> Self:
        return self._replace(take=None if take is None else int(take))

    def order_by(self, sort: str, order: OrderDirection = "ASC") -> Self:
        return self._replace(order_bys=((sort, order),))

    def add_order_by(self, sort: str, order: OrderDirection = "ASC") -> Self:
        return self._replace(order_bys=(*self._state.order_bys, (sort, order)))

    # ------------------------------------------------------------------
    # joins

    def left_join(self, entity_or_property: str, alias: str) -> Self:
        return self._join(entity_or_property, alias, kind="left", select=False)

    def inner_join(self, entity_or_property: str, alias: str) -> Self:
        return self._join(entity_or_property, alias, kind="inner", select=False)

    def left_join_and_select(self, entity_or_property: str, alias: str) -> Self:
        return self._join(entity_or_property, alias, kind="left", select=True)

    def inner_join_and_select(self, entity_or_property: str, alias: str) -> Self:
        return self._join(entity_or_property, alias, kind="inner", select=True)

    def add_joins(self, joins: Iterable[JoinAttribute]) -> Self:
        """Append resolved joins; every alias must be new and free of dots."""
        added = tuple(joins)
        taken = {self._alias, *(join.alias for join in self._state.joins)}
        for join in added:
            if "." in join.alias:
                raise JoinPathError(join.entity_or_property, f"alias {join.alias!r} contains a dot")
            if join.alias in taken:
                raise JoinPathError(join.entity_or_property, f"alias {join.alias!r} is already in use")
            taken.add(join.alias)

        return self._replace(joins=(*self._state.joins, *added))

    def _join(self, entity_or_property: str, alias: str, *, kind: JoinKind, select: bool) -> Self:
        parent_alias, sep, property_path = entity_or_property.partition(".")
        if not sep or not property_path:
            raise JoinPathError(entity_or_property, "expected 'alias.relation'")

        if (parent_metadata := self.metadata_for_alias(parent_alias)) is None:
            raise JoinPathError(entity_or_property, f"unknown alias {parent_alias!r}")

        if (relation := parent_metadata.find_relation_with_property_path(property_path)) is None:
            raise JoinPathError(
                entity_or_property, f"{parent_metadata.name} has no relation {property_path!r}"
            )

        return self.add_joins((
            JoinAttribute(
                alias=alias,
                parent_alias=parent_alias,
                parent_metadata=parent_metadata,
                relation=relation,
                kind=kind,
                select=select,
            ),
        ))

    # ------------------------------------------------------------------
    # caching / relation ids

    def cache(self, enabled_or_id: bool | int | str, milliseconds: int | None = None) -> Self:
        """Attach cache settings: ``True``, a duration in milliseconds, or a cache id."""
        if isinstance(enabled_or_id, bool):
            settings = CacheSettings(enabled=enabled_or_id, milliseconds=milliseconds)
        elif isinstance(enabled_or_id, str):
            settings = CacheSettings(id=enabled_or_id, milliseconds=milliseconds)
        else:
            settings = CacheSettings(milliseconds=milliseconds if milliseconds is not None else enabled_or_id)

        return self._replace(cache=settings)

    def load_all_relation_ids(self, options: RelationIdOptions | None = None) -> Self:
        if options is None:
            return self._replace(relation_ids=RelationIdSettings())

        return self._replace(
            relation_ids=RelationIdSettings(
                relations=options.relations,
                disable_mixed_map=options.disable_mixed_map,
            )
        )

    # ------------------------------------------------------------------
    # rendering

    def to_select(self, sa_metadata: sa.MetaData | None = None) -> sa.Select[Any]:
        """Render the collected state as a ``sa.Select``.

        Tables are taken from (or added to) *sa_metadata*. Selected columns are
        labelled ``<alias>.<column>``; aliases are unique and never contain a dot,
        so labels never collide. Cache and relation-id settings travel as
        ``entitymeta_cache`` / ``entitymeta_relation_ids`` execution options.
        """
        sa_metadata = sa_metadata if sa_metadata is not None else sa.MetaData()
        state = self._state

        root = build_table(self._metadata, sa_metadata, self._naming_strategy).alias(self._alias)
        froms: dict[str, sa.FromClause] = {self._alias: root}
        from_clause: sa.FromClause = root

        for join in state.joins:
            target = build_table(join.metadata, sa_metadata, self._naming_strategy).alias(join.alias)
            from_clause = self._join_clause(from_clause, froms[join.parent_alias], target, join, sa_metadata)
            froms[join.alias] = target

        if state.selection:
            columns = [self._column(froms, entry) for entry in state.selection]
        else:
            columns = _labelled(self._alias, root)
        for join in state.joins:
            if join.select:
                columns += _labelled(join.alias, froms[join.alias])

        query = sa.select(*columns).select_from(from_clause)

        clauses = [clause for predicate in state.where for clause in self._where_clauses(root, predicate)]
        if clauses:
            query = query.where(*clauses)

        for sort, direction in state.order_bys:
            column = self._column(froms, sort, label=False)
            query = query.order_by(column.desc() if direction == "DESC" else column.asc())

        if state.skip is not None:
            query = query.offset(state.skip)
        if state.take is not None:
            query = query.limit(state.take)

        options: dict[str, Any] = {}
        if state.cache is not None:
            options["entitymeta_cache"] = state.cache
        if state.relation_ids is not None:
            options["entitymeta_relation_ids"] = state.relation_ids

        return query.execution_options(**options) if options else query

    def _column(
        self, froms: Mapping[str, sa.FromClause], entry: str, *, label: bool = True
    ) -> sa.ColumnElement[Any]:
        alias, _, property_path = entry.rpartition(".")
        alias = alias or self._alias
        metadata = self.metadata_for_alias(alias)
        if metadata is None:
            raise JoinPathError(entry, f"unknown alias {alias!r}")

        if (column := metadata.find_column_with_property_path(property_path)) is None:
            raise ColumnNotFoundError(property_path, metadata.name)

        element = froms[alias].c[column.database_name]
        return element.label(f"{alias}.{column.database_name}") if label else element

    def _where_clauses(self, root: sa.FromClause, predicate: Any) -> list[sa.ColumnElement[bool]]:
        if isinstance(predicate, str):
            return [sa.text(predicate)]

        if isinstance(predicate, Mapping):
            return [
                root.c[self._property_column(key).database_name] == value
                for key, value in predicate.items()
            ]

        if isinstance(predicate, (list, tuple)):
            return [
                sa.or_(*(sa.and_(*self._where_clauses(root, item)) for item in predicate))
            ]

        return [predicate]

    def _property_column(self, property_path: str) -> ColumnMetadata:
        if (column := self._metadata.find_column_with_property_path(property_path)) is None:
            raise ColumnNotFoundError(property_path, self._metadata.name)

        return column

    def _join_clause(
        self,
        from_clause: sa.FromClause,
        parent: sa.FromClause,
        target: sa.FromClause,
        join: JoinAttribute,
        sa_metadata: sa.MetaData,
    ) -> sa.FromClause:
        relation = join.relation
        isouter = join.kind == "left"

        if relation.is_many_to_many:
            owning = relation if relation.junction_entity_metadata is not None else relation.inverse_relation
            if owning is None or owning.junction_entity_metadata is None:
                raise JoinPathError(join.entity_or_property, "many-to-many relation has no join table")

            junction_metadata = owning.junction_entity_metadata
            junction = build_table(junction_metadata, sa_metadata, self._naming_strategy).alias(
                f"{join.alias}_{junction_metadata.table_name}"
            )
            if owning is relation:
                parent_side, target_side = junction_metadata.owner_columns, junction_metadata.inverse_columns
            else:
                parent_side, target_side = junction_metadata.inverse_columns, junction_metadata.owner_columns

            return from_clause.join(
                junction, _on(junction, parent, parent_side), isouter=isouter
            ).join(target, _on(junction, target, target_side), isouter=isouter)

        if relation.join_columns:
            return from_clause.join(target, _on(parent, target, relation.join_columns), isouter=isouter)

        if relation.inverse_relation is not None and relation.inverse_relation.join_columns:
            return from_clause.join(
                target, _on(target, parent, relation.inverse_relation.join_columns), isouter=isouter
            )

        raise JoinPathError(join.entity_or_property, "relation has no join columns on either side")


def _on(
    owner: sa.FromClause,
    referenced: sa.FromClause,
    columns: Sequence[ColumnMetadata],
) -> sa.ColumnElement[bool]:
    """``owner.fk = referenced.pk`` for every join column in *columns*."""
    return sa.and_(*(
        owner.c[column.database_name]
        == referenced.c[column.referenced_column.database_name]  # type: ignore[union-attr]
        for column in columns
    ))


def _labelled(alias: str, from_clause: sa.FromClause) -> list[sa.ColumnElement[Any]]:
    return [column.label(f"{alias}.{column.name}") for column in from_clause.c]
