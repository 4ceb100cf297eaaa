from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from .errors import (
    ColumnNotFoundError,
    EagerRelationCycleError,
    EntityMetadataError,
    EntityNotFoundError,
    ReferencedColumnNotFoundError,
)
from .junction import JunctionEntityMetadataBuilder
from .metadata import (
    CheckMetadata,
    ColumnMetadata,
    EntityMetadata,
    ExclusionMetadata,
    ForeignKeyMetadata,
    IndexMetadata,
    RelationMetadata,
)
from .naming import DefaultNamingStrategy, NamingStrategy
from .registry import Registry
from .schema import ColumnArgs, MetadataArgsStorage, RelationArgs, TableArgs


logger = logging.getLogger(__name__)


class MetadataBuilder:
    """Build the :class:`EntityMetadata` graph from normalized metadata args.

    The build runs in passes, each of which needs the previous one complete:

    1. entities and their declared columns;
    2. relations, with target entity and inverse relation resolved;
    3. join columns and foreign keys of many-to-one / owning one-to-one sides;
    4. junction entities of owning many-to-many sides;
    5. indices, uniques, checks, exclusions;
    6. eager-relation cycle validation.
    """

    __slots__ = ("_junction_builder", "naming_strategy")

    def __init__(self, naming_strategy: NamingStrategy | None = None) -> None:
        self.naming_strategy = naming_strategy or DefaultNamingStrategy()
        self._junction_builder = JunctionEntityMetadataBuilder(self.naming_strategy)

    def build(self, storage: MetadataArgsStorage) -> Registry:
        entities: dict[str, EntityMetadata] = {}
        for table in storage.tables:
            if table.target in entities:
                raise EntityMetadataError(f"Entity {table.target!r} is declared more than once")

            entity = self._create_entity(table)
            entity.own_columns = tuple(
                self._create_column(entity, column, storage)
                for column in storage.filter_columns(table.target)
            )
            entities[table.target] = entity

        for entity in entities.values():
            entity.relations = tuple(
                self._create_relation(entity, relation)
                for relation in storage.filter_relations(entity.target)
            )

        for entity in entities.values():
            for relation in entity.relations:
                self._resolve_relation(relation, entities)

        for entity in entities.values():
            for relation in entity.relations:
                if relation.is_many_to_one or (
                    relation.is_one_to_one and storage.find_join_column(entity.target, relation.property_name)
                ):
                    self._create_join_columns(relation, storage)

        junctions: list[EntityMetadata] = []
        for entity in entities.values():
            for relation in entity.relations:
                if relation.is_many_to_many and (
                    join_table := storage.find_join_table(entity.target, relation.property_name)
                ):
                    relation.junction_entity_metadata = self._junction_builder.build(relation, join_table)
                    junctions.append(relation.junction_entity_metadata)

        for entity in entities.values():
            self._create_constraints(entity, storage)

        _validate_eager_relations(entities.values())

        logger.debug("Built metadata for %d entities and %d junctions", len(entities), len(junctions))

        return Registry(entities, junctions)

    def _create_entity(self, table: TableArgs) -> EntityMetadata:
        return EntityMetadata(
            target=table.target,
            table_name=self.naming_strategy.table_name(table.target, table.name),
            database=table.database,
            schema=table.schema,
            type=table.type,
            order_by=table.order_by,
            synchronize=table.synchronize is not False,
        )

    def _create_column(
        self, entity: EntityMetadata, column: ColumnArgs, storage: MetadataArgsStorage
    ) -> ColumnMetadata:
        options: Mapping[str, Any] = column.options
        generation = storage.find_generation(entity.target, column.property_name)

        return ColumnMetadata(
            entity_metadata=entity,
            property_name=column.property_name,
            database_name=self.naming_strategy.column_name(column.property_name, options.get("name")),
            mode=column.mode,
            type=options.get("type"),
            length=options.get("length"),
            width=options.get("width"),
            precision=options.get("precision"),
            scale=options.get("scale"),
            charset=options.get("charset"),
            collation=options.get("collation"),
            zerofill=bool(options.get("zerofill")),
            unsigned=bool(options.get("unsigned")),
            primary=bool(options.get("primary")),
            nullable=bool(options.get("nullable")),
            unique=bool(options.get("unique")),
            default=options.get("default"),
            comment=options.get("comment"),
            generation_strategy=generation.strategy if generation else None,
        )

    def _create_relation(self, entity: EntityMetadata, relation: RelationArgs) -> RelationMetadata:
        options = relation.options

        return RelationMetadata(
            entity_metadata=entity,
            property_name=relation.property_name,
            relation_type=relation.relation_type,
            target=relation.type,
            inverse_side_property=relation.inverse_side_property,
            is_eager=bool(options.get("eager")),
            is_lazy=relation.is_lazy,
            is_tree_parent=relation.is_tree_parent,
            is_tree_children=relation.is_tree_children,
            cascade=options.get("cascade") or False,
            nullable=options.get("nullable") is not False,
            on_delete=options.get("on_delete"),
            on_update=options.get("on_update"),
            primary=bool(options.get("primary")),
            persistence=options.get("persistence") is not False,
        )

    def _resolve_relation(self, relation: RelationMetadata, entities: Mapping[str, EntityMetadata]) -> None:
        if (inverse_entity := entities.get(relation.target)) is None:
            raise EntityNotFoundError(relation.target)

        relation.inverse_entity_metadata = inverse_entity
        if relation.inverse_side_property:
            relation.inverse_relation = inverse_entity.find_relation_with_property_path(
                relation.inverse_side_property
            )
        else:
            relation.inverse_relation = next(
                (
                    candidate
                    for candidate in inverse_entity.relations
                    if candidate.inverse_side_property == relation.property_name
                    and candidate.target == relation.entity_metadata.target
                ),
                None,
            )

    def _create_join_columns(self, relation: RelationMetadata, storage: MetadataArgsStorage) -> None:
        entity = relation.entity_metadata
        target = relation.inverse_entity_metadata
        join_column = storage.find_join_column(entity.target, relation.property_name)

        if join_column and join_column.referenced_column_name:
            referenced = target.find_column_with_property_path(join_column.referenced_column_name)
            if referenced is None:
                raise ReferencedColumnNotFoundError(join_column.referenced_column_name, target.name)
            referenced_columns: tuple[ColumnMetadata, ...] = (referenced,)
        else:
            referenced_columns = target.primary_columns

        columns: list[ColumnMetadata] = []
        for referenced in referenced_columns:
            name = (
                join_column.name
                if join_column and join_column.name and len(referenced_columns) == 1
                else self.naming_strategy.join_column_name(relation.property_name, referenced.database_name)
            )
            column = next((own for own in entity.own_columns if own.database_name == name), None)
            if column is None:
                column = ColumnMetadata(
                    entity_metadata=entity,
                    property_name=name,
                    database_name=name,
                    mode="virtual",
                    type=referenced.type,
                    length=referenced.length,
                    width=referenced.width,
                    precision=referenced.precision,
                    scale=referenced.scale,
                    charset=referenced.charset,
                    collation=referenced.collation,
                    zerofill=referenced.zerofill,
                    unsigned=referenced.unsigned,
                    primary=relation.primary,
                    nullable=relation.nullable and not relation.primary,
                )
            column.relation_metadata = relation
            column.referenced_column = referenced
            columns.append(column)

        relation.join_columns = tuple(columns)
        entity.foreign_keys = (
            *entity.foreign_keys,
            ForeignKeyMetadata(
                entity_metadata=entity,
                referenced_entity_metadata=target,
                columns=relation.join_columns,
                referenced_columns=referenced_columns,
                on_delete=relation.on_delete,
                on_update=relation.on_update,
            ),
        )

    def _create_constraints(self, entity: EntityMetadata, storage: MetadataArgsStorage) -> None:
        def resolve(names: Iterable[str]) -> tuple[ColumnMetadata, ...]:
            columns = []
            for name in names:
                if (column := entity.find_column_with_property_path(name)) is None:
                    raise ColumnNotFoundError(name, entity.name)
                columns.append(column)

            return tuple(columns)

        indices = [
            IndexMetadata(
                entity_metadata=entity,
                columns=resolve(index.columns),
                name=index.name,
                unique=index.unique,
                spatial=index.spatial,
                fulltext=index.fulltext,
                synchronize=index.synchronize,
                where=index.where,
            )
            for index in storage.indices
            if index.target == entity.target
        ]
        indices += [
            IndexMetadata(
                entity_metadata=entity, columns=resolve(unique.columns), name=unique.name, unique=True
            )
            for unique in storage.uniques
            if unique.target == entity.target
        ]
        entity.indices = tuple(indices)
        entity.checks = tuple(
            CheckMetadata(entity_metadata=entity, expression=check.expression, name=check.name)
            for check in storage.checks
            if check.target == entity.target
        )
        entity.exclusions = tuple(
            ExclusionMetadata(entity_metadata=entity, expression=exclusion.expression, name=exclusion.name)
            for exclusion in storage.exclusions
            if exclusion.target == entity.target
        )


def _validate_eager_relations(entities: Iterable[EntityMetadata]) -> None:
    """Raise ``EagerRelationCycleError`` if following eager relations can loop forever."""

    def visit(entity: EntityMetadata, path: tuple[EntityMetadata, ...], trail: tuple[str, ...]) -> None:
        for relation in entity.eager_relations:
            step = (*trail, f"{entity.name}.{relation.property_name}")
            target = relation.inverse_entity_metadata
            if target in path:
                raise EagerRelationCycleError(step)

            visit(target, (*path, target), step)

    for entity in entities:
        visit(entity, (entity,), ())
